"""Tests for analysis and curriculum orchestration."""

from __future__ import annotations

import json
import threading
from pathlib import Path

import pytest

from stacktutor.config import StacktutorConfig
from stacktutor.digest import digest_document
from stacktutor.errors import BackendError, JobConflictError
from stacktutor.knowledge import STATUS_FAILED, STATUS_READY
from stacktutor.models import JobStatus, ProjectStatus
from stacktutor.orchestrator import CURRICULUM_JOB, Orchestrator
from stacktutor.stores.credentials import StaticCredentialStore
from stacktutor.stores.memory import InMemoryStore
from stacktutor.validators.technologies import DEFAULT_SUMMARY

ANALYSIS = {
    "technologies": [
        {"name": "Next.js", "category": "framework", "confidence": 0.97, "importance": "core", "version": "14.1.0"},
        {"name": "Tailwind CSS", "category": "styling", "confidence": 0.9, "importance": "supporting"},
        {"name": "Vitest", "category": "testing", "confidence": 0.7, "importance": "dev_dependency"},
    ],
    "architecture_summary": "A Next.js App Router project styled with Tailwind.",
}

CONCEPTS = json.dumps([{"concept_key": "basics", "concept_name": "Basics", "key_points": ["one"]}])

STRUCTURE = {
    "title": "Learn your stack",
    "difficulty": "beginner",
    "modules": [
        {"title": "Routing", "module_type": "concept", "tech_name": "Next.js"},
        {"title": "Utilities", "module_type": "practical", "tech_name": "Tailwind CSS"},
    ],
}


def _responder(analysis=ANALYSIS, concepts=CONCEPTS, content=None):
    def respond(prompt, system_prompt):
        if "technology stack analysis" in prompt:
            return analysis if isinstance(analysis, (str, BaseException)) else json.dumps(analysis)
        if "core educational concepts" in prompt:
            return concepts
        if "Create the STRUCTURE" in prompt:
            return json.dumps(STRUCTURE)
        if content is not None:
            return content
        titles = [module["title"] for module in STRUCTURE["modules"] if f"### {module['title']}" in prompt]
        return json.dumps([{"module_title": title, "sections": [{"body": f"About {title}"}]} for title in titles])

    return respond


@pytest.fixture
def snapshot(make_snapshot):
    return make_snapshot(
        [
            ("package.json", json.dumps({"dependencies": {"next": "14.1.0"}, "devDependencies": {"vitest": "1.0.0"}})),
            ("app/page.tsx", 'import Link from "next/link";\nexport default function Page() {}'),
        ],
        name="shop",
    )


@pytest.fixture
def make_orchestrator(tmp_path: Path, scripted_backend):
    created = []

    def _make(replies=None, *, keys=None, store=None, **kwargs):
        backend = scripted_backend(replies or _responder())
        orchestrator = Orchestrator(
            store or InMemoryStore(),
            config=StacktutorConfig(root=tmp_path),
            credentials=StaticCredentialStore({"anthropic": "sk-test"} if keys is None else keys),
            backend_factory=lambda *args, **options: backend,
            **kwargs,
        )
        orchestrator.backend = backend
        created.append(orchestrator)
        return orchestrator

    yield _make
    for orchestrator in created:
        orchestrator.shutdown()


def test_analysis_stores_technologies_and_summary(make_orchestrator, snapshot) -> None:
    transitions = []
    orchestrator = make_orchestrator(on_transition=[lambda job, old, new: transitions.append(new)])
    project = orchestrator.create_project("shop", snapshot)

    job = orchestrator.wait(orchestrator.start_analysis(project.id).id, timeout=5)

    assert job.status is JobStatus.COMPLETED
    assert (job.input_tokens, job.output_tokens) == (10, 5)
    assert (job.backend_name, job.model_name) == ("scripted", "scripted-model")
    assert transitions == [JobStatus.PROCESSING, JobStatus.COMPLETED]

    stored = {record.name: record for record in orchestrator.store.list_technologies(project.id)}
    assert set(stored) == {"Next.js", "Tailwind CSS", "Vitest"}
    assert stored["Next.js"].detected_from == ["llm_analysis", "package.json"]
    assert stored["Tailwind CSS"].detected_from == ["llm_analysis"]

    project = orchestrator.get_project(project.id)
    assert project.status is ProjectStatus.ANALYZED
    summary = project.tech_summary
    assert summary["architecture_summary"] == ANALYSIS["architecture_summary"]
    assert summary["total_technologies"] == 3
    assert summary["core_technologies"] == ["Next.js"]
    assert summary["categories"] == {"framework": 1, "styling": 1, "testing": 1}
    assert summary["llm_provider"] == "scripted"

    analysis_prompt = orchestrator.backend.calls[0]["prompt"]
    assert "# Project Digest: shop" in analysis_prompt
    assert "- Next.js v14.1.0 (source: package.json" in analysis_prompt


def test_analysis_enriches_knowledge_without_touching_the_job(make_orchestrator, snapshot) -> None:
    orchestrator = make_orchestrator()
    project = orchestrator.create_project("shop", snapshot)

    job = orchestrator.wait(orchestrator.start_analysis(project.id).id, timeout=5)

    assert job.input_tokens == 10
    assert orchestrator.store.knowledge_status("vitest") == STATUS_READY
    assert len(orchestrator.backend.calls) == 4


def test_enrichment_failures_are_not_fatal(make_orchestrator, snapshot) -> None:
    orchestrator = make_orchestrator(_responder(concepts=BackendError("scripted", "down")))
    project = orchestrator.create_project("shop", snapshot)

    job = orchestrator.wait(orchestrator.start_analysis(project.id).id, timeout=5)

    assert job.status is JobStatus.COMPLETED
    assert orchestrator.store.knowledge_status("next.js") == STATUS_FAILED
    assert orchestrator.get_project(project.id).status is ProjectStatus.ANALYZED


def test_nameless_technologies_still_complete(make_orchestrator, snapshot) -> None:
    orchestrator = make_orchestrator(_responder(analysis={"technologies": [{"name": ""}, {"category": "framework"}]}))
    project = orchestrator.create_project("shop", snapshot)

    job = orchestrator.wait(orchestrator.start_analysis(project.id).id, timeout=5)

    assert job.status is JobStatus.COMPLETED
    assert orchestrator.store.list_technologies(project.id) == []
    assert orchestrator.get_project(project.id).tech_summary["architecture_summary"] == DEFAULT_SUMMARY


@pytest.mark.parametrize(
    ("setup", "expected_kind"),
    [
        ({"keys": {}}, "no_credential"),
        ({"replies": _responder(analysis=BackendError("scripted", "unauthorized", status=401))}, "backend_error"),
        ({"replies": _responder(analysis="Sorry, I could not analyze this project.")}, "malformed_response"),
    ],
)
def test_analysis_failures_are_recorded(make_orchestrator, snapshot, setup, expected_kind) -> None:
    orchestrator = make_orchestrator(setup.get("replies"), keys=setup.get("keys"))
    project = orchestrator.create_project("shop", snapshot)

    job = orchestrator.wait(orchestrator.start_analysis(project.id).id, timeout=5)

    assert job.status is JobStatus.FAILED
    assert job.error_kind == expected_kind
    assert job.error_message
    assert orchestrator.get_project(project.id).status is ProjectStatus.ERROR


def test_analysis_without_files(make_orchestrator, make_snapshot) -> None:
    orchestrator = make_orchestrator()
    project = orchestrator.create_project("empty")
    orchestrator.upload_snapshot(project.id, make_snapshot([("app/page.tsx", None)]))

    job = orchestrator.wait(orchestrator.start_analysis(project.id).id, timeout=5)

    assert job.error_kind == "no_files"
    assert orchestrator.backend.calls == []


def test_second_analysis_conflicts_while_first_is_running(make_orchestrator, snapshot) -> None:
    release = threading.Event()
    respond = _responder()

    def blocking(prompt, system_prompt):
        if "technology stack analysis" in prompt:
            release.wait(5)
        return respond(prompt, system_prompt)

    orchestrator = make_orchestrator(blocking)
    project = orchestrator.create_project("shop", snapshot)
    first = orchestrator.start_analysis(project.id)

    with pytest.raises(JobConflictError):
        orchestrator.start_analysis(project.id)
    with pytest.raises(JobConflictError):
        orchestrator.start_curriculum(project.id)

    release.set()
    assert orchestrator.wait(first.id, timeout=5).status is JobStatus.COMPLETED


def test_force_fail_marks_project_error(make_orchestrator, snapshot) -> None:
    release = threading.Event()
    entered = threading.Event()
    respond = _responder()

    def blocking(prompt, system_prompt):
        if "technology stack analysis" in prompt:
            entered.set()
            release.wait(5)
        return respond(prompt, system_prompt)

    orchestrator = make_orchestrator(blocking)
    project = orchestrator.create_project("shop", snapshot)
    job = orchestrator.start_analysis(project.id)

    assert entered.wait(5)
    failed = orchestrator.force_fail(job.id, "stuck")
    release.set()
    orchestrator.wait(job.id, timeout=5)

    assert failed.status is JobStatus.FAILED
    assert orchestrator.get_job(job.id).status is JobStatus.FAILED
    assert orchestrator.get_project(project.id).status is ProjectStatus.ERROR
    assert orchestrator.store.list_technologies(project.id) == []


class _InterruptingStore(InMemoryStore):
    """Runs ``on_upsert`` once, after the first technology is stored."""

    def __init__(self) -> None:
        super().__init__()
        self.on_upsert = None

    def upsert_technology(self, record):
        stored = super().upsert_technology(record)
        callback, self.on_upsert = self.on_upsert, None
        if callback is not None:
            callback()
        return stored


def test_force_fail_while_storing_results_keeps_project_in_error(make_orchestrator, snapshot) -> None:
    store = _InterruptingStore()
    orchestrator = make_orchestrator(store=store)
    project = orchestrator.create_project("shop", snapshot)
    job_ids = []
    store.on_upsert = lambda: orchestrator.force_fail(job_ids[0], "stuck")

    job_ids.append(orchestrator.start_analysis(project.id).id)
    finished = orchestrator.wait(job_ids[0], timeout=5)

    assert finished.status is JobStatus.FAILED
    assert finished.error_message == "stuck"
    assert orchestrator.get_project(project.id).status is ProjectStatus.ERROR
    assert orchestrator.get_project(project.id).tech_summary is None


def test_curriculum_after_analysis(make_orchestrator, snapshot) -> None:
    orchestrator = make_orchestrator()
    project = orchestrator.create_project("shop", snapshot)
    orchestrator.wait(orchestrator.start_analysis(project.id).id, timeout=5)

    job = orchestrator.wait(orchestrator.start_curriculum(project.id, difficulty="intermediate").id, timeout=5)

    assert job.job_type == CURRICULUM_JOB
    assert job.status is JobStatus.COMPLETED
    assert (job.input_tokens, job.output_tokens) == (30, 15)
    path = orchestrator.store.latest_learning_path(project.id)
    assert path.difficulty == "beginner"
    assert [(module.order, module.title, bool(module.sections)) for module in path.modules] == [
        (1, "Routing", True),
        (2, "Utilities", True),
    ]
    assert orchestrator.get_project(project.id).status is ProjectStatus.ANALYZED


def test_curriculum_requires_analysis(make_orchestrator, snapshot) -> None:
    orchestrator = make_orchestrator()
    project = orchestrator.create_project("shop", snapshot)

    job = orchestrator.wait(orchestrator.start_curriculum(project.id).id, timeout=5)

    assert job.status is JobStatus.FAILED
    assert job.error_kind == "no_technologies"
    assert orchestrator.get_project(project.id).status is ProjectStatus.CREATED


def test_unknown_project(make_orchestrator) -> None:
    orchestrator = make_orchestrator()
    with pytest.raises(KeyError):
        orchestrator.start_analysis("missing")
    with pytest.raises(KeyError):
        orchestrator.get_project("missing")


def test_render_digest_matches_digest_document(make_orchestrator, snapshot) -> None:
    assert make_orchestrator().render_digest(snapshot) == digest_document(snapshot)
