"""Tests for the in-memory and JSON-file stores."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from stacktutor.errors import JobConflictError
from stacktutor.models import (
    AnalysisJob,
    ConceptHint,
    ContentSection,
    JobStatus,
    LearningModule,
    LearningPath,
    Project,
    ProjectStatus,
    Snapshot,
    TechnologyRecord,
)
from stacktutor.stores.memory import InMemoryStore, JsonFileStore


def _tech(name: str, *sources: str, project_id: str = "p1") -> TechnologyRecord:
    return TechnologyRecord(
        project_id=project_id,
        name=name,
        category="framework",
        importance="core",
        confidence=0.9,
        detected_from=list(sources),
    )


def test_records_are_copied_in_and_out() -> None:
    store = InMemoryStore()
    project = store.save_project(Project(id="p1", name="demo"))

    project.name = "mutated"
    fetched = store.get_project("p1")

    assert fetched.name == "demo"
    assert store.get_project("missing") is None


def test_update_project_requires_known_id() -> None:
    store = InMemoryStore()
    store.save_project(Project(id="p1", name="demo"))

    updated = store.update_project("p1", status=ProjectStatus.ANALYZED, tech_summary={"total_technologies": 2})

    assert updated.status is ProjectStatus.ANALYZED
    assert store.get_project("p1").tech_summary == {"total_technologies": 2}
    with pytest.raises(KeyError):
        store.update_project("nope", status=ProjectStatus.ERROR)


def test_claim_project_allows_one_active_job() -> None:
    store = InMemoryStore()
    store.claim_project(AnalysisJob(id="j1", project_id="p1"))

    with pytest.raises(JobConflictError) as excinfo:
        store.claim_project(AnalysisJob(id="j2", project_id="p1"))
    assert excinfo.value.active_job_id == "j1"

    store.claim_project(AnalysisJob(id="j3", project_id="p2"))

    finished = store.get_job("j1")
    finished.status = JobStatus.COMPLETED
    store.save_job(finished)
    store.claim_project(AnalysisJob(id="j4", project_id="p1"))
    assert store.active_job("p1").id == "j4"
    assert {job.id for job in store.jobs_for("p1")} == {"j1", "j4"}


def test_upsert_technology_is_unique_per_case_insensitive_name() -> None:
    store = InMemoryStore()
    store.upsert_technology(_tech("Next.js", "llm_analysis"))
    store.upsert_technology(_tech(" next.js", "llm_analysis", "package.json"))
    store.upsert_technology(_tech("React", "llm_analysis", project_id="p2"))

    records = store.list_technologies("p1")

    assert len(records) == 1
    assert records[0].name == " next.js"
    assert records[0].detected_from == ["llm_analysis", "package.json"]


def test_latest_learning_path_and_concepts() -> None:
    store = InMemoryStore()
    assert store.latest_learning_path("p1") is None
    for path_id in ("a", "b"):
        store.save_learning_path(
            LearningPath(id=path_id, project_id="p1", title=path_id, description="", difficulty="beginner", modules=[])
        )
    assert store.latest_learning_path("p1").id == "b"

    store.save_concepts("React ", [ConceptHint("hooks", "Hooks", ["useState"])])
    store.set_knowledge_status("REACT", "ready")
    assert store.get_concepts("react")[0].concept_key == "hooks"
    assert store.knowledge_status("react") == "ready"
    assert store.get_concepts("vue") == []


def test_json_store_round_trips_state(tmp_path: Path) -> None:
    path = tmp_path / "state" / "store.json"
    store = JsonFileStore(path)
    store.save_project(Project(id="p1", name="demo"))
    store.update_project("p1", status=ProjectStatus.ANALYZED)
    store.save_snapshot("p1", Snapshot.from_entries("demo", [("package.json", "dependency", "{}")]))
    store.save_job(AnalysisJob(id="j1", project_id="p1", status=JobStatus.FAILED, error_kind="no_files"))
    store.upsert_technology(_tech("React", "llm_analysis"))
    store.save_learning_path(
        LearningPath(
            id="lp",
            project_id="p1",
            title="Learn React",
            description="",
            difficulty="beginner",
            modules=[
                LearningModule(
                    title="Hooks",
                    description="",
                    module_type="concept",
                    order=1,
                    tech_name="React",
                    sections=[ContentSection(type="explanation", title="Intro", body="...")],
                    match_tier="exact",
                )
            ],
        )
    )
    store.save_concepts("React", [ConceptHint("hooks", "Hooks", ["useState"])])
    store.set_knowledge_status("React", "ready")

    assert json.loads(path.read_text(encoding="utf-8"))["version"] == 1

    reloaded = JsonFileStore(path)
    assert reloaded.get_project("p1").status is ProjectStatus.ANALYZED
    assert reloaded.get_snapshot("p1").files[0].path == "package.json"
    assert reloaded.get_job("j1").status is JobStatus.FAILED
    assert reloaded.list_technologies("p1")[0].name == "React"
    module = reloaded.latest_learning_path("p1").modules[0]
    assert module.sections[0].title == "Intro"
    assert module.match_tier == "exact"
    assert reloaded.knowledge_status("react") == "ready"


def test_json_store_ignores_unreadable_file(tmp_path: Path) -> None:
    path = tmp_path / "store.json"
    path.write_text("not json", encoding="utf-8")

    store = JsonFileStore(path)

    assert store.get_project("p1") is None
