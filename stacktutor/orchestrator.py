"""Pipeline orchestration for analysis and curriculum runs."""

from __future__ import annotations

import uuid
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .analyzers.hints import extract_hints, find_hint
from .config import StacktutorConfig
from .curriculum.pipeline import CurriculumPipeline
from .digest import DigestAssembler, digest_document
from .errors import MissingCredentialError, MissingFilesError, MissingTechnologiesError
from .jobs import JobHandle, JobRunner, TransitionHook
from .knowledge import KnowledgeBase
from .llm.base import Backend
from .llm.factory import create_backend
from .llm.http import Sender
from .logging import get_logger
from .models import (
    AnalysisJob,
    AnalysisResult,
    Hint,
    Project,
    ProjectStatus,
    Snapshot,
    TechnologyRecord,
    TokenUsage,
    utc_now,
)
from .prompting.builder import PromptBuilder
from .stores.credentials import CredentialStore, EnvCredentialStore
from .stores.digest_cache import DigestCache
from .stores.knowledge_cache import KnowledgeCache
from .stores.memory import InMemoryStore, Store

BackendFactory = Callable[..., Backend]

ANALYSIS_JOB = "tech_analysis"
CURRICULUM_JOB = "curriculum"
LLM_SOURCE = "llm_analysis"


def detected_from(name: str, hints: List[Hint]) -> List[str]:
    """Sources that reported a technology: the model plus any matching hint."""
    sources = [LLM_SOURCE]
    hint = find_hint(hints, name)
    if hint is not None and hint.source not in sources:
        sources.append(hint.source)
    return sources


def build_tech_summary(result: AnalysisResult, backend: Backend) -> Dict[str, Any]:
    """Project-level summary stored next to the technology records."""
    categories: Dict[str, int] = {}
    for tech in result.technologies:
        categories[tech.category] = categories.get(tech.category, 0) + 1
    return {
        "architecture_summary": result.architecture_summary,
        "total_technologies": len(result.technologies),
        "core_technologies": [tech.name for tech in result.technologies if tech.importance == "core"],
        "categories": categories,
        "analyzed_at": utc_now(),
        "llm_provider": backend.name,
        "llm_model": backend.model,
    }


class Orchestrator:
    """Coordinates analysis and curriculum jobs for projects.

    Each run is a job owned by :class:`JobRunner`; the work functions here
    raise rich errors and the runner records them. The project status
    mirrors analysis outcomes (``analyzing`` then ``analyzed`` or
    ``error``). Knowledge enrichment runs after an analysis has completed
    and never changes its outcome.
    """

    def __init__(
        self,
        store: Store | None = None,
        *,
        config: StacktutorConfig | None = None,
        credentials: CredentialStore | None = None,
        runner: JobRunner | None = None,
        backend_factory: BackendFactory = create_backend,
        sender: Sender | None = None,
        prompt_builder: PromptBuilder | None = None,
        digest_cache: DigestCache | None = None,
        knowledge: KnowledgeBase | None = None,
        on_transition: Optional[List[TransitionHook]] = None,
    ) -> None:
        self.config = config or StacktutorConfig(root=Path.cwd())
        self.store = store or InMemoryStore()
        self.credentials = credentials or EnvCredentialStore(api_key_env=self.config.llm.api_key_env)
        self.runner = runner or JobRunner(self.store, on_transition=on_transition)
        self.backend_factory = backend_factory
        self.sender = sender
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.digest_cache = digest_cache
        self.knowledge = knowledge or KnowledgeBase(
            self.store,
            cache=KnowledgeCache(
                ttl_seconds=self.config.knowledge.cache_ttl_seconds,
                max_size=self.config.knowledge.cache_size,
            ),
        )
        self.logger = get_logger("orchestrator")

    # ------------------------------------------------------------------
    # Projects

    def create_project(self, name: str, snapshot: Snapshot | None = None, *, project_id: str | None = None) -> Project:
        project = self.store.save_project(Project(id=project_id or uuid.uuid4().hex, name=name))
        if snapshot is not None:
            self.store.save_snapshot(project.id, snapshot)
        self.logger.info("Created project %s (%s)", project.id, name)
        return project

    def upload_snapshot(self, project_id: str, snapshot: Snapshot) -> None:
        self._require_project(project_id)
        self.store.save_snapshot(project_id, snapshot)

    def get_project(self, project_id: str) -> Project:
        return self._require_project(project_id)

    # ------------------------------------------------------------------
    # Jobs

    def start_analysis(self, project_id: str) -> AnalysisJob:
        """Queue a technology analysis; raises ``JobConflictError`` if one is active."""
        self._require_project(project_id)
        return self.runner.start(
            project_id,
            self._analysis_work,
            job_type=ANALYSIS_JOB,
            on_failure=self._mark_project_error,
        )

    def start_curriculum(self, project_id: str, *, difficulty: str | None = None) -> AnalysisJob:
        """Queue curriculum generation under the same single-active-job rule."""
        self._require_project(project_id)
        return self.runner.start(
            project_id,
            lambda handle: self._curriculum_work(handle, difficulty),
            job_type=CURRICULUM_JOB,
        )

    def get_job(self, job_id: str) -> AnalysisJob:
        return self.runner.get(job_id)

    def wait(self, job_id: str, timeout: float | None = None) -> AnalysisJob:
        return self.runner.wait(job_id, timeout=timeout)

    def force_fail(self, job_id: str, message: str) -> AnalysisJob:
        job = self.runner.force_fail(job_id, message)
        if job.job_type == ANALYSIS_JOB:
            self.store.update_project(job.project_id, status=ProjectStatus.ERROR)
        return job

    def shutdown(self) -> None:
        self.runner.shutdown(wait=True)

    # ------------------------------------------------------------------
    # Backends

    def build_backend(self) -> Backend:
        llm = self.config.llm
        api_key = self.credentials.get_api_key(llm.backend)
        if not api_key:
            raise MissingCredentialError()
        return self.backend_factory(
            llm.backend,
            api_key,
            llm.model,
            timeout=llm.request_timeout,
            max_tokens=llm.max_tokens,
            sender=self.sender,
            prompts=self.prompt_builder,
        )

    def render_digest(self, snapshot: Snapshot) -> str:
        settings = self.config.digest
        return digest_document(
            snapshot,
            assembler=DigestAssembler(instruction_excerpt_chars=settings.instruction_excerpt_chars),
            top_imports=settings.top_imports,
            cache=self.digest_cache,
        )

    # ------------------------------------------------------------------
    # Work functions

    def _analysis_work(self, handle: JobHandle) -> Optional[TokenUsage]:
        project_id = handle.job.project_id
        self.store.update_project(project_id, status=ProjectStatus.ANALYZING)

        snapshot = self.store.get_snapshot(project_id)
        files = snapshot.with_content() if snapshot else []
        if not snapshot or not files:
            raise MissingFilesError()
        self.logger.info("Analyzing %d files for project %s", len(files), project_id)

        hints = extract_hints(files)
        self.logger.debug("Extracted %d hints", len(hints))

        backend = self.build_backend()
        handle.update(backend_name=backend.name, model_name=backend.model)

        prompt = backend.prompts.digest_analysis_prompt(self.render_digest(snapshot), hints)
        result = backend.analyze(files, hints, prompt_override=prompt)
        handle.ensure_active()

        for tech in result.technologies:
            self.store.upsert_technology(
                TechnologyRecord(
                    project_id=project_id,
                    name=tech.name,
                    category=tech.category,
                    importance=tech.importance,
                    confidence=tech.confidence,
                    description=tech.description,
                    version=tech.version,
                    detected_from=detected_from(tech.name, hints),
                    relationships=tech.relationships,
                )
            )

        # Complete before marking the project; a force-failed job raises here.
        handle.complete(result.usage)
        self.store.update_project(
            project_id,
            status=ProjectStatus.ANALYZED,
            tech_summary=build_tech_summary(result, backend),
        )
        self.logger.info(
            "Analysis for project %s found %d technologies (%d tokens)",
            project_id,
            len(result.technologies),
            result.usage.total,
        )

        if self.config.knowledge.enabled and result.technologies:
            self._enrich(result, backend)
        return None

    def _enrich(self, result: AnalysisResult, backend: Backend) -> None:
        try:
            usage = self.knowledge.enrich([(tech.name, tech.version) for tech in result.technologies], backend)
        except Exception as exc:
            self.logger.warning("Knowledge enrichment failed: %s", exc)
            return
        if usage.total:
            self.logger.debug("Knowledge enrichment used %d tokens", usage.total)

    def _curriculum_work(self, handle: JobHandle, difficulty: str | None) -> Optional[TokenUsage]:
        project_id = handle.job.project_id
        technologies = self.store.list_technologies(project_id)
        if not technologies:
            raise MissingTechnologiesError()

        backend = self.build_backend()
        handle.update(backend_name=backend.name, model_name=backend.model)

        pipeline = CurriculumPipeline(
            backend,
            settings=self.config.curriculum,
            knowledge=self.knowledge if self.config.knowledge.enabled else None,
            digest_cache=self.digest_cache,
            top_imports=self.config.digest.top_imports,
        )
        outcome = pipeline.run(
            project_id,
            technologies,
            self.store.get_snapshot(project_id),
            difficulty=difficulty,
        )
        handle.ensure_active()
        self.store.save_learning_path(outcome.path)
        return outcome.usage

    def _mark_project_error(self, job: AnalysisJob, exc: BaseException) -> None:
        self.store.update_project(job.project_id, status=ProjectStatus.ERROR)

    def _require_project(self, project_id: str) -> Project:
        project = self.store.get_project(project_id)
        if project is None:
            raise KeyError(f"Unknown project: {project_id}")
        return project


__all__ = [
    "ANALYSIS_JOB",
    "CURRICULUM_JOB",
    "Orchestrator",
    "build_tech_summary",
    "detected_from",
]
