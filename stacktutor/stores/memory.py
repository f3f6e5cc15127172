"""Persistent-store boundary plus in-memory and JSON-file implementations."""

from __future__ import annotations

import copy
import json
import threading
from dataclasses import asdict, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Tuple

from ..errors import JobConflictError
from ..logging import get_logger
from ..models import (
    AnalysisJob,
    ConceptHint,
    ContentSection,
    JobStatus,
    LearningModule,
    LearningPath,
    Project,
    ProjectStatus,
    Snapshot,
    SnapshotFile,
    TechnologyRecord,
    utc_now,
)

logger = get_logger("stores.memory")

_STORE_VERSION = 1


class Store(Protocol):
    """Operations the pipelines need from durable storage."""

    def save_project(self, project: Project) -> Project: ...

    def get_project(self, project_id: str) -> Optional[Project]: ...

    def update_project(self, project_id: str, **changes: Any) -> Project: ...

    def save_snapshot(self, project_id: str, snapshot: Snapshot) -> None: ...

    def get_snapshot(self, project_id: str) -> Optional[Snapshot]: ...

    def claim_project(self, job: AnalysisJob) -> AnalysisJob: ...

    def get_job(self, job_id: str) -> Optional[AnalysisJob]: ...

    def save_job(self, job: AnalysisJob) -> AnalysisJob: ...

    def active_job(self, project_id: str) -> Optional[AnalysisJob]: ...

    def upsert_technology(self, record: TechnologyRecord) -> TechnologyRecord: ...

    def list_technologies(self, project_id: str) -> List[TechnologyRecord]: ...

    def save_learning_path(self, path: LearningPath) -> LearningPath: ...

    def latest_learning_path(self, project_id: str) -> Optional[LearningPath]: ...

    def save_concepts(self, tech_name: str, concepts: List[ConceptHint]) -> None: ...

    def get_concepts(self, tech_name: str) -> List[ConceptHint]: ...

    def set_knowledge_status(self, tech_name: str, status: str) -> None: ...

    def knowledge_status(self, tech_name: str) -> Optional[str]: ...


def _tech_key(name: str) -> str:
    return name.strip().lower()


class InMemoryStore:
    """Thread-safe store holding every record in process memory.

    Records are copied on the way in and out so callers never mutate
    stored state without going through the store.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._projects: Dict[str, Project] = {}
        self._snapshots: Dict[str, Snapshot] = {}
        self._jobs: Dict[str, AnalysisJob] = {}
        self._technologies: Dict[Tuple[str, str], TechnologyRecord] = {}
        self._paths: Dict[str, List[LearningPath]] = {}
        self._concepts: Dict[str, List[ConceptHint]] = {}
        self._knowledge_status: Dict[str, str] = {}

    # ------------------------------------------------------------------
    # Projects

    def save_project(self, project: Project) -> Project:
        with self._lock:
            self._projects[project.id] = copy.deepcopy(project)
            self._changed()
        return copy.deepcopy(project)

    def get_project(self, project_id: str) -> Optional[Project]:
        with self._lock:
            project = self._projects.get(project_id)
            return copy.deepcopy(project) if project else None

    def update_project(self, project_id: str, **changes: Any) -> Project:
        with self._lock:
            current = self._projects.get(project_id)
            if current is None:
                raise KeyError(f"Unknown project: {project_id}")
            updated = replace(current, updated_at=utc_now(), **changes)
            self._projects[project_id] = updated
            self._changed()
            return copy.deepcopy(updated)

    def save_snapshot(self, project_id: str, snapshot: Snapshot) -> None:
        with self._lock:
            self._snapshots[project_id] = snapshot
            self._changed()

    def get_snapshot(self, project_id: str) -> Optional[Snapshot]:
        with self._lock:
            return self._snapshots.get(project_id)

    # ------------------------------------------------------------------
    # Jobs

    def claim_project(self, job: AnalysisJob) -> AnalysisJob:
        """Record ``job`` unless the project already has an active job."""
        with self._lock:
            active = self._active_job(job.project_id)
            if active is not None:
                raise JobConflictError(job.project_id, active.id)
            self._jobs[job.id] = copy.deepcopy(job)
            self._changed()
        return copy.deepcopy(job)

    def get_job(self, job_id: str) -> Optional[AnalysisJob]:
        with self._lock:
            job = self._jobs.get(job_id)
            return copy.deepcopy(job) if job else None

    def save_job(self, job: AnalysisJob) -> AnalysisJob:
        with self._lock:
            self._jobs[job.id] = copy.deepcopy(job)
            self._changed()
        return copy.deepcopy(job)

    def active_job(self, project_id: str) -> Optional[AnalysisJob]:
        with self._lock:
            active = self._active_job(project_id)
            return copy.deepcopy(active) if active else None

    def jobs_for(self, project_id: str) -> List[AnalysisJob]:
        with self._lock:
            return [copy.deepcopy(job) for job in self._jobs.values() if job.project_id == project_id]

    def _active_job(self, project_id: str) -> Optional[AnalysisJob]:
        for job in self._jobs.values():
            if job.project_id == project_id and not JobStatus(job.status).is_terminal:
                return job
        return None

    # ------------------------------------------------------------------
    # Technologies

    def upsert_technology(self, record: TechnologyRecord) -> TechnologyRecord:
        with self._lock:
            existing = self._technologies.get(record.key)
            merged = copy.deepcopy(record)
            if existing is not None:
                sources = list(existing.detected_from)
                sources.extend(item for item in record.detected_from if item not in sources)
                merged.detected_from = sources
            self._technologies[record.key] = merged
            self._changed()
            return copy.deepcopy(merged)

    def list_technologies(self, project_id: str) -> List[TechnologyRecord]:
        with self._lock:
            return [
                copy.deepcopy(record)
                for (owner, _), record in self._technologies.items()
                if owner == project_id
            ]

    # ------------------------------------------------------------------
    # Curriculum

    def save_learning_path(self, path: LearningPath) -> LearningPath:
        with self._lock:
            self._paths.setdefault(path.project_id, []).append(copy.deepcopy(path))
            self._changed()
        return copy.deepcopy(path)

    def latest_learning_path(self, project_id: str) -> Optional[LearningPath]:
        with self._lock:
            paths = self._paths.get(project_id) or []
            return copy.deepcopy(paths[-1]) if paths else None

    # ------------------------------------------------------------------
    # Knowledge base

    def save_concepts(self, tech_name: str, concepts: List[ConceptHint]) -> None:
        with self._lock:
            self._concepts[_tech_key(tech_name)] = copy.deepcopy(list(concepts))
            self._changed()

    def get_concepts(self, tech_name: str) -> List[ConceptHint]:
        with self._lock:
            return copy.deepcopy(self._concepts.get(_tech_key(tech_name), []))

    def set_knowledge_status(self, tech_name: str, status: str) -> None:
        with self._lock:
            self._knowledge_status[_tech_key(tech_name)] = status
            self._changed()

    def knowledge_status(self, tech_name: str) -> Optional[str]:
        with self._lock:
            return self._knowledge_status.get(_tech_key(tech_name))

    def _changed(self) -> None:
        """Hook invoked under the lock after every write."""


class JsonFileStore(InMemoryStore):
    """In-memory store mirrored to a JSON document after every write."""

    def __init__(self, path: Path) -> None:
        super().__init__()
        self._path = path
        self._loading = False
        self._load()

    def _changed(self) -> None:
        if self._loading:
            return
        payload = {
            "version": _STORE_VERSION,
            "projects": [asdict(project) for project in self._projects.values()],
            "snapshots": {
                project_id: {
                    "project_name": snapshot.project_name,
                    "files": [asdict(item) for item in snapshot.files],
                }
                for project_id, snapshot in self._snapshots.items()
            },
            "jobs": [asdict(job) for job in self._jobs.values()],
            "technologies": [asdict(record) for record in self._technologies.values()],
            "learning_paths": [asdict(path) for paths in self._paths.values() for path in paths],
            "concepts": {key: [asdict(item) for item in items] for key, items in self._concepts.items()},
            "knowledge_status": dict(self._knowledge_status),
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
        tmp_path.replace(self._path)

    def _load(self) -> None:
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable store file %s: %s", self._path, exc)
            return
        if not isinstance(data, dict) or data.get("version") != _STORE_VERSION:
            logger.warning("Ignoring store file %s with unsupported version", self._path)
            return

        self._loading = True
        try:
            for raw in data.get("projects", []):
                raw["status"] = ProjectStatus(raw.get("status", ProjectStatus.CREATED.value))
                self.save_project(Project(**raw))
            for project_id, raw in (data.get("snapshots") or {}).items():
                files = tuple(SnapshotFile(**item) for item in raw.get("files", []))
                self.save_snapshot(project_id, Snapshot(project_name=raw.get("project_name", ""), files=files))
            for raw in data.get("jobs", []):
                raw["status"] = JobStatus(raw.get("status", JobStatus.PENDING.value))
                self.save_job(AnalysisJob(**raw))
            for raw in data.get("technologies", []):
                self.upsert_technology(TechnologyRecord(**raw))
            for raw in data.get("learning_paths", []):
                self.save_learning_path(_learning_path_from_dict(raw))
            for tech_name, items in (data.get("concepts") or {}).items():
                self.save_concepts(tech_name, [ConceptHint(**item) for item in items])
            for tech_name, status in (data.get("knowledge_status") or {}).items():
                self.set_knowledge_status(tech_name, status)
        finally:
            self._loading = False


def _learning_path_from_dict(raw: Dict[str, Any]) -> LearningPath:
    modules = []
    for module in raw.pop("modules", []):
        sections = [ContentSection(**section) for section in module.pop("sections", [])]
        modules.append(LearningModule(sections=sections, **module))
    return LearningPath(modules=modules, **raw)


__all__ = ["InMemoryStore", "JsonFileStore", "Store"]
