"""Core data models shared across stacktutor components."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

TECH_CATEGORIES: Tuple[str, ...] = (
    "framework",
    "language",
    "database",
    "auth",
    "deploy",
    "styling",
    "testing",
    "build_tool",
    "library",
    "other",
)

IMPORTANCE_LEVELS: Tuple[str, ...] = ("core", "supporting", "dev_dependency")

MODULE_TYPES: Tuple[str, ...] = ("concept", "practical", "quiz", "project_walkthrough")

DIFFICULTIES: Tuple[str, ...] = ("beginner", "intermediate", "advanced")

SECTION_TYPES: Tuple[str, ...] = (
    "explanation",
    "code_example",
    "quiz_question",
    "challenge",
    "reflection",
)

FILE_TYPES: Tuple[str, ...] = ("dependency", "ai_config", "build_config", "source_code", "other")


def utc_now() -> str:
    """Return an ISO-8601 UTC timestamp with a trailing Z."""
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class SnapshotFile:
    """One file of an uploaded project; content may be absent."""

    path: str
    declared_type: str
    content: Optional[str] = None

    @property
    def basename(self) -> str:
        return self.path.rsplit("/", 1)[-1]


@dataclass(frozen=True)
class Snapshot:
    """Immutable ordered set of files analyzed in one run."""

    project_name: str
    files: Tuple[SnapshotFile, ...]

    @classmethod
    def from_entries(
        cls, project_name: str, entries: Sequence[Tuple[str, str, Optional[str]]]
    ) -> "Snapshot":
        return cls(
            project_name=project_name,
            files=tuple(SnapshotFile(path, declared_type, content) for path, declared_type, content in entries),
        )

    def fingerprint(self) -> str:
        digest = hashlib.sha256()
        digest.update(self.project_name.encode("utf-8"))
        for item in self.files:
            digest.update(b"\0")
            digest.update(item.path.encode("utf-8"))
            digest.update(b"\0")
            digest.update(item.declared_type.encode("utf-8"))
            digest.update(b"\0")
            if item.content is not None:
                digest.update(item.content.encode("utf-8", errors="replace"))
        return digest.hexdigest()

    def with_content(self) -> List[SnapshotFile]:
        return [item for item in self.files if item.content]


@dataclass(frozen=True)
class Hint:
    """Deterministic, low-confidence technology signal from static rules."""

    name: str
    category: str
    confidence: float
    source: str
    version: Optional[str] = None


@dataclass(frozen=True)
class DependencyEntry:
    name: str
    version: str
    is_dev: bool
    source: str


@dataclass(frozen=True)
class ImportEdge:
    """Modules referenced by a single source file."""

    file: str
    frameworks: Tuple[str, ...] = ()
    libraries: Tuple[str, ...] = ()
    internal: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Route:
    path: str
    type: str
    methods: Tuple[str, ...] = ()


@dataclass
class DigestConfig:
    """Configuration summary extracted from build and dependency files."""

    framework: Optional[str] = None
    framework_version: Optional[str] = None
    typescript: Dict[str, Any] = field(default_factory=dict)
    styling: List[str] = field(default_factory=list)
    deploy: List[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.framework or self.typescript or self.styling or self.deploy)


@dataclass
class Digest:
    """Compact derived summary of a Snapshot."""

    project_name: str
    dependencies: List[DependencyEntry]
    file_tree: List[str]
    imports: List[ImportEdge]
    routes: List[Route]
    config: DigestConfig
    patterns: List[str]
    instruction_excerpt: Optional[str] = None


@dataclass
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
        )

    @property
    def total(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class TechnologyResult:
    """Validated technology entry returned by a backend analysis."""

    name: str
    category: str
    confidence: float
    description: str
    importance: str
    version: Optional[str] = None
    relationships: Optional[Dict[str, List[str]]] = None


@dataclass
class AnalysisResult:
    technologies: List[TechnologyResult]
    architecture_summary: str
    usage: TokenUsage = field(default_factory=TokenUsage)


@dataclass(frozen=True)
class ChatMessage:
    role: str
    content: str


@dataclass
class ChatResult:
    content: str
    usage: TokenUsage = field(default_factory=TokenUsage)


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class ProjectStatus(str, Enum):
    CREATED = "created"
    ANALYZING = "analyzing"
    ANALYZED = "analyzed"
    ERROR = "error"


@dataclass
class AnalysisJob:
    """Persisted record of one background run."""

    id: str
    project_id: str
    job_type: str = "tech_analysis"
    status: JobStatus = JobStatus.PENDING
    backend_name: Optional[str] = None
    model_name: Optional[str] = None
    input_tokens: int = 0
    output_tokens: int = 0
    error_message: Optional[str] = None
    error_kind: Optional[str] = None
    created_at: str = field(default_factory=utc_now)
    started_at: Optional[str] = None
    completed_at: Optional[str] = None


@dataclass
class Project:
    id: str
    name: str
    status: ProjectStatus = ProjectStatus.CREATED
    tech_summary: Optional[Dict[str, Any]] = None
    updated_at: str = field(default_factory=utc_now)


@dataclass
class TechnologyRecord:
    """Durable technology entry, unique per (project_id, lower(name))."""

    project_id: str
    name: str
    category: str
    importance: str
    confidence: float
    description: Optional[str] = None
    version: Optional[str] = None
    detected_from: List[str] = field(default_factory=list)
    relationships: Optional[Dict[str, List[str]]] = None

    @property
    def key(self) -> Tuple[str, str]:
        return (self.project_id, self.name.strip().lower())


@dataclass
class OutlineModule:
    """Phase 1 module stub without lesson content."""

    title: str
    description: str
    module_type: str
    tech_name: str
    relevant_files: List[str] = field(default_factory=list)
    objectives: List[str] = field(default_factory=list)
    estimated_minutes: Optional[int] = None


@dataclass
class CurriculumStructure:
    title: str
    description: str
    difficulty: str
    modules: List[OutlineModule]
    estimated_hours: Optional[float] = None


@dataclass
class ContentSection:
    type: str
    title: str
    body: str
    code: Optional[str] = None
    quiz_options: Optional[List[str]] = None
    quiz_answer: Optional[int] = None


@dataclass
class ContentBatchItem:
    module_title: str
    sections: List[ContentSection]


@dataclass
class LearningModule:
    """Durable curriculum module merged from an outline stub and its content."""

    title: str
    description: str
    module_type: str
    order: int
    tech_name: str
    sections: List[ContentSection] = field(default_factory=list)
    estimated_minutes: Optional[int] = None
    match_tier: Optional[str] = None

    @property
    def content_status(self) -> str:
        return "ready" if self.sections else "empty"


@dataclass
class LearningPath:
    id: str
    project_id: str
    title: str
    description: str
    difficulty: str
    modules: List[LearningModule]
    estimated_hours: Optional[float] = None
    backend_name: Optional[str] = None
    created_at: str = field(default_factory=utc_now)


@dataclass
class ConceptHint:
    """Reference concept used to enrich curriculum prompts."""

    concept_key: str
    concept_name: str
    key_points: List[str]
    common_quiz_topics: List[str] = field(default_factory=list)
    prerequisite_concepts: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
