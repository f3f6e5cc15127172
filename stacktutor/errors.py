"""Exception hierarchy shared across stacktutor components."""

from __future__ import annotations

from typing import Optional


class StacktutorError(RuntimeError):
    """Base class for errors raised by stacktutor."""

    kind = "internal"


class ConfigError(StacktutorError):
    """Raised when configuration cannot be parsed or names an unknown backend."""

    kind = "config"


class MissingCredentialError(StacktutorError):
    """Raised when no API key is available for the requested backend."""

    kind = "no_credential"

    def __init__(self, message: str = "No LLM API key configured. Add an API key for the selected backend.") -> None:
        super().__init__(message)


class MissingFilesError(StacktutorError):
    """Raised when a project has no uploaded files to analyze."""

    kind = "no_files"

    def __init__(self, message: str = "No files uploaded for this project. Upload files first.") -> None:
        super().__init__(message)


class MissingTechnologiesError(StacktutorError):
    """Raised when a curriculum is requested before any analysis completed."""

    kind = "no_technologies"

    def __init__(self, message: str = "No technologies found. Analyze the project first.") -> None:
        super().__init__(message)


class BackendError(StacktutorError):
    """Transport or API failure reported by a generation backend."""

    kind = "backend_error"

    def __init__(self, backend: str, message: str, *, status: Optional[int] = None) -> None:
        self.backend = backend
        self.status = status
        self.detail = message
        label = f"{backend} API error ({status})" if status is not None else f"{backend} API error"
        super().__init__(f"{label}: {message}")


class ResponseParseError(StacktutorError):
    """Raised when model output does not contain a parseable structured payload."""

    kind = "malformed_response"

    def __init__(self, reason: str, *, excerpt: str = "", backend: Optional[str] = None) -> None:
        self.reason = reason
        self.excerpt = excerpt[:500]
        self.backend = backend
        prefix = f"{backend}: " if backend else ""
        super().__init__(f"{prefix}model did not return a parseable payload ({reason})")


class JobConflictError(StacktutorError):
    """Raised when a run is requested while another job for the project is active."""

    kind = "conflict"

    def __init__(self, project_id: str, active_job_id: Optional[str] = None) -> None:
        self.project_id = project_id
        self.active_job_id = active_job_id
        suffix = f" (job {active_job_id})" if active_job_id else ""
        super().__init__(f"Project {project_id} already has an active job{suffix}")


class InvalidTransition(StacktutorError):
    """Raised when a job status change would violate the lifecycle."""

    kind = "invalid_transition"


def error_kind(exc: BaseException) -> str:
    """Return the caller-facing failure category for an exception."""
    if isinstance(exc, StacktutorError):
        return exc.kind
    return "internal"


__all__ = [
    "BackendError",
    "ConfigError",
    "InvalidTransition",
    "JobConflictError",
    "MissingCredentialError",
    "MissingFilesError",
    "MissingTechnologiesError",
    "ResponseParseError",
    "StacktutorError",
    "error_kind",
]
