"""Job state machine and background runner."""

from __future__ import annotations

import threading
import traceback
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import replace
from typing import Any, Callable, Dict, FrozenSet, List, Optional

from .errors import InvalidTransition, error_kind
from .logging import get_logger
from .models import AnalysisJob, JobStatus, TokenUsage, utc_now
from .stores.memory import Store

logger = get_logger("jobs")

ALLOWED_TRANSITIONS: Dict[JobStatus, FrozenSet[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.PROCESSING}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}

TransitionHook = Callable[[AnalysisJob, JobStatus, JobStatus], None]
FailureHook = Callable[[AnalysisJob, BaseException], None]


def check_transition(current: JobStatus, target: JobStatus) -> None:
    """Raise :class:`InvalidTransition` unless ``current -> target`` is allowed."""
    current = JobStatus(current)
    target = JobStatus(target)
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransition(f"Job cannot move from {current.value} to {target.value}")


class JobHandle:
    """View of one running job handed to the work function."""

    def __init__(self, runner: "JobRunner", job_id: str) -> None:
        self._runner = runner
        self.job_id = job_id

    @property
    def job(self) -> AnalysisJob:
        return self._runner.get(self.job_id)

    def ensure_active(self) -> AnalysisJob:
        """Raise :class:`InvalidTransition` if the job was resolved elsewhere."""
        job = self.job
        if JobStatus(job.status).is_terminal:
            raise InvalidTransition(f"Job {self.job_id} is already {JobStatus(job.status).value}")
        return job

    def update(self, **fields: Any) -> AnalysisJob:
        return self._runner.update(self.job_id, **fields)

    def complete(self, usage: Optional[TokenUsage] = None) -> AnalysisJob:
        fields: Dict[str, Any] = {}
        if usage is not None:
            fields.update(input_tokens=usage.input_tokens, output_tokens=usage.output_tokens)
        return self._runner.transition(self.job_id, JobStatus.COMPLETED, **fields)

    def fail(self, exc: BaseException) -> AnalysisJob:
        return self._runner.transition(
            self.job_id,
            JobStatus.FAILED,
            error_message=str(exc) or exc.__class__.__name__,
            error_kind=error_kind(exc),
        )


Work = Callable[[JobHandle], Optional[TokenUsage]]


class JobRunner:
    """Runs one background task per job and owns its failure boundary.

    ``start`` claims the project through the store (at most one pending or
    processing job per project), moves the job to ``processing`` on pickup
    and resolves it to ``completed`` or ``failed``. Any exception escaping
    the work function is captured here and recorded on the job; it never
    reaches the caller's thread.
    """

    def __init__(
        self,
        store: Store,
        *,
        max_workers: int = 2,
        on_transition: Optional[List[TransitionHook]] = None,
    ) -> None:
        self.store = store
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="stacktutor-job")
        self._hooks: List[TransitionHook] = list(on_transition or [])
        self._futures: Dict[str, Future] = {}
        self._state_lock = threading.RLock()
        self._project_locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def add_hook(self, hook: TransitionHook) -> None:
        self._hooks.append(hook)

    # ------------------------------------------------------------------
    # Lifecycle

    def start(
        self,
        project_id: str,
        work: Work,
        *,
        job_type: str = "tech_analysis",
        on_failure: Optional[FailureHook] = None,
    ) -> AnalysisJob:
        """Claim ``project_id`` and schedule ``work`` in the background.

        Raises :class:`JobConflictError` if another job for the project is
        still pending or processing.
        """
        job = AnalysisJob(id=uuid.uuid4().hex, project_id=project_id, job_type=job_type)
        with self._project_lock(project_id):
            job = self.store.claim_project(job)
        logger.info("Queued %s job %s for project %s", job_type, job.id, project_id)
        future = self._executor.submit(self._run, job.id, work, on_failure)
        with self._registry_lock:
            self._futures[job.id] = future
        return job

    def get(self, job_id: str) -> AnalysisJob:
        job = self.store.get_job(job_id)
        if job is None:
            raise KeyError(f"Unknown job: {job_id}")
        return job

    def update(self, job_id: str, **fields: Any) -> AnalysisJob:
        """Record telemetry on a non-terminal job without changing its status."""
        if "status" in fields:
            raise ValueError("use transition() to change job status")
        with self._state_lock:
            job = self.get(job_id)
            if JobStatus(job.status).is_terminal:
                raise InvalidTransition(f"Job {job_id} is {JobStatus(job.status).value} and cannot change")
            return self.store.save_job(replace(job, **fields))

    def transition(self, job_id: str, target: JobStatus, **fields: Any) -> AnalysisJob:
        with self._state_lock:
            job = self.get(job_id)
            current = JobStatus(job.status)
            check_transition(current, target)
            stamps: Dict[str, Any] = {}
            if target is JobStatus.PROCESSING:
                stamps["started_at"] = utc_now()
            elif target.is_terminal:
                stamps["completed_at"] = utc_now()
            updated = self.store.save_job(replace(job, status=target, **stamps, **fields))
        logger.debug("Job %s: %s -> %s", job_id, current.value, target.value)
        self._notify(updated, current, target)
        return updated

    def force_fail(self, job_id: str, message: str) -> AnalysisJob:
        """Mark a stuck job failed; a pending job passes through processing first."""
        with self._state_lock:
            job = self.get(job_id)
            if JobStatus(job.status) is JobStatus.PENDING:
                self.transition(job_id, JobStatus.PROCESSING)
            failed = self.transition(job_id, JobStatus.FAILED, error_message=message, error_kind="internal")
        logger.warning("Job %s force-failed: %s", job_id, message)
        return failed

    def wait(self, job_id: str, timeout: Optional[float] = None) -> AnalysisJob:
        with self._registry_lock:
            future = self._futures.get(job_id)
        if future is not None:
            future.result(timeout=timeout)
        return self.get(job_id)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    # ------------------------------------------------------------------
    # Internal helpers

    def _run(self, job_id: str, work: Work, on_failure: Optional[FailureHook]) -> None:
        try:
            self.transition(job_id, JobStatus.PROCESSING)
            usage = work(JobHandle(self, job_id))
            if not JobStatus(self.get(job_id).status).is_terminal:
                fields: Dict[str, Any] = {}
                if usage is not None:
                    fields.update(input_tokens=usage.input_tokens, output_tokens=usage.output_tokens)
                self.transition(job_id, JobStatus.COMPLETED, **fields)
        except Exception as exc:
            self._record_failure(job_id, exc, on_failure)

    def _record_failure(self, job_id: str, exc: Exception, on_failure: Optional[FailureHook]) -> None:
        logger.error("Job %s failed: %s", job_id, exc)
        logger.debug("Job %s traceback:\n%s", job_id, traceback.format_exc())
        with self._state_lock:
            job = self.store.get_job(job_id)
            if job is None:
                return
            if JobStatus(job.status).is_terminal:
                logger.warning("Job %s raised after reaching %s; status kept", job_id, JobStatus(job.status).value)
                return
            if JobStatus(job.status) is JobStatus.PENDING:
                self.transition(job_id, JobStatus.PROCESSING)
            failed = JobHandle(self, job_id).fail(exc)
        if on_failure is not None:
            try:
                on_failure(failed, exc)
            except Exception as hook_exc:
                logger.error("Failure hook for job %s raised: %s", job_id, hook_exc)

    def _notify(self, job: AnalysisJob, old: JobStatus, new: JobStatus) -> None:
        for hook in list(self._hooks):
            try:
                hook(job, old, new)
            except Exception as exc:
                logger.warning("Transition hook %r raised: %s", hook, exc)

    def _project_lock(self, project_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._project_locks.get(project_id)
            if lock is None:
                lock = self._project_locks[project_id] = threading.Lock()
            return lock


__all__ = [
    "ALLOWED_TRANSITIONS",
    "JobHandle",
    "JobRunner",
    "TransitionHook",
    "check_transition",
]
