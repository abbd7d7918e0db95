"""Job tracking for video synthesis.

Each job runs one synthesis pipeline on a worker thread. Status is kept in a
lock-guarded store so it can be polled while the pipeline advances; readers
always receive copies.
"""

import logging
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Callable

from ..cancellation import CancellationToken
from ..errors import JobCancelled, NarratedVideoError

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    """Stage of a synthesis job."""

    PENDING = "pending"
    SYNTHESIZING_AUDIO = "synthesizing_audio"
    ALIGNING_CAPTIONS = "aligning_captions"
    SCHEDULING_OVERLAYS = "scheduling_overlays"
    COMPOSITING = "compositing"
    READY = "ready"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.READY, JobStatus.ERROR)


@dataclass
class JobProgress:
    """Externally visible state of a job."""

    job_id: str
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    message: str = ""
    error: str | None = None
    result: dict[str, Any] | None = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "jobId": self.job_id,
            "status": self.status.value,
            "progress": self.progress,
            "message": self.message,
        }


class JobStore:
    """Job status keyed by id, plus the context each running job owns."""

    def __init__(self):
        self._jobs: dict[str, JobProgress] = {}
        self._contexts: dict[str, Any] = {}
        self._lock = threading.Lock()

    def create(self, context: Any = None) -> str:
        """Register a new pending job, taking ownership of ``context``.

        Returns:
            The job ID.
        """
        job_id = f"job_{uuid.uuid4().hex[:12]}"
        with self._lock:
            self._jobs[job_id] = JobProgress(job_id=job_id, message="Job queued")
            if context is not None:
                self._contexts[job_id] = context
        return job_id

    def update(
        self,
        job_id: str,
        status: JobStatus,
        progress: int | None = None,
        message: str = "",
        error: str | None = None,
        result: dict[str, Any] | None = None,
    ) -> None:
        """Record a status change.

        Args:
            job_id: The job ID.
            status: New status.
            progress: Percentage, clamped to 0-100. Kept unchanged when None.
            message: Status message.
            error: User-facing error message (for failed jobs).
            result: Result dict (for finished jobs).
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return
            if job.status.is_terminal:
                logger.debug("[%s] ignoring %s after terminal state", job_id, status.value)
                return
            job.status = status
            if progress is not None:
                job.progress = min(max(int(progress), 0), 100)
            job.message = message
            job.updated_at = datetime.now()
            if result is not None:
                job.result = result
            if error is not None:
                job.error = error
            snapshot = replace(job)

        logger.info("[%s] [%s] (%d%%) %s", job_id, snapshot.status.value, snapshot.progress, snapshot.message)

    def get(self, job_id: str) -> JobProgress | None:
        with self._lock:
            job = self._jobs.get(job_id)
            return replace(job) if job else None

    def list_jobs(self) -> list[JobProgress]:
        """All jobs, newest first."""
        with self._lock:
            jobs = [replace(j) for j in self._jobs.values()]
        return sorted(jobs, key=lambda j: j.created_at, reverse=True)

    def context(self, job_id: str) -> Any:
        with self._lock:
            return self._contexts.get(job_id)

    def release(self, job_id: str) -> Any:
        """Drop the job's context once it reached a terminal state."""
        with self._lock:
            return self._contexts.pop(job_id, None)

    def cleanup_old_jobs(self, max_age_seconds: int = 3600) -> int:
        """Remove finished jobs older than ``max_age_seconds``.

        Returns:
            Number of jobs removed.
        """
        cutoff = datetime.now()
        with self._lock:
            stale = [
                job_id
                for job_id, job in self._jobs.items()
                if job.status.is_terminal and (cutoff - job.updated_at).total_seconds() > max_age_seconds
            ]
            for job_id in stale:
                del self._jobs[job_id]
                self._contexts.pop(job_id, None)
        return len(stale)


@dataclass
class JobHandle:
    """What a running task sees of its job: progress reporting and cancellation."""

    job_id: str
    store: JobStore
    token: CancellationToken = field(default_factory=CancellationToken)

    def report(self, status: JobStatus, progress: int, message: str) -> None:
        self.token.raise_if_cancelled()
        self.store.update(self.job_id, status, progress, message)

    def raise_if_cancelled(self) -> None:
        self.token.raise_if_cancelled()


class JobRunner:
    """Runs synthesis tasks on a thread pool and records their outcome."""

    def __init__(self, max_jobs: int = 2, store: JobStore | None = None):
        """
        Args:
            max_jobs: Maximum number of concurrently running jobs.
            store: Status store; a new one is created when omitted.
        """
        self.store = store or JobStore()
        self._executor = ThreadPoolExecutor(max_workers=max_jobs)
        self._handles: dict[str, JobHandle] = {}
        self._futures: dict[str, Future] = {}
        self._lock = threading.Lock()

    def submit(self, task: Callable[[JobHandle], dict[str, Any]], context: Any = None) -> str:
        """Submit a job.

        Args:
            task: Callable receiving the job handle and returning a result dict.
            context: Job-scoped resources, owned by the store until the job ends.

        Returns:
            The job ID.
        """
        job_id = self.store.create(context)
        handle = JobHandle(job_id=job_id, store=self.store)

        def run_task() -> None:
            try:
                result = task(handle)
                self.store.update(job_id, JobStatus.READY, 100, "Video ready", result=result)
            except JobCancelled as e:
                self.store.update(job_id, JobStatus.ERROR, message=e.user_message, error=e.user_message)
            except NarratedVideoError as e:
                logger.error("[%s] %s: %s", job_id, type(e).__name__, e.diagnostic)
                self.store.update(job_id, JobStatus.ERROR, message=e.user_message, error=e.user_message)
            except Exception as e:
                logger.exception("[%s] unexpected failure", job_id)
                self.store.update(
                    job_id, JobStatus.ERROR,
                    message="Video synthesis failed unexpectedly",
                    error=f"{type(e).__name__}: {e}",
                )
            finally:
                self._release(job_id)

        with self._lock:
            self._handles[job_id] = handle
            self._futures[job_id] = self._executor.submit(run_task)
        return job_id

    def get(self, job_id: str) -> JobProgress | None:
        return self.store.get(job_id)

    def cancel(self, job_id: str) -> bool:
        """Request cancellation of a job.

        Running jobs stop at their next stage boundary. Jobs still queued
        never start.

        Returns:
            True if the job was still active, False otherwise.
        """
        job = self.store.get(job_id)
        with self._lock:
            handle = self._handles.get(job_id)
            future = self._futures.get(job_id)
        if job is None or handle is None or job.status.is_terminal:
            return False

        handle.token.cancel("Job cancelled")
        if future is not None and future.cancel():
            self.store.update(job_id, JobStatus.ERROR, message="Job cancelled", error="Job cancelled")
            self._release(job_id)
        return True

    def _release(self, job_id: str) -> None:
        """Drop the job's context and let it remove whatever it created."""
        context = self.store.release(job_id)
        cleanup = getattr(context, "cleanup", None)
        if callable(cleanup):
            cleanup()

    def wait(self, job_id: str, timeout: float | None = None) -> JobProgress | None:
        """Block until the job finishes or ``timeout`` elapses."""
        with self._lock:
            future = self._futures.get(job_id)
        if future is not None:
            wait_futures([future], timeout=timeout)
        return self.store.get(job_id)

    def shutdown(self, wait: bool = True) -> None:
        """Shutdown the runner.

        Args:
            wait: Whether to wait for running jobs to complete.
        """
        self._executor.shutdown(wait=wait)
