"""
In-memory registry of signing jobs.

This module owns the local side of every signing job:
- Job creation with a fresh identifier
- Correlation with the remote Goodflag workflow
- Forward-only status transitions (pending -> completed | error)
- Time-based expiry by a background reaper thread

Mutation calls for an unknown job id are silent no-ops. They come from the
reconciliation path, which must never fail a client poll because a job was
evicted in the meantime. Callers that need the job to exist check with
``get_job`` first.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from threading import Event, Lock, Thread
from typing import Callable, Dict, Optional
from uuid import uuid4

from .models import JobStatus
from .utils import signed_file_name

logger = logging.getLogger(__name__)

ONE_HOUR = 60.0 * 60.0


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SigningJob:
    """
    Snapshot of one upload's signing lifecycle.

    Records are immutable; the store swaps in a new record on every
    mutation, so a snapshot handed to a caller never changes underneath it.

    Attributes:
        id: Unique job identifier (hex UUID)
        file_name: Original uploaded filename
        file_type: Original upload content type
        status: Local job status
        created_at: Job creation timestamp (UTC)
        updated_at: Last mutation timestamp (UTC), drives expiry
        workflow_id: Remote workflow id, set once after remote creation
        workflow_status: Last observed remote workflow status
        signed_document: Signed file bytes, present only when completed
        signed_file_name: Filename to serve the signed document under
        signed_content_type: Content type of the signed document
        error_message: Failure description, present only on error
        refresh_failures: Consecutive failed reconciliation attempts
    """

    id: str
    file_name: str
    file_type: str
    status: JobStatus
    created_at: datetime
    updated_at: datetime
    workflow_id: Optional[str] = None
    workflow_status: Optional[str] = None
    signed_document: Optional[bytes] = None
    signed_file_name: Optional[str] = None
    signed_content_type: Optional[str] = None
    error_message: Optional[str] = None
    refresh_failures: int = 0

    @property
    def is_pending(self) -> bool:
        return self.status == JobStatus.PENDING


class SigningJobStore:
    """
    Thread-safe registry of signing jobs keyed by job id.

    Thread Safety:
        Every read and write happens under one lock and touches a single
        entry. The lock is never held while talking to the provider.

    Attributes:
        ttl_seconds: Idle time after which a job is evicted
    """

    def __init__(
        self,
        ttl_seconds: float = ONE_HOUR,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._jobs: Dict[str, SigningJob] = {}
        self._lock = Lock()
        self._stop_event = Event()
        self._reaper: Optional[Thread] = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def create_job(self, file_name: str, file_type: str) -> SigningJob:
        now = self._clock()
        job = SigningJob(
            id=uuid4().hex,
            file_name=file_name,
            file_type=file_type,
            status=JobStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self._jobs[job.id] = job
        logger.info(f"Created signing job {job.id} for {file_name}")
        return job

    def get_job(self, job_id: str) -> Optional[SigningJob]:
        with self._lock:
            return self._jobs.get(job_id)

    def _update_job(self, job_id: str, **changes) -> Optional[SigningJob]:
        """
        Replace a job record with an updated copy and refresh ``updated_at``.

        Returns the new record, or None when the job id is unknown.
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            updated = replace(job, updated_at=self._clock(), **changes)
            self._jobs[job_id] = updated
            return updated

    def _update_pending_job(self, job_id: str, **changes) -> Optional[SigningJob]:
        """Like ``_update_job`` but leaves completed and failed jobs untouched."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or not job.is_pending:
                return None
            updated = replace(job, updated_at=self._clock(), **changes)
            self._jobs[job_id] = updated
            return updated

    def set_workflow(
        self,
        job_id: str,
        workflow_id: str,
        workflow_status: Optional[str] = None,
    ) -> None:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return
            if job.workflow_id is not None and job.workflow_id != workflow_id:
                logger.warning(
                    f"Ignoring workflow {workflow_id} for job {job_id}: already bound to {job.workflow_id}"
                )
                return
            self._jobs[job_id] = replace(
                job,
                workflow_id=workflow_id,
                workflow_status=workflow_status,
                updated_at=self._clock(),
            )

    def set_workflow_status(self, job_id: str, workflow_status: str) -> None:
        self._update_job(job_id, workflow_status=workflow_status)

    def complete_job(
        self,
        job_id: str,
        content: bytes,
        file_name: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> None:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or not job.is_pending:
                return
            self._jobs[job_id] = replace(
                job,
                status=JobStatus.COMPLETED,
                updated_at=self._clock(),
                signed_document=bytes(content),
                signed_file_name=file_name or signed_file_name(job.file_name),
                signed_content_type=content_type or job.file_type,
            )
        logger.info(f"Signing job {job_id} completed")

    def fail_job(self, job_id: str, message: str) -> None:
        if self._update_pending_job(job_id, status=JobStatus.ERROR, error_message=message):
            logger.info(f"Signing job {job_id} failed: {message}")

    def record_refresh_failure(self, job_id: str) -> int:
        """Count a failed reconciliation; returns the consecutive failure count."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return 0
            self._jobs[job_id] = replace(job, refresh_failures=job.refresh_failures + 1)
            return job.refresh_failures + 1

    def reset_refresh_failures(self, job_id: str) -> None:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is not None and job.refresh_failures:
                self._jobs[job_id] = replace(job, refresh_failures=0)

    def evict_expired(self) -> int:
        """
        Delete every job idle for longer than the time-to-live.

        Returns:
            Number of evicted jobs
        """
        now = self._clock()
        with self._lock:
            expired = [
                job_id
                for job_id, job in self._jobs.items()
                if (now - job.updated_at).total_seconds() > self.ttl_seconds
            ]
            for job_id in expired:
                del self._jobs[job_id]
        if expired:
            logger.info(f"Evicted {len(expired)} expired signing job(s)")
        return len(expired)

    def start_reaper(self) -> None:
        """
        Start the background sweep, firing every ``ttl_seconds``.

        The reaper is a daemon thread so it never holds the process open;
        ``stop_reaper`` stops and joins it.
        """
        if self._reaper is not None and self._reaper.is_alive():
            return
        self._stop_event.clear()
        self._reaper = Thread(target=self._reap_loop, name="signing-job-reaper", daemon=True)
        self._reaper.start()

    def stop_reaper(self, timeout: Optional[float] = 5.0) -> None:
        self._stop_event.set()
        if self._reaper is not None:
            self._reaper.join(timeout)
            self._reaper = None

    def _reap_loop(self) -> None:
        while not self._stop_event.wait(self.ttl_seconds):
            try:
                self.evict_expired()
            except Exception:  # noqa: BLE001
                logger.exception("Signing job eviction sweep failed")
