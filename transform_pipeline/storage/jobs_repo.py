"""Storage interfaces for transform jobs."""

from __future__ import annotations

from typing import Any, Protocol

from transform_pipeline.jobs.models import JobRecord, JobStatus
from transform_pipeline.jobs.session_sync import SessionMirror


class JobsRepository(Protocol):
  """Repository contract for job persistence.

  Every method that changes a job's status also applies the session mirror in the
  same transaction, and only while the session still points at that job.
  """

  async def create_job_for_session(self, record: JobRecord) -> bool:
    """Insert a pending job and point the session at it.

    Returns False without writing anything when the session already has an
    active (pending or running) job.
    """

  async def get_job(self, job_id: str) -> JobRecord | None:
    """Fetch a job by identifier."""

  async def transition_job(
    self,
    job_id: str,
    *,
    from_statuses: frozenset[str],
    status: JobStatus,
    mirror: SessionMirror,
    output: dict[str, Any] | None = None,
    error: dict[str, Any] | None = None,
    progress: dict[str, Any] | None = None,
    started_at: str | None = None,
    completed_at: str | None = None,
  ) -> JobRecord | None:
    """Move a job to `status` if it is currently in `from_statuses`.

    Returns the updated record, or None when the job was not in an allowed state.
    """

  async def record_attempt(self, job_id: str) -> JobRecord | None:
    """Increment the delivery attempt counter."""

  async def request_cancellation(self, job_id: str, requested_at: str) -> bool:
    """Record a cancellation signal on a pending job; False when it is not pending."""

  async def find_stale_pending(self, *, created_before: str, limit: int = 100) -> list[JobRecord]:
    """Return pending jobs created before the given timestamp."""
