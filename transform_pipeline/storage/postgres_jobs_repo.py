"""Postgres-backed repository for transform jobs using SQLAlchemy."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from transform_pipeline.core.database import get_session_factory
from transform_pipeline.jobs.errors import NotFoundError
from transform_pipeline.jobs.models import ACTIVE_JOB_STATUSES, JobRecord, JobStatus
from transform_pipeline.jobs.session_sync import SessionMirror
from transform_pipeline.schema.jobs import Job
from transform_pipeline.schema.sessions import Session
from transform_pipeline.storage.jobs_repo import JobsRepository
from transform_pipeline.utils.clock import now_iso

logger = logging.getLogger(__name__)


class PostgresJobsRepository(JobsRepository):
  """Persist jobs and their session mirror to Postgres using SQLAlchemy."""

  def __init__(self) -> None:
    self._session_factory = get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def create_job_for_session(self, record: JobRecord) -> bool:
    try:
      async with self._session_factory() as session, session.begin():
        # Lock the session row so concurrent requestors serialize on the precondition check.
        stmt = select(Session).where(Session.session_id == record.session_id, Session.project_id == record.project_id).with_for_update()
        session_row = (await session.execute(stmt)).scalar_one_or_none()
        if session_row is None:
          raise NotFoundError(f"Session not found: {record.session_id}")

        active_stmt = select(func.count()).select_from(Job).where(Job.session_id == record.session_id, Job.status.in_(ACTIVE_JOB_STATUSES))
        if int(await session.scalar(active_stmt) or 0) > 0:
          return False

        session.add(
          Job(
            job_id=record.job_id,
            project_id=record.project_id,
            session_id=record.session_id,
            experience_id=record.experience_id,
            status=record.status,
            snapshot_json=record.snapshot,
            output_json=None,
            error_json=None,
            progress_json=None,
            attempts=0,
            created_at=record.created_at,
            updated_at=record.updated_at,
          )
        )
        await session.flush()
        await session.execute(update(Session).where(Session.session_id == record.session_id).values(job_id=record.job_id, job_status=record.status))
    except IntegrityError:
      # The partial unique index caught a racing insert that slipped past the lock.
      logger.info("Active job already exists for session %s", record.session_id)
      return False

    return True

  async def get_job(self, job_id: str) -> JobRecord | None:
    async with self._session_factory() as session:
      row = await session.get(Job, job_id)
      if row is None:
        return None
      return self._model_to_record(row)

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
    values: dict[str, Any] = {"status": status, "updated_at": now_iso()}
    if output is not None:
      values["output_json"] = output
    if error is not None:
      values["error_json"] = error
    if progress is not None:
      values["progress_json"] = progress
    # Timestamps are set once; a later transition never moves them.
    if started_at is not None:
      values["started_at"] = func.coalesce(Job.started_at, started_at)
    if completed_at is not None:
      values["completed_at"] = func.coalesce(Job.completed_at, completed_at)

    async with self._session_factory() as session, session.begin():
      stmt = update(Job).where(Job.job_id == job_id, Job.status.in_(from_statuses)).values(**values).returning(Job)
      row = (await session.execute(stmt)).scalar_one_or_none()
      if row is None:
        return None
      await self._apply_mirror(session, session_id=row.session_id, mirror=mirror)
      return self._model_to_record(row)

  async def record_attempt(self, job_id: str) -> JobRecord | None:
    async with self._session_factory() as session, session.begin():
      stmt = update(Job).where(Job.job_id == job_id).values(attempts=Job.attempts + 1, updated_at=now_iso()).returning(Job)
      row = (await session.execute(stmt)).scalar_one_or_none()
      return self._model_to_record(row) if row is not None else None

  async def request_cancellation(self, job_id: str, requested_at: str) -> bool:
    async with self._session_factory() as session, session.begin():
      stmt = update(Job).where(Job.job_id == job_id, Job.status == "pending", Job.cancel_requested_at.is_(None)).values(cancel_requested_at=requested_at, updated_at=now_iso())
      result = await session.execute(stmt)
      return result.rowcount == 1

  async def find_stale_pending(self, *, created_before: str, limit: int = 100) -> list[JobRecord]:
    async with self._session_factory() as session:
      stmt = select(Job).where(Job.status == "pending", Job.created_at < created_before).order_by(Job.created_at.asc()).limit(limit)
      rows = (await session.execute(stmt)).scalars().all()
      return [self._model_to_record(row) for row in rows]

  @staticmethod
  async def _apply_mirror(session: AsyncSession, *, session_id: str, mirror: SessionMirror) -> None:
    """Write the job mirror columns, leaving every other session column untouched."""
    values: dict[str, Any] = {"job_status": mirror.job_status}
    if mirror.result_media is not None:
      values["result_media_json"] = mirror.result_media
    # Skip sessions that have since moved on to a newer job.
    await session.execute(update(Session).where(Session.session_id == session_id, Session.job_id == mirror.job_id).values(**values))

  @staticmethod
  def _model_to_record(row: Job) -> JobRecord:
    return JobRecord(
      job_id=row.job_id,
      project_id=row.project_id,
      session_id=row.session_id,
      experience_id=row.experience_id,
      status=row.status,  # type: ignore[arg-type]
      snapshot=row.snapshot_json,
      output=row.output_json,
      error=row.error_json,
      progress=row.progress_json,
      attempts=row.attempts,
      cancel_requested_at=row.cancel_requested_at,
      created_at=row.created_at,
      updated_at=row.updated_at,
      started_at=row.started_at,
      completed_at=row.completed_at,
    )
