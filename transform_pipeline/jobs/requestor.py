"""Turn a completed guest session into a queued transform job."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from transform_pipeline.jobs.errors import NotFoundError
from transform_pipeline.jobs.models import ACTIVE_JOB_STATUSES, JobRecord
from transform_pipeline.jobs.overlays import resolve_overlay, validate_aspect_ratio
from transform_pipeline.jobs.snapshot import build_job_snapshot
from transform_pipeline.services.tasks.interface import TaskEnqueuer
from transform_pipeline.services.tasks.payloads import TASK_EXECUTE_TRANSFORM, ExecuteTransformPayload
from transform_pipeline.storage.jobs_repo import JobsRepository
from transform_pipeline.storage.sessions_repo import ConfigRepository, SessionsRepository
from transform_pipeline.utils.clock import now_iso
from transform_pipeline.utils.ids import generate_job_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JobRequested:
  job_id: str


@dataclass(frozen=True)
class NoOpSkip:
  """The experience has no transform nodes; nothing was created."""


@dataclass(frozen=True)
class AlreadyInProgress:
  job_id: str | None


RequestJobResult = JobRequested | NoOpSkip | AlreadyInProgress


async def request_job(project_id: str, session_id: str, *, sessions_repo: SessionsRepository, config_repo: ConfigRepository, jobs_repo: JobsRepository, enqueuer: TaskEnqueuer) -> RequestJobResult:
  """Create a pending job for the session and enqueue its execution.

  Returns without waiting for execution. The active-job check that decides the
  outcome runs inside the creating transaction; the earlier mirror check only
  short-circuits the common case.
  """
  session = await sessions_repo.get_session(project_id, session_id)
  if session is None:
    raise NotFoundError(f"Session not found: {session_id}")

  experience = await config_repo.get_experience(session.experience_id)
  if experience is None:
    raise NotFoundError(f"Experience not found: {session.experience_id}")

  config = experience.config_for(session.config_source)
  if config is None:
    raise NotFoundError(f"Experience {experience.experience_id} has no {session.config_source} config")

  if session.job_id and session.job_status in ACTIVE_JOB_STATUSES:
    return AlreadyInProgress(job_id=session.job_id)

  if not config.transform_nodes:
    logger.info("Session %s has no transform nodes; skipping job creation", session_id)
    return NoOpSkip()

  validate_aspect_ratio(config.media_type, config.aspect_ratio)
  project = await config_repo.get_project(project_id)
  overlay_choice = resolve_overlay(project.overlays if project else None, config.apply_overlay, config.aspect_ratio)
  snapshot = build_job_snapshot(session, experience, session.config_source, overlay_choice)

  now = now_iso()
  record = JobRecord(
    job_id=generate_job_id(),
    project_id=project_id,
    session_id=session_id,
    experience_id=experience.experience_id,
    status="pending",
    snapshot=snapshot.to_dict(),
    created_at=now,
    updated_at=now,
  )
  if not await jobs_repo.create_job_for_session(record):
    latest = await sessions_repo.get_session(project_id, session_id)
    return AlreadyInProgress(job_id=latest.job_id if latest else None)

  logger.info("Created job %s for session %s", record.job_id, session_id)
  await enqueue_execution(enqueuer, record)
  return JobRequested(job_id=record.job_id)


async def enqueue_execution(enqueuer: TaskEnqueuer, record: JobRecord) -> bool:
  """Enqueue `execute-transform`; a failure leaves the job pending for the reconcile sweep."""
  payload = ExecuteTransformPayload(job_id=record.job_id, project_id=record.project_id, session_id=record.session_id)
  try:
    await enqueuer.enqueue(TASK_EXECUTE_TRANSFORM, payload)
  except Exception as exc:  # noqa: BLE001
    logger.error("Failed to enqueue execution for job %s; left pending for reconciliation: %s", record.job_id, exc, exc_info=True)
    return False
  return True
