"""State machine that runs one transform job per queue delivery."""

from __future__ import annotations

import logging
from typing import Literal

from transform_pipeline.jobs.errors import ExecutionError, FatalExecutionError, SideEffectError, TransientExecutionError, sanitized_error
from transform_pipeline.jobs.models import JobOutput, JobRecord, JobSnapshot
from transform_pipeline.jobs.session_sync import mirror_for
from transform_pipeline.services.tasks.interface import TaskEnqueuer
from transform_pipeline.services.tasks.payloads import TASK_CHECK_NOTIFICATION, TASK_DISPATCH_EXPORT, CheckNotificationPayload, DispatchExportPayload, ExecuteTransformPayload
from transform_pipeline.services.transform import TransformExecutor
from transform_pipeline.storage.jobs_repo import JobsRepository
from transform_pipeline.utils.clock import now_iso

logger = logging.getLogger(__name__)

ExecutionOutcome = Literal["completed", "failed", "cancelled", "skipped"]

_PENDING = frozenset({"pending"})
_RUNNING = frozenset({"running"})


def _progress(percentage: int, message: str, current_step: str | None = None) -> dict:
  return {"current_step": current_step, "percentage": percentage, "message": message}


class JobExecutor:
  """Drive a job from pending to a terminal state.

  `attempt` is the 1-based delivery number reported by the queue. Transient failures
  are re-raised while attempts remain so the queue redelivers; once the budget is
  spent, or on any fatal failure, the job is marked failed.
  """

  def __init__(self, *, jobs_repo: JobsRepository, transform_executor: TransformExecutor, enqueuer: TaskEnqueuer, max_attempts: int) -> None:
    self._jobs_repo = jobs_repo
    self._transform_executor = transform_executor
    self._enqueuer = enqueuer
    self._max_attempts = max_attempts

  async def execute(self, payload: ExecuteTransformPayload, *, attempt: int) -> ExecutionOutcome:
    job = await self._jobs_repo.get_job(payload.job_id)
    if job is None:
      raise FatalExecutionError(f"Job not found: {payload.job_id}", code="INVALID_INPUT")

    if job.is_terminal:
      logger.info("Job %s already %s; skipping duplicate delivery", job.job_id, job.status)
      return "skipped"

    if job.status == "pending":
      if job.cancel_requested_at is not None:
        return await self._cancel(job)

      running = await self._jobs_repo.transition_job(
        job.job_id, from_statuses=_PENDING, status="running", mirror=mirror_for(job.job_id, "running"), progress=_progress(20, "Processing", "transform"), started_at=now_iso()
      )
      if running is None:
        # Another delivery moved the job first; that delivery owns execution.
        logger.info("Job %s left pending concurrently; skipping delivery", job.job_id)
        return "skipped"
      job = running
    else:
      logger.info("Job %s redelivered while running (attempt %d); resuming", job.job_id, attempt)

    await self._jobs_repo.record_attempt(job.job_id)
    snapshot = JobSnapshot.from_dict(job.snapshot)

    try:
      output = await self._transform_executor.run(job.job_id, snapshot.outcome, snapshot.overlay_choice, snapshot.responses)
    except FatalExecutionError as exc:
      logger.error("Fatal failure for job %s: %s", job.job_id, exc)
      return await self._fail(job, exc)
    except Exception as exc:
      # Unclassified errors are retried like transient ones.
      transient = exc if isinstance(exc, ExecutionError) else TransientExecutionError(str(exc), code="UNKNOWN", step="transform")
      if attempt < self._max_attempts:
        logger.warning("Transient failure for job %s on attempt %d/%d: %s", job.job_id, attempt, self._max_attempts, exc)
        raise
      logger.error("Job %s exhausted %d attempts: %s", job.job_id, self._max_attempts, exc, exc_info=not isinstance(exc, ExecutionError))
      return await self._fail(job, transient)

    return await self._complete(job, output)

  async def _cancel(self, job: JobRecord) -> ExecutionOutcome:
    cancelled = await self._jobs_repo.transition_job(
      job.job_id, from_statuses=_PENDING, status="cancelled", mirror=mirror_for(job.job_id, "cancelled"), error=sanitized_error("CANCELLED"), completed_at=now_iso()
    )
    if cancelled is None:
      return "skipped"
    logger.info("Job %s cancelled before execution", job.job_id)
    return "cancelled"

  async def _fail(self, job: JobRecord, exc: ExecutionError) -> ExecutionOutcome:
    failed = await self._jobs_repo.transition_job(
      job.job_id,
      from_statuses=_RUNNING,
      status="failed",
      mirror=mirror_for(job.job_id, "failed"),
      error=sanitized_error(exc.code, exc.step, is_retryable=isinstance(exc, TransientExecutionError)),
      completed_at=now_iso(),
    )
    return "failed" if failed is not None else "skipped"

  async def _complete(self, job: JobRecord, output: JobOutput) -> ExecutionOutcome:
    completed = await self._jobs_repo.transition_job(
      job.job_id,
      from_statuses=_RUNNING,
      status="completed",
      mirror=mirror_for(job.job_id, "completed", output),
      output=output.to_dict(),
      progress=_progress(100, "Completed"),
      completed_at=now_iso(),
    )
    if completed is None:
      logger.warning("Job %s was no longer running when its output arrived", job.job_id)
      return "skipped"

    logger.info("Job %s completed", job.job_id)
    await self._enqueue_side_effects(completed)
    return "completed"

  async def _enqueue_side_effects(self, job: JobRecord) -> None:
    """Best-effort follow-up tasks; the job stays completed whatever happens here."""
    follow_ups = (
      (TASK_DISPATCH_EXPORT, DispatchExportPayload(job_id=job.job_id, project_id=job.project_id, session_id=job.session_id)),
      (TASK_CHECK_NOTIFICATION, CheckNotificationPayload(project_id=job.project_id, session_id=job.session_id)),
    )
    for task_type, payload in follow_ups:
      try:
        await self._enqueuer.enqueue(task_type, payload)
      except Exception as exc:  # noqa: BLE001
        error = SideEffectError(f"Failed to enqueue {task_type} for job {job.job_id}: {exc}")
        logger.error("%s", error, exc_info=True)
