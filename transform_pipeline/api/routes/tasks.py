"""Queue-facing task handlers.

Each handler answers 200 when the task is finished (including when it was
dead-lettered) and 503 to ask the queue for another delivery.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Header, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from transform_pipeline.api.deps import Pipeline, get_pipeline, require_task_secret
from transform_pipeline.jobs.errors import FatalExecutionError, NotFoundError
from transform_pipeline.services.tasks.payloads import (
  RETRY_COUNT_HEADER,
  TASK_CHECK_NOTIFICATION,
  TASK_DISPATCH_EXPORT,
  TASK_EXECUTE_TRANSFORM,
  CheckNotificationPayload,
  DispatchExportPayload,
  ExecuteTransformPayload,
)
from transform_pipeline.storage.sessions_repo import DeadLetterEntry

router = APIRouter(prefix="/tasks", tags=["tasks"], dependencies=[Depends(require_task_secret)])
logger = logging.getLogger(__name__)

RetryCount = Annotated[int, Header(alias=RETRY_COUNT_HEADER, ge=0)]


async def _dead_letter(pipeline: Pipeline, task_type: str, body: dict[str, Any], attempt: int, error: Exception) -> JSONResponse:
  await pipeline.dead_letter_repo.insert(DeadLetterEntry(task_type=task_type, payload=body, attempts=attempt, last_error=str(error)[:2000]))
  logger.error("Dead-lettered %s task after %d attempt(s): %s payload=%s", task_type, attempt, error, body)
  return JSONResponse(status_code=status.HTTP_200_OK, content={"status": "dead_lettered"})


async def _run_task(pipeline: Pipeline, task_type: str, model: type[BaseModel], body: dict[str, Any], retry_count: int, handler: Callable[[Any, int], Awaitable[str]]) -> JSONResponse:
  attempt = retry_count + 1
  try:
    payload = model.model_validate(body)
  except PydanticValidationError as exc:
    # A malformed payload never becomes valid on redelivery.
    return await _dead_letter(pipeline, task_type, body, attempt, exc)

  try:
    outcome = await handler(payload, attempt)
  except (FatalExecutionError, NotFoundError) as exc:
    return await _dead_letter(pipeline, task_type, body, attempt, exc)
  except Exception as exc:
    if attempt >= pipeline.settings.task_max_attempts:
      return await _dead_letter(pipeline, task_type, body, attempt, exc)
    logger.warning("%s task failed on attempt %d/%d; requesting retry: %s", task_type, attempt, pipeline.settings.task_max_attempts, exc)
    return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"status": "retry"})

  return JSONResponse(status_code=status.HTTP_200_OK, content={"status": "ok", "outcome": outcome})


@router.post("/execute-transform")
async def execute_transform_task(pipeline: Annotated[Pipeline, Depends(get_pipeline)], body: Annotated[dict[str, Any], Body()], retry_count: RetryCount = 0) -> JSONResponse:
  """Run the job state machine for one delivery."""

  async def _handle(payload: ExecuteTransformPayload, attempt: int) -> str:
    logger.info("Received %s task for job %s (attempt %d)", TASK_EXECUTE_TRANSFORM, payload.job_id, attempt)
    return await pipeline.job_executor().execute(payload, attempt=attempt)

  return await _run_task(pipeline, TASK_EXECUTE_TRANSFORM, ExecuteTransformPayload, body, retry_count, _handle)


@router.post("/check-notification")
async def check_notification_task(pipeline: Annotated[Pipeline, Depends(get_pipeline)], body: Annotated[dict[str, Any], Body()], retry_count: RetryCount = 0) -> JSONResponse:
  """Completion-side trigger of the notification convergence check."""

  async def _handle(payload: CheckNotificationPayload, attempt: int) -> str:
    return await pipeline.convergence().check_and_notify(payload.project_id, payload.session_id)

  return await _run_task(pipeline, TASK_CHECK_NOTIFICATION, CheckNotificationPayload, body, retry_count, _handle)


@router.post("/dispatch-export")
async def dispatch_export_task(pipeline: Annotated[Pipeline, Depends(get_pipeline)], body: Annotated[dict[str, Any], Body()], retry_count: RetryCount = 0) -> JSONResponse:
  """Forward a completed job's output; failures here never touch the job."""

  async def _handle(payload: DispatchExportPayload, attempt: int) -> str:
    job = await pipeline.jobs_repo.get_job(payload.job_id)
    if job is None or job.status != "completed" or job.output is None:
      raise NotFoundError(f"No completed output for job {payload.job_id}")
    await pipeline.export_dispatcher.dispatch(job_id=job.job_id, project_id=job.project_id, session_id=job.session_id, output=job.output)
    return "exported"

  return await _run_task(pipeline, TASK_DISPATCH_EXPORT, DispatchExportPayload, body, retry_count, _handle)
