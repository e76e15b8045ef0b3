"""Typed payloads for each task type carried by the queue."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

TASK_EXECUTE_TRANSFORM = "execute-transform"
TASK_CHECK_NOTIFICATION = "check-notification"
TASK_DISPATCH_EXPORT = "dispatch-export"

# Cloud Tasks sets this on every delivery; zero on the first attempt.
RETRY_COUNT_HEADER = "X-CloudTasks-TaskRetryCount"
TASK_SECRET_HEADER = "X-TP-Task-Secret"


class ExecuteTransformPayload(BaseModel):
  """Run one transform job."""

  model_config = ConfigDict(extra="forbid")

  job_id: str = Field(min_length=1)
  project_id: str = Field(min_length=1)
  session_id: str = Field(min_length=1)


class CheckNotificationPayload(BaseModel):
  """Evaluate the notification convergence conditions for a session."""

  model_config = ConfigDict(extra="forbid")

  project_id: str = Field(min_length=1)
  session_id: str = Field(min_length=1)


class DispatchExportPayload(BaseModel):
  """Forward a completed job's output to the export integration."""

  model_config = ConfigDict(extra="forbid")

  job_id: str = Field(min_length=1)
  project_id: str = Field(min_length=1)
  session_id: str = Field(min_length=1)


TaskPayload = ExecuteTransformPayload | CheckNotificationPayload | DispatchExportPayload
