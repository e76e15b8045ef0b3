"""Error taxonomy for the transform job pipeline."""

from __future__ import annotations

import time
from typing import Any


class PipelineError(Exception):
  """Base class for all pipeline failures."""


class ValidationError(PipelineError):
  """Input rejected before anything was persisted."""


class NotFoundError(PipelineError):
  """A referenced session, experience or job does not exist."""


class ConflictError(PipelineError):
  """Duplicate active job or duplicate address submission."""


class ExecutionError(PipelineError):
  """Failure raised while running a transform."""

  def __init__(self, message: str, *, code: str = "PROCESSING_FAILED", step: str | None = None) -> None:
    super().__init__(message)
    self.code = code
    self.step = step


class TransientExecutionError(ExecutionError):
  """Execution failure the task queue should retry."""


class FatalExecutionError(ExecutionError):
  """Execution failure that ends the job; recorded on the job only."""


class SideEffectError(PipelineError):
  """Export or notification dispatch failure; never changes a job's terminal state."""


# Client-safe messages so prompts and provider details never reach the session.
SANITIZED_ERROR_MESSAGES: dict[str, str] = {
  "INVALID_INPUT": "The request could not be processed due to invalid input.",
  "PROCESSING_FAILED": "An error occurred while processing your request.",
  "AI_MODEL_ERROR": "The AI service is temporarily unavailable.",
  "STORAGE_ERROR": "Unable to save the result. Please try again.",
  "TIMEOUT": "Processing took too long and was cancelled.",
  "CANCELLED": "The request was cancelled.",
  "UNKNOWN": "An unexpected error occurred.",
}


def sanitized_error(code: str, step: str | None = None, *, is_retryable: bool = False) -> dict[str, Any]:
  """Build the error payload stored on a failed job."""
  known_code = code if code in SANITIZED_ERROR_MESSAGES else "UNKNOWN"
  return {"code": known_code, "message": SANITIZED_ERROR_MESSAGES[known_code], "step": step, "is_retryable": is_retryable, "timestamp": int(time.time() * 1000)}
