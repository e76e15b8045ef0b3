"""Client for the external transform executor."""

from __future__ import annotations

import logging
from typing import Any, Literal, Protocol

import httpx
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from transform_pipeline.config import Settings
from transform_pipeline.jobs.errors import FatalExecutionError, TransientExecutionError
from transform_pipeline.jobs.models import JobOutput, MediaRef

logger = logging.getLogger(__name__)


class TransformExecutor(Protocol):
  async def run(self, job_id: str, outcome: dict[str, Any] | None, overlay_choice: MediaRef | None, responses: list[dict[str, Any]]) -> JobOutput:
    """Run the transform and return the produced media."""
    ...


class _Dimensions(BaseModel):
  width: int = Field(gt=0)
  height: int = Field(gt=0)


class _TransformReply(BaseModel):
  model_config = ConfigDict(extra="ignore")

  asset_id: str
  url: str
  file_path: str
  format: Literal["image", "gif", "video"]
  dimensions: _Dimensions
  size_bytes: int = Field(ge=0)
  processing_time_ms: int = Field(ge=0)
  thumbnail_url: str | None = None


class HttpTransformExecutor(TransformExecutor):
  """POSTs the frozen job inputs to the executor service and parses its reply."""

  def __init__(self, settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
    if not settings.transform_executor_url:
      raise RuntimeError("TP_TRANSFORM_EXECUTOR_URL must be set to run transform jobs.")
    self._url = settings.transform_executor_url
    self._timeout = float(settings.transform_timeout_seconds)
    self._transport = transport

  async def run(self, job_id: str, outcome: dict[str, Any] | None, overlay_choice: MediaRef | None, responses: list[dict[str, Any]]) -> JobOutput:
    body = {"job_id": job_id, "outcome": outcome, "overlay": overlay_choice, "responses": responses}
    try:
      async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout, trust_env=False) as client:
        response = await client.post(self._url, json=body)
    except httpx.TimeoutException as exc:
      raise TransientExecutionError(f"Transform executor timed out for job {job_id}", code="TIMEOUT", step="transform") from exc
    except httpx.RequestError as exc:
      raise TransientExecutionError(f"Transform executor unreachable for job {job_id}: {exc}", code="AI_MODEL_ERROR", step="transform") from exc

    if response.status_code == 429 or response.status_code >= 500:
      raise TransientExecutionError(f"Transform executor returned {response.status_code} for job {job_id}", code="AI_MODEL_ERROR", step="transform")

    if response.status_code >= 400:
      logger.warning("Transform executor rejected job %s: %s %s", job_id, response.status_code, response.text[:500])
      raise FatalExecutionError(f"Transform executor rejected job {job_id} with {response.status_code}", code="INVALID_INPUT", step="transform")

    try:
      reply = _TransformReply.model_validate(response.json())
    except (ValueError, PydanticValidationError) as exc:
      raise FatalExecutionError(f"Transform executor returned a malformed reply for job {job_id}", code="PROCESSING_FAILED", step="transform") from exc

    return JobOutput(
      asset_id=reply.asset_id,
      url=reply.url,
      file_path=reply.file_path,
      format=reply.format,
      width=reply.dimensions.width,
      height=reply.dimensions.height,
      size_bytes=reply.size_bytes,
      processing_time_ms=reply.processing_time_ms,
      thumbnail_url=reply.thumbnail_url,
    )
