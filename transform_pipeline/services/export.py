"""Forward completed job output to the export integration."""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from transform_pipeline.config import Settings

logger = logging.getLogger(__name__)


class ExportDispatcher(Protocol):
  async def dispatch(self, *, job_id: str, project_id: str, session_id: str, output: dict[str, Any]) -> None:
    """Deliver the output; raises so the queue can retry."""
    ...


class WebhookExportDispatcher(ExportDispatcher):
  def __init__(self, url: str, *, timeout_seconds: float = 30.0, transport: httpx.AsyncBaseTransport | None = None) -> None:
    self._url = url
    self._timeout = timeout_seconds
    self._transport = transport

  async def dispatch(self, *, job_id: str, project_id: str, session_id: str, output: dict[str, Any]) -> None:
    body = {"job_id": job_id, "project_id": project_id, "session_id": session_id, "output": output}
    async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout, trust_env=False) as client:
      response = await client.post(self._url, json=body)
      response.raise_for_status()
    logger.info("Exported job %s output to webhook", job_id)


class NullExportDispatcher(ExportDispatcher):
  """Used when no export integration is configured."""

  async def dispatch(self, *, job_id: str, project_id: str, session_id: str, output: dict[str, Any]) -> None:
    logger.debug("No export webhook configured; skipping export for job %s", job_id)


def build_export_dispatcher(settings: Settings) -> ExportDispatcher:
  if not settings.export_webhook_url:
    return NullExportDispatcher()
  return WebhookExportDispatcher(settings.export_webhook_url)
