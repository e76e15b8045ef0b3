from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from urllib.parse import urlparse

import httpx

from transform_pipeline.config import Settings
from transform_pipeline.services.tasks.interface import TaskEnqueuer
from transform_pipeline.services.tasks.payloads import RETRY_COUNT_HEADER, TASK_SECRET_HEADER, TaskPayload

logger = logging.getLogger(__name__)


class LocalHttpEnqueuer(TaskEnqueuer):
  """Enqueues tasks via local HTTP requests to simulate Cloud Tasks.

  Delivery happens in a background asyncio task. Any non-2xx answer or transport
  error is retried with bounded exponential backoff until `task_max_attempts`
  deliveries have been made, and every delivery carries the retry-count header.
  """

  def __init__(self, settings: Settings, *, sleep: Callable[[float], Awaitable[None]] = asyncio.sleep) -> None:
    self.settings = settings
    self._sleep = sleep
    self._in_flight: set[asyncio.Task[None]] = set()

  def _should_use_asgi_transport(self, base_url: str) -> bool:
    """Decide if we should route requests in-process via ASGITransport."""
    # Avoid network/proxy edge-cases for local development by calling the app in-process when possible.
    parsed = urlparse(base_url)
    hostname = (parsed.hostname or "").lower()
    return hostname in {"localhost", "127.0.0.1", "::1", "0.0.0.0"}

  def _build_client(self, base_url: str) -> httpx.AsyncClient:
    """Build an httpx client for local task dispatch."""
    # Never trust environment proxy variables for internal task dispatch.
    if self._should_use_asgi_transport(base_url):
      from transform_pipeline.main import app

      transport = httpx.ASGITransport(app=app)
      return httpx.AsyncClient(transport=transport, base_url=base_url, trust_env=False)
    return httpx.AsyncClient(trust_env=False)

  def _task_headers(self) -> dict[str, str]:
    """Build task authentication headers for internal endpoints."""
    # Enforce shared-secret auth for internal endpoints (deny-by-default).
    if not self.settings.task_secret:
      raise RuntimeError("Task secret not configured.")
    return {TASK_SECRET_HEADER: self.settings.task_secret}

  def _backoff_seconds(self, retry_count: int) -> float:
    delay = self.settings.task_min_backoff_seconds * (2**retry_count)
    return min(delay, self.settings.task_max_backoff_seconds)

  async def enqueue(self, task_type: str, payload: TaskPayload) -> None:
    """Accept the task and schedule its delivery without waiting for the handler."""
    if not self.settings.base_url:
      raise RuntimeError("Base URL not configured, strictly required for LocalHttpEnqueuer.")

    url = f"{self.settings.base_url.rstrip('/')}/internal/tasks/{task_type}"
    headers = self._task_headers()
    body = payload.model_dump(mode="json")
    delivery = asyncio.create_task(self._deliver(url, task_type, body, headers))
    # Hold a reference until the delivery finishes so it is not garbage collected.
    self._in_flight.add(delivery)
    delivery.add_done_callback(self._in_flight.discard)
    logger.info("Queued local %s task for %s", task_type, url)

  async def _deliver(self, url: str, task_type: str, body: dict, headers: dict[str, str]) -> None:
    max_attempts = self.settings.task_max_attempts
    for retry_count in range(max_attempts):
      try:
        async with self._build_client(self.settings.base_url or url) as client:
          response = await client.post(url, json=body, headers={**headers, RETRY_COUNT_HEADER: str(retry_count)}, timeout=1800.0)

        if response.is_success:
          return

        logger.warning("Local %s task returned %s on attempt %d/%d", task_type, response.status_code, retry_count + 1, max_attempts)
      except httpx.RequestError as e:
        logger.warning("Local %s task delivery failed on attempt %d/%d: %s", task_type, retry_count + 1, max_attempts, e)

      if retry_count + 1 < max_attempts:
        await self._sleep(self._backoff_seconds(retry_count))

    logger.error("Local %s task gave up after %d attempts: %s", task_type, max_attempts, body)

  async def drain(self) -> None:
    """Wait for every scheduled delivery to finish."""
    while self._in_flight:
      await asyncio.gather(*list(self._in_flight))
