from __future__ import annotations

import json
import logging

from google.cloud import tasks_v2
from starlette.concurrency import run_in_threadpool

from transform_pipeline.config import Settings
from transform_pipeline.services.tasks.interface import TaskEnqueuer
from transform_pipeline.services.tasks.payloads import TASK_SECRET_HEADER, TaskPayload

logger = logging.getLogger(__name__)


class CloudTasksEnqueuer(TaskEnqueuer):
  """Enqueues tasks to Google Cloud Tasks HTTP targets.

  Retries and backoff are owned by the queue configuration; its max attempts should
  match `TP_TASK_MAX_ATTEMPTS` so handlers know when a delivery is the last one.
  """

  def __init__(self, settings: Settings, client: tasks_v2.CloudTasksClient | None = None) -> None:
    self.settings = settings
    self.client = client or tasks_v2.CloudTasksClient()

  def _build_task(self, task_type: str, payload: TaskPayload) -> dict:
    if not self.settings.base_url:
      raise RuntimeError("Base URL not configured, strictly required for CloudTasksEnqueuer.")

    if not self.settings.task_secret:
      raise RuntimeError("Task secret not configured.")

    url = f"{self.settings.base_url.rstrip('/')}/internal/tasks/{task_type}"
    http_request: dict = {
      "http_method": tasks_v2.HttpMethod.POST,
      "url": url,
      # Authorization carries the OIDC token for Cloud Run, so the secret rides in its own header.
      "headers": {"Content-Type": "application/json", TASK_SECRET_HEADER: self.settings.task_secret},
      "body": json.dumps(payload.model_dump(mode="json")).encode(),
    }
    if self.settings.cloud_tasks_service_account:
      http_request["oidc_token"] = {"service_account_email": self.settings.cloud_tasks_service_account, "audience": self.settings.base_url.rstrip("/")}

    return {"http_request": http_request}

  async def enqueue(self, task_type: str, payload: TaskPayload) -> None:
    """Create a Cloud Task; errors propagate so callers can log the enqueue failure."""
    task = self._build_task(task_type, payload)
    parent = self.settings.cloud_tasks_queue_path
    # The Cloud Tasks client is blocking; keep it off the event loop.
    response = await run_in_threadpool(self.client.create_task, request={"parent": parent, "task": task})
    logger.info("Enqueued %s task %s", task_type, response.name)
