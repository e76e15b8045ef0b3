from __future__ import annotations

from transform_pipeline.config import Settings
from transform_pipeline.services.tasks.gcp import CloudTasksEnqueuer
from transform_pipeline.services.tasks.interface import TaskEnqueuer
from transform_pipeline.services.tasks.local import LocalHttpEnqueuer


def get_task_enqueuer(settings: Settings) -> TaskEnqueuer:
  """Factory to get the configured task enqueuer."""
  if settings.task_service_provider == "gcp":
    return CloudTasksEnqueuer(settings)
  return LocalHttpEnqueuer(settings)
