"""Shared FastAPI dependencies for pipeline wiring and internal task auth."""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from transform_pipeline.config import Settings, get_settings
from transform_pipeline.jobs.convergence import NotificationConvergence
from transform_pipeline.jobs.executor import JobExecutor
from transform_pipeline.notifications.factory import build_notification_service
from transform_pipeline.notifications.service import NotificationService
from transform_pipeline.services.export import ExportDispatcher, build_export_dispatcher
from transform_pipeline.services.tasks.factory import get_task_enqueuer
from transform_pipeline.services.tasks.interface import TaskEnqueuer
from transform_pipeline.services.transform import HttpTransformExecutor, TransformExecutor
from transform_pipeline.storage.factory import _get_config_repo, _get_dead_letter_repo, _get_jobs_repo, _get_sessions_repo
from transform_pipeline.storage.jobs_repo import JobsRepository
from transform_pipeline.storage.sessions_repo import ConfigRepository, DeadLetterRepository, SessionsRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Pipeline:
  """Collaborators shared by every route; built once per process."""

  settings: Settings
  jobs_repo: JobsRepository
  sessions_repo: SessionsRepository
  config_repo: ConfigRepository
  dead_letter_repo: DeadLetterRepository
  enqueuer: TaskEnqueuer
  notification_service: NotificationService
  export_dispatcher: ExportDispatcher
  transform_executor: TransformExecutor | None

  def job_executor(self) -> JobExecutor:
    if self.transform_executor is None:
      raise RuntimeError("TP_TRANSFORM_EXECUTOR_URL must be set to run transform jobs.")
    return JobExecutor(jobs_repo=self.jobs_repo, transform_executor=self.transform_executor, enqueuer=self.enqueuer, max_attempts=self.settings.task_max_attempts)

  def convergence(self) -> NotificationConvergence:
    return NotificationConvergence(sessions_repo=self.sessions_repo, jobs_repo=self.jobs_repo, notification_service=self.notification_service)


def build_pipeline(settings: Settings) -> Pipeline:
  transform_executor = HttpTransformExecutor(settings) if settings.transform_executor_url else None
  return Pipeline(
    settings=settings,
    jobs_repo=_get_jobs_repo(settings),
    sessions_repo=_get_sessions_repo(settings),
    config_repo=_get_config_repo(settings),
    dead_letter_repo=_get_dead_letter_repo(settings),
    enqueuer=get_task_enqueuer(settings),
    notification_service=build_notification_service(settings),
    export_dispatcher=build_export_dispatcher(settings),
    transform_executor=transform_executor,
  )


@lru_cache(maxsize=1)
def get_pipeline() -> Pipeline:
  """Dependency returning the process-wide pipeline wiring."""
  return build_pipeline(get_settings())


async def require_task_secret(
  settings: Annotated[Settings, Depends(get_settings)], authorization: str | None = Header(default=None), x_tp_task_secret: str | None = Header(default=None)
) -> None:
  """Reject internal task calls without the shared secret."""
  # Secure-by-default: internal task endpoints must be authenticated to avoid arbitrary job execution.
  if not settings.task_secret:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Task authentication is not configured.")
  expected_auth = f"Bearer {settings.task_secret}"
  # Cloud Tasks OIDC uses Authorization for Cloud Run invoker auth, so check the dedicated secret header first.
  shared_secret_valid = secrets.compare_digest((x_tp_task_secret or ""), settings.task_secret)
  bearer_valid = secrets.compare_digest((authorization or ""), expected_auth)
  if not shared_secret_valid and not bearer_valid:
    logger.warning("Unauthorized access attempt to an internal task endpoint")
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid task secret.")
