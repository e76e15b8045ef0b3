from __future__ import annotations

from transform_pipeline.config import Settings
from transform_pipeline.storage.jobs_repo import JobsRepository
from transform_pipeline.storage.postgres_jobs_repo import PostgresJobsRepository
from transform_pipeline.storage.postgres_sessions_repo import PostgresConfigRepository, PostgresDeadLetterRepository, PostgresSessionsRepository
from transform_pipeline.storage.sessions_repo import ConfigRepository, DeadLetterRepository, SessionsRepository


def _get_jobs_repo(settings: Settings) -> JobsRepository:
  """Return the jobs repository."""
  return PostgresJobsRepository()


def _get_sessions_repo(settings: Settings) -> SessionsRepository:
  return PostgresSessionsRepository()


def _get_config_repo(settings: Settings) -> ConfigRepository:
  return PostgresConfigRepository()


def _get_dead_letter_repo(settings: Settings) -> DeadLetterRepository:
  return PostgresDeadLetterRepository()
