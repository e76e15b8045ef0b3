"""Postgres-backed session, configuration and dead-letter repositories."""

from __future__ import annotations

from typing import Any

from sqlalchemy import select, update

from transform_pipeline.core.database import get_session_factory
from transform_pipeline.jobs.models import ExperienceConfig, ExperienceRecord, ProjectRecord, SessionRecord
from transform_pipeline.schema.jobs import DeadLetterTask
from transform_pipeline.schema.projects import Experience, Project
from transform_pipeline.schema.sessions import Session
from transform_pipeline.storage.sessions_repo import ConfigRepository, DeadLetterEntry, DeadLetterRepository, SessionsRepository


def _require_session_factory():  # type: ignore
  session_factory = get_session_factory()
  if session_factory is None:
    raise RuntimeError("Database not initialized")
  return session_factory


class PostgresSessionsRepository(SessionsRepository):
  """Field-scoped session access; conditional updates return whether they won."""

  def __init__(self) -> None:
    self._session_factory = _require_session_factory()

  async def get_session(self, project_id: str, session_id: str) -> SessionRecord | None:
    async with self._session_factory() as session:
      stmt = select(Session).where(Session.session_id == session_id, Session.project_id == project_id)
      row = (await session.execute(stmt)).scalar_one_or_none()
      if row is None:
        return None
      return SessionRecord(
        session_id=row.session_id,
        project_id=row.project_id,
        experience_id=row.experience_id,
        config_source=row.config_source,  # type: ignore[arg-type]
        responses=list(row.responses_json or []),
        job_id=row.job_id,
        job_status=row.job_status,  # type: ignore[arg-type]
        result_media=row.result_media_json,
        recipient_address=row.recipient_address,
        notification_sent_at=row.notification_sent_at,
      )

  async def set_recipient_address(self, project_id: str, session_id: str, address: str) -> bool:
    async with self._session_factory() as session, session.begin():
      stmt = update(Session).where(Session.session_id == session_id, Session.project_id == project_id, Session.recipient_address.is_(None)).values(recipient_address=address)
      result = await session.execute(stmt)
      return result.rowcount == 1

  async def claim_notification(self, project_id: str, session_id: str, sent_at: str) -> bool:
    # Single conditional UPDATE: the database decides the winner, not a prior read.
    async with self._session_factory() as session, session.begin():
      stmt = update(Session).where(Session.session_id == session_id, Session.project_id == project_id, Session.notification_sent_at.is_(None)).values(notification_sent_at=sent_at)
      result = await session.execute(stmt)
      return result.rowcount == 1


def _config_from_json(payload: dict[str, Any] | None) -> ExperienceConfig | None:
  if payload is None:
    return None
  return ExperienceConfig(
    steps=list(payload.get("steps") or []),
    outcome=payload.get("outcome"),
    transform_nodes=list(payload.get("transform_nodes") or []),
    aspect_ratio=str(payload.get("aspect_ratio") or "1:1"),
    media_type=payload.get("media_type") or "image",
    apply_overlay=bool(payload.get("apply_overlay")),
  )


class PostgresConfigRepository(ConfigRepository):
  def __init__(self) -> None:
    self._session_factory = _require_session_factory()

  async def get_experience(self, experience_id: str) -> ExperienceRecord | None:
    async with self._session_factory() as session:
      row = await session.get(Experience, experience_id)
      if row is None:
        return None
      return ExperienceRecord(
        experience_id=row.experience_id,
        name=row.name,
        draft=_config_from_json(row.draft_json),
        published=_config_from_json(row.published_json),
        draft_version=row.draft_version,
        published_version=row.published_version,
      )

  async def get_project(self, project_id: str) -> ProjectRecord | None:
    async with self._session_factory() as session:
      row = await session.get(Project, project_id)
      if row is None:
        return None
      return ProjectRecord(project_id=row.project_id, overlays=row.overlays_json)


class PostgresDeadLetterRepository(DeadLetterRepository):
  def __init__(self) -> None:
    self._session_factory = _require_session_factory()

  async def insert(self, entry: DeadLetterEntry) -> None:
    async with self._session_factory() as session:
      session.add(DeadLetterTask(task_type=entry.task_type, payload_json=entry.payload, attempts=entry.attempts, last_error=entry.last_error))
      await session.commit()
