"""Storage interfaces for the session fields and read-only configuration used by jobs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from transform_pipeline.jobs.models import ExperienceRecord, ProjectRecord, SessionRecord


class SessionsRepository(Protocol):
  """Narrow, field-scoped access to sessions. Never overwrites whole documents."""

  async def get_session(self, project_id: str, session_id: str) -> SessionRecord | None:
    """Fetch a session scoped to its project."""

  async def set_recipient_address(self, project_id: str, session_id: str, address: str) -> bool:
    """Store the address only if none is set yet; True when this call wrote it."""

  async def claim_notification(self, project_id: str, session_id: str, sent_at: str) -> bool:
    """Set `notification_sent_at` only if it is still null; True for the single winner."""


class ConfigRepository(Protocol):
  """Read-only experience and project configuration."""

  async def get_experience(self, experience_id: str) -> ExperienceRecord | None:
    """Fetch an experience with its draft and published configs."""

  async def get_project(self, project_id: str) -> ProjectRecord | None:
    """Fetch a project with its overlay map."""


@dataclass(frozen=True)
class DeadLetterEntry:
  """A task that exhausted its attempt budget."""

  task_type: str
  payload: dict[str, Any]
  attempts: int
  last_error: str | None


class DeadLetterRepository(Protocol):
  async def insert(self, entry: DeadLetterEntry) -> None:
    """Persist a dead-lettered task for operators."""
