"""Recipient address intake for result notifications."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from transform_pipeline.jobs.convergence import NotificationConvergence
from transform_pipeline.jobs.errors import NotFoundError
from transform_pipeline.storage.sessions_repo import SessionsRepository

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_MAX_ADDRESS_LENGTH = 254


@dataclass(frozen=True)
class Ok:
  pass


@dataclass(frozen=True)
class AlreadySubmitted:
  pass


@dataclass(frozen=True)
class InvalidFormat:
  reason: str


SubmitRecipientResult = Ok | AlreadySubmitted | InvalidFormat


def normalize_address(address: str) -> str | None:
  """Return the trimmed address, or None when it is not a plausible email."""
  candidate = address.strip()
  if not candidate or len(candidate) > _MAX_ADDRESS_LENGTH:
    return None
  if not _EMAIL_RE.match(candidate):
    return None
  return candidate


async def submit_recipient_address(project_id: str, session_id: str, address: str, *, sessions_repo: SessionsRepository, convergence: NotificationConvergence) -> SubmitRecipientResult:
  """Store the guest's address once, then run the notification check.

  The notification outcome is logged but never changes what the guest is told.
  """
  normalized = normalize_address(address)
  if normalized is None:
    return InvalidFormat(reason="Enter a valid email address.")

  session = await sessions_repo.get_session(project_id, session_id)
  if session is None:
    raise NotFoundError(f"Session not found: {session_id}")

  if session.recipient_address is not None:
    return AlreadySubmitted()

  if not await sessions_repo.set_recipient_address(project_id, session_id, normalized):
    return AlreadySubmitted()

  try:
    outcome = await convergence.check_and_notify(project_id, session_id)
    logger.info("Notification check after address intake for session %s: %s", session_id, outcome)
  except Exception as exc:  # noqa: BLE001
    logger.error("Notification check after address intake failed for session %s: %s", session_id, exc, exc_info=True)

  return Ok()
