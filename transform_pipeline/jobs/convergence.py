"""Exactly-once "result ready" notification across two racing triggers.

The job-completion path and the address-intake path both call `check_and_notify`.
Whichever caller wins the conditional write on `notification_sent_at` sends; every
other caller, concurrent or later, observes the fence and does nothing.
"""

from __future__ import annotations

import logging
from typing import Literal

from transform_pipeline.jobs.errors import NotFoundError, SideEffectError
from transform_pipeline.notifications.service import NotificationService
from transform_pipeline.storage.jobs_repo import JobsRepository
from transform_pipeline.storage.sessions_repo import SessionsRepository
from transform_pipeline.utils.clock import now_iso

logger = logging.getLogger(__name__)

NotifyOutcome = Literal["not_ready", "already_sent", "lost_race", "sent", "send_failed"]


class NotificationConvergence:
  def __init__(self, *, sessions_repo: SessionsRepository, jobs_repo: JobsRepository, notification_service: NotificationService) -> None:
    self._sessions_repo = sessions_repo
    self._jobs_repo = jobs_repo
    self._notification_service = notification_service

  async def check_and_notify(self, project_id: str, session_id: str) -> NotifyOutcome:
    """Send the notification if every condition holds and this caller claims the fence."""
    session = await self._sessions_repo.get_session(project_id, session_id)
    if session is None:
      raise NotFoundError(f"Session not found: {session_id}")

    if session.notification_sent_at is not None:
      return "already_sent"

    if not session.recipient_address or session.job_status != "completed" or session.result_media is None:
      return "not_ready"

    # Resolve everything the send needs before the fence is claimed.
    experience_name = await self._experience_name(session.job_id)

    # The session read is advisory; only the conditional write decides who sends.
    if not await self._sessions_repo.claim_notification(project_id, session_id, now_iso()):
      logger.info("Notification for session %s claimed by a concurrent caller", session_id)
      return "lost_race"

    try:
      await self._notification_service.notify_result_ready(to_address=session.recipient_address, project_id=project_id, session_id=session_id, experience_name=experience_name)
    except SideEffectError as exc:
      # The fence stays set: a failed notification is never resent.
      logger.error("Result notification for session %s failed: %s", session_id, exc)
      return "send_failed"

    logger.info("Result notification sent for session %s", session_id)
    return "sent"

  async def _experience_name(self, job_id: str | None) -> str | None:
    if job_id is None:
      return None
    job = await self._jobs_repo.get_job(job_id)
    if job is None:
      return None
    return (job.snapshot.get("experience_ref") or {}).get("name")
