"""Notification orchestration for guest-facing events."""

from __future__ import annotations

import logging

from starlette.concurrency import run_in_threadpool

from transform_pipeline.jobs.errors import SideEffectError
from transform_pipeline.notifications.contracts import EmailNotification, EmailSender, NotificationProviderError
from transform_pipeline.notifications.template_renderer import render_email_template

logger = logging.getLogger(__name__)


class NotificationService:
  """Dispatches result notifications over email.

  Unlike best-effort audit logging, a failed send is raised as `SideEffectError`
  so the caller can report it; the caller decides whether anything is retried.
  """

  def __init__(self, *, email_sender: EmailSender, email_enabled: bool, result_base_url: str) -> None:
    self._email_sender = email_sender
    self._email_enabled = email_enabled
    self._result_base_url = result_base_url.rstrip("/")

  def result_url(self, *, project_id: str, session_id: str) -> str:
    return f"{self._result_base_url}/projects/{project_id}/sessions/{session_id}/result"

  async def send_email_template(self, *, to_address: str, to_name: str | None, template_id: str, placeholders: dict) -> dict[str, str | None]:
    """Render and send a templated email, raising `SideEffectError` on any failure."""
    # Avoid sending notifications when the feature is not configured.
    if not self._email_enabled:
      logger.info("Email notifications disabled; skipping template_id=%s", template_id)
      return {"provider": None, "message_id": None, "request_id": None}

    try:
      subject, text_body, html_body = render_email_template(template_id=template_id, placeholders=placeholders)
      notification = EmailNotification(to_address=to_address, to_name=to_name, subject=subject, text=text_body, html=html_body)
      return await run_in_threadpool(self._email_sender.send, notification)

    except NotificationProviderError as exc:
      # Provider errors are often expected (e.g. 403 Forbidden); keep the log free of tracebacks.
      logger.error("Email notification delivery failed (provider error): %s", exc)
      raise SideEffectError(f"Email delivery failed: {exc}") from exc

    except Exception as exc:
      logger.error("Email notification delivery failed: %s", exc, exc_info=True)
      raise SideEffectError(f"Email delivery failed: {exc}") from exc

  async def notify_result_ready(self, *, to_address: str, project_id: str, session_id: str, experience_name: str | None) -> dict[str, str | None]:
    """Tell a guest their transform result is ready."""
    # Keep the payload to a link so result media never travels inside the email.
    placeholders = {"experience_name": experience_name or "photo", "result_url": self.result_url(project_id=project_id, session_id=session_id)}
    return await self.send_email_template(to_address=to_address, to_name=None, template_id="result_ready_v1", placeholders=placeholders)
