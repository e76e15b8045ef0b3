from __future__ import annotations

from sqlalchemy import ForeignKey, String, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from transform_pipeline.core.database import Base


class Session(Base):
  """Guest session. Only the job mirror and notification columns are written here."""

  __tablename__ = "sessions"

  session_id: Mapped[str] = mapped_column(String, primary_key=True)
  project_id: Mapped[str] = mapped_column(ForeignKey("projects.project_id"), nullable=False, index=True)
  experience_id: Mapped[str] = mapped_column(ForeignKey("experiences.experience_id"), nullable=False, index=True)
  config_source: Mapped[str] = mapped_column(String, nullable=False, server_default="published")
  responses_json: Mapped[list] = mapped_column(JSONB, nullable=False, server_default=text("'[]'::jsonb"))
  job_id: Mapped[str | None] = mapped_column(String, nullable=True)
  job_status: Mapped[str | None] = mapped_column(String, nullable=True)
  result_media_json: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
  recipient_address: Mapped[str | None] = mapped_column(String, nullable=True)
  notification_sent_at: Mapped[str | None] = mapped_column(String, nullable=True)
