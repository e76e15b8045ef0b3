from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, func, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from transform_pipeline.core.database import Base


class Job(Base):
  __tablename__ = "jobs"
  __table_args__ = (
    # One pending/running job per session, whatever the application code does.
    Index("ux_jobs_active_session", "session_id", unique=True, postgresql_where=text("status IN ('pending', 'running')")),
    Index("ix_jobs_status_created_at", "status", "created_at"),
  )

  job_id: Mapped[str] = mapped_column(String, primary_key=True)
  project_id: Mapped[str] = mapped_column(ForeignKey("projects.project_id"), nullable=False, index=True)
  session_id: Mapped[str] = mapped_column(ForeignKey("sessions.session_id"), nullable=False, index=True)
  experience_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  status: Mapped[str] = mapped_column(String, nullable=False)
  snapshot_json: Mapped[dict] = mapped_column(JSONB, nullable=False)
  output_json: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
  error_json: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
  progress_json: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
  attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  cancel_requested_at: Mapped[str | None] = mapped_column(String, nullable=True)
  created_at: Mapped[str] = mapped_column(String, nullable=False)
  updated_at: Mapped[str] = mapped_column(String, nullable=False)
  started_at: Mapped[str | None] = mapped_column(String, nullable=True)
  completed_at: Mapped[str | None] = mapped_column(String, nullable=True)


class DeadLetterTask(Base):
  __tablename__ = "dead_letter_tasks"

  id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
  task_type: Mapped[str] = mapped_column(String, nullable=False, index=True)
  payload_json: Mapped[dict] = mapped_column(JSONB, nullable=False)
  attempts: Mapped[int] = mapped_column(Integer, nullable=False)
  last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
