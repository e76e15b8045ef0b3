"""Create transform pipeline tables.

Revision ID: 5c1e9a7d2b40
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "5c1e9a7d2b40"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
  """Upgrade schema."""
  op.create_table(
    "projects",
    sa.Column("project_id", sa.String(), nullable=False),
    sa.Column("overlays_json", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.PrimaryKeyConstraint("project_id"),
  )
  op.create_table(
    "experiences",
    sa.Column("experience_id", sa.String(), nullable=False),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("draft_json", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column("published_json", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column("draft_version", sa.Integer(), nullable=False),
    sa.Column("published_version", sa.Integer(), nullable=True),
    sa.PrimaryKeyConstraint("experience_id"),
  )
  op.create_table(
    "sessions",
    sa.Column("session_id", sa.String(), nullable=False),
    sa.Column("project_id", sa.String(), nullable=False),
    sa.Column("experience_id", sa.String(), nullable=False),
    sa.Column("config_source", sa.String(), server_default="published", nullable=False),
    sa.Column("responses_json", postgresql.JSONB(astext_type=sa.Text()), server_default=sa.text("'[]'::jsonb"), nullable=False),
    sa.Column("job_id", sa.String(), nullable=True),
    sa.Column("job_status", sa.String(), nullable=True),
    sa.Column("result_media_json", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column("recipient_address", sa.String(), nullable=True),
    sa.Column("notification_sent_at", sa.String(), nullable=True),
    sa.ForeignKeyConstraint(["experience_id"], ["experiences.experience_id"]),
    sa.ForeignKeyConstraint(["project_id"], ["projects.project_id"]),
    sa.PrimaryKeyConstraint("session_id"),
  )
  op.create_index(op.f("ix_sessions_project_id"), "sessions", ["project_id"], unique=False)
  op.create_index(op.f("ix_sessions_experience_id"), "sessions", ["experience_id"], unique=False)
  op.create_table(
    "jobs",
    sa.Column("job_id", sa.String(), nullable=False),
    sa.Column("project_id", sa.String(), nullable=False),
    sa.Column("session_id", sa.String(), nullable=False),
    sa.Column("experience_id", sa.String(), nullable=False),
    sa.Column("status", sa.String(), nullable=False),
    sa.Column("snapshot_json", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("output_json", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column("error_json", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column("progress_json", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column("attempts", sa.Integer(), nullable=False),
    sa.Column("cancel_requested_at", sa.String(), nullable=True),
    sa.Column("created_at", sa.String(), nullable=False),
    sa.Column("updated_at", sa.String(), nullable=False),
    sa.Column("started_at", sa.String(), nullable=True),
    sa.Column("completed_at", sa.String(), nullable=True),
    sa.ForeignKeyConstraint(["project_id"], ["projects.project_id"]),
    sa.ForeignKeyConstraint(["session_id"], ["sessions.session_id"]),
    sa.PrimaryKeyConstraint("job_id"),
  )
  op.create_index(op.f("ix_jobs_project_id"), "jobs", ["project_id"], unique=False)
  op.create_index(op.f("ix_jobs_session_id"), "jobs", ["session_id"], unique=False)
  op.create_index(op.f("ix_jobs_experience_id"), "jobs", ["experience_id"], unique=False)
  op.create_index("ix_jobs_status_created_at", "jobs", ["status", "created_at"], unique=False)
  op.create_index("ux_jobs_active_session", "jobs", ["session_id"], unique=True, postgresql_where=sa.text("status IN ('pending', 'running')"))
  op.create_table(
    "dead_letter_tasks",
    sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
    sa.Column("task_type", sa.String(), nullable=False),
    sa.Column("payload_json", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("attempts", sa.Integer(), nullable=False),
    sa.Column("last_error", sa.Text(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index(op.f("ix_dead_letter_tasks_task_type"), "dead_letter_tasks", ["task_type"], unique=False)


def downgrade() -> None:
  """Downgrade schema."""
  op.drop_index(op.f("ix_dead_letter_tasks_task_type"), table_name="dead_letter_tasks")
  op.drop_table("dead_letter_tasks")
  op.drop_index("ux_jobs_active_session", table_name="jobs", postgresql_where=sa.text("status IN ('pending', 'running')"))
  op.drop_index("ix_jobs_status_created_at", table_name="jobs")
  op.drop_index(op.f("ix_jobs_experience_id"), table_name="jobs")
  op.drop_index(op.f("ix_jobs_session_id"), table_name="jobs")
  op.drop_index(op.f("ix_jobs_project_id"), table_name="jobs")
  op.drop_table("jobs")
  op.drop_index(op.f("ix_sessions_experience_id"), table_name="sessions")
  op.drop_index(op.f("ix_sessions_project_id"), table_name="sessions")
  op.drop_table("sessions")
  op.drop_table("experiences")
  op.drop_table("projects")
