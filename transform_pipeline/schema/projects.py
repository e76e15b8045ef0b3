from __future__ import annotations

from sqlalchemy import Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from transform_pipeline.core.database import Base


class Project(Base):
  __tablename__ = "projects"

  project_id: Mapped[str] = mapped_column(String, primary_key=True)
  overlays_json: Mapped[dict | None] = mapped_column(JSONB, nullable=True)


class Experience(Base):
  __tablename__ = "experiences"

  experience_id: Mapped[str] = mapped_column(String, primary_key=True)
  name: Mapped[str] = mapped_column(String, nullable=False)
  draft_json: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
  published_json: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
  draft_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
  published_version: Mapped[int | None] = mapped_column(Integer, nullable=True)
