"""Import all SQLAlchemy ORM models so Alembic sees a complete metadata graph."""

from __future__ import annotations

# Import ORM modules for side effects so models register with Base.metadata.
import transform_pipeline.schema.jobs  # noqa: F401
import transform_pipeline.schema.projects  # noqa: F401
import transform_pipeline.schema.sessions  # noqa: F401
