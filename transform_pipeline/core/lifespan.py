import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import urlparse

from fastapi import FastAPI

from transform_pipeline.core.database import dispose_engine
from transform_pipeline.core.logging import _initialize_logging


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Set up logging after uvicorn starts and release resources on shutdown."""
  from transform_pipeline.config import get_settings

  settings = get_settings()
  logger = logging.getLogger("transform_pipeline.core.lifespan")

  try:
    _initialize_logging(settings)
    logger.info("Startup complete - logging verified.")
  except RuntimeError:
    # Keep serving with default logging when the log directory is unavailable.
    logger.warning("Initial logging setup failed; continuing with default handlers.", exc_info=True)

  logger.info("Task provider=%s database=%s", settings.task_service_provider, _redact_dsn(settings.pg_dsn))
  if not settings.task_secret:
    logger.warning("TP_TASK_SECRET is not set; internal task endpoints will reject every delivery.")

  yield

  await dispose_engine()


def _redact_dsn(raw: str | None) -> str:
  """Redact credentials from a DSN while keeping host/db visible."""
  if not raw:
    return "<unset>"

  parsed = urlparse(raw)
  if not parsed.scheme:
    return "<invalid>"

  user = parsed.username or ""
  host = parsed.hostname or ""
  port = f":{parsed.port}" if parsed.port else ""
  netloc = f"{user}@{host}{port}" if user else f"{host}{port}"
  database = parsed.path.lstrip("/")
  path = f"/{database}" if database else ""
  return f"{parsed.scheme}://{netloc}{path}"
