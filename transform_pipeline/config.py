"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

_TASK_PROVIDERS = {"local-http", "gcp"}


@dataclass(frozen=True)
class Settings:
  """Typed settings for the transform pipeline service."""

  environment: str
  allowed_origins: tuple[str, ...]
  debug: bool
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  pg_dsn: str | None
  pg_connect_timeout: int
  task_service_provider: str
  cloud_tasks_queue_path: str | None
  cloud_tasks_service_account: str | None
  base_url: str | None
  task_secret: str | None
  task_max_attempts: int
  task_min_backoff_seconds: float
  task_max_backoff_seconds: float
  transform_executor_url: str | None
  transform_timeout_seconds: int
  export_webhook_url: str | None
  email_notifications_enabled: bool
  email_from_address: str | None
  email_from_name: str | None
  mailersend_api_key: str | None
  mailersend_timeout_seconds: int
  mailersend_base_url: str
  result_base_url: str
  pending_stale_seconds: int


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    return ()

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if "*" in origins:
    raise ValueError("TP_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _positive_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("TP_ENV", "development").lower()
  debug = _parse_bool(os.getenv("TP_DEBUG"))

  log_max_bytes = _positive_int("TP_LOG_MAX_BYTES", "5242880")
  log_backup_count = int(os.getenv("TP_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("TP_LOG_BACKUP_COUNT must be zero or a positive integer.")

  task_service_provider = os.getenv("TP_TASK_SERVICE_PROVIDER", "local-http").strip().lower()
  if task_service_provider not in _TASK_PROVIDERS:
    raise ValueError(f"TP_TASK_SERVICE_PROVIDER must be one of: {', '.join(sorted(_TASK_PROVIDERS))}.")

  cloud_tasks_queue_path = _optional_str(os.getenv("TP_CLOUD_TASKS_QUEUE_PATH"))
  # Cloud Tasks needs a queue to push into; fail at startup rather than on the first job.
  if task_service_provider == "gcp" and not cloud_tasks_queue_path:
    raise ValueError("TP_CLOUD_TASKS_QUEUE_PATH must be set when TP_TASK_SERVICE_PROVIDER is 'gcp'.")

  task_max_attempts = _positive_int("TP_TASK_MAX_ATTEMPTS", "3")
  task_min_backoff_seconds = float(os.getenv("TP_TASK_MIN_BACKOFF_SECONDS", "10"))
  task_max_backoff_seconds = float(os.getenv("TP_TASK_MAX_BACKOFF_SECONDS", "300"))
  if task_min_backoff_seconds < 0 or task_max_backoff_seconds < task_min_backoff_seconds:
    raise ValueError("TP_TASK_MIN_BACKOFF_SECONDS must be >= 0 and <= TP_TASK_MAX_BACKOFF_SECONDS.")

  email_notifications_enabled = _parse_bool(os.getenv("TP_EMAIL_NOTIFICATIONS_ENABLED"))
  email_from_address = _optional_str(os.getenv("TP_EMAIL_FROM_ADDRESS"))
  mailersend_api_key = _optional_str(os.getenv("TP_MAILERSEND_API_KEY"))
  mailersend_timeout_seconds = _positive_int("TP_MAILERSEND_TIMEOUT_SECONDS", "10")

  # Validate notification settings only when notifications are enabled.
  if email_notifications_enabled:
    if not email_from_address:
      raise ValueError("TP_EMAIL_FROM_ADDRESS must be set when email notifications are enabled.")

    if not mailersend_api_key:
      raise ValueError("TP_MAILERSEND_API_KEY must be set when email notifications are enabled.")

  return Settings(
    environment=environment,
    allowed_origins=_parse_origins(os.getenv("TP_ALLOWED_ORIGINS")),
    debug=debug,
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_4xx=_parse_bool(os.getenv("TP_LOG_HTTP_4XX")),
    pg_dsn=os.getenv("TP_PG_DSN") or os.getenv("DATABASE_URL"),
    pg_connect_timeout=_positive_int("TP_PG_CONNECT_TIMEOUT", "5"),
    task_service_provider=task_service_provider,
    cloud_tasks_queue_path=cloud_tasks_queue_path,
    cloud_tasks_service_account=_optional_str(os.getenv("TP_CLOUD_TASKS_SERVICE_ACCOUNT")),
    base_url=_optional_str(os.getenv("TP_BASE_URL")),
    task_secret=_optional_str(os.getenv("TP_TASK_SECRET")),
    task_max_attempts=task_max_attempts,
    task_min_backoff_seconds=task_min_backoff_seconds,
    task_max_backoff_seconds=task_max_backoff_seconds,
    transform_executor_url=_optional_str(os.getenv("TP_TRANSFORM_EXECUTOR_URL")),
    transform_timeout_seconds=_positive_int("TP_TRANSFORM_TIMEOUT_SECONDS", "300"),
    export_webhook_url=_optional_str(os.getenv("TP_EXPORT_WEBHOOK_URL")),
    email_notifications_enabled=email_notifications_enabled,
    email_from_address=email_from_address,
    email_from_name=_optional_str(os.getenv("TP_EMAIL_FROM_NAME")),
    mailersend_api_key=mailersend_api_key,
    mailersend_timeout_seconds=mailersend_timeout_seconds,
    mailersend_base_url=(os.getenv("TP_MAILERSEND_BASE_URL") or "https://api.mailersend.com/v1").strip(),
    result_base_url=(os.getenv("TP_RESULT_BASE_URL") or "http://localhost:3000").strip().rstrip("/"),
    pending_stale_seconds=_positive_int("TP_PENDING_STALE_SECONDS", "600"),
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring web-runtime configuration."""
  # Keep database configuration isolated so migrations don't require unrelated env vars.
  debug = _parse_bool(os.getenv("TP_DEBUG"))
  pg_connect_timeout = _positive_int("TP_PG_CONNECT_TIMEOUT", "5")
  pg_dsn = os.getenv("TP_PG_DSN") or os.getenv("DATABASE_URL")
  return DatabaseSettings(debug=debug, pg_dsn=pg_dsn, pg_connect_timeout=pg_connect_timeout)


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value
