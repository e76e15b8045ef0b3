"""UTC timestamp helpers shared by repositories and services."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

_DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def now_iso() -> str:
  return datetime.now(UTC).strftime(_DATE_FORMAT)


def iso_seconds_ago(seconds: int) -> str:
  """Timestamp `seconds` in the past, comparable with stored job timestamps."""
  return (datetime.now(UTC) - timedelta(seconds=seconds)).strftime(_DATE_FORMAT)
