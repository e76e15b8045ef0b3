"""Frozen job snapshots built from live session and experience data."""

from __future__ import annotations

import json
from typing import Any

from transform_pipeline.jobs.models import ConfigSource, ExperienceRecord, JobSnapshot, MediaRef, SessionRecord


def _deep_copy(value: Any) -> Any:
  """Structural copy through JSON so the snapshot shares no objects with live config."""
  return json.loads(json.dumps(value))


def build_job_snapshot(session: SessionRecord, experience: ExperienceRecord, config_source: ConfigSource, overlay_choice: MediaRef | None) -> JobSnapshot:
  """Capture responses and outcome config at job-creation time."""
  config = experience.config_for(config_source)
  if config is None:
    raise ValueError("Experience config not found")

  return JobSnapshot(
    responses=_deep_copy(session.responses),
    config_version=experience.version_for(config_source),
    config_source=config_source,
    outcome=_deep_copy(config.outcome),
    transform_nodes=_deep_copy(config.transform_nodes),
    overlay_choice=_deep_copy(overlay_choice),
    experience_ref={"experience_id": experience.experience_id, "name": experience.name},
  )
