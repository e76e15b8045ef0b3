"""Projection of job state onto the session's mirror fields."""

from __future__ import annotations

from dataclasses import dataclass

from transform_pipeline.jobs.models import JobOutput, JobStatus, MediaRef


@dataclass(frozen=True)
class SessionMirror:
  """Narrow session update applied in the same transaction as a job transition."""

  job_id: str
  job_status: JobStatus
  result_media: MediaRef | None = None


def mirror_for(job_id: str, status: JobStatus, output: JobOutput | None = None) -> SessionMirror:
  """Build the session mirror for a job transition."""
  if status == "completed":
    if output is None:
      raise ValueError("Completed transitions must carry an output.")
    return SessionMirror(job_id=job_id, job_status=status, result_media=output.to_media_ref())

  return SessionMirror(job_id=job_id, job_status=status)
