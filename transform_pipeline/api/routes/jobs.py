from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from transform_pipeline.api.deps import Pipeline, get_pipeline
from transform_pipeline.jobs.cancellation import request_cancellation
from transform_pipeline.jobs.errors import ConflictError
from transform_pipeline.jobs.models import JobRecord

router = APIRouter()


class JobStatusResponse(BaseModel):
  job_id: str
  session_id: str
  status: str
  progress: dict[str, Any] | None = None
  output: dict[str, Any] | None = None
  error: dict[str, Any] | None = None
  created_at: str
  updated_at: str
  started_at: str | None = None
  completed_at: str | None = None


class CancelResponse(BaseModel):
  job_id: str
  cancel_requested: bool


def _to_response(record: JobRecord) -> JobStatusResponse:
  # The snapshot holds guest responses; it is not part of the public view.
  return JobStatusResponse(
    job_id=record.job_id,
    session_id=record.session_id,
    status=record.status,
    progress=record.progress,
    output=record.output,
    error=record.error,
    created_at=record.created_at,
    updated_at=record.updated_at,
    started_at=record.started_at,
    completed_at=record.completed_at,
  )


@router.get("/projects/{project_id}/jobs/{job_id}", response_model=JobStatusResponse)
async def get_job_status(project_id: str, job_id: str, pipeline: Annotated[Pipeline, Depends(get_pipeline)]) -> JobStatusResponse:
  record = await pipeline.jobs_repo.get_job(job_id)
  if record is None or record.project_id != project_id:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found.")
  return _to_response(record)


@router.post("/projects/{project_id}/jobs/{job_id}/cancel", response_model=CancelResponse, status_code=status.HTTP_202_ACCEPTED)
async def cancel_job(project_id: str, job_id: str, pipeline: Annotated[Pipeline, Depends(get_pipeline)]) -> CancelResponse:
  """Ask for a pending job to be cancelled; running jobs are not interrupted."""
  recorded = await request_cancellation(project_id, job_id, jobs_repo=pipeline.jobs_repo)
  if not recorded:
    raise ConflictError("Job is no longer pending.")
  return CancelResponse(job_id=job_id, cancel_requested=True)
