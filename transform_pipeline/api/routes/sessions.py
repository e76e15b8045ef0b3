from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from transform_pipeline.api.deps import Pipeline, get_pipeline
from transform_pipeline.jobs.recipients import AlreadySubmitted, InvalidFormat, submit_recipient_address
from transform_pipeline.jobs.requestor import AlreadyInProgress, JobRequested, request_job

router = APIRouter()
logger = logging.getLogger(__name__)


class RequestJobResponse(BaseModel):
  status: str
  job_id: str | None = None


class RecipientRequest(BaseModel):
  address: str = Field(min_length=1, max_length=320)


class RecipientResponse(BaseModel):
  status: str
  detail: str | None = None


@router.post("/projects/{project_id}/sessions/{session_id}/jobs", response_model=RequestJobResponse)
async def request_job_endpoint(project_id: str, session_id: str, pipeline: Annotated[Pipeline, Depends(get_pipeline)]) -> JSONResponse:
  """Queue a transform job for a completed session; never waits for execution."""
  result = await request_job(project_id, session_id, sessions_repo=pipeline.sessions_repo, config_repo=pipeline.config_repo, jobs_repo=pipeline.jobs_repo, enqueuer=pipeline.enqueuer)

  if isinstance(result, JobRequested):
    body = RequestJobResponse(status="requested", job_id=result.job_id)
    return JSONResponse(status_code=status.HTTP_202_ACCEPTED, content=body.model_dump())

  if isinstance(result, AlreadyInProgress):
    body = RequestJobResponse(status="in_progress", job_id=result.job_id)
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=body.model_dump())

  return JSONResponse(status_code=status.HTTP_200_OK, content=RequestJobResponse(status="skipped").model_dump())


@router.post("/projects/{project_id}/sessions/{session_id}/recipient", response_model=RecipientResponse)
async def submit_recipient_endpoint(project_id: str, session_id: str, request: RecipientRequest, pipeline: Annotated[Pipeline, Depends(get_pipeline)]) -> JSONResponse:
  """Store where the result notification goes; a session accepts one address."""
  result = await submit_recipient_address(project_id, session_id, request.address, sessions_repo=pipeline.sessions_repo, convergence=pipeline.convergence())

  if isinstance(result, InvalidFormat):
    body = RecipientResponse(status="invalid_format", detail=result.reason)
    return JSONResponse(status_code=422, content=body.model_dump())

  if isinstance(result, AlreadySubmitted):
    body = RecipientResponse(status="already_submitted", detail="An address was already submitted for this session.")
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=body.model_dump())

  return JSONResponse(status_code=status.HTTP_200_OK, content=RecipientResponse(status="ok").model_dump())
