from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from transform_pipeline.api.deps import Pipeline, get_pipeline, require_task_secret
from transform_pipeline.jobs.reconcile import reconcile_pending

router = APIRouter(prefix="/maintenance", tags=["maintenance"], dependencies=[Depends(require_task_secret)])


class ReconcileResponse(BaseModel):
  scanned: int
  requeued: int


@router.post("/reconcile-pending", response_model=ReconcileResponse)
async def reconcile_pending_jobs(pipeline: Annotated[Pipeline, Depends(get_pipeline)], older_than_seconds: Annotated[int | None, Query(gt=0)] = None) -> ReconcileResponse:
  """Re-enqueue jobs stuck in pending; meant to be called by a scheduler."""
  threshold = older_than_seconds or pipeline.settings.pending_stale_seconds
  report = await reconcile_pending(jobs_repo=pipeline.jobs_repo, enqueuer=pipeline.enqueuer, older_than_seconds=threshold)
  return ReconcileResponse(scanned=report.scanned, requeued=report.requeued)
