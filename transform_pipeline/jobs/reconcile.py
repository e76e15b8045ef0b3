"""Recovery for jobs whose execution task was never enqueued."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from transform_pipeline.jobs.requestor import enqueue_execution
from transform_pipeline.services.tasks.interface import TaskEnqueuer
from transform_pipeline.storage.jobs_repo import JobsRepository
from transform_pipeline.utils.clock import iso_seconds_ago

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconcileReport:
  scanned: int
  requeued: int


async def reconcile_pending(*, jobs_repo: JobsRepository, enqueuer: TaskEnqueuer, older_than_seconds: int, limit: int = 100) -> ReconcileReport:
  """Re-enqueue execution for jobs stuck in pending.

  Duplicate deliveries are harmless because execution skips jobs that already left pending.
  """
  stale = await jobs_repo.find_stale_pending(created_before=iso_seconds_ago(older_than_seconds), limit=limit)
  requeued = 0
  for job in stale:
    if await enqueue_execution(enqueuer, job):
      requeued += 1

  if stale:
    logger.warning("Reconciled %d of %d stale pending jobs", requeued, len(stale))
  return ReconcileReport(scanned=len(stale), requeued=requeued)
