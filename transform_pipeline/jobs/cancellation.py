"""External cancellation signal for jobs that have not started."""

from __future__ import annotations

import logging

from transform_pipeline.jobs.errors import NotFoundError
from transform_pipeline.storage.jobs_repo import JobsRepository
from transform_pipeline.utils.clock import now_iso

logger = logging.getLogger(__name__)


async def request_cancellation(project_id: str, job_id: str, *, jobs_repo: JobsRepository) -> bool:
  """Record the signal on a pending job; the executor acts on it at the pending-to-running step.

  Returns False when the job already left pending, since running jobs are not interrupted.
  """
  job = await jobs_repo.get_job(job_id)
  if job is None or job.project_id != project_id:
    raise NotFoundError(f"Job not found: {job_id}")

  recorded = await jobs_repo.request_cancellation(job_id, now_iso())
  if recorded:
    logger.info("Cancellation requested for job %s", job_id)
  return recorded
