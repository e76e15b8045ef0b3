import pytest

from transform_pipeline.jobs.cancellation import request_cancellation
from transform_pipeline.jobs.errors import NotFoundError
from transform_pipeline.jobs.executor import JobExecutor
from transform_pipeline.jobs.reconcile import reconcile_pending
from transform_pipeline.jobs.requestor import request_job
from transform_pipeline.services.tasks.payloads import ExecuteTransformPayload


async def _request(sessions_repo, config_repo, jobs_repo, enqueuer):
  result = await request_job("proj-1", "sess-1", sessions_repo=sessions_repo, config_repo=config_repo, jobs_repo=jobs_repo, enqueuer=enqueuer)
  return result.job_id


@pytest.mark.anyio
async def test_cancel_pending_job_then_executor_cancels(store, sessions_repo, config_repo, jobs_repo, enqueuer, transform_executor):
  job_id = await _request(sessions_repo, config_repo, jobs_repo, enqueuer)

  assert await request_cancellation("proj-1", job_id, jobs_repo=jobs_repo) is True
  # A repeated signal is not recorded twice.
  assert await request_cancellation("proj-1", job_id, jobs_repo=jobs_repo) is False

  executor = JobExecutor(jobs_repo=jobs_repo, transform_executor=transform_executor, enqueuer=enqueuer, max_attempts=3)
  outcome = await executor.execute(ExecuteTransformPayload(job_id=job_id, project_id="proj-1", session_id="sess-1"), attempt=1)

  assert outcome == "cancelled"
  assert store.jobs[job_id].error["code"] == "CANCELLED"
  assert store.sessions["sess-1"].job_status == "cancelled"
  transform_executor.run.assert_not_awaited()


@pytest.mark.anyio
async def test_cancel_running_job_is_refused(store, sessions_repo, config_repo, jobs_repo, enqueuer):
  job_id = await _request(sessions_repo, config_repo, jobs_repo, enqueuer)
  store.jobs[job_id].status = "running"

  assert await request_cancellation("proj-1", job_id, jobs_repo=jobs_repo) is False
  assert store.jobs[job_id].cancel_requested_at is None


@pytest.mark.anyio
async def test_cancel_job_of_other_project_is_not_found(sessions_repo, config_repo, jobs_repo, enqueuer):
  job_id = await _request(sessions_repo, config_repo, jobs_repo, enqueuer)

  with pytest.raises(NotFoundError):
    await request_cancellation("proj-2", job_id, jobs_repo=jobs_repo)


@pytest.mark.anyio
async def test_reconcile_requeues_only_stale_pending_jobs(store, sessions_repo, config_repo, jobs_repo, enqueuer):
  enqueuer.fail_on.add("execute-transform")
  job_id = await _request(sessions_repo, config_repo, jobs_repo, enqueuer)
  assert enqueuer.of_type("execute-transform") == []

  enqueuer.fail_on.clear()
  fresh = await reconcile_pending(jobs_repo=jobs_repo, enqueuer=enqueuer, older_than_seconds=600)
  assert (fresh.scanned, fresh.requeued) == (0, 0)

  store.jobs[job_id].created_at = "2020-01-01T00:00:00Z"
  report = await reconcile_pending(jobs_repo=jobs_repo, enqueuer=enqueuer, older_than_seconds=600)

  assert (report.scanned, report.requeued) == (1, 1)
  assert enqueuer.of_type("execute-transform") == [{"job_id": job_id, "project_id": "proj-1", "session_id": "sess-1"}]


@pytest.mark.anyio
async def test_reconcile_counts_failed_enqueues(store, sessions_repo, config_repo, jobs_repo, enqueuer):
  job_id = await _request(sessions_repo, config_repo, jobs_repo, enqueuer)
  store.jobs[job_id].created_at = "2020-01-01T00:00:00Z"
  enqueuer.fail_on.add("execute-transform")

  report = await reconcile_pending(jobs_repo=jobs_repo, enqueuer=enqueuer, older_than_seconds=600)

  assert (report.scanned, report.requeued) == (1, 0)
