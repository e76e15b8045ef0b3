from dataclasses import replace

import httpx
import pytest

from transform_pipeline.services.tasks.local import LocalHttpEnqueuer
from transform_pipeline.services.tasks.payloads import CheckNotificationPayload


class _Sleeps:
  def __init__(self):
    self.delays = []

  async def __call__(self, delay):
    self.delays.append(delay)


def _enqueuer(settings, handler, sleeps, **overrides):
  values = {"base_url": "http://tasks.test", "task_max_attempts": 3, "task_min_backoff_seconds": 1.0, "task_max_backoff_seconds": 3.0}
  values.update(overrides)
  configured = replace(settings, **values)
  enqueuer = LocalHttpEnqueuer(configured, sleep=sleeps)
  enqueuer._build_client = lambda base_url: httpx.AsyncClient(transport=httpx.MockTransport(handler))
  return enqueuer


_PAYLOAD = CheckNotificationPayload(project_id="proj-1", session_id="sess-1")


@pytest.mark.anyio
async def test_delivers_to_task_route_with_secret(settings):
  seen = []

  def handler(request):
    seen.append(request)
    return httpx.Response(200, json={"status": "ok"})

  sleeps = _Sleeps()
  enqueuer = _enqueuer(settings, handler, sleeps)

  await enqueuer.enqueue("check-notification", _PAYLOAD)
  await enqueuer.drain()

  assert len(seen) == 1
  assert str(seen[0].url) == "http://tasks.test/internal/tasks/check-notification"
  assert seen[0].headers["X-TP-Task-Secret"] == "test-task-secret"
  assert seen[0].headers["X-CloudTasks-TaskRetryCount"] == "0"
  assert sleeps.delays == []


@pytest.mark.anyio
async def test_retries_with_backoff_until_success(settings):
  retry_counts = []

  def handler(request):
    retry_counts.append(request.headers["X-CloudTasks-TaskRetryCount"])
    if len(retry_counts) < 3:
      return httpx.Response(503, json={"status": "retry"})
    return httpx.Response(200, json={"status": "ok"})

  sleeps = _Sleeps()
  enqueuer = _enqueuer(settings, handler, sleeps)

  await enqueuer.enqueue("check-notification", _PAYLOAD)
  await enqueuer.drain()

  assert retry_counts == ["0", "1", "2"]
  assert sleeps.delays == [1.0, 2.0]


@pytest.mark.anyio
async def test_gives_up_after_max_attempts(settings):
  calls = []

  def handler(request):
    calls.append(request)
    raise httpx.ConnectError("refused", request=request)

  sleeps = _Sleeps()
  enqueuer = _enqueuer(settings, handler, sleeps, task_max_backoff_seconds=1.5)

  await enqueuer.enqueue("check-notification", _PAYLOAD)
  await enqueuer.drain()

  assert len(calls) == 3
  assert sleeps.delays == [1.0, 1.5]


@pytest.mark.anyio
async def test_enqueue_requires_base_url(settings):
  enqueuer = LocalHttpEnqueuer(replace(settings, base_url=None))

  with pytest.raises(RuntimeError, match="Base URL"):
    await enqueuer.enqueue("check-notification", _PAYLOAD)


@pytest.mark.anyio
async def test_enqueue_requires_task_secret(settings):
  enqueuer = LocalHttpEnqueuer(replace(settings, base_url="http://tasks.test", task_secret=None))

  with pytest.raises(RuntimeError, match="Task secret"):
    await enqueuer.enqueue("check-notification", _PAYLOAD)


def test_localhost_routes_in_process(settings):
  enqueuer = LocalHttpEnqueuer(settings)

  assert enqueuer._should_use_asgi_transport("http://localhost:8080")
  assert not enqueuer._should_use_asgi_transport("https://pipeline.example.com")
