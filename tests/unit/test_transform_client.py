from dataclasses import replace

import httpx
import pytest

from transform_pipeline.jobs.errors import FatalExecutionError, TransientExecutionError
from transform_pipeline.services.transform import HttpTransformExecutor

_REPLY = {
  "asset_id": "asset-9",
  "url": "https://cdn.test/asset-9.jpg",
  "file_path": "results/asset-9.jpg",
  "format": "image",
  "dimensions": {"width": 1024, "height": 768},
  "size_bytes": 4096,
  "processing_time_ms": 2300,
}


def _executor(settings, handler):
  configured = replace(settings, transform_executor_url="http://executor.test/run", transform_timeout_seconds=5)
  return HttpTransformExecutor(configured, transport=httpx.MockTransport(handler))


async def _run(executor):
  return await executor.run("job-1", {"type": "image", "prompt": "watercolor"}, {"asset_id": "ov-square", "url": "https://cdn.test/ov.png"}, [{"step_id": "step-1"}])


def test_requires_executor_url(settings):
  with pytest.raises(RuntimeError, match="TP_TRANSFORM_EXECUTOR_URL"):
    HttpTransformExecutor(replace(settings, transform_executor_url=None))


@pytest.mark.anyio
async def test_successful_reply_maps_to_output(settings):
  seen = []

  def handler(request):
    seen.append(request)
    return httpx.Response(200, json=_REPLY)

  output = await _run(_executor(settings, handler))

  assert output.asset_id == "asset-9"
  assert (output.width, output.height) == (1024, 768)
  assert output.thumbnail_url is None
  assert b'"overlay":{"asset_id":"ov-square"' in seen[0].content.replace(b" ", b"")


@pytest.mark.anyio
@pytest.mark.parametrize("status_code", [429, 500, 503])
async def test_overload_and_server_errors_are_transient(settings, status_code):
  executor = _executor(settings, lambda request: httpx.Response(status_code))

  with pytest.raises(TransientExecutionError) as excinfo:
    await _run(executor)

  assert excinfo.value.code == "AI_MODEL_ERROR"


@pytest.mark.anyio
async def test_timeout_is_transient(settings):
  def handler(request):
    raise httpx.ReadTimeout("slow", request=request)

  with pytest.raises(TransientExecutionError) as excinfo:
    await _run(_executor(settings, handler))

  assert excinfo.value.code == "TIMEOUT"


@pytest.mark.anyio
async def test_connection_error_is_transient(settings):
  def handler(request):
    raise httpx.ConnectError("refused", request=request)

  with pytest.raises(TransientExecutionError):
    await _run(_executor(settings, handler))


@pytest.mark.anyio
async def test_client_error_is_fatal(settings):
  executor = _executor(settings, lambda request: httpx.Response(400, json={"detail": "bad prompt"}))

  with pytest.raises(FatalExecutionError) as excinfo:
    await _run(executor)

  assert excinfo.value.code == "INVALID_INPUT"


@pytest.mark.anyio
async def test_malformed_reply_is_fatal(settings):
  executor = _executor(settings, lambda request: httpx.Response(200, json={"asset_id": "asset-9"}))

  with pytest.raises(FatalExecutionError) as excinfo:
    await _run(executor)

  assert excinfo.value.code == "PROCESSING_FAILED"
