"""Shared fixtures: in-memory repositories that mirror the Postgres guarantees."""

from __future__ import annotations

import asyncio
import os
from dataclasses import replace
from typing import Any

# Required settings must exist before the application package reads them.
os.environ.setdefault("TP_TASK_SECRET", "test-task-secret")
os.environ.setdefault("TP_BASE_URL", "http://tasks.test")
os.environ.setdefault("TP_ALLOWED_ORIGINS", "http://localhost")

from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from transform_pipeline.api.deps import Pipeline, get_pipeline  # noqa: E402
from transform_pipeline.config import get_settings  # noqa: E402
from transform_pipeline.jobs.errors import NotFoundError  # noqa: E402
from transform_pipeline.jobs.models import ACTIVE_JOB_STATUSES, ExperienceConfig, ExperienceRecord, JobOutput, JobRecord, ProjectRecord, SessionRecord  # noqa: E402
from transform_pipeline.jobs.session_sync import SessionMirror  # noqa: E402
from transform_pipeline.main import app  # noqa: E402
from transform_pipeline.notifications.service import NotificationService  # noqa: E402
from transform_pipeline.storage.sessions_repo import DeadLetterEntry  # noqa: E402
from transform_pipeline.utils.clock import now_iso  # noqa: E402


@pytest.fixture
def anyio_backend() -> str:
  return "asyncio"


class InMemoryStore:
  """Tables shared by the in-memory repositories."""

  def __init__(self) -> None:
    self.sessions: dict[str, SessionRecord] = {}
    self.jobs: dict[str, JobRecord] = {}
    self.experiences: dict[str, ExperienceRecord] = {}
    self.projects: dict[str, ProjectRecord] = {}
    self.dead_letters: list[DeadLetterEntry] = []


class InMemoryJobsRepo:
  def __init__(self, store: InMemoryStore) -> None:
    self._store = store
    self.transitions: list[tuple[str, str]] = []

  async def create_job_for_session(self, record: JobRecord) -> bool:
    session = self._store.sessions.get(record.session_id)
    if session is None or session.project_id != record.project_id:
      raise NotFoundError(f"Session not found: {record.session_id}")

    # Check-and-insert without an await in between, like the locked transaction.
    if any(job.session_id == record.session_id and job.status in ACTIVE_JOB_STATUSES for job in self._store.jobs.values()):
      return False

    self._store.jobs[record.job_id] = record
    session.job_id = record.job_id
    session.job_status = record.status
    return True

  async def get_job(self, job_id: str) -> JobRecord | None:
    return self._store.jobs.get(job_id)

  async def transition_job(
    self,
    job_id: str,
    *,
    from_statuses: frozenset[str],
    status: str,
    mirror: SessionMirror,
    output: dict[str, Any] | None = None,
    error: dict[str, Any] | None = None,
    progress: dict[str, Any] | None = None,
    started_at: str | None = None,
    completed_at: str | None = None,
  ) -> JobRecord | None:
    job = self._store.jobs.get(job_id)
    if job is None or job.status not in from_statuses:
      return None

    updated = replace(
      job,
      status=status,
      output=output if output is not None else job.output,
      error=error if error is not None else job.error,
      progress=progress if progress is not None else job.progress,
      started_at=job.started_at or started_at,
      completed_at=job.completed_at or completed_at,
      updated_at=now_iso(),
    )
    self._store.jobs[job_id] = updated
    self.transitions.append((job_id, status))

    session = self._store.sessions.get(job.session_id)
    if session is not None and session.job_id == mirror.job_id:
      session.job_status = mirror.job_status
      if mirror.result_media is not None:
        session.result_media = mirror.result_media
    return updated

  async def record_attempt(self, job_id: str) -> JobRecord | None:
    job = self._store.jobs.get(job_id)
    if job is None:
      return None
    job.attempts += 1
    return job

  async def request_cancellation(self, job_id: str, requested_at: str) -> bool:
    job = self._store.jobs.get(job_id)
    if job is None or job.status != "pending" or job.cancel_requested_at is not None:
      return False
    job.cancel_requested_at = requested_at
    return True

  async def find_stale_pending(self, *, created_before: str, limit: int = 100) -> list[JobRecord]:
    stale = [job for job in self._store.jobs.values() if job.status == "pending" and job.created_at < created_before]
    return sorted(stale, key=lambda job: job.created_at)[:limit]


class InMemorySessionsRepo:
  def __init__(self, store: InMemoryStore) -> None:
    self._store = store
    self.claims = 0

  async def get_session(self, project_id: str, session_id: str) -> SessionRecord | None:
    session = self._store.sessions.get(session_id)
    snapshot = replace(session, responses=list(session.responses)) if session is not None else None
    # Yield after reading so concurrent callers all act on the same stale view.
    await asyncio.sleep(0)
    if snapshot is None or snapshot.project_id != project_id:
      return None
    return snapshot

  async def set_recipient_address(self, project_id: str, session_id: str, address: str) -> bool:
    session = self._store.sessions.get(session_id)
    if session is None or session.project_id != project_id or session.recipient_address is not None:
      return False
    session.recipient_address = address
    return True

  async def claim_notification(self, project_id: str, session_id: str, sent_at: str) -> bool:
    self.claims += 1
    session = self._store.sessions.get(session_id)
    if session is None or session.project_id != project_id or session.notification_sent_at is not None:
      return False
    session.notification_sent_at = sent_at
    return True


class InMemoryConfigRepo:
  def __init__(self, store: InMemoryStore) -> None:
    self._store = store

  async def get_experience(self, experience_id: str) -> ExperienceRecord | None:
    return self._store.experiences.get(experience_id)

  async def get_project(self, project_id: str) -> ProjectRecord | None:
    return self._store.projects.get(project_id)


class InMemoryDeadLetterRepo:
  def __init__(self, store: InMemoryStore) -> None:
    self._store = store

  async def insert(self, entry: DeadLetterEntry) -> None:
    self._store.dead_letters.append(entry)


class RecordingEnqueuer:
  """Task enqueuer double that records tasks instead of delivering them."""

  def __init__(self) -> None:
    self.tasks: list[tuple[str, dict[str, Any]]] = []
    self.fail_on: set[str] = set()

  async def enqueue(self, task_type: str, payload: Any) -> None:
    if task_type in self.fail_on:
      raise RuntimeError(f"queue unavailable for {task_type}")
    self.tasks.append((task_type, payload.model_dump()))

  def of_type(self, task_type: str) -> list[dict[str, Any]]:
    return [payload for queued_type, payload in self.tasks if queued_type == task_type]


def make_output(asset_id: str = "asset-1") -> JobOutput:
  return JobOutput(asset_id=asset_id, url=f"https://cdn.test/{asset_id}.jpg", file_path=f"results/{asset_id}.jpg", format="image", width=1024, height=1024, size_bytes=2048, processing_time_ms=1500)


def make_config(**overrides: Any) -> ExperienceConfig:
  values: dict[str, Any] = {
    "steps": [{"id": "step-1", "type": "capture.photo"}],
    "outcome": {"type": "image", "prompt": "Turn @{step:step-1} into a watercolor"},
    "transform_nodes": [{"id": "node-1", "type": "ai.image"}],
    "aspect_ratio": "1:1",
    "media_type": "image",
    "apply_overlay": True,
  }
  values.update(overrides)
  return ExperienceConfig(**values)


@pytest.fixture
def store() -> InMemoryStore:
  seeded = InMemoryStore()
  seeded.projects["proj-1"] = ProjectRecord(project_id="proj-1", overlays={"1:1": {"asset_id": "ov-square", "url": "https://cdn.test/ov-square.png"}, "default": {"asset_id": "ov-default", "url": "https://cdn.test/ov-default.png"}})
  seeded.experiences["exp-1"] = ExperienceRecord(experience_id="exp-1", name="Watercolor Booth", draft=make_config(), published=make_config(), draft_version=4, published_version=3)
  seeded.sessions["sess-1"] = SessionRecord(session_id="sess-1", project_id="proj-1", experience_id="exp-1", responses=[{"step_id": "step-1", "value": {"media": {"url": "https://cdn.test/capture.jpg"}}}])
  return seeded


@pytest.fixture
def jobs_repo(store: InMemoryStore) -> InMemoryJobsRepo:
  return InMemoryJobsRepo(store)


@pytest.fixture
def sessions_repo(store: InMemoryStore) -> InMemorySessionsRepo:
  return InMemorySessionsRepo(store)


@pytest.fixture
def config_repo(store: InMemoryStore) -> InMemoryConfigRepo:
  return InMemoryConfigRepo(store)


@pytest.fixture
def dead_letter_repo(store: InMemoryStore) -> InMemoryDeadLetterRepo:
  return InMemoryDeadLetterRepo(store)


@pytest.fixture
def enqueuer() -> RecordingEnqueuer:
  return RecordingEnqueuer()


@pytest.fixture
def settings():
  get_settings.cache_clear()
  yield get_settings()
  get_settings.cache_clear()


@pytest.fixture
def job_output() -> JobOutput:
  return make_output()


@pytest.fixture
def config_factory():
  return make_config


@pytest.fixture
def email_sender() -> MagicMock:
  sender = MagicMock()
  sender.send.return_value = {"provider": "mailersend", "message_id": "msg-1", "request_id": None}
  return sender


@pytest.fixture
def notification_service(email_sender: MagicMock) -> NotificationService:
  return NotificationService(email_sender=email_sender, email_enabled=True, result_base_url="https://guest.test")


@pytest.fixture
def transform_executor() -> AsyncMock:
  executor = AsyncMock()
  executor.run.return_value = make_output()
  return executor


@pytest.fixture
def pipeline(settings, jobs_repo, sessions_repo, config_repo, dead_letter_repo, enqueuer, notification_service, transform_executor) -> Pipeline:
  return Pipeline(
    settings=settings,
    jobs_repo=jobs_repo,
    sessions_repo=sessions_repo,
    config_repo=config_repo,
    dead_letter_repo=dead_letter_repo,
    enqueuer=enqueuer,
    notification_service=notification_service,
    export_dispatcher=AsyncMock(),
    transform_executor=transform_executor,
  )


@pytest.fixture
async def async_client(pipeline: Pipeline):
  app.dependency_overrides[get_pipeline] = lambda: pipeline
  async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
    yield client
  app.dependency_overrides.clear()


@pytest.fixture
def task_headers() -> dict[str, str]:
  return {"X-TP-Task-Secret": "test-task-secret"}
