"""Domain models for asynchronous transform jobs and the session fields they touch."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

JobStatus = Literal["pending", "running", "completed", "failed", "cancelled"]
ConfigSource = Literal["draft", "published"]
MediaRef = dict[str, Any]

ACTIVE_JOB_STATUSES: frozenset[str] = frozenset({"pending", "running"})
TERMINAL_JOB_STATUSES: frozenset[str] = frozenset({"completed", "failed", "cancelled"})


@dataclass(frozen=True)
class JobSnapshot:
  """Configuration and responses frozen at job creation; execution reads nothing else."""

  responses: list[dict[str, Any]]
  config_version: int
  config_source: ConfigSource
  outcome: dict[str, Any] | None
  transform_nodes: list[dict[str, Any]]
  overlay_choice: MediaRef | None
  experience_ref: dict[str, Any] | None

  def to_dict(self) -> dict[str, Any]:
    return {
      "responses": self.responses,
      "config_version": self.config_version,
      "config_source": self.config_source,
      "outcome": self.outcome,
      "transform_nodes": self.transform_nodes,
      "overlay_choice": self.overlay_choice,
      "experience_ref": self.experience_ref,
    }

  @classmethod
  def from_dict(cls, payload: dict[str, Any]) -> JobSnapshot:
    return cls(
      responses=list(payload.get("responses") or []),
      config_version=int(payload.get("config_version") or 1),
      config_source=payload.get("config_source") or "published",
      outcome=payload.get("outcome"),
      transform_nodes=list(payload.get("transform_nodes") or []),
      overlay_choice=payload.get("overlay_choice"),
      experience_ref=payload.get("experience_ref"),
    )


@dataclass(frozen=True)
class JobOutput:
  """Result media descriptor returned by the transform executor."""

  asset_id: str
  url: str
  file_path: str
  format: Literal["image", "gif", "video"]
  width: int
  height: int
  size_bytes: int
  processing_time_ms: int
  thumbnail_url: str | None = None

  def to_dict(self) -> dict[str, Any]:
    return {
      "asset_id": self.asset_id,
      "url": self.url,
      "file_path": self.file_path,
      "format": self.format,
      "dimensions": {"width": self.width, "height": self.height},
      "size_bytes": self.size_bytes,
      "thumbnail_url": self.thumbnail_url,
      "processing_time_ms": self.processing_time_ms,
    }

  def to_media_ref(self) -> MediaRef:
    """Reference stored on the session as its result media."""
    return {"asset_id": self.asset_id, "url": self.url, "file_path": self.file_path, "display_name": "Result"}


@dataclass
class JobRecord:
  """Represents one transform job tied to exactly one session."""

  job_id: str
  project_id: str
  session_id: str
  experience_id: str
  status: JobStatus
  snapshot: dict[str, Any]
  created_at: str
  updated_at: str
  output: dict[str, Any] | None = None
  error: dict[str, Any] | None = None
  progress: dict[str, Any] | None = None
  attempts: int = 0
  cancel_requested_at: str | None = None
  started_at: str | None = None
  completed_at: str | None = None

  @property
  def is_terminal(self) -> bool:
    return self.status in TERMINAL_JOB_STATUSES


@dataclass
class SessionRecord:
  """Subset of the guest session this pipeline reads and writes."""

  session_id: str
  project_id: str
  experience_id: str
  config_source: ConfigSource = "published"
  responses: list[dict[str, Any]] = field(default_factory=list)
  job_id: str | None = None
  job_status: JobStatus | None = None
  result_media: MediaRef | None = None
  recipient_address: str | None = None
  notification_sent_at: str | None = None


@dataclass(frozen=True)
class ExperienceConfig:
  """One published or draft configuration of an experience."""

  steps: list[dict[str, Any]]
  outcome: dict[str, Any] | None
  transform_nodes: list[dict[str, Any]]
  aspect_ratio: str
  media_type: Literal["image", "video"] = "image"
  apply_overlay: bool = False


@dataclass(frozen=True)
class ExperienceRecord:
  experience_id: str
  name: str
  draft: ExperienceConfig | None
  published: ExperienceConfig | None
  draft_version: int = 1
  published_version: int | None = None

  def config_for(self, source: ConfigSource) -> ExperienceConfig | None:
    return self.draft if source == "draft" else self.published

  def version_for(self, source: ConfigSource) -> int:
    if source == "draft":
      return self.draft_version
    return self.published_version or 1


@dataclass(frozen=True)
class ProjectRecord:
  project_id: str
  overlays: dict[str, MediaRef | None] | None = None
