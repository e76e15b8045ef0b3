from __future__ import annotations

from typing import Protocol

from transform_pipeline.services.tasks.payloads import TaskPayload


class TaskEnqueuer(Protocol):
  """Interface for enqueuing background tasks."""

  async def enqueue(self, task_type: str, payload: TaskPayload) -> None:
    """Hand a task to the queue; raises when the queue did not accept it."""
    ...
