"""Registry mapping queue message types to job handlers."""

from __future__ import annotations

from typing import Any, Protocol

from ezsolvy.jobs.messages import QueueMessage
from ezsolvy.jobs.progress import JobProgressTracker


class JobHandler(Protocol):
  """Runs one pipeline for a decoded message and reports steps through the tracker."""

  initial_step: str

  def total_steps(self, message: QueueMessage) -> int:
    """Number of progress steps the run will report."""
    ...

  async def run(self, message: QueueMessage, tracker: JobProgressTracker) -> dict[str, Any]:
    """Execute the pipeline and return the JSON-ready result stored on the job."""
    ...


class JobHandlerRegistry:
  """Registry mapping job types to handlers."""

  def __init__(self, handlers: dict[str, JobHandler]) -> None:
    self._handlers = handlers

  def resolve(self, job_type: str) -> JobHandler:
    """Resolve the handler for a job type."""
    handler = self._handlers.get(job_type)
    if handler is None:
      raise ValueError(f"Unsupported job type: {job_type}")
    return handler

  def job_types(self) -> list[str]:
    return sorted(self._handlers)
