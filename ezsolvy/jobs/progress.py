"""Job progress tracking for one consumer attempt."""

from __future__ import annotations

import logging
from typing import Any

from ezsolvy.jobs.models import JobError, JobProgress, JobRecord
from ezsolvy.storage.jobs_repo import JobsRepository

logger = logging.getLogger(__name__)


class JobNotFoundError(Exception):
  """The job row vanished between dequeue and update."""


class JobProgressTracker:
  """Write ``working`` snapshots with a non-decreasing step index, then a terminal update.

  Every run starts from the stored step index, whether it repeats a crashed attempt or is a
  re-published retry, so observers never see the counter move backwards while it works.
  """

  def __init__(self, *, job: JobRecord, jobs_repo: JobsRepository, attempt: int, total_steps: int) -> None:
    self._job_id = job.job_id
    self._jobs_repo = jobs_repo
    self._attempt = attempt
    self._total_steps = max(total_steps, 1)
    self._completed_steps = 0
    self._floor = 0
    if job.progress is not None:
      self._floor = min(job.progress.step_index, self._total_steps)

  @property
  def job_id(self) -> str:
    return self._job_id

  @property
  def step_index(self) -> int:
    return max(self._completed_steps, self._floor)

  @property
  def total_steps(self) -> int:
    return self._total_steps

  async def _update(self, **fields: Any) -> JobRecord:
    record = await self._jobs_repo.update_job(self._job_id, attempt=self._attempt, **fields)
    if record is None:
      raise JobNotFoundError(f"Job {self._job_id} not found")
    return record

  async def start(self, *, step: str, message: str | None = None) -> JobRecord:
    """Mark the job working before the first step runs."""
    progress = JobProgress(step=step, step_index=self.step_index, total_steps=self._total_steps, message=message)
    logger.info("Job %s working attempt=%d step=%s", self._job_id, self._attempt, step)
    return await self._update(status="working", progress=progress)

  async def complete_step(self, *, step: str, page: int | None = None, message: str | None = None) -> JobRecord:
    """Advance the step counter after a step finishes."""
    self._completed_steps = min(self._completed_steps + 1, self._total_steps)
    progress = JobProgress(step=step, step_index=self.step_index, total_steps=self._total_steps, page=page, message=message)
    return await self._update(status="working", progress=progress)

  async def complete(self, *, result: dict[str, Any], message: str | None = None) -> JobRecord:
    """Mark the job done with the final result embedded in progress."""
    progress = JobProgress(step="complete", step_index=self._total_steps, total_steps=self._total_steps, message=message, result=result)
    logger.info("Job %s done attempt=%d", self._job_id, self._attempt)
    return await self._update(status="done", progress=progress, error=None)

  async def fail(self, error: JobError) -> JobRecord:
    """Mark the job failed, keeping the last progress snapshot."""
    logger.info("Job %s failed attempt=%d kind=%s", self._job_id, self._attempt, error.kind)
    return await self._update(status="failed", error=error)
