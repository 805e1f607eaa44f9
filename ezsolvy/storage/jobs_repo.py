"""Storage interface for background jobs."""

from __future__ import annotations

from typing import Protocol

from ezsolvy.jobs.models import JobError, JobProgress, JobRecord, JobStatus


class JobsRepository(Protocol):
  """Repository contract for job persistence.

  ``update_job`` overwrites the fields it is given and enforces the state machine
  (``ezsolvy.jobs.state``), raising ``InvalidJobTransitionError`` for illegal writes.
  """

  async def create_job(self, record: JobRecord) -> None:
    """Persist an initial job record."""

  async def get_job(self, job_id: str) -> JobRecord | None:
    """Fetch a job by identifier."""

  async def update_job(self, job_id: str, *, status: JobStatus, progress: JobProgress | None = None, error: JobError | None = None, attempt: int | None = None) -> JobRecord | None:
    """Apply a status transition; returns None when the job does not exist."""
