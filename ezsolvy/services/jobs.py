"""Read-side helpers for job status queries."""

from __future__ import annotations

from ezsolvy.ai.errors import NotFoundError
from ezsolvy.api.models import JobStatusResponse
from ezsolvy.jobs.models import JobRecord, error_to_json, progress_to_json
from ezsolvy.storage.jobs_repo import JobsRepository

JOB_NOT_FOUND = "Job not found."


def visible_to_org(record: JobRecord | None, org_id: str) -> bool:
  """Jobs of another org read as missing."""
  return record is not None and record.org_id == org_id


def job_to_response(record: JobRecord) -> JobStatusResponse:
  return JobStatusResponse(
    id=record.job_id,
    type=record.job_type,
    status=record.status,
    progress=progress_to_json(record.progress),
    error=error_to_json(record.error),
    created_at=record.created_at,
    updated_at=record.updated_at,
  )


async def get_job_status(jobs_repo: JobsRepository, job_id: str, org_id: str) -> JobStatusResponse:
  """Fetch the current snapshot of a job owned by ``org_id``."""
  record = await jobs_repo.get_job(job_id)
  if not visible_to_org(record, org_id):
    raise NotFoundError(JOB_NOT_FOUND)
  return job_to_response(record)
