"""Postgres-backed repository for background jobs using SQLAlchemy."""

from __future__ import annotations

from sqlalchemy import select

from ezsolvy.core.database import get_session_factory
from ezsolvy.jobs.models import JobError, JobProgress, JobRecord, JobStatus, error_from_json, error_to_json, progress_from_json, progress_to_json
from ezsolvy.jobs.state import apply_update
from ezsolvy.schema.jobs import Job
from ezsolvy.utils.timestamps import now_iso


class PostgresJobsRepository:
  """Persist jobs to Postgres; every update runs under a row lock."""

  def __init__(self) -> None:
    self._session_factory = get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def create_job(self, record: JobRecord) -> None:
    async with self._session_factory() as session:
      session.add(
        Job(
          job_id=record.job_id,
          job_type=record.job_type,
          status=record.status,
          org_id=record.org_id,
          user_id=record.user_id,
          document_id=record.document_id,
          payload_json=record.payload,
          progress_json=progress_to_json(record.progress),
          error_json=error_to_json(record.error),
          attempt=record.attempt,
          created_at=record.created_at,
          updated_at=record.updated_at,
        )
      )
      await session.commit()

  async def get_job(self, job_id: str) -> JobRecord | None:
    async with self._session_factory() as session:
      row = await session.get(Job, job_id)
      if row is None:
        return None
      return self._model_to_record(row)

  async def update_job(self, job_id: str, *, status: JobStatus, progress: JobProgress | None = None, error: JobError | None = None, attempt: int | None = None) -> JobRecord | None:
    async with self._session_factory() as session:
      # Lock the row so concurrent deliveries of the same job serialize here.
      row = (await session.execute(select(Job).where(Job.job_id == job_id).with_for_update())).scalar_one_or_none()
      if row is None:
        return None

      updated = apply_update(self._model_to_record(row), status=status, progress=progress, error=error, attempt=attempt, now=now_iso())
      row.status = updated.status
      row.progress_json = progress_to_json(updated.progress)
      row.error_json = error_to_json(updated.error)
      row.attempt = updated.attempt
      row.updated_at = updated.updated_at
      await session.commit()
      return updated

  def _model_to_record(self, row: Job) -> JobRecord:
    return JobRecord(
      job_id=row.job_id,
      job_type=row.job_type,  # type: ignore[arg-type]
      status=row.status,  # type: ignore[arg-type]
      payload=row.payload_json or {},
      created_at=row.created_at,
      updated_at=row.updated_at,
      org_id=row.org_id,
      user_id=row.user_id,
      document_id=row.document_id,
      progress=progress_from_json(row.progress_json),
      error=error_from_json(row.error_json),
      attempt=row.attempt,
    )
