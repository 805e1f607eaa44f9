"""Job state machine: legal transitions and redelivery rules."""

from __future__ import annotations

from dataclasses import replace

from ezsolvy.jobs.models import JobError, JobProgress, JobRecord, JobStatus


class InvalidJobTransitionError(Exception):
  """Raised when a write would move a job along an illegal edge."""

  def __init__(self, job_id: str, current: JobStatus, requested: JobStatus, reason: str) -> None:
    super().__init__(f"Job {job_id}: cannot move {current} -> {requested} ({reason})")
    self.job_id = job_id
    self.current = current
    self.requested = requested


def should_process(job: JobRecord, attempt: int) -> bool:
  """Return True when a delivery carrying ``attempt`` should run the pipeline.

  ``done`` is final. A ``failed`` job only reopens for a newer attempt (an internal
  re-publish); the queue's own redelivery of the failing attempt is stale.
  """
  if job.status == "done":
    return False
  if job.status == "failed":
    return attempt > job.attempt
  return attempt >= job.attempt


def validate_transition(current: JobRecord, *, status: JobStatus, progress: JobProgress | None, error: JobError | None, attempt: int) -> None:
  """Reject writes that break the state machine or the error/status invariant."""
  if (status == "failed") != (error is not None):
    raise ValueError("error must be set exactly when status is 'failed'")

  if current.status == "done":
    raise InvalidJobTransitionError(current.job_id, current.status, status, "job is done")

  if current.status == "failed" and not (status == "working" and attempt > current.attempt):
    raise InvalidJobTransitionError(current.job_id, current.status, status, "only a newer attempt may reopen a failed job")

  if attempt < current.attempt:
    raise InvalidJobTransitionError(current.job_id, current.status, status, f"stale attempt {attempt} < {current.attempt}")

  if status == "queued" and current.status != "queued":
    raise InvalidJobTransitionError(current.job_id, current.status, status, "jobs never return to queued")

  # Within one attempt a working job only moves forward.
  if status == "working" and current.status == "working" and attempt == current.attempt and progress is not None and current.progress is not None and progress.step_index < current.progress.step_index:
    raise InvalidJobTransitionError(current.job_id, current.status, status, f"step_index {progress.step_index} < {current.progress.step_index}")


def apply_update(current: JobRecord, *, status: JobStatus, progress: JobProgress | None, error: JobError | None, attempt: int | None, now: str) -> JobRecord:
  """Return the record after a validated update; ``progress`` None keeps the previous snapshot."""
  next_attempt = current.attempt if attempt is None else attempt
  validate_transition(current, status=status, progress=progress, error=error, attempt=next_attempt)
  return replace(current, status=status, progress=progress if progress is not None else current.progress, error=error, attempt=next_attempt, updated_at=now)
