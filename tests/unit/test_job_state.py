from __future__ import annotations

from dataclasses import replace

import pytest

from ezsolvy.jobs.models import JobError, JobProgress, JobRecord
from ezsolvy.jobs.state import InvalidJobTransitionError, apply_update, should_process, validate_transition

NOW = "2026-01-01T00:00:00Z"


def _job(**overrides: object) -> JobRecord:
  record = JobRecord(job_id="job-1", job_type="image-explanation", status="queued", payload={}, created_at=NOW, updated_at=NOW)
  return replace(record, **overrides)


def test_should_process_skips_done_jobs_for_any_attempt() -> None:
  job = _job(status="done", attempt=0)
  assert should_process(job, 0) is False
  assert should_process(job, 5) is False


def test_should_process_reopens_failed_job_only_for_newer_attempt() -> None:
  job = _job(status="failed", attempt=1, error=JobError(message="boom", kind="transient", attempt=1))
  assert should_process(job, 1) is False
  assert should_process(job, 0) is False
  assert should_process(job, 2) is True


def test_should_process_accepts_crash_redelivery_of_current_attempt() -> None:
  job = _job(status="working", attempt=1)
  assert should_process(job, 1) is True
  assert should_process(job, 0) is False


def test_error_must_accompany_failed_status() -> None:
  with pytest.raises(ValueError):
    validate_transition(_job(), status="failed", progress=None, error=None, attempt=0)
  with pytest.raises(ValueError):
    validate_transition(_job(), status="working", progress=None, error=JobError(message="x", kind="permanent"), attempt=0)


def test_done_is_final() -> None:
  job = _job(status="done")
  with pytest.raises(InvalidJobTransitionError):
    validate_transition(job, status="working", progress=None, error=None, attempt=1)


def test_failed_job_cannot_be_rewritten_by_same_attempt() -> None:
  job = _job(status="failed", attempt=0, error=JobError(message="x", kind="transient"))
  with pytest.raises(InvalidJobTransitionError):
    validate_transition(job, status="working", progress=None, error=None, attempt=0)
  validate_transition(job, status="working", progress=None, error=None, attempt=1)


def test_jobs_never_return_to_queued() -> None:
  with pytest.raises(InvalidJobTransitionError):
    validate_transition(_job(status="working"), status="queued", progress=None, error=None, attempt=0)


def test_step_index_cannot_move_backwards_within_an_attempt() -> None:
  job = _job(status="working", progress=JobProgress(step="narrate", step_index=3, total_steps=4))
  with pytest.raises(InvalidJobTransitionError):
    validate_transition(job, status="working", progress=JobProgress(step="analyze", step_index=1, total_steps=4), error=None, attempt=0)

  # A newer attempt starts its own count.
  validate_transition(job, status="working", progress=JobProgress(step="analyze", step_index=0, total_steps=4), error=None, attempt=1)


def test_apply_update_keeps_previous_progress_when_none_given() -> None:
  progress = JobProgress(step="plan", step_index=2, total_steps=4)
  job = _job(status="working", progress=progress)
  updated = apply_update(job, status="failed", progress=None, error=JobError(message="render failed", kind="permanent"), attempt=None, now="2026-01-01T00:01:00Z")
  assert updated.progress == progress
  assert updated.status == "failed"
  assert updated.attempt == 0
  assert updated.updated_at == "2026-01-01T00:01:00Z"


def test_apply_update_clears_error_when_a_retry_reopens_the_job() -> None:
  job = _job(status="failed", attempt=0, error=JobError(message="x", kind="transient"))
  updated = apply_update(job, status="working", progress=JobProgress(step="analyze"), error=None, attempt=1, now=NOW)
  assert updated.error is None
  assert updated.attempt == 1
