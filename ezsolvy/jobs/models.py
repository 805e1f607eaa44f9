"""Domain models for background generation jobs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

import msgspec

JobStatus = Literal["queued", "working", "done", "failed"]
JobType = Literal["image-explanation", "explain", "pdf"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"done", "failed"})


class JobProgress(msgspec.Struct, omit_defaults=True):
  """Progress snapshot written after each pipeline step."""

  step: str
  step_index: int = 0
  total_steps: int | None = None
  page: int | None = None
  message: str | None = None
  result: dict[str, Any] | None = None


class JobError(msgspec.Struct, omit_defaults=True):
  """Structured failure stored on a failed job."""

  message: str
  kind: str
  attempt: int = 0
  trace: str | None = None


@dataclass
class JobRecord:
  """Represents one background pipeline run."""

  job_id: str
  job_type: JobType
  status: JobStatus
  payload: dict[str, Any]
  created_at: str
  updated_at: str
  org_id: str | None = None
  user_id: str | None = None
  document_id: str | None = None
  progress: JobProgress | None = None
  error: JobError | None = None
  attempt: int = 0

  @property
  def is_terminal(self) -> bool:
    return self.status in TERMINAL_STATUSES


def progress_to_json(progress: JobProgress | None) -> dict[str, Any] | None:
  if progress is None:
    return None
  return msgspec.to_builtins(progress)


def progress_from_json(raw: dict[str, Any] | None) -> JobProgress | None:
  if raw is None:
    return None
  return msgspec.convert(raw, JobProgress)


def error_to_json(error: JobError | None) -> dict[str, Any] | None:
  if error is None:
    return None
  return msgspec.to_builtins(error)


def error_from_json(raw: dict[str, Any] | None) -> JobError | None:
  if raw is None:
    return None
  return msgspec.convert(raw, JobError)
