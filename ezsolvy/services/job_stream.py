"""Job status streaming: a polling snapshot feed shaped into server-sent events."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import aclosing
from typing import Protocol

from ezsolvy.api.models import JobEvent, JobEventType
from ezsolvy.jobs.models import JobRecord, JobStatus, error_to_json, progress_to_json
from ezsolvy.services.jobs import visible_to_org
from ezsolvy.storage.jobs_repo import JobsRepository
from ezsolvy.utils.timestamps import now_iso_precise

logger = logging.getLogger(__name__)

DisconnectCheck = Callable[[], Awaitable[bool]]

_EVENT_TYPES: dict[JobStatus, JobEventType] = {"queued": "progress", "working": "progress", "done": "complete", "failed": "error"}


class JobStatusSource(Protocol):
  """Feed of job snapshots; ``None`` means the job does not exist."""

  def watch(self, job_id: str) -> AsyncIterator[JobRecord | None]:
    """Yield the current snapshot now and again whenever a new one is available."""
    ...


class PollingJobStatusSource:
  """Re-reads the job row on a fixed interval until it is terminal or missing."""

  def __init__(self, jobs_repo: JobsRepository, *, interval_seconds: float = 2.0, sleep: Callable[[float], Awaitable[None]] = asyncio.sleep) -> None:
    self._jobs_repo = jobs_repo
    self._interval_seconds = interval_seconds
    self._sleep = sleep

  async def watch(self, job_id: str) -> AsyncIterator[JobRecord | None]:
    while True:
      record = await self._jobs_repo.get_job(job_id)
      yield record
      if record is None or record.is_terminal:
        return
      await self._sleep(self._interval_seconds)


def build_job_event(record: JobRecord) -> JobEvent:
  """Shape a snapshot into the event its status maps to."""
  event_type = _EVENT_TYPES[record.status]
  data: dict = {"status": record.status, "progress": progress_to_json(record.progress)}
  if event_type != "progress":
    data["error"] = error_to_json(record.error)
  return JobEvent(type=event_type, job_id=record.job_id, timestamp=now_iso_precise(), data=data)


def not_found_event(job_id: str) -> JobEvent:
  return JobEvent(type="error", job_id=job_id, timestamp=now_iso_precise(), data={"message": "Job not found"})


def format_sse(event: JobEvent) -> str:
  return f"data: {event.model_dump_json()}\n\n"


class JobStatusStreamer:
  """Pushes one event per snapshot and stops after a terminal event or a client disconnect.

  A job owned by another org is reported exactly like a missing one.
  """

  def __init__(self, source: JobStatusSource) -> None:
    self._source = source

  async def events(self, job_id: str, org_id: str, *, is_disconnected: DisconnectCheck | None = None) -> AsyncIterator[JobEvent]:
    async with aclosing(self._source.watch(job_id)) as snapshots:
      async for record in snapshots:
        if is_disconnected is not None and await is_disconnected():
          logger.info("Client disconnected from job stream %s", job_id)
          return

        if not visible_to_org(record, org_id):
          yield not_found_event(job_id)
          return

        event = build_job_event(record)
        yield event
        if event.type != "progress":
          return

  async def frames(self, job_id: str, org_id: str, *, is_disconnected: DisconnectCheck | None = None) -> AsyncIterator[str]:
    """Encoded SSE frames for the HTTP layer."""
    async with aclosing(self.events(job_id, org_id, is_disconnected=is_disconnected)) as events:
      async for event in events:
        yield format_sse(event)
