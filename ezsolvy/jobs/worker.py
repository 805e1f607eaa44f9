"""Queue consumer: runs pipelines for delivered messages with bounded re-publish retries."""

from __future__ import annotations

import logging
import traceback
from collections.abc import Iterable
from typing import Literal

from ezsolvy.ai.errors import PipelineError, classify_error, is_retryable
from ezsolvy.jobs.dispatch import JobHandlerRegistry
from ezsolvy.jobs.messages import MessageDecodeError, QueueMessage, decode_message, message_type, next_attempt
from ezsolvy.jobs.models import JobError, JobRecord
from ezsolvy.jobs.progress import JobNotFoundError, JobProgressTracker
from ezsolvy.jobs.state import InvalidJobTransitionError, should_process
from ezsolvy.services.tasks.interface import QueueDelivery, QueuePublisher
from ezsolvy.storage.jobs_repo import JobsRepository

logger = logging.getLogger(__name__)

ConsumeOutcome = Literal["done", "failed", "skipped", "dropped"]

MAX_TRACE_LINES = 12


def build_job_error(exc: BaseException, *, attempt: int) -> JobError:
  """Structured error for the job row: message, taxonomy kind and a trimmed trace."""
  lines = traceback.format_exception(type(exc), exc, exc.__traceback__)
  trace = "".join(lines[-MAX_TRACE_LINES:]) if lines else None
  return JobError(message=str(exc) or type(exc).__name__, kind=classify_error(exc), attempt=attempt, trace=trace)


class QueueConsumer:
  """Drains deliveries; the only writer of job status after creation.

  A message is acknowledged once its job reached a terminal state (or there is nothing
  to do). Retryable failures inside the budget re-publish ``attempt + 1`` and then
  re-raise so the transport records a retry; its redelivery is recognised as stale.
  """

  def __init__(self, *, jobs_repo: JobsRepository, publisher: QueuePublisher, registry: JobHandlerRegistry, max_attempts: int = 3) -> None:
    self._jobs_repo = jobs_repo
    self._publisher = publisher
    self._registry = registry
    self._max_attempts = max_attempts

  async def process_batch(self, deliveries: Iterable[QueueDelivery]) -> None:
    """Handle deliveries one by one, acknowledging or retrying each."""
    for delivery in deliveries:
      try:
        await self.handle(delivery.body)
      except Exception:
        logger.error("Message handling failed; leaving it for redelivery", exc_info=True)
        delivery.retry()
        continue
      delivery.ack()

  async def handle(self, body: bytes | str) -> ConsumeOutcome:
    """Process one encoded message. Raises when the message should be redelivered."""
    try:
      message = decode_message(body)
    except MessageDecodeError:
      logger.error("Dropping undecodable queue message", exc_info=True)
      return "dropped"

    return await self.handle_message(message)

  async def handle_message(self, message: QueueMessage) -> ConsumeOutcome:
    job_type = message_type(message)
    job = await self._jobs_repo.get_job(message.job_id)
    if job is None:
      logger.warning("Dropping %s message for unknown job %s", job_type, message.job_id)
      return "dropped"

    if not should_process(job, message.attempt):
      logger.info("Skipping redelivered %s message for job %s status=%s job_attempt=%d message_attempt=%d", job_type, job.job_id, job.status, job.attempt, message.attempt)
      return "skipped"

    handler = self._registry.resolve(job_type)
    try:
      tracker = JobProgressTracker(job=job, jobs_repo=self._jobs_repo, attempt=message.attempt, total_steps=handler.total_steps(message))
      await tracker.start(step=handler.initial_step, message=f"Starting {job_type} (attempt {message.attempt + 1}/{self._max_attempts})")
    except InvalidJobTransitionError as exc:
      logger.info("Job %s moved on before this delivery started: %s", job.job_id, exc)
      return "skipped"
    except JobNotFoundError:
      logger.warning("Job %s disappeared before processing", job.job_id)
      return "dropped"
    except PipelineError as exc:
      # total_steps validates the payload; a malformed payload fails the job like any step.
      return await self._fail(job, message, exc)

    try:
      result = await handler.run(message, tracker)
    except Exception as exc:
      return await self._fail(job, message, exc, tracker=tracker)

    try:
      await tracker.complete(result=result, message=f"{job_type} complete")
    except InvalidJobTransitionError as exc:
      logger.info("Job %s already terminal when completing: %s", job.job_id, exc)
      return "skipped"
    return "done"

  async def _fail(self, job: JobRecord, message: QueueMessage, exc: Exception, *, tracker: JobProgressTracker | None = None) -> ConsumeOutcome:
    error = build_job_error(exc, attempt=message.attempt)
    logger.error("Job %s attempt=%d failed kind=%s: %s", job.job_id, message.attempt, error.kind, error.message, exc_info=exc)
    try:
      if tracker is not None:
        await tracker.fail(error)
      else:
        await self._jobs_repo.update_job(job.job_id, status="failed", error=error, attempt=message.attempt)
    except InvalidJobTransitionError as transition_exc:
      logger.info("Job %s already terminal when failing: %s", job.job_id, transition_exc)
      return "skipped"

    if not is_retryable(exc):
      logger.info("Job %s failed permanently (%s); not retrying", job.job_id, error.kind)
      return "failed"

    if message.attempt + 1 >= self._max_attempts:
      logger.warning("Job %s exhausted its retry budget after %d attempts", job.job_id, message.attempt + 1)
      return "failed"

    retry_message = next_attempt(message)
    await self._publisher.publish(retry_message)
    logger.info("Re-published job %s as attempt %d", job.job_id, retry_message.attempt)
    raise exc
