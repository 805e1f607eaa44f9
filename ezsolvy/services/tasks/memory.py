"""In-process queue with at-least-once delivery, for local runs and tests."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from ezsolvy.jobs.messages import QueueMessage, encode_message, message_type

logger = logging.getLogger(__name__)

MAX_DEAD_LETTERS = 100

BatchHandler = Callable[[list["InMemoryDelivery"]], Awaitable[None]]


@dataclass
class InMemoryDelivery:
  """A delivery whose ``retry`` puts the same body back on the queue."""

  body: bytes
  queue: InMemoryQueue
  delivery_count: int = 1
  outcome: str | None = field(default=None)

  def ack(self) -> None:
    self.outcome = "ack"

  def retry(self) -> None:
    self.outcome = "retry"
    self.queue.redeliver(self)


class InMemoryQueue:
  """``asyncio.Queue`` of encoded messages drained in batches."""

  def __init__(self, *, max_deliveries: int = 5, redelivery_delay_seconds: float = 1.0) -> None:
    self._queue: asyncio.Queue[InMemoryDelivery] = asyncio.Queue()
    self._max_deliveries = max_deliveries
    self._redelivery_delay_seconds = redelivery_delay_seconds
    self._pending_redeliveries: set[asyncio.Task[None]] = set()
    self.dead_letters: deque[bytes] = deque(maxlen=MAX_DEAD_LETTERS)

  async def publish(self, message: QueueMessage) -> None:
    await self._queue.put(InMemoryDelivery(body=encode_message(message), queue=self))
    logger.info("Queued %s message for job %s attempt=%d", message_type(message), message.job_id, message.attempt)

  def redeliver(self, delivery: InMemoryDelivery) -> None:
    if delivery.delivery_count >= self._max_deliveries:
      logger.error("Dropping message after %d deliveries", delivery.delivery_count)
      self.dead_letters.append(delivery.body)
      return

    async def _later() -> None:
      await asyncio.sleep(self._redelivery_delay_seconds)
      await self._queue.put(InMemoryDelivery(body=delivery.body, queue=self, delivery_count=delivery.delivery_count + 1))

    task = asyncio.get_running_loop().create_task(_later())
    self._pending_redeliveries.add(task)
    task.add_done_callback(self._pending_redeliveries.discard)

  def qsize(self) -> int:
    return self._queue.qsize()

  def idle(self) -> bool:
    """True when nothing is waiting and no redelivery is scheduled."""
    return self._queue.empty() and not self._pending_redeliveries

  def drain_nowait(self, max_batch: int = 10) -> list[InMemoryDelivery]:
    """Take up to ``max_batch`` waiting deliveries without blocking."""
    batch: list[InMemoryDelivery] = []
    while len(batch) < max_batch and not self._queue.empty():
      batch.append(self._queue.get_nowait())
    return batch

  async def next_batch(self, max_batch: int = 10) -> list[InMemoryDelivery]:
    """Wait for at least one delivery, then take whatever else is ready."""
    first = await self._queue.get()
    return [first, *self.drain_nowait(max_batch - 1)]

  async def close(self) -> None:
    for task in list(self._pending_redeliveries):
      task.cancel()
    await asyncio.gather(*self._pending_redeliveries, return_exceptions=True)


async def run_consumer_loop(queue: InMemoryQueue, handle_batch: BatchHandler, *, max_batch: int = 10) -> None:
  """Feed batches to ``handle_batch`` until cancelled."""
  logger.info("In-memory queue consumer started")
  try:
    while True:
      batch = await queue.next_batch(max_batch)
      await handle_batch(batch)
  finally:
    logger.info("In-memory queue consumer stopped")
