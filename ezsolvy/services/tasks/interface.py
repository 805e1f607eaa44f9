from __future__ import annotations

from typing import Protocol

from ezsolvy.jobs.messages import QueueMessage


class QueuePublisher(Protocol):
  """Interface for sending job messages to the work queue."""

  async def publish(self, message: QueueMessage) -> None:
    """Send one message; raises when the queue did not accept it."""
    ...


class QueueDelivery(Protocol):
  """One received message and the transport's acknowledgement hooks."""

  @property
  def body(self) -> bytes:
    """Raw encoded message."""
    ...

  def ack(self) -> None:
    """Report the message handled; it will not be delivered again."""
    ...

  def retry(self) -> None:
    """Report the message unhandled; the transport will redeliver it."""
    ...
