from __future__ import annotations

from ezsolvy.config import Settings
from ezsolvy.services.tasks.gcp import CloudTasksPublisher
from ezsolvy.services.tasks.interface import QueuePublisher
from ezsolvy.services.tasks.memory import InMemoryQueue


def get_queue_publisher(settings: Settings) -> QueuePublisher:
  """Factory to get the configured queue publisher."""
  if settings.queue_provider == "gcp":
    return CloudTasksPublisher(settings)
  return InMemoryQueue()
