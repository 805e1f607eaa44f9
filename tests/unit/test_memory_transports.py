from __future__ import annotations

import pytest

from ezsolvy.jobs.messages import ExplainMessage, encode_message
from ezsolvy.services.storage_client import InlineAssetStorage
from ezsolvy.services.tasks.memory import MAX_DEAD_LETTERS, InMemoryDelivery, InMemoryQueue


@pytest.mark.anyio
async def test_drained_queue_keeps_no_messages() -> None:
  queue = InMemoryQueue(redelivery_delay_seconds=0)
  for index in range(100):
    await queue.publish(ExplainMessage(job_id=f"job-{index}", org_id="org-1", document_id="doc-1"))

  batch = queue.drain_nowait(max_batch=200)
  for delivery in batch:
    delivery.ack()

  assert len(batch) == 100
  assert queue.idle()
  assert "published" not in vars(queue)
  assert len(queue.dead_letters) == 0


def test_dead_letters_keep_only_the_most_recent() -> None:
  queue = InMemoryQueue(max_deliveries=1)
  bodies = [encode_message(ExplainMessage(job_id=f"job-{index}", org_id="org-1", document_id="doc-1")) for index in range(MAX_DEAD_LETTERS + 20)]

  for body in bodies:
    queue.redeliver(InMemoryDelivery(body=body, queue=queue))

  assert len(queue.dead_letters) == MAX_DEAD_LETTERS
  assert queue.dead_letters[0] == bodies[20]
  assert queue.dead_letters[-1] == bodies[-1]
  assert queue.idle()


@pytest.mark.anyio
async def test_inline_storage_evicts_oldest_objects() -> None:
  storage = InlineAssetStorage(max_objects=2)

  first = await storage.upload(b"one", object_name="org-1/a.webp", content_type="image/webp")
  await storage.upload(b"two", object_name="org-1/b.webp", content_type="image/webp")
  await storage.upload(b"two again", object_name="org-1/b.webp", content_type="image/webp")
  await storage.upload(b"three", object_name="org-1/c.webp", content_type="image/webp")

  assert list(storage.objects) == [("assets", "org-1/b.webp"), ("assets", "org-1/c.webp")]
  assert first.url == "data:image/webp;base64,b25l"
  with pytest.raises(FileNotFoundError):
    await storage.download("org-1/a.webp")
  assert await storage.download("org-1/b.webp") == b"two again"
