"""Dispatch router: run small explanation requests inline, queue the rest."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from ezsolvy.ai.errors import SourceValidationError, TransientProviderError
from ezsolvy.ai.pipeline.contracts import ExplanationRequest, ExplanationResult
from ezsolvy.ai.pipeline.explanation import ExplanationPipeline
from ezsolvy.ai.pipeline.images import decoded_length, normalize_base64
from ezsolvy.config import Settings
from ezsolvy.core.security import RequestIdentity
from ezsolvy.jobs.messages import ImageExplanationMessage
from ezsolvy.jobs.models import JobError, JobRecord
from ezsolvy.services.tasks.interface import QueuePublisher
from ezsolvy.storage.jobs_repo import JobsRepository
from ezsolvy.utils.ids import generate_job_id, generate_run_id
from ezsolvy.utils.timestamps import now_iso

logger = logging.getLogger(__name__)

DispatchMode = Literal["sync", "async"]

QUEUED_MESSAGE = "Explanation request queued for processing."


@dataclass(frozen=True)
class DispatchOutcome:
  mode: DispatchMode
  result: ExplanationResult | None = None
  job_id: str | None = None


def _size_label(max_bytes: int) -> str:
  if max_bytes % (1024 * 1024) == 0:
    return f"{max_bytes // (1024 * 1024)}MB"
  return f"{max_bytes} bytes"


class DispatchRouter:
  """Decides between inline and queued execution for explanation requests."""

  def __init__(self, *, jobs_repo: JobsRepository, publisher: QueuePublisher, pipeline: ExplanationPipeline, settings: Settings) -> None:
    self._jobs_repo = jobs_repo
    self._publisher = publisher
    self._pipeline = pipeline
    self._sync_max_items = settings.sync_max_items
    self._max_item_bytes = settings.max_item_bytes

  def validate(self, sources: list[str]) -> list[str]:
    """Check every source item and return them normalized; raises before any job exists."""
    if not sources:
      raise SourceValidationError("Provide imageBase64 or imagesBase64.")

    normalized: list[str] = []
    for index, source in enumerate(sources):
      if not isinstance(source, str) or not normalize_base64(source):
        raise SourceValidationError(f"Image at index {index} is empty.", index=index)
      size = decoded_length(source)
      if size is None or size == 0:
        raise SourceValidationError(f"Image at index {index} is not valid base64.", index=index)
      if size > self._max_item_bytes:
        raise SourceValidationError(f"Image at index {index} exceeds {_size_label(self._max_item_bytes)} after decoding.", index=index, status_code=413)
      normalized.append(normalize_base64(source))
    return normalized

  def choose_mode(self, request: ExplanationRequest) -> DispatchMode:
    return "sync" if len(request.images_base64) <= self._sync_max_items else "async"

  async def dispatch(self, request: ExplanationRequest, identity: RequestIdentity) -> DispatchOutcome:
    """Validate, then either run the pipeline inline or create and publish a job."""
    request = request.model_copy(update={"images_base64": self.validate(request.images_base64)})
    mode = self.choose_mode(request)
    if mode == "sync":
      run_id = generate_run_id()
      logger.info("Running explanation inline run_id=%s items=%d", run_id, len(request.images_base64))
      result = await self._pipeline.run(request, artifact_prefix=f"{identity.org_id}/explanations/{run_id}")
      return DispatchOutcome(mode="sync", result=result)

    job_id = await self._enqueue(request, identity)
    return DispatchOutcome(mode="async", job_id=job_id)

  async def _enqueue(self, request: ExplanationRequest, identity: RequestIdentity) -> str:
    now = now_iso()
    request_payload = request.model_dump(mode="json")
    record = JobRecord(
      job_id=generate_job_id(),
      job_type="image-explanation",
      status="queued",
      payload={"request": request_payload},
      created_at=now,
      updated_at=now,
      org_id=identity.org_id,
      user_id=identity.user_id,
      document_id=request.document_id,
    )
    await self._jobs_repo.create_job(record)

    message = ImageExplanationMessage(job_id=record.job_id, org_id=identity.org_id, user_id=identity.user_id, document_id=request.document_id, request=request_payload)
    try:
      await self._publisher.publish(message)
    except Exception as exc:
      logger.error("Failed to publish job %s", record.job_id, exc_info=True)
      await self._jobs_repo.update_job(record.job_id, status="failed", error=JobError(message="Enqueue failed", kind="transient"))
      raise TransientProviderError("Could not queue the explanation request.") from exc

    logger.info("Queued explanation job %s items=%d", record.job_id, len(request.images_base64))
    return record.job_id
