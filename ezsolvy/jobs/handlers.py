"""Job handlers adapting each pipeline to the queue consumer."""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from ezsolvy.ai.errors import PermanentPipelineError
from ezsolvy.ai.pipeline.contracts import ExplanationRequest
from ezsolvy.ai.pipeline.explain import DocumentExplainPipeline
from ezsolvy.ai.pipeline.explanation import ExplanationPipeline
from ezsolvy.ai.pipeline.export import PdfExportPipeline
from ezsolvy.jobs.messages import ExplainMessage, ImageExplanationMessage, PdfExportMessage, QueueMessage
from ezsolvy.jobs.progress import JobProgressTracker


def _step_callback(tracker: JobProgressTracker):
  async def _on_step(step: str, page: int | None) -> None:
    message = f"Finished {step} for page {page}" if page is not None else f"Finished {step}"
    await tracker.complete_step(step=step, page=page, message=message)

  return _on_step


def _explanation_request(message: ImageExplanationMessage) -> ExplanationRequest:
  try:
    return ExplanationRequest.model_validate(message.request)
  except ValidationError as exc:
    raise PermanentPipelineError(f"Queued explanation request is malformed: {exc.error_count()} errors") from exc


class ImageExplanationHandler:
  initial_step = "explanation_planning"

  def __init__(self, pipeline: ExplanationPipeline) -> None:
    self._pipeline = pipeline

  def total_steps(self, message: QueueMessage) -> int:
    assert isinstance(message, ImageExplanationMessage)
    return ExplanationPipeline.total_steps(_explanation_request(message))

  async def run(self, message: QueueMessage, tracker: JobProgressTracker) -> dict[str, Any]:
    assert isinstance(message, ImageExplanationMessage)
    request = _explanation_request(message)
    prefix = f"{message.org_id or 'shared'}/explanations/{message.job_id}"
    result = await self._pipeline.run(request, artifact_prefix=prefix, on_step=_step_callback(tracker))
    return result.model_dump(mode="json")


class DocumentExplainHandler:
  initial_step = "ingest"

  def __init__(self, pipeline: DocumentExplainPipeline) -> None:
    self._pipeline = pipeline

  def total_steps(self, message: QueueMessage) -> int:
    return DocumentExplainPipeline.total_steps

  async def run(self, message: QueueMessage, tracker: JobProgressTracker) -> dict[str, Any]:
    assert isinstance(message, ExplainMessage)
    if not message.document_id:
      raise PermanentPipelineError("Explain job message has no document_id")
    result = await self._pipeline.run(job_id=message.job_id, document_id=message.document_id, on_step=_step_callback(tracker))
    return result.model_dump(mode="json")


class PdfExportHandler:
  initial_step = "load"

  def __init__(self, pipeline: PdfExportPipeline) -> None:
    self._pipeline = pipeline

  def total_steps(self, message: QueueMessage) -> int:
    return PdfExportPipeline.total_steps

  async def run(self, message: QueueMessage, tracker: JobProgressTracker) -> dict[str, Any]:
    assert isinstance(message, PdfExportMessage)
    result = await self._pipeline.run(job_id=message.job_id, canvas_id=message.canvas_id, on_step=_step_callback(tracker))
    return result.model_dump(mode="json")
