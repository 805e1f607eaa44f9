"""Document creation, lookup and canvas export requests."""

from __future__ import annotations

import logging
from dataclasses import asdict

from ezsolvy.ai.errors import NotFoundError, SourceValidationError, TransientProviderError
from ezsolvy.api.models import DocumentCreateBody, DocumentCreateResponse, DocumentResponse, ExportQueuedResponse
from ezsolvy.core.security import RequestIdentity
from ezsolvy.jobs.messages import ExplainMessage, PdfExportMessage, QueueMessage
from ezsolvy.jobs.models import JobError, JobRecord, JobType
from ezsolvy.services.tasks.interface import QueuePublisher
from ezsolvy.storage.documents_repo import CanvasRecord, DocumentRecord, DocumentsRepository, QuestionRecord
from ezsolvy.storage.jobs_repo import JobsRepository
from ezsolvy.utils.ids import generate_id, generate_job_id
from ezsolvy.utils.timestamps import now_iso

logger = logging.getLogger(__name__)

CANVAS_WIDTH = 1920
CANVAS_HEIGHT = 1080
EXPORT_QUEUED = "PDF export queued"


class DocumentService:
  def __init__(self, *, documents_repo: DocumentsRepository, jobs_repo: JobsRepository, publisher: QueuePublisher) -> None:
    self._documents_repo = documents_repo
    self._jobs_repo = jobs_repo
    self._publisher = publisher

  async def create_document(self, body: DocumentCreateBody, identity: RequestIdentity) -> DocumentCreateResponse:
    """Store the document with one blank canvas and queue its explain job."""
    if body.source == "typed" and not body.text:
      raise SourceValidationError("Typed documents require text.")
    if body.source == "pdf" and not body.file_url:
      raise SourceValidationError("PDF documents require file_url.")

    now = now_iso()
    document = DocumentRecord(document_id=generate_id(), org_id=identity.org_id, user_id=identity.user_id, title=body.title, source=body.source, created_at=now, file_url=body.file_url)
    canvas = CanvasRecord(canvas_id=generate_id(), document_id=document.document_id, org_id=identity.org_id, width=CANVAS_WIDTH, height=CANVAS_HEIGHT, created_at=now)
    question = None
    if body.source == "typed" and body.text:
      question = QuestionRecord(question_id=generate_id(), document_id=document.document_id, text=body.text, created_at=now)
    await self._documents_repo.create_document(document, canvas, question)

    job = self._new_job("explain", identity, document_id=document.document_id, payload={"document_id": document.document_id})
    await self._submit(job, ExplainMessage(job_id=job.job_id, org_id=identity.org_id, user_id=identity.user_id, document_id=document.document_id))
    logger.info("Created document %s source=%s job=%s", document.document_id, body.source, job.job_id)
    return DocumentCreateResponse(document_id=document.document_id, job_id=job.job_id)

  async def get_document(self, document_id: str, identity: RequestIdentity) -> DocumentResponse:
    document = await self._documents_repo.get_document(document_id)
    if document is None or document.org_id != identity.org_id:
      raise NotFoundError("Document not found.")

    canvases = await self._documents_repo.list_canvases(document_id)
    assets = await self._documents_repo.list_canvas_assets(document_id)
    transcripts = await self._documents_repo.list_transcripts(document_id)
    return DocumentResponse(
      document=asdict(document),
      canvases=[asdict(canvas) for canvas in canvases],
      assets=[asdict(asset) for asset in assets],
      transcripts=[asdict(transcript) for transcript in transcripts],
    )

  async def export_canvas(self, canvas_id: str, identity: RequestIdentity) -> ExportQueuedResponse:
    """Queue a PDF export of one canvas."""
    canvas = await self._documents_repo.get_canvas(canvas_id)
    if canvas is None or canvas.org_id != identity.org_id:
      raise NotFoundError("Canvas not found.")

    job = self._new_job("pdf", identity, document_id=canvas.document_id, payload={"canvas_id": canvas_id})
    await self._submit(job, PdfExportMessage(job_id=job.job_id, org_id=identity.org_id, user_id=identity.user_id, document_id=canvas.document_id, canvas_id=canvas_id))
    logger.info("Queued export of canvas %s job=%s", canvas_id, job.job_id)
    return ExportQueuedResponse(job_id=job.job_id, message=EXPORT_QUEUED)

  def _new_job(self, job_type: JobType, identity: RequestIdentity, *, document_id: str, payload: dict) -> JobRecord:
    now = now_iso()
    return JobRecord(job_id=generate_job_id(), job_type=job_type, status="queued", payload=payload, created_at=now, updated_at=now, org_id=identity.org_id, user_id=identity.user_id, document_id=document_id)

  async def _submit(self, job: JobRecord, message: QueueMessage) -> None:
    await self._jobs_repo.create_job(job)
    try:
      await self._publisher.publish(message)
    except Exception as exc:
      logger.error("Failed to publish job %s", job.job_id, exc_info=True)
      await self._jobs_repo.update_job(job.job_id, status="failed", error=JobError(message="Enqueue failed", kind="transient"))
      raise TransientProviderError(f"Could not queue the {job.job_type} job.") from exc
