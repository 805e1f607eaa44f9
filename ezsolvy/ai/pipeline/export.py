"""Canvas export pipeline: load content, compose a PDF, upload it."""

from __future__ import annotations

import logging

from ezsolvy.ai.errors import PermanentPipelineError
from ezsolvy.ai.pipeline.contracts import PdfExportResult, StepCallback, notify_step
from ezsolvy.services.pdf_composer import DocumentComposer, ExportDocument, ExportFigure
from ezsolvy.services.storage_client import AssetStorage
from ezsolvy.storage.documents_repo import DocumentsRepository

logger = logging.getLogger(__name__)

EXPORT_STEPS = ("load", "compose", "upload")


class PdfExportPipeline:
  total_steps = len(EXPORT_STEPS)

  def __init__(self, *, documents_repo: DocumentsRepository, asset_storage: AssetStorage, composer: DocumentComposer) -> None:
    self._documents_repo = documents_repo
    self._asset_storage = asset_storage
    self._composer = composer

  async def run(self, *, job_id: str, canvas_id: str, on_step: StepCallback | None = None) -> PdfExportResult:
    canvas = await self._documents_repo.get_canvas(canvas_id)
    if canvas is None:
      raise PermanentPipelineError(f"Canvas {canvas_id} not found")

    document = await self._documents_repo.get_document(canvas.document_id)
    title = document.title if document is not None else "Explanation"
    transcripts = await self._documents_repo.list_transcripts(canvas.document_id)
    transcript = transcripts[0].text if transcripts else ""

    figures = []
    for asset in await self._documents_repo.list_canvas_assets(canvas.document_id):
      if asset.canvas_id != canvas_id:
        continue
      try:
        image = await self._asset_storage.download(asset.object_name)
      except FileNotFoundError as exc:
        raise PermanentPipelineError(f"Asset {asset.asset_id} is missing from storage") from exc
      figures.append(ExportFigure(caption=str(asset.meta.get("title") or asset.kind), image=image))
    await notify_step(on_step, "load")

    pdf = await self._composer.compose(ExportDocument(title=title, transcript=transcript, figures=figures))
    await notify_step(on_step, "compose")

    artifact = await self._asset_storage.upload(pdf, object_name=f"{canvas.org_id}/exports/{canvas_id}/{job_id}.pdf", content_type="application/pdf", bucket="exports")
    await notify_step(on_step, "upload")

    logger.info("Exported canvas %s figures=%d bytes=%d", canvas_id, len(figures), len(pdf))
    return PdfExportResult(pdf_url=artifact.url)
