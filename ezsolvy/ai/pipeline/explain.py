"""Typed-question document pipeline: research, diagrams, transcript and embeddings."""

from __future__ import annotations

import logging
import math

from pydantic import ValidationError

from ezsolvy.ai import prompts
from ezsolvy.ai.errors import PermanentPipelineError, StructuredOutputError
from ezsolvy.ai.pipeline.contracts import DiagramSpec, DocumentExplainResult, QuestionAnalysis, StepCallback, notify_step
from ezsolvy.ai.pipeline.images import to_webp
from ezsolvy.ai.providers.base import AIModel, Embedder, GenerationRequest, ImageModel
from ezsolvy.ai.retry import retry_on_parse_failure
from ezsolvy.services.storage_client import AssetStorage
from ezsolvy.storage.documents_repo import CanvasAssetRecord, CanvasRecord, DocumentsRepository, TranscriptRecord
from ezsolvy.utils.ids import generate_id
from ezsolvy.utils.timestamps import now_iso

logger = logging.getLogger(__name__)

EXPLAIN_STEPS = ("ingest", "analyze", "research", "diagram_plan", "diagram_render", "transcript")

DIAGRAM_WIDTH = 600
DIAGRAM_HEIGHT = 400


def plan_diagrams(analysis: QuestionAnalysis) -> list[DiagramSpec]:
  """Turn the analysis' diagram needs into render specs, in order."""
  return [DiagramSpec(position=index, kind=need.kind, title=f"Figure {index + 1}: {need.kind.title()}", prompt=need.description) for index, need in enumerate(analysis.diagrams)]


def diagram_bbox(position: int) -> dict[str, int]:
  """Stack diagrams down the left side of the canvas."""
  return {"x": 100, "y": 100 + position * 300, "w": DIAGRAM_WIDTH, "h": DIAGRAM_HEIGHT}


def chunk_transcript(text: str) -> list[str]:
  return [chunk.strip() for chunk in text.split("\n\n") if chunk.strip()]


def estimate_tokens(text: str) -> int:
  return math.ceil(len(text) / 4)


class DocumentExplainPipeline:
  """Explains a typed question stored on a document."""

  total_steps = len(EXPLAIN_STEPS)

  def __init__(
    self,
    *,
    text_model: AIModel,
    research_model: AIModel | None,
    narration_model: AIModel | None = None,
    image_model: ImageModel,
    embedder: Embedder,
    documents_repo: DocumentsRepository,
    asset_storage: AssetStorage,
    analysis_max_attempts: int = 3,
  ) -> None:
    self._text_model = text_model
    self._narration_model = narration_model or text_model
    self._research_model = research_model
    self._image_model = image_model
    self._embedder = embedder
    self._documents_repo = documents_repo
    self._asset_storage = asset_storage
    self._analysis_max_attempts = analysis_max_attempts

  async def run(self, *, job_id: str, document_id: str, on_step: StepCallback | None = None) -> DocumentExplainResult:
    document = await self._documents_repo.get_document(document_id)
    if document is None:
      raise PermanentPipelineError(f"Document {document_id} not found")
    if document.source == "pdf":
      raise PermanentPipelineError("PDF sources require text extraction, which is not supported")

    question = await self._documents_repo.get_question(document_id)
    if question is None or not question.text.strip():
      raise PermanentPipelineError(f"Document {document_id} has no question text")

    canvases = await self._documents_repo.list_canvases(document_id)
    if not canvases:
      raise PermanentPipelineError(f"Document {document_id} has no canvas")
    canvas = canvases[0]
    await notify_step(on_step, "ingest")

    analysis = await self.analyze(question.text)
    await notify_step(on_step, "analyze")

    research = await self.research(analysis, question.text)
    await notify_step(on_step, "research")

    specs = plan_diagrams(analysis)
    await notify_step(on_step, "diagram_plan")

    asset_ids = []
    for spec in specs:
      asset = await self.render_diagram(spec, job_id=job_id, org_id=document.org_id, canvas=canvas)
      asset_ids.append(asset.asset_id)
    await notify_step(on_step, "diagram_render")

    text = await self.write_transcript(question.text, analysis, research, specs)
    transcript = await self._documents_repo.upsert_transcript(TranscriptRecord(transcript_id=generate_id(), document_id=document_id, job_id=job_id, text=text, tokens=estimate_tokens(text), created_at=now_iso()))
    chunks = chunk_transcript(text)
    vectors = await self._embedder.embed(chunks)
    if len(vectors) != len(chunks):
      raise PermanentPipelineError(f"Embedder returned {len(vectors)} vectors for {len(chunks)} chunks")
    embedding_count = await self._documents_repo.replace_embeddings(transcript.transcript_id, list(zip(chunks, vectors, strict=True)))
    await notify_step(on_step, "transcript")

    logger.info("Explained document %s diagrams=%d chunks=%d", document_id, len(asset_ids), embedding_count)
    return DocumentExplainResult(document_id=document_id, transcript_id=transcript.transcript_id, asset_ids=asset_ids, embedding_count=embedding_count)

  async def analyze(self, text: str) -> QuestionAnalysis:
    generation = GenerationRequest(instructions=prompts.question_analysis_prompt(text), expect_structured=True, system=prompts.ANALYSIS_SYSTEM)

    async def _attempt() -> QuestionAnalysis:
      response = await self._text_model.generate_structured(generation)
      try:
        return QuestionAnalysis.model_validate(response.content)
      except ValidationError as exc:
        raise StructuredOutputError(f"Question analysis did not match the expected shape: {exc.error_count()} errors", raw=response.raw) from exc

    return await retry_on_parse_failure(_attempt, attempts=self._analysis_max_attempts, label="analyze question")

  async def research(self, analysis: QuestionAnalysis, text: str) -> str:
    if self._research_model is None:
      logger.info("Research model not configured; continuing without background notes")
      return ""
    response = await self._research_model.generate(GenerationRequest(instructions=prompts.research_prompt(analysis, text)))
    return response.content.strip()

  async def render_diagram(self, spec: DiagramSpec, *, job_id: str, org_id: str, canvas: CanvasRecord) -> CanvasAssetRecord:
    rendered = await self._image_model.render(prompts.diagram_prompt(spec))
    webp = await to_webp(rendered.data)
    artifact = await self._asset_storage.upload(webp, object_name=f"{org_id}/diagrams/{job_id}/{spec.position}.webp", content_type="image/webp")
    record = CanvasAssetRecord(
      asset_id=generate_id(),
      canvas_id=canvas.canvas_id,
      document_id=canvas.document_id,
      job_id=job_id,
      position=spec.position,
      kind="diagram",
      object_name=artifact.object_name,
      url=artifact.url,
      bbox=diagram_bbox(spec.position),
      created_at=now_iso(),
      meta={"title": spec.title, "diagram_kind": spec.kind},
    )
    return await self._documents_repo.upsert_canvas_asset(record)

  async def write_transcript(self, text: str, analysis: QuestionAnalysis, research: str, specs: list[DiagramSpec]) -> str:
    response = await self._narration_model.generate(GenerationRequest(instructions=prompts.transcript_prompt(text=text, analysis=analysis, research=research, diagrams=specs), system=prompts.NARRATION_SYSTEM))
    transcript = response.content.strip()
    if not transcript:
      raise StructuredOutputError("Transcript generation returned no text")
    return transcript
