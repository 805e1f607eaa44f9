"""Worksheet explanation pipeline: Analyze, Plan, Narrate and Render for every page."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from ezsolvy.ai import prompts
from ezsolvy.ai.errors import MissingArtifactError, PermanentPipelineError, StructuredOutputError
from ezsolvy.ai.pipeline.contracts import ArtifactRef, ExplanationRequest, ExplanationResult, ImageAnalysis, PageResult, PlanPage, RenderingPlan, StepCallback, notify_step
from ezsolvy.ai.pipeline.images import decode_source, detect_mime_type, to_webp
from ezsolvy.ai.providers.base import AIModel, GenerationRequest, ImageModel
from ezsolvy.ai.retry import retry_on_parse_failure
from ezsolvy.services.storage_client import AssetStorage

logger = logging.getLogger(__name__)

STEPS_PER_PAGE = 4

ANNOTATE_SUMMARY = "Annotate directly on the uploaded page. Keep overlays tidy and do not cover original text."
EXPAND_SUMMARY = "Recreate the content across multiple clean pages with space for solutions."


def build_rendering_plan(analysis: ImageAnalysis) -> RenderingPlan:
  """Derive page instructions from an analysis. Pure; raises only on malformed input."""
  if not analysis.questions:
    raise PermanentPipelineError("Cannot plan a page without analyzed questions.")

  if analysis.mode == "annotate":
    instructions = []
    for index, question in enumerate(analysis.questions, start=1):
      placement = ". Use nearby whitespace only."
      if question.annotation_zones:
        placement = ". " + " ".join(f"Zone {zone.label}: place overlay at {zone.x_pct:g}%/{zone.y_pct:g}% size {zone.width_pct:g}%×{zone.height_pct:g}% to {zone.notes}" for zone in question.annotation_zones)
      instructions.append(f"Question {index}: {question.answer_instructions}{placement}")
    return RenderingPlan(mode="annotate", summary=ANNOTATE_SUMMARY, pages=[PlanPage(page_number=1, title="Original worksheet annotated", instructions=instructions)])

  pages = []
  for index, question in enumerate(analysis.questions, start=1):
    instructions = [
      f"Copy the question text: {question.question_text}",
      f"Provide room for the answer: {question.answer_instructions}",
      f"Add diagram guidance: {question.diagram_instructions or 'none needed'}",
    ]
    pages.append(PlanPage(page_number=index, title=f"Expanded layout for question {index}", instructions=instructions))
  return RenderingPlan(mode="expand", summary=EXPAND_SUMMARY, pages=pages)


def combine_transcripts(pages: list[PageResult]) -> str:
  """Join per-page narration in source order, labeled by page number."""
  return "\n\n".join(f"Page {page.page_number}:\n{page.transcript.strip()}" for page in pages)


class ExplanationPipeline:
  """Runs the four explanation steps for each source image in order."""

  def __init__(self, *, text_model: AIModel, image_model: ImageModel, asset_storage: AssetStorage, narration_model: AIModel | None = None, analysis_max_attempts: int = 3) -> None:
    self._text_model = text_model
    self._narration_model = narration_model or text_model
    self._image_model = image_model
    self._asset_storage = asset_storage
    self._analysis_max_attempts = analysis_max_attempts

  @staticmethod
  def total_steps(request: ExplanationRequest) -> int:
    return STEPS_PER_PAGE * len(request.images_base64)

  async def run(self, request: ExplanationRequest, *, artifact_prefix: str, on_step: StepCallback | None = None) -> ExplanationResult:
    """Process every image; any failure aborts the whole run."""
    pages: list[PageResult] = []
    for index, source in enumerate(request.images_base64):
      page_number = index + 1
      image = decode_source(source, index=index)
      mime_type = detect_mime_type(image)

      analysis = await self.analyze(image, mime_type, request, page_number=page_number)
      await notify_step(on_step, "analyze", page_number)

      plan = build_rendering_plan(analysis)
      await notify_step(on_step, "plan", page_number)

      transcript = await self.narrate(analysis, plan, request)
      await notify_step(on_step, "narrate", page_number)

      artifact = await self.render(image, mime_type, plan, object_name=f"{artifact_prefix}/page-{page_number}.webp")
      await notify_step(on_step, "render", page_number)

      pages.append(PageResult(page_number=page_number, analysis=analysis, plan=plan, transcript=transcript, artifact=artifact))
      logger.info("Explained page %d/%d mode=%s questions=%d", page_number, len(request.images_base64), analysis.mode, len(analysis.questions))

    return ExplanationResult(pages=pages, transcript=combine_transcripts(pages))

  async def analyze(self, image: bytes, mime_type: str, request: ExplanationRequest, *, page_number: int) -> ImageAnalysis:
    generation = GenerationRequest(
      instructions=prompts.analysis_prompt(page_number=page_number, audience=request.audience, prompt_hint=request.prompt_hint),
      image=image,
      image_mime_type=mime_type,
      expect_structured=True,
      system=prompts.ANALYSIS_SYSTEM,
    )

    async def _attempt() -> ImageAnalysis:
      response = await self._text_model.generate_structured(generation)
      try:
        return ImageAnalysis.model_validate(response.content)
      except ValidationError as exc:
        raise StructuredOutputError(f"Analysis did not match the expected shape: {exc.error_count()} errors", raw=response.raw) from exc

    analysis = await retry_on_parse_failure(_attempt, attempts=self._analysis_max_attempts, label=f"analyze page {page_number}")
    if analysis.mode == "expand" and request.max_pages is not None:
      analysis = analysis.model_copy(update={"questions": analysis.questions[: request.max_pages]})
    return analysis

  async def narrate(self, analysis: ImageAnalysis, plan: RenderingPlan, request: ExplanationRequest) -> str:
    generation = GenerationRequest(instructions=prompts.narration_prompt(analysis=analysis, plan=plan, audience=request.audience, prompt_hint=request.prompt_hint), system=prompts.NARRATION_SYSTEM)
    response = await self._narration_model.generate(generation)
    return response.content.strip()

  async def render(self, image: bytes, mime_type: str, plan: RenderingPlan, *, object_name: str) -> ArtifactRef:
    rendered = await self._image_model.render(prompts.render_prompt(plan), source_image=image, source_mime_type=mime_type)
    if not rendered.data:
      raise MissingArtifactError("Image provider returned an empty artifact.")
    webp = await to_webp(rendered.data)
    return await self._asset_storage.upload(webp, object_name=object_name, content_type="image/webp")
