from __future__ import annotations

import base64
import json

import pytest

from ezsolvy.ai.errors import MissingArtifactError, StructuredOutputError, TransientProviderError
from ezsolvy.ai.pipeline.contracts import ExplanationRequest, ImageAnalysis
from ezsolvy.ai.pipeline.explanation import ANNOTATE_SUMMARY, EXPAND_SUMMARY, ExplanationPipeline, build_rendering_plan
from ezsolvy.services.storage_client import InlineAssetStorage
from tests.fakes import ANNOTATE_ANALYSIS, EXPAND_ANALYSIS, FakeImageModel, ScriptedTextModel, png_base64


def _pipeline(text_model: ScriptedTextModel, image_model: FakeImageModel | None = None, storage: InlineAssetStorage | None = None) -> ExplanationPipeline:
  return ExplanationPipeline(text_model=text_model, image_model=image_model or FakeImageModel(), asset_storage=storage or InlineAssetStorage())


def test_annotate_plan_lists_zones_or_whitespace_hint() -> None:
  plan = build_rendering_plan(ImageAnalysis.model_validate(ANNOTATE_ANALYSIS))

  assert plan.mode == "annotate"
  assert plan.summary == ANNOTATE_SUMMARY
  assert len(plan.pages) == 1
  assert plan.pages[0].title == "Original worksheet annotated"
  first, second = plan.pages[0].instructions
  assert first == "Question 1: Write 4 and show counting on fingers. Zone A: place overlay at 10%/20% size 30%×10% to write the sum"
  assert second == "Question 2: Write 7 and explain why it is prime. Use nearby whitespace only."


def test_annotate_plan_joins_several_zones_with_spaces() -> None:
  analysis = ImageAnalysis.model_validate(
    {
      "mode": "annotate",
      "questions": [
        {
          "id": 1,
          "question_text": "Label the triangle.",
          "answer_instructions": "Mark each side",
          "annotation_zones": [
            {"label": "A", "x_pct": 5, "y_pct": 10, "width_pct": 20, "height_pct": 5, "notes": "label side a"},
            {"label": "B", "x_pct": 50, "y_pct": 10, "width_pct": 20, "height_pct": 5.5, "notes": "label side b"},
          ],
        }
      ],
    }
  )

  [instruction] = build_rendering_plan(analysis).pages[0].instructions

  assert instruction == (
    "Question 1: Mark each side. Zone A: place overlay at 5%/10% size 20%×5% to label side a Zone B: place overlay at 50%/10% size 20%×5.5% to label side b"
  )


def test_expand_plan_has_one_page_per_question() -> None:
  plan = build_rendering_plan(ImageAnalysis.model_validate(EXPAND_ANALYSIS))

  assert plan.summary == EXPAND_SUMMARY
  assert [page.page_number for page in plan.pages] == [1, 2, 3]
  assert plan.pages[0].instructions == [
    "Copy the question text: Draw a right triangle.",
    "Provide room for the answer: Label the hypotenuse",
    "Add diagram guidance: Right angle in the lower left",
  ]
  assert plan.pages[1].instructions[2] == "Add diagram guidance: none needed"


def test_analysis_requires_at_least_one_question() -> None:
  with pytest.raises(ValueError):
    ImageAnalysis.model_validate({"mode": "annotate", "questions": []})


@pytest.mark.anyio
async def test_analysis_recovers_after_two_parse_failures() -> None:
  text_model = ScriptedTextModel(structured=["I could not read the page", json.dumps({"mode": "annotate"}), json.dumps(ANNOTATE_ANALYSIS)])
  pipeline = _pipeline(text_model)

  result = await pipeline.run(ExplanationRequest(images_base64=[png_base64()]), artifact_prefix="org-1/explanations/run")

  assert text_model.structured_calls == 3
  assert result.pages[0].analysis.mode == "annotate"


@pytest.mark.anyio
async def test_analysis_gives_up_after_three_parse_failures() -> None:
  text_model = ScriptedTextModel(structured=["nope", "still nope", "{not json"])
  pipeline = _pipeline(text_model)

  with pytest.raises(StructuredOutputError):
    await pipeline.run(ExplanationRequest(images_base64=[png_base64()]), artifact_prefix="org-1/explanations/run")
  assert text_model.structured_calls == 3


@pytest.mark.anyio
async def test_analysis_does_not_retry_transport_errors() -> None:
  text_model = ScriptedTextModel(failures=[TransientProviderError("rate limited")])
  pipeline = _pipeline(text_model)

  with pytest.raises(TransientProviderError):
    await pipeline.run(ExplanationRequest(images_base64=[png_base64()]), artifact_prefix="org-1/explanations/run")
  assert len(text_model.calls) == 1


@pytest.mark.anyio
async def test_expand_mode_truncates_questions_to_max_pages() -> None:
  text_model = ScriptedTextModel(default_structured=EXPAND_ANALYSIS)
  pipeline = _pipeline(text_model)

  result = await pipeline.run(ExplanationRequest(images_base64=[png_base64()], max_pages=2), artifact_prefix="org-1/explanations/run")

  assert len(result.pages[0].analysis.questions) == 2
  assert len(result.pages[0].plan.pages) == 2


@pytest.mark.anyio
async def test_run_reports_steps_in_order_and_combines_transcripts() -> None:
  storage = InlineAssetStorage()
  pipeline = _pipeline(ScriptedTextModel(text="Walkthrough."), storage=storage)
  steps: list[tuple[str, int | None]] = []

  async def _on_step(step: str, page: int | None) -> None:
    steps.append((step, page))

  request = ExplanationRequest(images_base64=[png_base64(), png_base64((0, 200, 0))])
  result = await pipeline.run(request, artifact_prefix="org-1/explanations/job-9", on_step=_on_step)

  assert steps == [("analyze", 1), ("plan", 1), ("narrate", 1), ("render", 1), ("analyze", 2), ("plan", 2), ("narrate", 2), ("render", 2)]
  assert result.transcript == "Page 1:\nWalkthrough.\n\nPage 2:\nWalkthrough."
  assert [page.artifact.object_name for page in result.pages] == ["org-1/explanations/job-9/page-1.webp", "org-1/explanations/job-9/page-2.webp"]
  stored = storage.objects[("assets", "org-1/explanations/job-9/page-1.webp")]
  assert stored[:4] == b"RIFF" and stored[8:12] == b"WEBP"
  assert result.pages[0].artifact.url.startswith("data:image/webp;base64,")


@pytest.mark.anyio
async def test_missing_render_artifact_is_a_hard_failure() -> None:
  pipeline = _pipeline(ScriptedTextModel(), image_model=FakeImageModel(data=b""))

  with pytest.raises(MissingArtifactError):
    await pipeline.run(ExplanationRequest(images_base64=[png_base64()]), artifact_prefix="org-1/explanations/run")


@pytest.mark.anyio
async def test_analysis_sends_the_decoded_image_with_its_mime_type() -> None:
  text_model = ScriptedTextModel()
  source = png_base64()
  await _pipeline(text_model).run(ExplanationRequest(images_base64=[f"data:image/png;base64,{source}"]), artifact_prefix="p")

  analysis_call = text_model.calls[0]
  assert analysis_call.expect_structured is True
  assert analysis_call.image == base64.b64decode(source)
  assert analysis_call.image_mime_type == "image/png"
