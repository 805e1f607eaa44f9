"""Typed contracts passed between pipeline steps."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

LayoutMode = Literal["annotate", "expand"]
ExplanationStep = Literal["analyze", "plan", "narrate", "render"]

# Awaited after every completed step with (step name, 1-based page number or None).
StepCallback = Callable[[str, int | None], Awaitable[None]]


class ModelOutput(BaseModel):
  """Base for payloads parsed from model replies; accepts snake_case or camelCase keys."""

  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class ExplanationRequest(BaseModel):
  """Normalized input to one explanation run."""

  model_config = ConfigDict(populate_by_name=True)

  images_base64: list[str] = Field(default_factory=list, validation_alias=AliasChoices("images_base64", "imagesBase64"))
  audience: str | None = None
  prompt_hint: str | None = Field(default=None, validation_alias=AliasChoices("prompt_hint", "promptHint"))
  max_pages: int | None = Field(default=None, ge=1, le=20, validation_alias=AliasChoices("max_pages", "maxPages"))
  document_id: str | None = Field(default=None, validation_alias=AliasChoices("document_id", "documentId"))


class AnnotationZone(ModelOutput):
  """Percentage-based overlay rectangle on the source page."""

  label: str
  x_pct: float = Field(ge=0, le=100)
  y_pct: float = Field(ge=0, le=100)
  width_pct: float = Field(gt=0, le=100)
  height_pct: float = Field(gt=0, le=100)
  notes: str = ""


class AnalyzedQuestion(ModelOutput):
  """One sub-question found on the page, with guidance for answering and drawing it."""

  id: str
  question_text: str
  has_whitespace_below: bool = False
  answer_instructions: str
  diagram_instructions: str = ""
  annotation_zones: list[AnnotationZone] = Field(default_factory=list)

  @field_validator("id", mode="before")
  @classmethod
  def _coerce_id(cls, value: Any) -> Any:
    # Models often number questions instead of quoting them.
    if isinstance(value, int):
      return str(value)
    return value


class ImageAnalysis(ModelOutput):
  """Layout decision and sub-questions for one page."""

  mode: LayoutMode
  reasoning: str = ""
  questions: list[AnalyzedQuestion] = Field(min_length=1)


class PlanPage(BaseModel):
  page_number: int = Field(ge=1)
  title: str
  instructions: list[str]


class RenderingPlan(BaseModel):
  """Mode-specific page instructions derived from an analysis."""

  mode: LayoutMode
  summary: str
  pages: list[PlanPage] = Field(min_length=1)


class ArtifactRef(BaseModel):
  """Location of a stored artifact."""

  object_name: str
  url: str
  mime_type: str


class PageResult(BaseModel):
  page_number: int
  analysis: ImageAnalysis
  plan: RenderingPlan
  transcript: str
  artifact: ArtifactRef


class ExplanationResult(BaseModel):
  """Output of the explanation pipeline: per-page results plus the combined transcript."""

  pages: list[PageResult]
  transcript: str


class DiagramNeed(ModelOutput):
  kind: str
  description: str


class QuestionAnalysis(ModelOutput):
  """Structured reading of a typed question."""

  subject: str
  summary: str
  concepts: list[str] = Field(default_factory=list)
  diagrams: list[DiagramNeed] = Field(default_factory=list, max_length=4)


class DiagramSpec(BaseModel):
  position: int = Field(ge=0)
  kind: str
  title: str
  prompt: str


class DocumentExplainResult(BaseModel):
  """Output of the typed-question pipeline."""

  document_id: str
  transcript_id: str
  asset_ids: list[str]
  embedding_count: int


class PdfExportResult(BaseModel):
  pdf_url: str


async def notify_step(on_step: StepCallback | None, step: str, page_number: int | None = None) -> None:
  """Invoke the step callback when one was supplied."""
  if on_step is not None:
    await on_step(step, page_number)
