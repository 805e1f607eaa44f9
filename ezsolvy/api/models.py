from __future__ import annotations

from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictStr, model_validator

from ezsolvy.ai.pipeline.contracts import ExplanationRequest, ExplanationResult
from ezsolvy.jobs.models import JobStatus, JobType

JobEventType = Literal["progress", "complete", "error"]


class ExplanationBody(BaseModel):
  """Request body for explanation generation; camelCase and snake_case keys are both accepted."""

  image_base64: StrictStr | None = Field(default=None, validation_alias=AliasChoices("imageBase64", "image_base64"))
  images_base64: list[StrictStr] | None = Field(default=None, validation_alias=AliasChoices("imagesBase64", "images_base64"))
  audience: StrictStr | None = Field(default=None, max_length=200)
  prompt_hint: StrictStr | None = Field(default=None, max_length=2000, validation_alias=AliasChoices("promptHint", "prompt_hint"))
  max_pages: int | None = Field(default=None, ge=1, le=20, validation_alias=AliasChoices("maxPages", "max_pages"))
  document_id: StrictStr | None = Field(default=None, validation_alias=AliasChoices("documentId", "document_id"))
  model_config = ConfigDict(extra="ignore")

  def sources(self) -> list[str]:
    """Single image first, then the list, each trimmed; empty items are kept so their index can be reported."""
    items: list[str] = []
    if self.image_base64 is not None:
      items.append(self.image_base64.strip())
    items.extend(item.strip() for item in self.images_base64 or [])
    return items

  def to_request(self) -> ExplanationRequest:
    return ExplanationRequest(images_base64=self.sources(), audience=self.audience, prompt_hint=self.prompt_hint, max_pages=self.max_pages, document_id=self.document_id)


class SyncExplanationResponse(BaseModel):
  mode: Literal["sync"] = "sync"
  result: ExplanationResult


class AsyncExplanationResponse(BaseModel):
  mode: Literal["async"] = "async"
  job_id: str
  message: str


class JobStatusResponse(BaseModel):
  """Snapshot of a background job."""

  id: str
  type: JobType
  status: JobStatus
  progress: dict[str, Any] | None = None
  error: dict[str, Any] | None = None
  created_at: str
  updated_at: str


class JobEvent(BaseModel):
  """One frame on the job status stream."""

  type: JobEventType
  job_id: str
  timestamp: str
  data: dict[str, Any]


class DocumentCreateBody(BaseModel):
  """Request body for creating a document from a typed question or an uploaded PDF."""

  title: StrictStr = Field(min_length=1, max_length=300)
  source: Literal["typed", "pdf"]
  text: StrictStr | None = Field(default=None, max_length=20000)
  file_url: StrictStr | None = Field(default=None, validation_alias=AliasChoices("file_url", "fileUrl"))
  model_config = ConfigDict(extra="forbid")

  @model_validator(mode="after")
  def _strip_text(self) -> DocumentCreateBody:
    if self.text is not None:
      self.text = self.text.strip() or None
    return self


class DocumentCreateResponse(BaseModel):
  document_id: str
  job_id: str


class DocumentResponse(BaseModel):
  """A document with its canvases, placed assets and transcripts."""

  document: dict[str, Any]
  canvases: list[dict[str, Any]]
  assets: list[dict[str, Any]]
  transcripts: list[dict[str, Any]]


class ExportQueuedResponse(BaseModel):
  job_id: str
  message: str
