"""Storage interface and records for documents, canvases and their generated content."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

DocumentSource = Literal["typed", "pdf"]


@dataclass
class DocumentRecord:
  document_id: str
  org_id: str
  user_id: str
  title: str
  source: DocumentSource
  created_at: str
  file_url: str | None = None


@dataclass
class CanvasRecord:
  canvas_id: str
  document_id: str
  org_id: str
  width: int
  height: int
  created_at: str


@dataclass
class QuestionRecord:
  question_id: str
  document_id: str
  text: str
  created_at: str


@dataclass
class CanvasAssetRecord:
  """A generated artifact placed on a canvas; unique per (job_id, position)."""

  asset_id: str
  canvas_id: str
  document_id: str
  job_id: str
  position: int
  kind: str
  object_name: str
  url: str
  bbox: dict[str, int]
  created_at: str
  meta: dict[str, Any] = field(default_factory=dict)


@dataclass
class TranscriptRecord:
  """Narration produced by a job; unique per job_id."""

  transcript_id: str
  document_id: str
  job_id: str
  text: str
  tokens: int
  created_at: str


class DocumentsRepository(Protocol):
  """Repository contract for documents and their generated content."""

  async def create_document(self, document: DocumentRecord, canvas: CanvasRecord, question: QuestionRecord | None = None) -> None:
    """Persist a document with its first canvas and optional typed question."""

  async def get_document(self, document_id: str) -> DocumentRecord | None:
    """Fetch a document."""

  async def get_question(self, document_id: str) -> QuestionRecord | None:
    """Return the earliest question stored for a document."""

  async def get_canvas(self, canvas_id: str) -> CanvasRecord | None:
    """Fetch a canvas."""

  async def list_canvases(self, document_id: str) -> list[CanvasRecord]:
    """List canvases of a document, oldest first."""

  async def upsert_canvas_asset(self, asset: CanvasAssetRecord) -> CanvasAssetRecord:
    """Insert an asset, or replace the one with the same (job_id, position)."""

  async def list_canvas_assets(self, document_id: str) -> list[CanvasAssetRecord]:
    """List assets across a document's canvases."""

  async def upsert_transcript(self, transcript: TranscriptRecord) -> TranscriptRecord:
    """Insert a transcript, or replace the one written earlier by the same job."""

  async def list_transcripts(self, document_id: str) -> list[TranscriptRecord]:
    """List transcripts of a document, newest first."""

  async def replace_embeddings(self, transcript_id: str, chunks: list[tuple[str, list[float]]]) -> int:
    """Replace all embedding rows of a transcript; returns the row count."""
