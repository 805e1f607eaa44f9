"""In-process repositories for local runs without Postgres, and for tests."""

from __future__ import annotations

import asyncio
from dataclasses import replace

from ezsolvy.jobs.models import JobError, JobProgress, JobRecord, JobStatus
from ezsolvy.jobs.state import apply_update
from ezsolvy.storage.documents_repo import CanvasAssetRecord, CanvasRecord, DocumentRecord, QuestionRecord, TranscriptRecord
from ezsolvy.utils.timestamps import now_iso


class InMemoryJobsRepository:
  """Dictionary-backed jobs repository with the same transition rules as Postgres."""

  def __init__(self) -> None:
    self._jobs: dict[str, JobRecord] = {}
    self._lock = asyncio.Lock()

  async def create_job(self, record: JobRecord) -> None:
    async with self._lock:
      if record.job_id in self._jobs:
        raise ValueError(f"Job {record.job_id} already exists")
      self._jobs[record.job_id] = replace(record)

  async def get_job(self, job_id: str) -> JobRecord | None:
    record = self._jobs.get(job_id)
    return replace(record) if record is not None else None

  async def update_job(self, job_id: str, *, status: JobStatus, progress: JobProgress | None = None, error: JobError | None = None, attempt: int | None = None) -> JobRecord | None:
    async with self._lock:
      current = self._jobs.get(job_id)
      if current is None:
        return None
      updated = apply_update(current, status=status, progress=progress, error=error, attempt=attempt, now=now_iso())
      self._jobs[job_id] = updated
      return replace(updated)

  def all_jobs(self) -> list[JobRecord]:
    return [replace(record) for record in self._jobs.values()]


class InMemoryDocumentsRepository:
  """Dictionary-backed documents repository."""

  def __init__(self) -> None:
    self.documents: dict[str, DocumentRecord] = {}
    self.canvases: dict[str, CanvasRecord] = {}
    self.questions: dict[str, QuestionRecord] = {}
    self.assets: dict[tuple[str, int], CanvasAssetRecord] = {}
    self.transcripts: dict[str, TranscriptRecord] = {}
    self.embeddings: dict[str, list[tuple[str, list[float]]]] = {}

  async def create_document(self, document: DocumentRecord, canvas: CanvasRecord, question: QuestionRecord | None = None) -> None:
    self.documents[document.document_id] = document
    self.canvases[canvas.canvas_id] = canvas
    if question is not None:
      self.questions[question.question_id] = question

  async def get_document(self, document_id: str) -> DocumentRecord | None:
    return self.documents.get(document_id)

  async def get_question(self, document_id: str) -> QuestionRecord | None:
    matches = [question for question in self.questions.values() if question.document_id == document_id]
    return min(matches, key=lambda question: question.created_at) if matches else None

  async def get_canvas(self, canvas_id: str) -> CanvasRecord | None:
    return self.canvases.get(canvas_id)

  async def list_canvases(self, document_id: str) -> list[CanvasRecord]:
    return sorted((canvas for canvas in self.canvases.values() if canvas.document_id == document_id), key=lambda canvas: canvas.created_at)

  async def upsert_canvas_asset(self, asset: CanvasAssetRecord) -> CanvasAssetRecord:
    key = (asset.job_id, asset.position)
    existing = self.assets.get(key)
    if existing is not None:
      asset = replace(asset, asset_id=existing.asset_id, created_at=existing.created_at)
    self.assets[key] = asset
    return asset

  async def list_canvas_assets(self, document_id: str) -> list[CanvasAssetRecord]:
    return sorted((asset for asset in self.assets.values() if asset.document_id == document_id), key=lambda asset: (asset.created_at, asset.position))

  async def upsert_transcript(self, transcript: TranscriptRecord) -> TranscriptRecord:
    existing = self.transcripts.get(transcript.job_id)
    if existing is not None:
      transcript = replace(transcript, transcript_id=existing.transcript_id, created_at=existing.created_at)
    self.transcripts[transcript.job_id] = transcript
    return transcript

  async def list_transcripts(self, document_id: str) -> list[TranscriptRecord]:
    return sorted((item for item in self.transcripts.values() if item.document_id == document_id), key=lambda item: item.created_at, reverse=True)

  async def replace_embeddings(self, transcript_id: str, chunks: list[tuple[str, list[float]]]) -> int:
    self.embeddings[transcript_id] = list(chunks)
    return len(chunks)
