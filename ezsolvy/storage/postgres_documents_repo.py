"""Postgres-backed repository for documents, canvases, assets and transcripts."""

from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert

from ezsolvy.core.database import get_session_factory
from ezsolvy.schema.documents import Canvas, CanvasAsset, Document, Question, Transcript, TranscriptEmbedding
from ezsolvy.storage.documents_repo import CanvasAssetRecord, CanvasRecord, DocumentRecord, QuestionRecord, TranscriptRecord


class PostgresDocumentsRepository:
  """Persist documents and generated content to Postgres using SQLAlchemy."""

  def __init__(self) -> None:
    self._session_factory = get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def create_document(self, document: DocumentRecord, canvas: CanvasRecord, question: QuestionRecord | None = None) -> None:
    async with self._session_factory() as session:
      session.add(Document(document_id=document.document_id, org_id=document.org_id, user_id=document.user_id, title=document.title, source=document.source, file_url=document.file_url, created_at=document.created_at))
      # Flush the parent first so child foreign keys resolve.
      await session.flush()
      session.add(Canvas(canvas_id=canvas.canvas_id, document_id=canvas.document_id, org_id=canvas.org_id, width=canvas.width, height=canvas.height, created_at=canvas.created_at))
      if question is not None:
        session.add(Question(question_id=question.question_id, document_id=question.document_id, text=question.text, created_at=question.created_at))
      await session.commit()

  async def get_document(self, document_id: str) -> DocumentRecord | None:
    async with self._session_factory() as session:
      row = await session.get(Document, document_id)
      if row is None:
        return None
      return DocumentRecord(document_id=row.document_id, org_id=row.org_id, user_id=row.user_id, title=row.title, source=row.source, created_at=row.created_at, file_url=row.file_url)  # type: ignore[arg-type]

  async def get_question(self, document_id: str) -> QuestionRecord | None:
    async with self._session_factory() as session:
      stmt = select(Question).where(Question.document_id == document_id).order_by(Question.created_at).limit(1)
      row = (await session.execute(stmt)).scalar_one_or_none()
      if row is None:
        return None
      return QuestionRecord(question_id=row.question_id, document_id=row.document_id, text=row.text, created_at=row.created_at)

  async def get_canvas(self, canvas_id: str) -> CanvasRecord | None:
    async with self._session_factory() as session:
      row = await session.get(Canvas, canvas_id)
      return _canvas_record(row) if row is not None else None

  async def list_canvases(self, document_id: str) -> list[CanvasRecord]:
    async with self._session_factory() as session:
      rows = (await session.execute(select(Canvas).where(Canvas.document_id == document_id).order_by(Canvas.created_at))).scalars().all()
      return [_canvas_record(row) for row in rows]

  async def upsert_canvas_asset(self, asset: CanvasAssetRecord) -> CanvasAssetRecord:
    values = {
      "asset_id": asset.asset_id,
      "canvas_id": asset.canvas_id,
      "document_id": asset.document_id,
      "job_id": asset.job_id,
      "position": asset.position,
      "kind": asset.kind,
      "object_name": asset.object_name,
      "url": asset.url,
      "bbox_json": asset.bbox,
      "meta_json": asset.meta,
      "created_at": asset.created_at,
    }
    stmt = insert(CanvasAsset).values(**values)
    # Keep the original id so a retried job overwrites rather than duplicates.
    stmt = stmt.on_conflict_do_update(
      constraint="ux_canvas_assets_job_position",
      set_={"kind": stmt.excluded.kind, "object_name": stmt.excluded.object_name, "url": stmt.excluded.url, "bbox_json": stmt.excluded.bbox_json, "meta_json": stmt.excluded.meta_json},
    ).returning(CanvasAsset)
    async with self._session_factory() as session:
      row = (await session.execute(stmt)).scalar_one()
      await session.commit()
      return _asset_record(row)

  async def list_canvas_assets(self, document_id: str) -> list[CanvasAssetRecord]:
    async with self._session_factory() as session:
      stmt = select(CanvasAsset).where(CanvasAsset.document_id == document_id).order_by(CanvasAsset.created_at, CanvasAsset.position)
      rows = (await session.execute(stmt)).scalars().all()
      return [_asset_record(row) for row in rows]

  async def upsert_transcript(self, transcript: TranscriptRecord) -> TranscriptRecord:
    stmt = insert(Transcript).values(transcript_id=transcript.transcript_id, document_id=transcript.document_id, job_id=transcript.job_id, text=transcript.text, tokens=transcript.tokens, created_at=transcript.created_at)
    stmt = stmt.on_conflict_do_update(index_elements=[Transcript.job_id], set_={"text": stmt.excluded.text, "tokens": stmt.excluded.tokens}).returning(Transcript)
    async with self._session_factory() as session:
      row = (await session.execute(stmt)).scalar_one()
      await session.commit()
      return _transcript_record(row)

  async def list_transcripts(self, document_id: str) -> list[TranscriptRecord]:
    async with self._session_factory() as session:
      rows = (await session.execute(select(Transcript).where(Transcript.document_id == document_id).order_by(Transcript.created_at.desc()))).scalars().all()
      return [_transcript_record(row) for row in rows]

  async def replace_embeddings(self, transcript_id: str, chunks: list[tuple[str, list[float]]]) -> int:
    async with self._session_factory() as session:
      await session.execute(delete(TranscriptEmbedding).where(TranscriptEmbedding.transcript_id == transcript_id))
      session.add_all(TranscriptEmbedding(transcript_id=transcript_id, chunk_index=index, content=content, embedding=vector) for index, (content, vector) in enumerate(chunks))
      await session.commit()
      return len(chunks)


def _canvas_record(row: Canvas) -> CanvasRecord:
  return CanvasRecord(canvas_id=row.canvas_id, document_id=row.document_id, org_id=row.org_id, width=row.width, height=row.height, created_at=row.created_at)


def _asset_record(row: CanvasAsset) -> CanvasAssetRecord:
  return CanvasAssetRecord(
    asset_id=row.asset_id,
    canvas_id=row.canvas_id,
    document_id=row.document_id,
    job_id=row.job_id,
    position=row.position,
    kind=row.kind,
    object_name=row.object_name,
    url=row.url,
    bbox=row.bbox_json,
    created_at=row.created_at,
    meta=row.meta_json or {},
  )


def _transcript_record(row: Transcript) -> TranscriptRecord:
  return TranscriptRecord(transcript_id=row.transcript_id, document_id=row.document_id, job_id=row.job_id, text=row.text, tokens=row.tokens, created_at=row.created_at)
