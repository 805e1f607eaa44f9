from __future__ import annotations

from sqlalchemy import Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.orm import Mapped, mapped_column

from ezsolvy.core.database import Base


class Document(Base):
  __tablename__ = "documents"

  document_id: Mapped[str] = mapped_column(String, primary_key=True)
  org_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  title: Mapped[str] = mapped_column(String, nullable=False)
  source: Mapped[str] = mapped_column(String, nullable=False)
  file_url: Mapped[str | None] = mapped_column(Text, nullable=True)
  created_at: Mapped[str] = mapped_column(String, nullable=False)


class Canvas(Base):
  __tablename__ = "canvases"

  canvas_id: Mapped[str] = mapped_column(String, primary_key=True)
  document_id: Mapped[str] = mapped_column(ForeignKey("documents.document_id", ondelete="CASCADE"), nullable=False, index=True)
  org_id: Mapped[str] = mapped_column(String, nullable=False)
  width: Mapped[int] = mapped_column(Integer, nullable=False)
  height: Mapped[int] = mapped_column(Integer, nullable=False)
  created_at: Mapped[str] = mapped_column(String, nullable=False)


class Question(Base):
  __tablename__ = "questions"

  question_id: Mapped[str] = mapped_column(String, primary_key=True)
  document_id: Mapped[str] = mapped_column(ForeignKey("documents.document_id", ondelete="CASCADE"), nullable=False, index=True)
  text: Mapped[str] = mapped_column(Text, nullable=False)
  created_at: Mapped[str] = mapped_column(String, nullable=False)


class CanvasAsset(Base):
  __tablename__ = "canvas_assets"
  __table_args__ = (UniqueConstraint("job_id", "position", name="ux_canvas_assets_job_position"),)

  asset_id: Mapped[str] = mapped_column(String, primary_key=True)
  canvas_id: Mapped[str] = mapped_column(ForeignKey("canvases.canvas_id", ondelete="CASCADE"), nullable=False, index=True)
  document_id: Mapped[str] = mapped_column(ForeignKey("documents.document_id", ondelete="CASCADE"), nullable=False, index=True)
  job_id: Mapped[str] = mapped_column(String, nullable=False)
  position: Mapped[int] = mapped_column(Integer, nullable=False)
  kind: Mapped[str] = mapped_column(String, nullable=False)
  object_name: Mapped[str] = mapped_column(Text, nullable=False)
  url: Mapped[str] = mapped_column(Text, nullable=False)
  bbox_json: Mapped[dict] = mapped_column(JSONB, nullable=False)
  meta_json: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
  created_at: Mapped[str] = mapped_column(String, nullable=False)


class Transcript(Base):
  __tablename__ = "transcripts"

  transcript_id: Mapped[str] = mapped_column(String, primary_key=True)
  document_id: Mapped[str] = mapped_column(ForeignKey("documents.document_id", ondelete="CASCADE"), nullable=False, index=True)
  job_id: Mapped[str] = mapped_column(String, nullable=False, unique=True)
  text: Mapped[str] = mapped_column(Text, nullable=False)
  tokens: Mapped[int] = mapped_column(Integer, nullable=False)
  created_at: Mapped[str] = mapped_column(String, nullable=False)


class TranscriptEmbedding(Base):
  __tablename__ = "transcript_embeddings"

  id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
  transcript_id: Mapped[str] = mapped_column(ForeignKey("transcripts.transcript_id", ondelete="CASCADE"), nullable=False, index=True)
  chunk_index: Mapped[int] = mapped_column(Integer, nullable=False)
  content: Mapped[str] = mapped_column(Text, nullable=False)
  embedding: Mapped[list[float]] = mapped_column(ARRAY(Float), nullable=False)
