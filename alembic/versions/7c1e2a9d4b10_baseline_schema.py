"""baseline_schema

Revision ID: 7c1e2a9d4b10
Revises:
Create Date: 2026-10-19 09:12:41.503118

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "7c1e2a9d4b10"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_NOW_ISO = sa.text("""to_char((now() AT TIME ZONE 'UTC'), 'YYYY-MM-DD"T"HH24:MI:SS"Z"')""")


def upgrade() -> None:
  """Upgrade schema."""
  op.create_table(
    "jobs",
    sa.Column("job_id", sa.String(), nullable=False),
    sa.Column("job_type", sa.String(), nullable=False),
    sa.Column("status", sa.String(), nullable=False),
    sa.Column("org_id", sa.String(), nullable=True),
    sa.Column("user_id", sa.String(), nullable=True),
    sa.Column("document_id", sa.String(), nullable=True),
    sa.Column("payload_json", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("progress_json", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column("error_json", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column("attempt", sa.Integer(), server_default=sa.text("0"), nullable=False),
    sa.Column("created_at", sa.String(), server_default=_NOW_ISO, nullable=False),
    sa.Column("updated_at", sa.String(), server_default=_NOW_ISO, nullable=False),
    sa.PrimaryKeyConstraint("job_id"),
    sa.CheckConstraint("status IN ('queued', 'working', 'done', 'failed')", name="ck_jobs_status"),
    sa.CheckConstraint("(status = 'failed') = (error_json IS NOT NULL)", name="ck_jobs_error_iff_failed"),
  )
  op.create_index("ix_jobs_job_type", "jobs", ["job_type"])
  op.create_index("ix_jobs_status", "jobs", ["status"])
  op.create_index("ix_jobs_org_id", "jobs", ["org_id"])
  op.create_index("ix_jobs_user_id", "jobs", ["user_id"])
  op.create_index("ix_jobs_document_created", "jobs", ["document_id", "created_at"])

  op.create_table(
    "documents",
    sa.Column("document_id", sa.String(), nullable=False),
    sa.Column("org_id", sa.String(), nullable=False),
    sa.Column("user_id", sa.String(), nullable=False),
    sa.Column("title", sa.String(), nullable=False),
    sa.Column("source", sa.String(), nullable=False),
    sa.Column("file_url", sa.Text(), nullable=True),
    sa.Column("created_at", sa.String(), nullable=False),
    sa.PrimaryKeyConstraint("document_id"),
  )
  op.create_index("ix_documents_org_id", "documents", ["org_id"])
  op.create_index("ix_documents_user_id", "documents", ["user_id"])

  op.create_table(
    "canvases",
    sa.Column("canvas_id", sa.String(), nullable=False),
    sa.Column("document_id", sa.String(), nullable=False),
    sa.Column("org_id", sa.String(), nullable=False),
    sa.Column("width", sa.Integer(), nullable=False),
    sa.Column("height", sa.Integer(), nullable=False),
    sa.Column("created_at", sa.String(), nullable=False),
    sa.ForeignKeyConstraint(["document_id"], ["documents.document_id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("canvas_id"),
  )
  op.create_index("ix_canvases_document_id", "canvases", ["document_id"])

  op.create_table(
    "questions",
    sa.Column("question_id", sa.String(), nullable=False),
    sa.Column("document_id", sa.String(), nullable=False),
    sa.Column("text", sa.Text(), nullable=False),
    sa.Column("created_at", sa.String(), nullable=False),
    sa.ForeignKeyConstraint(["document_id"], ["documents.document_id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("question_id"),
  )
  op.create_index("ix_questions_document_id", "questions", ["document_id"])

  op.create_table(
    "canvas_assets",
    sa.Column("asset_id", sa.String(), nullable=False),
    sa.Column("canvas_id", sa.String(), nullable=False),
    sa.Column("document_id", sa.String(), nullable=False),
    sa.Column("job_id", sa.String(), nullable=False),
    sa.Column("position", sa.Integer(), nullable=False),
    sa.Column("kind", sa.String(), nullable=False),
    sa.Column("object_name", sa.Text(), nullable=False),
    sa.Column("url", sa.Text(), nullable=False),
    sa.Column("bbox_json", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("meta_json", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("created_at", sa.String(), nullable=False),
    sa.ForeignKeyConstraint(["canvas_id"], ["canvases.canvas_id"], ondelete="CASCADE"),
    sa.ForeignKeyConstraint(["document_id"], ["documents.document_id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("asset_id"),
    sa.UniqueConstraint("job_id", "position", name="ux_canvas_assets_job_position"),
  )
  op.create_index("ix_canvas_assets_canvas_id", "canvas_assets", ["canvas_id"])
  op.create_index("ix_canvas_assets_document_id", "canvas_assets", ["document_id"])

  op.create_table(
    "transcripts",
    sa.Column("transcript_id", sa.String(), nullable=False),
    sa.Column("document_id", sa.String(), nullable=False),
    sa.Column("job_id", sa.String(), nullable=False),
    sa.Column("text", sa.Text(), nullable=False),
    sa.Column("tokens", sa.Integer(), nullable=False),
    sa.Column("created_at", sa.String(), nullable=False),
    sa.ForeignKeyConstraint(["document_id"], ["documents.document_id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("transcript_id"),
    sa.UniqueConstraint("job_id"),
  )
  op.create_index("ix_transcripts_document_id", "transcripts", ["document_id"])

  op.create_table(
    "transcript_embeddings",
    sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
    sa.Column("transcript_id", sa.String(), nullable=False),
    sa.Column("chunk_index", sa.Integer(), nullable=False),
    sa.Column("content", sa.Text(), nullable=False),
    sa.Column("embedding", postgresql.ARRAY(sa.Float()), nullable=False),
    sa.ForeignKeyConstraint(["transcript_id"], ["transcripts.transcript_id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index("ix_transcript_embeddings_transcript_id", "transcript_embeddings", ["transcript_id"])


def downgrade() -> None:
  """Downgrade schema."""
  op.drop_table("transcript_embeddings")
  op.drop_table("transcripts")
  op.drop_table("canvas_assets")
  op.drop_table("questions")
  op.drop_table("canvases")
  op.drop_table("documents")
  op.drop_table("jobs")
