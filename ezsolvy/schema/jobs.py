from __future__ import annotations

from sqlalchemy import CheckConstraint, Index, Integer, String, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from ezsolvy.core.database import Base

_NOW_ISO = text("""to_char((now() AT TIME ZONE 'UTC'), 'YYYY-MM-DD"T"HH24:MI:SS"Z"')""")


class Job(Base):
  __tablename__ = "jobs"
  __table_args__ = (
    CheckConstraint("status IN ('queued', 'working', 'done', 'failed')", name="ck_jobs_status"),
    CheckConstraint("(status = 'failed') = (error_json IS NOT NULL)", name="ck_jobs_error_iff_failed"),
    Index("ix_jobs_document_created", "document_id", "created_at"),
  )

  job_id: Mapped[str] = mapped_column(String, primary_key=True)
  job_type: Mapped[str] = mapped_column(String, nullable=False, index=True)
  status: Mapped[str] = mapped_column(String, nullable=False, index=True)
  org_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
  user_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
  document_id: Mapped[str | None] = mapped_column(String, nullable=True)
  payload_json: Mapped[dict] = mapped_column(JSONB, nullable=False)
  progress_json: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
  error_json: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
  attempt: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
  created_at: Mapped[str] = mapped_column(String, nullable=False, server_default=_NOW_ISO)
  updated_at: Mapped[str] = mapped_column(String, nullable=False, server_default=_NOW_ISO)
