"""SQLAlchemy table models; importing this package registers every table on ``Base.metadata``."""

from .documents import Canvas, CanvasAsset, Document, Question, Transcript, TranscriptEmbedding
from .jobs import Job

__all__ = ["Canvas", "CanvasAsset", "Document", "Job", "Question", "Transcript", "TranscriptEmbedding"]
