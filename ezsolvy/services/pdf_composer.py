"""PDF composition for canvas exports using reportlab platypus."""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from typing import Protocol
from xml.sax.saxutils import escape

from PIL import Image
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import Image as RLImage
from reportlab.platypus import KeepTogether, Paragraph, SimpleDocTemplate, Spacer
from starlette.concurrency import run_in_threadpool

FIGURE_MAX_WIDTH_CM = 15
FIGURE_MAX_HEIGHT_CM = 11


@dataclass(frozen=True)
class ExportFigure:
  caption: str
  image: bytes


@dataclass(frozen=True)
class ExportDocument:
  """Everything the composer lays out for one canvas export."""

  title: str
  transcript: str
  figures: list[ExportFigure] = field(default_factory=list)


class DocumentComposer(Protocol):
  async def compose(self, document: ExportDocument) -> bytes:
    """Return the rendered PDF bytes."""
    ...


def _figure_flowable(figure: ExportFigure) -> RLImage:
  # Re-encode as PNG; reportlab reads PNG/JPEG reliably regardless of the stored format.
  with Image.open(io.BytesIO(figure.image)) as source:
    width_px, height_px = source.size
    png = io.BytesIO()
    source.convert("RGBA").save(png, format="PNG")
  png.seek(0)

  scale = min((FIGURE_MAX_WIDTH_CM * cm) / max(width_px, 1), (FIGURE_MAX_HEIGHT_CM * cm) / max(height_px, 1), 1.0)
  return RLImage(png, width=width_px * scale, height=height_px * scale)


class ReportLabComposer:
  """Title, transcript paragraphs, then captioned figures on A4."""

  def __init__(self) -> None:
    styles = getSampleStyleSheet()
    self._title_style = styles["Title"]
    self._body_style = ParagraphStyle("TranscriptBody", parent=styles["BodyText"], fontSize=11, leading=15, spaceAfter=6)
    self._caption_style = ParagraphStyle("FigureCaption", parent=styles["Italic"], fontSize=9, spaceBefore=4)

  def _build(self, document: ExportDocument) -> bytes:
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, leftMargin=2 * cm, rightMargin=2 * cm, topMargin=2 * cm, bottomMargin=2 * cm, title=document.title)
    story: list = [Paragraph(escape(document.title), self._title_style), Spacer(1, 0.5 * cm)]

    for paragraph in document.transcript.split("\n\n"):
      text = paragraph.strip()
      if text:
        story.append(Paragraph(escape(text).replace("\n", "<br/>"), self._body_style))

    for figure in document.figures:
      story.append(Spacer(1, 0.4 * cm))
      story.append(KeepTogether([_figure_flowable(figure), Paragraph(escape(figure.caption), self._caption_style)]))

    doc.build(story)
    return buffer.getvalue()

  async def compose(self, document: ExportDocument) -> bytes:
    return await run_in_threadpool(self._build, document)
