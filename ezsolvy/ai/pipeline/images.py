"""Base64 source handling and image conversion helpers."""

from __future__ import annotations

import base64
import binascii
import io
import re

from PIL import Image, UnidentifiedImageError
from starlette.concurrency import run_in_threadpool

from ezsolvy.ai.errors import PermanentPipelineError

_DATA_URI_RE = re.compile(r"^data:[\w.+-]+/[\w.+-]+;base64,", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")
_BASE64_RE = re.compile(r"^[A-Za-z0-9+/]*={0,2}$")
_PIL_MIME_TYPES = {"PNG": "image/png", "JPEG": "image/jpeg", "WEBP": "image/webp", "GIF": "image/gif"}


def normalize_base64(value: str) -> str:
  """Drop a data-URI prefix and all whitespace."""
  stripped = _DATA_URI_RE.sub("", value.strip(), count=1)
  return _WHITESPACE_RE.sub("", stripped)


def decoded_length(value: str) -> int | None:
  """Return the decoded byte length of a base64 string without decoding it.

  Returns None for strings that cannot be valid base64 (empty, bad length, bad alphabet).
  """
  normalized = normalize_base64(value)
  if not normalized or len(normalized) % 4 != 0 or not _BASE64_RE.match(normalized):
    return None

  padding = len(normalized) - len(normalized.rstrip("="))
  return (len(normalized) * 3) // 4 - padding


def decode_source(value: str, *, index: int) -> bytes:
  """Decode a validated base64 source item."""
  try:
    return base64.b64decode(normalize_base64(value), validate=True)
  except (binascii.Error, ValueError) as exc:
    raise PermanentPipelineError(f"Image at index {index} is not valid base64.") from exc


def detect_mime_type(data: bytes) -> str:
  """Identify the image format with Pillow; unknown formats are rejected."""
  try:
    with Image.open(io.BytesIO(data)) as image:
      image_format = image.format or ""
  except (UnidentifiedImageError, OSError) as exc:
    raise PermanentPipelineError("Source item is not a readable image.") from exc

  mime_type = _PIL_MIME_TYPES.get(image_format.upper())
  if mime_type is None:
    raise PermanentPipelineError(f"Unsupported image format: {image_format or 'unknown'}.")
  return mime_type


def _convert_to_webp(data: bytes, quality: int) -> bytes:
  with Image.open(io.BytesIO(data)) as image:
    # WebP has no palette mode; normalize before saving.
    if image.mode not in {"RGB", "RGBA"}:
      image = image.convert("RGBA")
    output = io.BytesIO()
    image.save(output, format="WEBP", quality=quality)
    return output.getvalue()


async def to_webp(data: bytes, *, quality: int = 85) -> bytes:
  """Re-encode image bytes as WebP off the event loop."""
  try:
    return await run_in_threadpool(_convert_to_webp, data, quality)
  except (UnidentifiedImageError, OSError) as exc:
    raise PermanentPipelineError("Rendered artifact is not a readable image.") from exc
