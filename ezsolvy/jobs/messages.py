"""Queue message codec: one tagged struct per pipeline type."""

from __future__ import annotations

from typing import Any

import msgspec


class JobMessage(msgspec.Struct, tag_field="type", kw_only=True):
  """Fields every queue message carries."""

  job_id: str
  org_id: str | None = None
  user_id: str | None = None
  document_id: str | None = None
  attempt: int = 0


class ImageExplanationMessage(JobMessage, tag="image-explanation"):
  request: dict[str, Any]


class ExplainMessage(JobMessage, tag="explain"):
  pass


class PdfExportMessage(JobMessage, tag="pdf"):
  canvas_id: str


QueueMessage = ImageExplanationMessage | ExplainMessage | PdfExportMessage

_DECODER = msgspec.json.Decoder(QueueMessage)


class MessageDecodeError(ValueError):
  """The delivery body is not a message this service understands."""


def message_type(message: QueueMessage) -> str:
  return message.__struct_config__.tag


def encode_message(message: QueueMessage) -> bytes:
  return msgspec.json.encode(message)


def decode_message(body: bytes | str) -> QueueMessage:
  try:
    return _DECODER.decode(body)
  except msgspec.DecodeError as exc:
    raise MessageDecodeError(f"Undecodable queue message: {exc}") from exc


def next_attempt(message: QueueMessage) -> QueueMessage:
  """Return a copy of ``message`` for the next retry."""
  return msgspec.structs.replace(message, attempt=message.attempt + 1)
