"""Error taxonomy shared by the dispatch router, pipelines and the queue consumer."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Literal

ErrorKind = Literal["validation", "transient", "structured_output", "permanent", "not_found"]

_TRANSIENT_HINTS: tuple[str, ...] = (
  "rate limit",
  "too many requests",
  "429",
  "quota",
  "resource exhausted",
  "timeout",
  "timed out",
  "connection",
  "network",
  "temporarily",
  "service unavailable",
  "bad gateway",
  "gateway timeout",
  "internal server error",
  "overloaded",
)

_OUTPUT_HINTS: tuple[str, ...] = (
  "invalid json",
  "failed to parse",
  "parse json",
  "expecting value",
  "validation error",
)


class PipelineError(Exception):
  """Base class for failures raised while handling a generation request."""

  kind: ErrorKind = "permanent"
  retryable = False


class SourceValidationError(PipelineError):
  """A source item (or the whole request) was rejected before any work started."""

  kind: ErrorKind = "validation"

  def __init__(self, message: str, *, index: int | None = None, status_code: int = 400) -> None:
    super().__init__(message)
    self.message = message
    self.index = index
    self.status_code = status_code


class TransientProviderError(PipelineError):
  """Network, rate-limit or 5xx failure from a provider; safe to retry later."""

  kind: ErrorKind = "transient"
  retryable = True


class StructuredOutputError(PipelineError):
  """The provider answered, but the structured payload could not be parsed or validated."""

  kind: ErrorKind = "structured_output"
  retryable = True

  def __init__(self, message: str, *, raw: str | None = None) -> None:
    super().__init__(message)
    self.raw = raw


class PermanentPipelineError(PipelineError):
  """A failure that will not go away on retry (malformed request, auth, bad input)."""

  kind: ErrorKind = "permanent"


class MissingArtifactError(PermanentPipelineError):
  """A provider response lacked a required field, such as the rendered image."""


class NotFoundError(PipelineError):
  """An unknown job, document or canvas id."""

  kind: ErrorKind = "not_found"


def _match_hint(message: str, hints: Iterable[str]) -> bool:
  """Return True when any hint appears in the message."""
  return any(hint in message for hint in hints)


def is_output_error(exc: BaseException) -> bool:
  """Return True when an exception indicates invalid output formatting."""
  if isinstance(exc, StructuredOutputError):
    return True
  if isinstance(exc, PipelineError):
    return False
  return _match_hint(str(exc).lower(), _OUTPUT_HINTS)


def classify_error(exc: BaseException) -> ErrorKind:
  """Map any exception onto the taxonomy, inspecting messages for foreign errors."""
  if isinstance(exc, PipelineError):
    return exc.kind
  if isinstance(exc, TimeoutError | ConnectionError):
    return "transient"
  message = str(exc).lower()
  if _match_hint(message, _OUTPUT_HINTS):
    return "structured_output"
  if _match_hint(message, _TRANSIENT_HINTS):
    return "transient"
  return "permanent"


def is_retryable(exc: BaseException) -> bool:
  """Return True when the queue consumer may spend retry budget on this failure."""
  return classify_error(exc) in {"transient", "structured_output"}
