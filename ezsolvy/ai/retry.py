"""Retry helpers for model calls."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from ezsolvy.ai.errors import StructuredOutputError

logger = logging.getLogger(__name__)


async def retry_on_parse_failure[T](func: Callable[[], Awaitable[T]], *, attempts: int, label: str) -> T:
  """Call ``func`` until it stops raising ``StructuredOutputError``, at most ``attempts`` times.

  Any other exception (transport, auth, rate limit) propagates on first sight.
  """
  if attempts < 1:
    raise ValueError("attempts must be at least 1")

  for attempt in range(1, attempts + 1):
    try:
      return await func()
    except StructuredOutputError as exc:
      if attempt == attempts:
        logger.error("%s: structured output still invalid after %d attempts", label, attempts)
        raise
      logger.warning("%s: structured output invalid on attempt %d/%d: %s", label, attempt, attempts, exc)

  raise AssertionError("unreachable")
