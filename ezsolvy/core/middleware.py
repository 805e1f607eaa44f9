"""ASGI middleware for request tracing and response header hygiene."""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Receive, Scope, Send

logger = logging.getLogger("ezsolvy.core.middleware")


def _request_path(scope: Scope) -> str:
  path = scope.get("path", "")
  query = scope.get("query_string", b"")
  if query:
    return f"{path}?{query.decode('latin-1')}"
  return path


class RequestLoggingMiddleware:
  """Log request metadata, latency and a correlation id without touching bodies."""

  def __init__(self, app: ASGIApp) -> None:
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    # Honor an upstream id so gateway and service logs line up.
    incoming = dict(scope.get("headers") or []).get(b"x-request-id")
    request_id = incoming.decode("latin-1") if incoming else str(uuid.uuid4())
    scope.setdefault("state", {})["request_id"] = request_id

    start_time = time.perf_counter()
    method = scope.get("method", "UNKNOWN")
    logger.info("Incoming request request_id=%s %s %s", request_id, method, _request_path(scope))
    status_code: int | None = None

    async def send_wrapper(message: dict[str, Any]) -> None:
      nonlocal status_code
      if message.get("type") == "http.response.start":
        status_code = message.get("status")
        response_headers = MutableHeaders(scope=message)
        if "x-request-id" not in response_headers:
          response_headers["x-request-id"] = request_id

      await send(message)

    try:
      await self.app(scope, receive, send_wrapper)
    finally:
      process_time = (time.perf_counter() - start_time) * 1000
      logger.info("Response request_id=%s status=%s (took %.2fms)", request_id, status_code or 0, process_time)


class SecurityHeadersMiddleware:
  """Middleware to strip sensitive headers from responses."""

  def __init__(self, app: ASGIApp) -> None:
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    async def send_wrapper(message: dict[str, Any]) -> None:
      if message["type"] == "http.response.start":
        headers = MutableHeaders(scope=message)
        for name in ("x-powered-by", "server"):
          if name in headers:
            del headers[name]

      await send(message)

    await self.app(scope, receive, send_wrapper)
