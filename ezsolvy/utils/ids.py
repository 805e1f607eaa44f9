"""Identifier utilities."""

from __future__ import annotations

import secrets
import string
import uuid


def generate_job_id() -> str:
  """Return a new job identifier."""
  return str(uuid.uuid4())


def generate_id() -> str:
  """Return a new identifier for documents, canvases, questions and assets."""
  return str(uuid.uuid4())


def generate_run_id(size: int = 12) -> str:
  """Return a short id naming artifacts of a synchronous run that has no job."""
  alphabet = string.ascii_lowercase + string.digits
  return "".join(secrets.choice(alphabet) for _ in range(size))
