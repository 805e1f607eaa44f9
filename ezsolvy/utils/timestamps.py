"""UTC timestamp helpers."""

from __future__ import annotations

from datetime import UTC, datetime

DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def now_iso() -> str:
  """Return the current UTC time as an ISO-8601 string with second precision."""
  return datetime.now(UTC).strftime(DATE_FORMAT)


def now_iso_precise() -> str:
  """Return the current UTC time with milliseconds, for event timestamps."""
  return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
