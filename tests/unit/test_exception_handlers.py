"""Unit tests for API exception sanitization behavior."""

from __future__ import annotations

from ezsolvy.core.exceptions import _coerce_json_safe, _error_payload, _sanitize_validation_errors


def test_sanitize_validation_errors_removes_input_and_serializes_exception_ctx() -> None:
  """Ensure validation errors stay JSON-serializable and redact raw image payloads."""
  errors = [{"type": "value_error", "loc": ("body", "imagesBase64", 0), "msg": "Value error, Input should be a valid string.", "input": {"imagesBase64": [7]}, "ctx": {"error": ValueError("Input should be a valid string."), "input": [7]}}]
  sanitized = _sanitize_validation_errors(errors)
  assert "input" not in sanitized[0]
  assert sanitized[0]["ctx"]["error"] == "ValueError: Input should be a valid string."
  assert "input" not in sanitized[0]["ctx"]
  assert sanitized[0]["loc"] == ["body", "imagesBase64", 0]


def test_coerce_json_safe_names_bare_exceptions() -> None:
  assert _coerce_json_safe(KeyError()) == "KeyError"
  assert _coerce_json_safe({1: {2}}) == {"1": [2]}


def test_error_payload_carries_index_and_request_id() -> None:
  assert _error_payload("Image at index 2 exceeds 6MB after decoding.", request_id="req-1", index=2) == {"detail": "Image at index 2 exceeds 6MB after decoding.", "index": 2, "requestId": "req-1"}
  assert _error_payload("Job not found.") == {"detail": "Job not found."}
