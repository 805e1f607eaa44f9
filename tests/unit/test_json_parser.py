from __future__ import annotations

import json

import pytest

from ezsolvy.ai.errors import StructuredOutputError
from ezsolvy.ai.json_parser import extract_json_block, parse_json_with_fallback
from ezsolvy.ai.providers.base import parse_structured_content


def test_parse_json_with_fallback_strips_prose_and_code_fences() -> None:
  raw = 'Sure! Here is the analysis:\n```json\n{"mode": "annotate", "questions": []}\n```\nLet me know.'
  assert parse_json_with_fallback(raw) == {"mode": "annotate", "questions": []}


def test_parse_json_with_fallback_repairs_trailing_commas() -> None:
  raw = '{"mode": "expand", "questions": [{"id": "1",},],}'
  assert parse_json_with_fallback(raw) == {"mode": "expand", "questions": [{"id": "1"}]}


def test_extract_json_block_ignores_braces_inside_strings() -> None:
  raw = 'prefix {"text": "a } inside", "n": 1} suffix {"other": 2}'
  assert extract_json_block(raw) == '{"text": "a } inside", "n": 1}'


def test_parse_json_with_fallback_raises_when_nothing_parses() -> None:
  with pytest.raises(json.JSONDecodeError):
    parse_json_with_fallback("no json here at all")


def test_parse_structured_content_rejects_non_objects_and_empty_replies() -> None:
  with pytest.raises(StructuredOutputError):
    parse_structured_content("")
  with pytest.raises(StructuredOutputError):
    parse_structured_content("[1, 2, 3]")
  with pytest.raises(StructuredOutputError) as excinfo:
    parse_structured_content("{broken")
  assert excinfo.value.raw == "{broken"
