from __future__ import annotations

from collections.abc import Iterator

import pytest

from ezsolvy.config import get_settings


@pytest.fixture(autouse=True)
def fresh_settings() -> Iterator[None]:
  get_settings.cache_clear()
  yield
  get_settings.cache_clear()


@pytest.mark.parametrize("raw", ["three", "-1", "2.5"])
def test_invalid_log_backup_count_names_the_variable(monkeypatch: pytest.MonkeyPatch, raw: str) -> None:
  monkeypatch.setenv("EZSOLVY_LOG_BACKUP_COUNT", raw)

  with pytest.raises(ValueError, match="EZSOLVY_LOG_BACKUP_COUNT must be zero or a positive integer"):
    get_settings()


def test_log_backup_count_accepts_zero(monkeypatch: pytest.MonkeyPatch) -> None:
  monkeypatch.setenv("EZSOLVY_LOG_BACKUP_COUNT", "0")

  assert get_settings().log_backup_count == 0


@pytest.mark.parametrize(("name", "raw"), [("EZSOLVY_MAX_ATTEMPTS", "0"), ("EZSOLVY_INLINE_STORAGE_MAX_OBJECTS", "many")])
def test_positive_integers_name_the_variable(monkeypatch: pytest.MonkeyPatch, name: str, raw: str) -> None:
  monkeypatch.setenv(name, raw)

  with pytest.raises(ValueError, match=f"{name} must be a positive integer"):
    get_settings()


def test_inline_storage_cap_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
  monkeypatch.delenv("EZSOLVY_INLINE_STORAGE_MAX_OBJECTS", raising=False)

  assert get_settings().inline_storage_max_objects == 256
