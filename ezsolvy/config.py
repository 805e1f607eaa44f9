"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from ezsolvy.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)

_QUEUE_PROVIDERS = {"memory", "gcp"}
_STORAGE_PROVIDERS = {"inline", "gcs"}


@dataclass(frozen=True)
class Settings:
  """Typed settings for the ezsolvy service."""

  environment: str
  debug: bool
  allowed_origins: tuple[str, ...]
  log_dir: str
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  pg_dsn: str | None
  sync_max_items: int
  max_item_bytes: int
  max_attempts: int
  analysis_max_attempts: int
  stream_poll_seconds: float
  openai_api_key: str | None
  openai_base_url: str | None
  analysis_model: str
  narration_model: str
  embedding_model: str
  perplexity_api_key: str | None
  perplexity_base_url: str
  research_model: str
  gemini_api_key: str | None
  image_model: str
  queue_provider: str
  cloud_tasks_queue_path: str | None
  base_url: str | None
  task_secret: str | None
  cloud_run_invoker_service_account: str | None
  storage_provider: str
  inline_storage_max_objects: int
  assets_bucket: str
  exports_bucket: str
  gcs_storage_host: str | None


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    raise ValueError("EZSOLVY_ALLOWED_ORIGINS must be set to one or more origins.")

  origins = tuple(origin.strip() for origin in raw.split(",") if origin.strip())
  if not origins:
    raise ValueError("EZSOLVY_ALLOWED_ORIGINS must include at least one origin.")

  if "*" in origins:
    raise ValueError("EZSOLVY_ALLOWED_ORIGINS must not include wildcard origins.")

  return origins


def _parse_bool(raw: str | None) -> bool:
  if raw is None:
    return False
  return raw.strip().lower() in {"1", "true", "yes", "on"}


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  return value or None


def _positive_int(name: str, default: int) -> int:
  raw = os.getenv(name)
  try:
    value = int(raw) if raw is not None and raw.strip() else default
  except ValueError as exc:
    raise ValueError(f"{name} must be a positive integer.") from exc
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


def _non_negative_int(name: str, default: int) -> int:
  raw = os.getenv(name)
  try:
    value = int(raw) if raw is not None and raw.strip() else default
  except ValueError as exc:
    raise ValueError(f"{name} must be zero or a positive integer.") from exc
  if value < 0:
    raise ValueError(f"{name} must be zero or a positive integer.")
  return value


def _positive_float(name: str, default: float) -> float:
  raw = os.getenv(name)
  try:
    value = float(raw) if raw is not None and raw.strip() else default
  except ValueError as exc:
    raise ValueError(f"{name} must be a positive number.") from exc
  if value <= 0:
    raise ValueError(f"{name} must be a positive number.")
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""
  queue_provider = (os.getenv("EZSOLVY_QUEUE_PROVIDER") or "memory").strip().lower()
  if queue_provider not in _QUEUE_PROVIDERS:
    raise ValueError(f"EZSOLVY_QUEUE_PROVIDER must be one of {sorted(_QUEUE_PROVIDERS)}.")

  storage_provider = (os.getenv("EZSOLVY_STORAGE_PROVIDER") or "inline").strip().lower()
  if storage_provider not in _STORAGE_PROVIDERS:
    raise ValueError(f"EZSOLVY_STORAGE_PROVIDER must be one of {sorted(_STORAGE_PROVIDERS)}.")

  cloud_tasks_queue_path = _optional_str(os.getenv("EZSOLVY_CLOUD_TASKS_QUEUE_PATH"))
  base_url = _optional_str(os.getenv("EZSOLVY_BASE_URL"))
  task_secret = _optional_str(os.getenv("EZSOLVY_TASK_SECRET"))
  if queue_provider == "gcp":
    if not cloud_tasks_queue_path:
      raise ValueError("EZSOLVY_CLOUD_TASKS_QUEUE_PATH must be set when EZSOLVY_QUEUE_PROVIDER=gcp.")
    if not base_url:
      raise ValueError("EZSOLVY_BASE_URL must be set when EZSOLVY_QUEUE_PROVIDER=gcp.")
    if not task_secret:
      raise ValueError("EZSOLVY_TASK_SECRET must be set when EZSOLVY_QUEUE_PROVIDER=gcp.")

  return Settings(
    environment=(os.getenv("EZSOLVY_ENVIRONMENT") or "development").strip(),
    debug=_parse_bool(os.getenv("EZSOLVY_DEBUG")),
    allowed_origins=_parse_origins(os.getenv("EZSOLVY_ALLOWED_ORIGINS")),
    log_dir=(os.getenv("EZSOLVY_LOG_DIR") or "logs").strip(),
    log_max_bytes=_positive_int("EZSOLVY_LOG_MAX_BYTES", 5 * 1024 * 1024),
    log_backup_count=_non_negative_int("EZSOLVY_LOG_BACKUP_COUNT", 3),
    log_http_4xx=_parse_bool(os.getenv("EZSOLVY_LOG_HTTP_4XX")),
    pg_dsn=_optional_str(os.getenv("EZSOLVY_PG_DSN")),
    sync_max_items=_positive_int("EZSOLVY_SYNC_MAX_ITEMS", 4),
    max_item_bytes=_positive_int("EZSOLVY_MAX_ITEM_BYTES", 6 * 1024 * 1024),
    max_attempts=_positive_int("EZSOLVY_MAX_ATTEMPTS", 3),
    analysis_max_attempts=_positive_int("EZSOLVY_ANALYSIS_MAX_ATTEMPTS", 3),
    stream_poll_seconds=_positive_float("EZSOLVY_STREAM_POLL_SECONDS", 2.0),
    openai_api_key=_optional_str(os.getenv("EZSOLVY_OPENAI_API_KEY")),
    openai_base_url=_optional_str(os.getenv("EZSOLVY_OPENAI_BASE_URL")),
    analysis_model=(os.getenv("EZSOLVY_ANALYSIS_MODEL") or "gpt-4o-mini").strip(),
    narration_model=(os.getenv("EZSOLVY_NARRATION_MODEL") or "gpt-4o-mini").strip(),
    embedding_model=(os.getenv("EZSOLVY_EMBEDDING_MODEL") or "text-embedding-3-large").strip(),
    perplexity_api_key=_optional_str(os.getenv("EZSOLVY_PERPLEXITY_API_KEY")),
    perplexity_base_url=(os.getenv("EZSOLVY_PERPLEXITY_BASE_URL") or "https://api.perplexity.ai").strip(),
    research_model=(os.getenv("EZSOLVY_RESEARCH_MODEL") or "sonar").strip(),
    gemini_api_key=_optional_str(os.getenv("EZSOLVY_GEMINI_API_KEY")),
    image_model=(os.getenv("EZSOLVY_IMAGE_MODEL") or "gemini-2.5-flash-image").strip(),
    queue_provider=queue_provider,
    cloud_tasks_queue_path=cloud_tasks_queue_path,
    base_url=base_url,
    task_secret=task_secret,
    cloud_run_invoker_service_account=_optional_str(os.getenv("EZSOLVY_CLOUD_RUN_INVOKER_SERVICE_ACCOUNT")),
    storage_provider=storage_provider,
    inline_storage_max_objects=_positive_int("EZSOLVY_INLINE_STORAGE_MAX_OBJECTS", 256),
    assets_bucket=(os.getenv("EZSOLVY_ASSETS_BUCKET") or "ezsolvy-assets").strip(),
    exports_bucket=(os.getenv("EZSOLVY_EXPORTS_BUCKET") or "ezsolvy-exports").strip(),
    gcs_storage_host=_optional_str(os.getenv("EZSOLVY_GCS_STORAGE_HOST")),
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring the full service configuration."""
  return DatabaseSettings(debug=_parse_bool(os.getenv("EZSOLVY_DEBUG")), pg_dsn=_optional_str(os.getenv("EZSOLVY_PG_DSN")))
