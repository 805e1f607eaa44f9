"""Test configuration: settings for the app under test and shared fixtures."""

from __future__ import annotations

import os
import tempfile
from collections.abc import AsyncIterator

# Ensure required settings are available before importing the app.
os.environ["EZSOLVY_ALLOWED_ORIGINS"] = "http://localhost"
os.environ["EZSOLVY_TASK_SECRET"] = "test-task-secret"
os.environ["EZSOLVY_OPENAI_API_KEY"] = "test-openai-key"
os.environ["EZSOLVY_GEMINI_API_KEY"] = "test-gemini-key"
os.environ["EZSOLVY_LOG_DIR"] = tempfile.mkdtemp(prefix="ezsolvy-logs-")
os.environ.pop("EZSOLVY_PG_DSN", None)
os.environ.pop("EZSOLVY_QUEUE_PROVIDER", None)
os.environ.pop("EZSOLVY_STORAGE_PROVIDER", None)

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from ezsolvy.config import Settings, get_settings  # noqa: E402
from ezsolvy.core.environment import Environment  # noqa: E402
from ezsolvy.main import app  # noqa: E402
from tests.fakes import FakeImageModel, ScriptedTextModel, make_environment  # noqa: E402


@pytest.fixture
def anyio_backend() -> str:
  return "asyncio"


@pytest.fixture
def settings() -> Settings:
  get_settings.cache_clear()
  return get_settings()


@pytest.fixture
def text_model() -> ScriptedTextModel:
  return ScriptedTextModel()


@pytest.fixture
def image_model() -> FakeImageModel:
  return FakeImageModel()


@pytest.fixture
def environment(settings: Settings, text_model: ScriptedTextModel, image_model: FakeImageModel) -> Environment:
  return make_environment(settings, text_model=text_model, image_model=image_model)


@pytest.fixture
async def async_client(environment: Environment) -> AsyncIterator[AsyncClient]:
  app.state.environment = environment
  async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test", headers={"x-user-id": "user-1", "x-org-id": "org-1"}) as client:
    yield client
  app.state.environment = None
  app.dependency_overrides.clear()
