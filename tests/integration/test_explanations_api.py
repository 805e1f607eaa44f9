from __future__ import annotations

import base64

import pytest
from httpx import AsyncClient

from ezsolvy.config import Settings
from ezsolvy.core.environment import Environment
from ezsolvy.main import app
from tests.fakes import FailingPublisher, ScriptedTextModel, make_environment, png_base64


@pytest.mark.anyio
async def test_small_request_is_explained_inline(async_client: AsyncClient, environment: Environment) -> None:
  response = await async_client.post("/v1/explanations", json={"imageBase64": png_base64(), "imagesBase64": [png_base64((0, 0, 200))], "audience": "grade 3"})

  assert response.status_code == 200
  body = response.json()
  assert body["mode"] == "sync"
  pages = body["result"]["pages"]
  assert [page["page_number"] for page in pages] == [1, 2]
  assert pages[0]["analysis"]["mode"] == "annotate"
  assert pages[0]["artifact"]["mime_type"] == "image/webp"
  assert pages[0]["artifact"]["object_name"].startswith("org-1/explanations/")
  assert body["result"]["transcript"].startswith("Page 1:\n")
  assert "\n\nPage 2:\n" in body["result"]["transcript"]
  assert environment.jobs_repo.all_jobs() == []
  assert response.headers["x-request-id"]


@pytest.mark.anyio
async def test_oversized_item_is_rejected_before_any_job_exists(async_client: AsyncClient, environment: Environment) -> None:
  big = base64.b64encode(b"\0" * (6 * 1024 * 1024 + 10)).decode("ascii")
  images = [png_base64() for _ in range(5)] + [big]

  response = await async_client.post("/v1/explanations", json={"imagesBase64": images})

  assert response.status_code == 413
  assert response.json() == {"detail": "Image at index 5 exceeds 6MB after decoding.", "index": 5}
  assert environment.jobs_repo.all_jobs() == []
  assert environment.memory_queue.published == []


@pytest.mark.anyio
@pytest.mark.parametrize(
  ("payload", "detail", "index"),
  [
    ({}, "Provide imageBase64 or imagesBase64.", None),
    ({"imagesBase64": []}, "Provide imageBase64 or imagesBase64.", None),
    ({"imagesBase64": ["  "]}, "Image at index 0 is empty.", 0),
    ({"imageBase64": "not base64!"}, "Image at index 0 is not valid base64.", 0),
  ],
)
async def test_invalid_sources_are_rejected_with_400(async_client: AsyncClient, payload: dict, detail: str, index: int | None) -> None:
  response = await async_client.post("/v1/explanations", json=payload)

  assert response.status_code == 400
  assert response.json() == {"detail": detail, "index": index}


@pytest.mark.anyio
async def test_wrongly_typed_fields_are_422_without_echoing_input(async_client: AsyncClient) -> None:
  response = await async_client.post("/v1/explanations", json={"imagesBase64": [12345], "maxPages": 50})

  assert response.status_code == 422
  errors = response.json()["detail"]
  assert len(errors) == 2
  assert all(error["loc"][0] == "body" for error in errors)
  assert all("input" not in error for error in errors)


@pytest.mark.anyio
async def test_missing_identity_is_401(async_client: AsyncClient) -> None:
  response = await async_client.post("/v1/explanations", json={"imageBase64": png_base64()}, headers={"x-user-id": ""})

  assert response.status_code == 401
  assert response.json()["detail"] == "Missing user identity."


@pytest.mark.anyio
async def test_enqueue_failure_is_503_and_job_is_failed(async_client: AsyncClient, settings: Settings) -> None:
  environment = make_environment(settings, publisher=FailingPublisher())
  app.state.environment = environment

  response = await async_client.post("/v1/explanations", json={"imagesBase64": [png_base64() for _ in range(5)]})

  assert response.status_code == 503
  [job] = environment.jobs_repo.all_jobs()
  assert job.status == "failed"
  assert job.error.message == "Enqueue failed"


@pytest.mark.anyio
async def test_sync_generation_failure_is_502_without_provider_text(async_client: AsyncClient, text_model: ScriptedTextModel) -> None:
  text_model.structured.extend(["secret prompt echo", "secret prompt echo", "secret prompt echo"])

  response = await async_client.post("/v1/explanations", json={"imageBase64": png_base64()})

  assert response.status_code == 502
  assert response.json()["detail"] == "Generation failed."
  assert "secret" not in response.text


@pytest.mark.anyio
async def test_health(async_client: AsyncClient) -> None:
  response = await async_client.get("/health")

  assert response.status_code == 200
  assert response.json()["status"] == "ok"
