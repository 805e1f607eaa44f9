from __future__ import annotations

import pytest
from httpx import AsyncClient

from ezsolvy.ai.errors import TransientProviderError
from ezsolvy.core.environment import Environment
from ezsolvy.jobs.messages import ImageExplanationMessage, encode_message
from ezsolvy.jobs.models import JobRecord
from ezsolvy.utils.timestamps import now_iso
from tests.fakes import FakeImageModel, png_base64

SECRET_HEADERS = {"X-Ezsolvy-Task-Secret": "test-task-secret", "content-type": "application/json"}


async def _seed_job(environment: Environment) -> bytes:
  request = {"images_base64": [png_base64()]}
  now = now_iso()
  await environment.jobs_repo.create_job(JobRecord(job_id="job-1", job_type="image-explanation", status="queued", payload={"request": request}, created_at=now, updated_at=now, org_id="org-1"))
  return encode_message(ImageExplanationMessage(job_id="job-1", org_id="org-1", request=request))


@pytest.mark.anyio
@pytest.mark.parametrize("headers", [{}, {"X-Ezsolvy-Task-Secret": "wrong"}, {"authorization": "Bearer wrong"}])
async def test_consume_rejects_missing_or_bad_secret(async_client: AsyncClient, environment: Environment, headers: dict) -> None:
  body = await _seed_job(environment)

  response = await async_client.post("/internal/tasks/consume", content=body, headers=headers)

  assert response.status_code == 403
  job = await environment.jobs_repo.get_job("job-1")
  assert job.status == "queued"


@pytest.mark.anyio
async def test_consume_runs_job_and_acknowledges(async_client: AsyncClient, environment: Environment) -> None:
  body = await _seed_job(environment)

  response = await async_client.post("/internal/tasks/consume", content=body, headers=SECRET_HEADERS)

  assert response.status_code == 200
  assert response.json() == {"status": "done"}
  job = await environment.jobs_repo.get_job("job-1")
  assert job.status == "done"

  again = await async_client.post("/internal/tasks/consume", content=body, headers={"authorization": "Bearer test-task-secret"})
  assert again.json() == {"status": "skipped"}


@pytest.mark.anyio
async def test_consume_acknowledges_undecodable_body(async_client: AsyncClient) -> None:
  response = await async_client.post("/internal/tasks/consume", content=b"not a message", headers=SECRET_HEADERS)

  assert response.status_code == 200
  assert response.json() == {"status": "dropped"}


@pytest.mark.anyio
async def test_retryable_failure_republishes_and_asks_for_redelivery(async_client: AsyncClient, environment: Environment, image_model: FakeImageModel) -> None:
  image_model.always_fail = TransientProviderError("503 Service Unavailable")
  body = await _seed_job(environment)

  response = await async_client.post("/internal/tasks/consume", content=body, headers=SECRET_HEADERS)

  assert response.status_code == 500
  assert response.json() == {"status": "retry"}
  [retry] = environment.memory_queue.published
  assert retry.attempt == 1
  job = await environment.jobs_repo.get_job("job-1")
  assert job.status == "failed"
  assert job.error.kind == "transient"

  # The transport's own redelivery of attempt 0 is stale now.
  redelivered = await async_client.post("/internal/tasks/consume", content=body, headers=SECRET_HEADERS)
  assert redelivered.json() == {"status": "skipped"}
