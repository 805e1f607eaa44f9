from __future__ import annotations

import json
import re

import pytest
from httpx import AsyncClient

from ezsolvy.core.environment import Environment
from ezsolvy.jobs.models import JobError
from tests.fakes import png_base64, run_queue


def _frames(text: str) -> list[dict]:
  return [json.loads(chunk[len("data: ") :]) for chunk in text.split("\n\n") if chunk.startswith("data: ")]


async def _queue_six_pages(async_client: AsyncClient) -> str:
  response = await async_client.post("/v1/explanations", json={"imagesBase64": [png_base64((index * 40, 10, 10)) for index in range(6)]})
  assert response.status_code == 202
  body = response.json()
  assert body["mode"] == "async"
  assert body["message"] == "Explanation request queued for processing."
  return body["job_id"]


@pytest.mark.anyio
async def test_large_request_is_queued_then_completed_by_consumer(async_client: AsyncClient, environment: Environment) -> None:
  job_id = await _queue_six_pages(async_client)

  queued = await async_client.get(f"/v1/jobs/{job_id}")
  assert queued.status_code == 200
  assert queued.json()["status"] == "queued"
  assert queued.json()["type"] == "image-explanation"
  assert queued.json()["error"] is None

  await run_queue(environment)

  done = (await async_client.get(f"/v1/jobs/{job_id}")).json()
  assert done["status"] == "done"
  assert done["error"] is None
  assert done["progress"]["step"] == "complete"
  assert done["progress"]["step_index"] == done["progress"]["total_steps"] == 24
  transcript = done["progress"]["result"]["transcript"]
  assert re.findall(r"^Page (\d+):$", transcript, flags=re.MULTILINE) == ["1", "2", "3", "4", "5", "6"]
  objects = [page["artifact"]["object_name"] for page in done["progress"]["result"]["pages"]]
  assert objects == [f"org-1/explanations/{job_id}/page-{number}.webp" for number in range(1, 7)]


@pytest.mark.anyio
async def test_unknown_job_is_404(async_client: AsyncClient) -> None:
  response = await async_client.get("/v1/jobs/does-not-exist")

  assert response.status_code == 404
  assert response.json() == {"detail": "Job not found."}


@pytest.mark.anyio
async def test_job_status_requires_identity(async_client: AsyncClient) -> None:
  response = await async_client.get("/v1/jobs/any", headers={"x-user-id": ""})

  assert response.status_code == 401


@pytest.mark.anyio
async def test_stream_of_completed_job_sends_one_complete_event(async_client: AsyncClient, environment: Environment) -> None:
  job_id = await _queue_six_pages(async_client)
  await run_queue(environment)

  response = await async_client.get(f"/v1/jobs/{job_id}/stream")

  assert response.status_code == 200
  assert response.headers["content-type"].startswith("text/event-stream")
  assert response.headers["cache-control"] == "no-cache"
  [event] = _frames(response.text)
  assert event["type"] == "complete"
  assert event["job_id"] == job_id
  assert event["data"]["status"] == "done"
  assert event["data"]["progress"]["result"]["transcript"].startswith("Page 1:")


@pytest.mark.anyio
async def test_stream_of_failed_job_sends_error_event(async_client: AsyncClient, environment: Environment) -> None:
  job_id = await _queue_six_pages(async_client)
  await environment.jobs_repo.update_job(job_id, status="failed", error=JobError(message="Rendering failed", kind="permanent"))

  response = await async_client.get(f"/v1/jobs/{job_id}/stream")

  [event] = _frames(response.text)
  assert event["type"] == "error"
  assert event["data"]["error"]["message"] == "Rendering failed"


@pytest.mark.anyio
async def test_stream_of_unknown_job_sends_not_found_event(async_client: AsyncClient) -> None:
  response = await async_client.get("/v1/jobs/missing/stream")

  assert response.status_code == 200
  [event] = _frames(response.text)
  assert event == {"type": "error", "job_id": "missing", "timestamp": event["timestamp"], "data": {"message": "Job not found"}}


@pytest.mark.anyio
async def test_job_of_another_org_is_hidden(async_client: AsyncClient, environment: Environment) -> None:
  job_id = await _queue_six_pages(async_client)
  await run_queue(environment)
  intruder = {"x-user-id": "intruder", "x-org-id": "org-2"}

  status = await async_client.get(f"/v1/jobs/{job_id}", headers=intruder)
  stream = await async_client.get(f"/v1/jobs/{job_id}/stream", headers=intruder)

  assert status.status_code == 404
  assert status.json() == {"detail": "Job not found."}
  [event] = _frames(stream.text)
  assert event["data"] == {"message": "Job not found"}
