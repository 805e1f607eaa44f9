from __future__ import annotations

import base64
from dataclasses import replace

import pytest

from ezsolvy.ai.errors import SourceValidationError, TransientProviderError
from ezsolvy.ai.pipeline.contracts import ExplanationRequest
from ezsolvy.api.models import ExplanationBody
from ezsolvy.config import Settings
from ezsolvy.core.security import RequestIdentity
from ezsolvy.services.dispatch import DispatchRouter
from tests.fakes import FailingPublisher, RecordingJobsRepository, make_environment, png_base64

IDENTITY = RequestIdentity(org_id="org-1", user_id="user-1")


def _router(settings: Settings, **overrides: object) -> DispatchRouter:
  return make_environment(replace(settings, **overrides)).dispatch_router


def test_rejects_request_without_images(settings: Settings) -> None:
  with pytest.raises(SourceValidationError) as excinfo:
    _router(settings).validate([])
  assert excinfo.value.status_code == 400
  assert excinfo.value.index is None


def test_reports_index_of_empty_item(settings: Settings) -> None:
  with pytest.raises(SourceValidationError) as excinfo:
    _router(settings).validate([png_base64(), "   "])
  assert str(excinfo.value) == "Image at index 1 is empty."
  assert excinfo.value.index == 1


def test_reports_index_of_malformed_item(settings: Settings) -> None:
  with pytest.raises(SourceValidationError) as excinfo:
    _router(settings).validate(["abc$", png_base64()])
  assert str(excinfo.value) == "Image at index 0 is not valid base64."
  assert excinfo.value.status_code == 400


def test_oversized_item_is_413_with_size_in_message(settings: Settings) -> None:
  big = base64.b64encode(b"x" * (6 * 1024 * 1024 + 1)).decode("ascii")
  with pytest.raises(SourceValidationError) as excinfo:
    _router(settings).validate([png_base64(), png_base64(), big])
  assert excinfo.value.status_code == 413
  assert excinfo.value.index == 2
  assert str(excinfo.value) == "Image at index 2 exceeds 6MB after decoding."


def test_validate_strips_data_uri_prefix_and_whitespace(settings: Settings) -> None:
  source = png_base64()
  wrapped = f"data:image/png;base64,{source[:10]}\n{source[10:]}"
  assert _router(settings).validate([wrapped]) == [source]


def test_mode_follows_item_count_threshold(settings: Settings) -> None:
  router = _router(settings, sync_max_items=2)
  assert router.choose_mode(ExplanationRequest(images_base64=["a", "b"])) == "sync"
  assert router.choose_mode(ExplanationRequest(images_base64=["a", "b", "c"])) == "async"


def test_body_puts_single_image_first() -> None:
  body = ExplanationBody.model_validate({"imageBase64": " first ", "imagesBase64": ["second", ""], "maxPages": 3})
  assert body.sources() == ["first", "second", ""]
  assert body.to_request().max_pages == 3


@pytest.mark.anyio
async def test_validation_failure_creates_no_job(settings: Settings) -> None:
  jobs_repo = RecordingJobsRepository()
  router = make_environment(replace(settings, sync_max_items=1), jobs_repo=jobs_repo).dispatch_router

  with pytest.raises(SourceValidationError):
    await router.dispatch(ExplanationRequest(images_base64=[png_base64(), "!!!!"]), IDENTITY)

  assert jobs_repo.all_jobs() == []


@pytest.mark.anyio
async def test_async_dispatch_creates_queued_job_and_publishes(settings: Settings) -> None:
  environment = make_environment(replace(settings, sync_max_items=1))

  outcome = await environment.dispatch_router.dispatch(ExplanationRequest(images_base64=[png_base64(), png_base64()], audience="grade 4"), IDENTITY)

  assert outcome.mode == "async"
  job = await environment.jobs_repo.get_job(outcome.job_id)
  assert job.status == "queued"
  assert job.org_id == "org-1"
  assert job.payload["request"]["audience"] == "grade 4"
  [message] = environment.memory_queue.published
  assert message.job_id == outcome.job_id
  assert message.attempt == 0


@pytest.mark.anyio
async def test_publish_failure_marks_job_failed(settings: Settings) -> None:
  jobs_repo = RecordingJobsRepository()
  router = make_environment(replace(settings, sync_max_items=1), jobs_repo=jobs_repo, publisher=FailingPublisher()).dispatch_router

  with pytest.raises(TransientProviderError):
    await router.dispatch(ExplanationRequest(images_base64=[png_base64(), png_base64()]), IDENTITY)

  [job] = jobs_repo.all_jobs()
  assert job.status == "failed"
  assert job.error.message == "Enqueue failed"
