from __future__ import annotations

import logging

from google.api_core import exceptions as gcp_exceptions
from google.cloud import tasks_v2
from starlette.concurrency import run_in_threadpool

from ezsolvy.config import Settings
from ezsolvy.jobs.messages import QueueMessage, encode_message, message_type

logger = logging.getLogger(__name__)

TASK_SECRET_HEADER = "X-Ezsolvy-Task-Secret"


class CloudTasksPublisher:
  """Publishes job messages as Cloud Tasks HTTP pushes to the internal consume endpoint."""

  def __init__(self, settings: Settings, client: tasks_v2.CloudTasksClient | None = None) -> None:
    if not settings.cloud_tasks_queue_path or not settings.base_url or not settings.task_secret:
      raise ValueError("Cloud Tasks publishing requires a queue path, base URL and task secret.")

    self._queue_path = settings.cloud_tasks_queue_path
    self._url = f"{settings.base_url.rstrip('/')}/internal/tasks/consume"
    self._task_secret = settings.task_secret
    self._invoker_service_account = settings.cloud_run_invoker_service_account
    self._client = client or tasks_v2.CloudTasksClient()

  def _build_task(self, message: QueueMessage) -> dict:
    http_request: dict = {
      "http_method": tasks_v2.HttpMethod.POST,
      "url": self._url,
      "headers": {"Content-Type": "application/json", TASK_SECRET_HEADER: self._task_secret},
      "body": encode_message(message),
    }
    # Cloud Run invoker auth rides on Authorization, so the shared secret uses its own header.
    if self._invoker_service_account:
      http_request["oidc_token"] = {"service_account_email": self._invoker_service_account}
    return {"http_request": http_request}

  async def publish(self, message: QueueMessage) -> None:
    task = self._build_task(message)
    try:
      response = await run_in_threadpool(self._client.create_task, request={"parent": self._queue_path, "task": task})
    except gcp_exceptions.GoogleAPICallError:
      logger.error("Failed to enqueue %s task for job %s attempt=%d", message_type(message), message.job_id, message.attempt, exc_info=True)
      raise

    logger.info("Enqueued task %s for job %s type=%s attempt=%d", response.name, message.job_id, message_type(message), message.attempt)
