import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from ezsolvy.config import get_settings
from ezsolvy.core.database import dispose_db_engine
from ezsolvy.core.environment import build_environment
from ezsolvy.core.logging import initialize_logging
from ezsolvy.services.tasks.memory import run_consumer_loop


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Set up logging, build the environment and run the in-process consumer when configured."""
  settings = get_settings()
  logger = logging.getLogger("ezsolvy.core.lifespan")
  initialize_logging(settings)
  logger.info("Startup complete - logging verified.")

  # An environment installed before startup (tests) is used as-is.
  environment = getattr(app.state, "environment", None)
  if environment is None:
    environment = build_environment(settings)
    app.state.environment = environment

  try:
    await environment.asset_storage.ensure_buckets()
  except Exception:  # noqa: BLE001
    logger.warning("Failed to ensure storage buckets at startup", exc_info=True)

  consumer_task: asyncio.Task[None] | None = None
  queue = environment.memory_queue
  if queue is not None:
    consumer_task = asyncio.create_task(run_consumer_loop(queue, environment.consumer.process_batch))

  try:
    yield
  finally:
    if consumer_task is not None:
      consumer_task.cancel()
      with contextlib.suppress(asyncio.CancelledError):
        await consumer_task
      await queue.close()
    await dispose_db_engine()
    logger.info("Shutdown complete")
