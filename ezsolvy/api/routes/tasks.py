from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from ezsolvy.core.environment import Environment, get_environment
from ezsolvy.core.security import require_task_secret

router = APIRouter(prefix="/tasks", tags=["tasks"])
logger = logging.getLogger(__name__)


@router.post("/consume", dependencies=[Depends(require_task_secret)])
async def consume_task(request: Request, environment: Annotated[Environment, Depends(get_environment)]) -> JSONResponse:
  """
  Push endpoint for Cloud Tasks.
  A 2xx acknowledges the delivery; a 5xx asks Cloud Tasks to deliver it again.
  """
  body = await request.body()
  try:
    outcome = await environment.consumer.handle(body)
  except Exception:
    logger.error("Task delivery failed; requesting redelivery", exc_info=True)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"status": "retry"})

  return JSONResponse(status_code=status.HTTP_200_OK, content={"status": outcome})
