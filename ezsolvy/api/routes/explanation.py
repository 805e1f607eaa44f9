import logging
from typing import Annotated

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from ezsolvy.api.models import AsyncExplanationResponse, ExplanationBody, SyncExplanationResponse
from ezsolvy.core.environment import Environment, get_environment
from ezsolvy.core.security import RequestIdentity, get_request_identity
from ezsolvy.services.dispatch import QUEUED_MESSAGE

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("", response_model=SyncExplanationResponse | AsyncExplanationResponse, responses={202: {"model": AsyncExplanationResponse}})
async def create_explanation(
  body: ExplanationBody,
  environment: Annotated[Environment, Depends(get_environment)],
  identity: Annotated[RequestIdentity, Depends(get_request_identity)],
) -> JSONResponse:
  """Explain worksheet images inline, or queue them when the request is too large."""
  outcome = await environment.dispatch_router.dispatch(body.to_request(), identity)
  if outcome.mode == "sync" and outcome.result is not None:
    response = SyncExplanationResponse(result=outcome.result)
    return JSONResponse(status_code=status.HTTP_200_OK, content=response.model_dump(mode="json"))

  queued = AsyncExplanationResponse(job_id=outcome.job_id or "", message=QUEUED_MESSAGE)
  return JSONResponse(status_code=status.HTTP_202_ACCEPTED, content=queued.model_dump(mode="json"))
