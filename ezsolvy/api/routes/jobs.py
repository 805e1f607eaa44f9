import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from ezsolvy.api.models import JobStatusResponse
from ezsolvy.core.environment import Environment, get_environment
from ezsolvy.core.security import RequestIdentity, get_request_identity
from ezsolvy.services import jobs as job_service

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/{job_id}", response_model=JobStatusResponse)
async def get_job_status(
  job_id: str,
  environment: Annotated[Environment, Depends(get_environment)],
  identity: Annotated[RequestIdentity, Depends(get_request_identity)],
) -> JobStatusResponse:
  """Fetch the status, progress and error of a background job."""
  return await job_service.get_job_status(environment.jobs_repo, job_id, identity.org_id)


@router.get("/{job_id}/stream")
async def stream_job_status(
  job_id: str,
  request: Request,
  environment: Annotated[Environment, Depends(get_environment)],
  identity: Annotated[RequestIdentity, Depends(get_request_identity)],
) -> StreamingResponse:
  """Stream job snapshots as server-sent events until the job is terminal or the client leaves."""
  logger.info("Opening job stream for %s", job_id)
  frames = environment.streamer.frames(job_id, identity.org_id, is_disconnected=request.is_disconnected)
  return StreamingResponse(frames, media_type="text/event-stream", headers={"Cache-Control": "no-cache", "Connection": "keep-alive", "X-Accel-Buffering": "no"})
