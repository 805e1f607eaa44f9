from typing import Annotated

from fastapi import APIRouter, Depends, status

from ezsolvy.api.models import ExportQueuedResponse
from ezsolvy.core.environment import Environment, get_environment
from ezsolvy.core.security import RequestIdentity, get_request_identity

router = APIRouter()


@router.post("/{canvas_id}/export", response_model=ExportQueuedResponse, status_code=status.HTTP_202_ACCEPTED)
async def export_canvas(
  canvas_id: str,
  environment: Annotated[Environment, Depends(get_environment)],
  identity: Annotated[RequestIdentity, Depends(get_request_identity)],
) -> ExportQueuedResponse:
  """Queue a PDF export of a canvas."""
  return await environment.documents.export_canvas(canvas_id, identity)
