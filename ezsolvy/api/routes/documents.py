from typing import Annotated

from fastapi import APIRouter, Depends, status

from ezsolvy.api.models import DocumentCreateBody, DocumentCreateResponse, DocumentResponse
from ezsolvy.core.environment import Environment, get_environment
from ezsolvy.core.security import RequestIdentity, get_request_identity

router = APIRouter()


@router.post("", response_model=DocumentCreateResponse, status_code=status.HTTP_202_ACCEPTED)
async def create_document(
  body: DocumentCreateBody,
  environment: Annotated[Environment, Depends(get_environment)],
  identity: Annotated[RequestIdentity, Depends(get_request_identity)],
) -> DocumentCreateResponse:
  """Create a document with a blank canvas and queue its explanation."""
  return await environment.documents.create_document(body, identity)


@router.get("/{document_id}", response_model=DocumentResponse)
async def get_document(
  document_id: str,
  environment: Annotated[Environment, Depends(get_environment)],
  identity: Annotated[RequestIdentity, Depends(get_request_identity)],
) -> DocumentResponse:
  """Return the document with its canvases, assets and transcripts."""
  return await environment.documents.get_document(document_id, identity)
