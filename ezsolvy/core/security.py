from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from ezsolvy.config import Settings, get_settings
from ezsolvy.services.tasks.gcp import TASK_SECRET_HEADER

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestIdentity:
  """Caller identity forwarded by the gateway."""

  org_id: str
  user_id: str


async def get_request_identity(x_user_id: Annotated[str | None, Header()] = None, x_org_id: Annotated[str | None, Header()] = None) -> RequestIdentity:
  """Resolve the caller from gateway headers; the org defaults to the user."""
  user_id = (x_user_id or "").strip()
  if not user_id:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing user identity.")
  org_id = (x_org_id or "").strip() or user_id
  return RequestIdentity(org_id=org_id, user_id=user_id)


async def require_task_secret(
  settings: Annotated[Settings, Depends(get_settings)],
  authorization: Annotated[str | None, Header()] = None,
  task_secret: Annotated[str | None, Header(alias=TASK_SECRET_HEADER)] = None,
) -> None:
  """Authenticate queue push deliveries against the shared task secret."""
  # Task endpoints refuse all calls when no secret is configured.
  if not settings.task_secret:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Task authentication is not configured.")
  # OIDC tokens occupy Authorization, so the dedicated header is checked too.
  shared_secret_valid = secrets.compare_digest(task_secret or "", settings.task_secret)
  bearer_valid = secrets.compare_digest(authorization or "", f"Bearer {settings.task_secret}")
  if not shared_secret_valid and not bearer_valid:
    logger.warning("Unauthorized access attempt to the task consumer endpoint")
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid task secret.")
