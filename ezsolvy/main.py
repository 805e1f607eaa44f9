from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from ezsolvy import __version__
from ezsolvy.ai.errors import PipelineError
from ezsolvy.api.routes import canvas, documents, explanation, jobs, tasks
from ezsolvy.config import get_settings
from ezsolvy.core.exceptions import global_exception_handler, http_exception_handler, pipeline_exception_handler, request_validation_exception_handler
from ezsolvy.core.lifespan import lifespan
from ezsolvy.core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware

settings = get_settings()

app = FastAPI(title="ezsolvy", version=__version__, lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)

app.add_middleware(
  CORSMiddleware,
  allow_origins=settings.allowed_origins,
  allow_credentials=True,
  allow_methods=["GET", "POST", "OPTIONS"],
  allow_headers=["content-type", "authorization", "x-org-id", "x-user-id"],
  expose_headers=["content-length", "x-request-id"],
)

# Add exception handlers
app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(PipelineError, pipeline_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

# Add middleware
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok", "version": __version__}


app.include_router(explanation.router, prefix="/v1/explanations", tags=["explanations"])
app.include_router(jobs.router, prefix="/v1/jobs", tags=["jobs"])
app.include_router(documents.router, prefix="/v1/documents", tags=["documents"])
app.include_router(canvas.router, prefix="/v1/canvas", tags=["canvas"])
app.include_router(tasks.router, prefix="/internal", tags=["tasks"])
