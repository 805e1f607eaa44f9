"""Explicit dependency record built once at startup and handed to routes and workers."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import HTTPException, Request, status

from ezsolvy.ai.pipeline.explain import DocumentExplainPipeline
from ezsolvy.ai.pipeline.explanation import ExplanationPipeline
from ezsolvy.ai.pipeline.export import PdfExportPipeline
from ezsolvy.ai.providers import AIModel, Embedder, GeminiImageModel, ImageModel, OpenAIChatModel, OpenAIEmbedder
from ezsolvy.config import Settings
from ezsolvy.jobs.dispatch import JobHandlerRegistry
from ezsolvy.jobs.handlers import DocumentExplainHandler, ImageExplanationHandler, PdfExportHandler
from ezsolvy.jobs.worker import QueueConsumer
from ezsolvy.services.dispatch import DispatchRouter
from ezsolvy.services.documents import DocumentService
from ezsolvy.services.job_stream import JobStatusStreamer, PollingJobStatusSource
from ezsolvy.services.pdf_composer import DocumentComposer, ReportLabComposer
from ezsolvy.services.storage_client import AssetStorage, build_asset_storage
from ezsolvy.services.tasks.factory import get_queue_publisher
from ezsolvy.services.tasks.interface import QueuePublisher
from ezsolvy.services.tasks.memory import InMemoryQueue
from ezsolvy.storage.documents_repo import DocumentsRepository
from ezsolvy.storage.jobs_repo import JobsRepository
from ezsolvy.storage.memory import InMemoryDocumentsRepository, InMemoryJobsRepository
from ezsolvy.storage.postgres_documents_repo import PostgresDocumentsRepository
from ezsolvy.storage.postgres_jobs_repo import PostgresJobsRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Providers:
  text_model: AIModel
  narration_model: AIModel
  research_model: AIModel | None
  image_model: ImageModel
  embedder: Embedder


@dataclass(frozen=True)
class Environment:
  """Everything a request or a queue delivery needs, wired explicitly."""

  settings: Settings
  jobs_repo: JobsRepository
  documents_repo: DocumentsRepository
  asset_storage: AssetStorage
  publisher: QueuePublisher
  providers: Providers
  composer: DocumentComposer
  dispatch_router: DispatchRouter
  documents: DocumentService
  consumer: QueueConsumer
  streamer: JobStatusStreamer

  @property
  def memory_queue(self) -> InMemoryQueue | None:
    """The in-process queue when it is the configured transport."""
    return self.publisher if isinstance(self.publisher, InMemoryQueue) else None


def build_providers(settings: Settings) -> Providers:
  """Create provider clients from settings; the research model is optional."""
  research_model = None
  if settings.perplexity_api_key:
    research_model = OpenAIChatModel(settings.research_model, api_key=settings.perplexity_api_key, base_url=settings.perplexity_base_url, supports_json_mode=False)
  else:
    logger.info("EZSOLVY_PERPLEXITY_API_KEY not set; research step will be skipped")

  return Providers(
    text_model=OpenAIChatModel(settings.analysis_model, api_key=settings.openai_api_key, base_url=settings.openai_base_url),
    narration_model=OpenAIChatModel(settings.narration_model, api_key=settings.openai_api_key, base_url=settings.openai_base_url),
    research_model=research_model,
    image_model=GeminiImageModel(settings.image_model, api_key=settings.gemini_api_key),
    embedder=OpenAIEmbedder(settings.embedding_model, api_key=settings.openai_api_key, base_url=settings.openai_base_url),
  )


def build_job_registry(*, providers: Providers, documents_repo: DocumentsRepository, asset_storage: AssetStorage, composer: DocumentComposer, settings: Settings) -> JobHandlerRegistry:
  """Map each queue message type to its pipeline handler."""
  explanation = ExplanationPipeline(
    text_model=providers.text_model,
    narration_model=providers.narration_model,
    image_model=providers.image_model,
    asset_storage=asset_storage,
    analysis_max_attempts=settings.analysis_max_attempts,
  )
  explain = DocumentExplainPipeline(
    text_model=providers.text_model,
    narration_model=providers.narration_model,
    research_model=providers.research_model,
    image_model=providers.image_model,
    embedder=providers.embedder,
    documents_repo=documents_repo,
    asset_storage=asset_storage,
    analysis_max_attempts=settings.analysis_max_attempts,
  )
  export = PdfExportPipeline(documents_repo=documents_repo, asset_storage=asset_storage, composer=composer)
  return JobHandlerRegistry(
    {
      "image-explanation": ImageExplanationHandler(explanation),
      "explain": DocumentExplainHandler(explain),
      "pdf": PdfExportHandler(export),
    }
  )


def assemble_environment(
  settings: Settings,
  *,
  providers: Providers,
  jobs_repo: JobsRepository,
  documents_repo: DocumentsRepository,
  asset_storage: AssetStorage,
  publisher: QueuePublisher,
  composer: DocumentComposer | None = None,
) -> Environment:
  """Wire services from already-built collaborators."""
  composer = composer or ReportLabComposer()
  registry = build_job_registry(providers=providers, documents_repo=documents_repo, asset_storage=asset_storage, composer=composer, settings=settings)
  sync_pipeline = ExplanationPipeline(
    text_model=providers.text_model,
    narration_model=providers.narration_model,
    image_model=providers.image_model,
    asset_storage=asset_storage,
    analysis_max_attempts=settings.analysis_max_attempts,
  )
  return Environment(
    settings=settings,
    jobs_repo=jobs_repo,
    documents_repo=documents_repo,
    asset_storage=asset_storage,
    publisher=publisher,
    providers=providers,
    composer=composer,
    dispatch_router=DispatchRouter(jobs_repo=jobs_repo, publisher=publisher, pipeline=sync_pipeline, settings=settings),
    documents=DocumentService(documents_repo=documents_repo, jobs_repo=jobs_repo, publisher=publisher),
    consumer=QueueConsumer(jobs_repo=jobs_repo, publisher=publisher, registry=registry, max_attempts=settings.max_attempts),
    streamer=JobStatusStreamer(PollingJobStatusSource(jobs_repo, interval_seconds=settings.stream_poll_seconds)),
  )


def build_environment(settings: Settings) -> Environment:
  """Build the runtime environment from settings."""
  if settings.pg_dsn:
    jobs_repo: JobsRepository = PostgresJobsRepository()
    documents_repo: DocumentsRepository = PostgresDocumentsRepository()
  else:
    logger.warning("EZSOLVY_PG_DSN not set; jobs and documents are kept in memory")
    jobs_repo = InMemoryJobsRepository()
    documents_repo = InMemoryDocumentsRepository()

  return assemble_environment(
    settings,
    providers=build_providers(settings),
    jobs_repo=jobs_repo,
    documents_repo=documents_repo,
    asset_storage=build_asset_storage(settings),
    publisher=get_queue_publisher(settings),
  )


def get_environment(request: Request) -> Environment:
  """FastAPI dependency returning the environment built at startup."""
  environment = getattr(request.app.state, "environment", None)
  if environment is None:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Service is starting up.")
  return environment
