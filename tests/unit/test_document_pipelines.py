from __future__ import annotations

import base64

import pytest

from ezsolvy.ai.errors import NotFoundError, SourceValidationError
from ezsolvy.ai.pipeline.explain import chunk_transcript, diagram_bbox
from ezsolvy.api.models import DocumentCreateBody
from ezsolvy.config import Settings
from ezsolvy.core.environment import Environment
from ezsolvy.core.security import RequestIdentity
from tests.fakes import QUESTION_ANALYSIS, FakeEmbedder, FakeImageModel, ScriptedTextModel, make_environment, run_queue

IDENTITY = RequestIdentity(org_id="org-1", user_id="user-1")
OTHER_ORG = RequestIdentity(org_id="org-2", user_id="user-9")


@pytest.fixture
def embedder() -> FakeEmbedder:
  return FakeEmbedder()


@pytest.fixture
def document_environment(settings: Settings, embedder: FakeEmbedder) -> Environment:
  text_model = ScriptedTextModel(default_structured=QUESTION_ANALYSIS, text="Start with the legs.\n\nSquare them and add.\n\nThe hypotenuse is 5.")
  return make_environment(settings, text_model=text_model, image_model=FakeImageModel(), embedder=embedder)


async def _typed_document(environment: Environment) -> str:
  created = await environment.documents.create_document(DocumentCreateBody(title="Triangles", source="typed", text="  Find the hypotenuse of a 3-4 right triangle.  "), IDENTITY)
  return created.document_id


@pytest.mark.anyio
async def test_explain_job_stores_diagrams_transcript_and_embeddings(document_environment: Environment, embedder: FakeEmbedder) -> None:
  document_id = await _typed_document(document_environment)
  await run_queue(document_environment)

  document = await document_environment.documents.get_document(document_id, IDENTITY)
  [asset] = document.assets
  assert asset["kind"] == "diagram"
  assert asset["position"] == 0
  assert asset["bbox"] == diagram_bbox(0)
  assert asset["meta"]["title"] == "Figure 1: Triangle"
  assert asset["url"].startswith("data:image/webp;base64,")
  [transcript] = document.transcripts
  assert transcript["text"].endswith("The hypotenuse is 5.")
  assert embedder.calls == [["Start with the legs.", "Square them and add.", "The hypotenuse is 5."]]

  [job] = [job for job in document_environment.jobs_repo.all_jobs() if job.job_type == "explain"]
  assert job.status == "done"
  assert job.progress.result["embedding_count"] == 3
  assert job.progress.result["asset_ids"] == [asset["asset_id"]]


@pytest.mark.anyio
async def test_explain_without_research_model_still_completes(document_environment: Environment) -> None:
  assert document_environment.providers.research_model is None
  await _typed_document(document_environment)
  await run_queue(document_environment)

  assert [job.status for job in document_environment.jobs_repo.all_jobs()] == ["done"]


@pytest.mark.anyio
async def test_research_notes_feed_the_transcript_prompt(settings: Settings) -> None:
  text_model = ScriptedTextModel(default_structured=QUESTION_ANALYSIS, text="Walkthrough.")
  research_model = ScriptedTextModel(text="Pythagoras proved it around 500 BC.")
  environment = make_environment(settings, text_model=text_model, research_model=research_model)
  await _typed_document(environment)
  await run_queue(environment)

  assert len(research_model.calls) == 1
  transcript_prompt = text_model.calls[-1].instructions
  assert "Pythagoras proved it around 500 BC." in transcript_prompt


@pytest.mark.anyio
async def test_pdf_source_document_fails_permanently(document_environment: Environment) -> None:
  await document_environment.documents.create_document(DocumentCreateBody(title="Scan", source="pdf", file_url="https://files.example.com/scan.pdf"), IDENTITY)
  await run_queue(document_environment)

  [job] = document_environment.jobs_repo.all_jobs()
  assert job.status == "failed"
  assert job.error.kind == "permanent"
  assert len(document_environment.memory_queue.published) == 1


@pytest.mark.anyio
async def test_typed_document_requires_text(document_environment: Environment) -> None:
  with pytest.raises(SourceValidationError):
    await document_environment.documents.create_document(DocumentCreateBody(title="Empty", source="typed", text="   "), IDENTITY)
  assert document_environment.jobs_repo.all_jobs() == []


@pytest.mark.anyio
async def test_export_renders_pdf_with_figures(document_environment: Environment) -> None:
  document_id = await _typed_document(document_environment)
  await run_queue(document_environment)
  document = await document_environment.documents.get_document(document_id, IDENTITY)
  canvas_id = document.canvases[0]["canvas_id"]

  queued = await document_environment.documents.export_canvas(canvas_id, IDENTITY)
  await run_queue(document_environment)

  job = await document_environment.jobs_repo.get_job(queued.job_id)
  assert job.status == "done"
  pdf_url = job.progress.result["pdf_url"]
  assert pdf_url.startswith("data:application/pdf;base64,")
  pdf = base64.b64decode(pdf_url.split(",", 1)[1])
  assert pdf.startswith(b"%PDF")
  stored = document_environment.asset_storage.objects[("exports", f"org-1/exports/{canvas_id}/{queued.job_id}.pdf")]
  assert stored == pdf


@pytest.mark.anyio
async def test_export_of_unknown_canvas_is_not_found(document_environment: Environment) -> None:
  with pytest.raises(NotFoundError):
    await document_environment.documents.export_canvas("missing", IDENTITY)
  with pytest.raises(NotFoundError):
    await document_environment.documents.get_document("missing", IDENTITY)


@pytest.mark.anyio
async def test_other_org_cannot_read_document_or_export_its_canvas(document_environment: Environment) -> None:
  document_id = await _typed_document(document_environment)
  canvas_id = (await document_environment.documents.get_document(document_id, IDENTITY)).canvases[0]["canvas_id"]

  with pytest.raises(NotFoundError):
    await document_environment.documents.get_document(document_id, OTHER_ORG)
  with pytest.raises(NotFoundError):
    await document_environment.documents.export_canvas(canvas_id, OTHER_ORG)
  assert [job.job_type for job in document_environment.jobs_repo.all_jobs()] == ["explain"]

def test_chunk_transcript_drops_blank_paragraphs() -> None:
  assert chunk_transcript("One.\n\n\n\n  Two.  \n\n") == ["One.", "Two."]
