"""Prompt builders for the explanation and document pipelines."""

from __future__ import annotations

import json

from ezsolvy.ai.pipeline.contracts import DiagramSpec, ImageAnalysis, QuestionAnalysis, RenderingPlan

DEFAULT_AUDIENCE = "Beginner learner"

ANALYSIS_SYSTEM = "You are a meticulous tutor who reads worksheets and plans how to explain them. Reply with JSON only."

NARRATION_SYSTEM = "You are a friendly tutor. Explain in plain language, short sentences, no markdown headings."


def analysis_prompt(*, page_number: int, audience: str | None, prompt_hint: str | None) -> str:
  lines = [
    f"Analyze worksheet page {page_number}.",
    "Decide between two layout modes:",
    '- "annotate" when every answer fits in the whitespace already on the page;',
    '- "expand" when the content must be redrawn across clean pages.',
    "List every sub-question with answer guidance and, if helpful, diagram guidance.",
    "In annotate mode give annotation zones as percentages of the page (0-100) for each overlay.",
    f"Audience: {audience or DEFAULT_AUDIENCE}.",
  ]
  if prompt_hint:
    lines.append(f"Learner note: {prompt_hint}")

  schema = {
    "mode": "annotate | expand",
    "reasoning": "string",
    "questions": [
      {
        "id": "string",
        "question_text": "string",
        "has_whitespace_below": "boolean",
        "answer_instructions": "string",
        "diagram_instructions": "string",
        "annotation_zones": [{"label": "string", "x_pct": 0, "y_pct": 0, "width_pct": 0, "height_pct": 0, "notes": "string"}],
      }
    ],
  }
  lines.append("Return a JSON object shaped like:")
  lines.append(json.dumps(schema, indent=2))
  return "\n".join(lines)


def narration_prompt(*, analysis: ImageAnalysis, plan: RenderingPlan, audience: str | None, prompt_hint: str | None) -> str:
  lines = [
    f"Write a spoken-style walkthrough for a {audience or DEFAULT_AUDIENCE}.",
    "Refer to pages as [Page N] using the plan's page numbers.",
    "Cover every question in order and keep each explanation short.",
  ]
  if prompt_hint:
    lines.append(f"Learner note: {prompt_hint}")
  lines.append("Analysis:")
  lines.append(analysis.model_dump_json(indent=2))
  lines.append("Plan:")
  lines.append(plan.model_dump_json(indent=2))
  return "\n".join(lines)


def render_prompt(plan: RenderingPlan) -> str:
  lines = [plan.summary, "Use clean handwriting-style marks in a contrasting colour."]
  for page in plan.pages:
    lines.append(f"Page {page.page_number}: {page.title}")
    lines.extend(f"- {instruction}" for instruction in page.instructions)
  return "\n".join(lines)


def question_analysis_prompt(text: str) -> str:
  schema = {"subject": "string", "summary": "string", "concepts": ["string"], "diagrams": [{"kind": "graph | geometry | flowchart | illustration", "description": "string"}]}
  return "\n".join(
    [
      "Read the question below. Identify the subject, summarize what is being asked,",
      "list the concepts a learner needs, and list up to four diagrams that would help.",
      "Return a JSON object shaped like:",
      json.dumps(schema, indent=2),
      "Question:",
      text,
    ]
  )


def research_prompt(analysis: QuestionAnalysis, text: str) -> str:
  concepts = ", ".join(analysis.concepts) or analysis.subject
  return f"Give accurate background notes (definitions, formulas, common mistakes) for a {analysis.subject} question about: {concepts}.\nQuestion: {text}"


def diagram_prompt(spec: DiagramSpec) -> str:
  return f"Draw a clear, labeled {spec.kind} diagram on a white background titled '{spec.title}'. {spec.prompt}"


def transcript_prompt(*, text: str, analysis: QuestionAnalysis, research: str, diagrams: list[DiagramSpec]) -> str:
  lines = [
    f"Explain how to solve this {analysis.subject} question step by step for a {DEFAULT_AUDIENCE}.",
    "Separate paragraphs with blank lines.",
    "Question:",
    text,
    "Background notes:",
    research or "(none)",
  ]
  if diagrams:
    lines.append("Refer to these diagrams by title where useful:")
    lines.extend(f"- {spec.title}" for spec in diagrams)
  return "\n".join(lines)
