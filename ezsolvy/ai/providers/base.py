"""Base interfaces for generation providers."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from ezsolvy.ai.errors import StructuredOutputError
from ezsolvy.ai.json_parser import parse_json_with_fallback


@dataclass(frozen=True)
class GenerationRequest:
  """Provider-agnostic request: instructions, an optional image and the expected output shape."""

  instructions: str
  image: bytes | None = None
  image_mime_type: str = "image/png"
  expect_structured: bool = False
  system: str | None = None


@dataclass
class SimpleModelResponse:
  """Free-text model response."""

  content: str
  usage: dict[str, int] | None = None


@dataclass
class StructuredModelResponse:
  """Parsed JSON model response; ``raw`` keeps the text the parse was made from."""

  content: dict[str, Any]
  raw: str
  usage: dict[str, int] | None = None


@dataclass(frozen=True)
class ImageArtifact:
  """Image bytes returned by an image-generation provider."""

  data: bytes
  mime_type: str


class AIModel(ABC):
  """Abstract base class for text and vision completion models."""

  name: str

  @abstractmethod
  async def generate(self, request: GenerationRequest) -> SimpleModelResponse:
    """Generate a response for the given request."""

  async def generate_structured(self, request: GenerationRequest) -> StructuredModelResponse:
    """Generate a JSON object, raising ``StructuredOutputError`` when the reply does not parse."""
    response = await self.generate(GenerationRequest(instructions=request.instructions, image=request.image, image_mime_type=request.image_mime_type, expect_structured=True, system=request.system))
    return StructuredModelResponse(content=parse_structured_content(response.content), raw=response.content, usage=response.usage)


class ImageModel(ABC):
  """Abstract base class for image generation and editing models."""

  name: str

  @abstractmethod
  async def render(self, prompt: str, *, source_image: bytes | None = None, source_mime_type: str = "image/png") -> ImageArtifact:
    """Render a new image, optionally editing ``source_image``."""


class Embedder(ABC):
  """Abstract base class for text embedding models."""

  name: str

  @abstractmethod
  async def embed(self, texts: list[str]) -> list[list[float]]:
    """Return one embedding vector per input text, in order."""


def parse_structured_content(text: str | None) -> dict[str, Any]:
  """Parse model text into a JSON object."""
  if not text or not text.strip():
    raise StructuredOutputError("Model returned an empty structured response", raw=text)

  try:
    parsed = parse_json_with_fallback(text)
  except json.JSONDecodeError as exc:
    raise StructuredOutputError(f"Model returned invalid JSON: {exc}", raw=text) from exc

  if not isinstance(parsed, dict):
    raise StructuredOutputError(f"Model returned JSON {type(parsed).__name__}, expected an object", raw=text)

  return parsed
