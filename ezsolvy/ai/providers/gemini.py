"""Gemini image generation client using the google-genai SDK."""

from __future__ import annotations

import logging

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from ezsolvy.ai.errors import MissingArtifactError, PermanentPipelineError, PipelineError, TransientProviderError
from ezsolvy.ai.providers.base import ImageArtifact, ImageModel

logger = logging.getLogger(__name__)


def translate_gemini_error(exc: Exception) -> PipelineError:
  """Map google-genai and transport exceptions onto transient vs permanent failures."""
  if isinstance(exc, httpx.TransportError):
    return TransientProviderError(f"Gemini transport failure: {exc}")

  if isinstance(exc, genai_errors.ServerError):
    return TransientProviderError(f"Gemini server error: {exc}")

  if isinstance(exc, genai_errors.APIError):
    if exc.code in {408, 429}:
      return TransientProviderError(f"Gemini rate limited the request: {exc}")
    return PermanentPipelineError(f"Gemini rejected the request ({exc.code}): {exc}")

  return PermanentPipelineError(f"Gemini image generation failed: {exc}")


class GeminiImageModel(ImageModel):
  """Image editing/generation with a Gemini image model."""

  def __init__(self, name: str, *, api_key: str | None) -> None:
    if not api_key:
      raise ValueError("EZSOLVY_GEMINI_API_KEY is required for image generation.")

    self.name = name
    self._client = genai.Client(api_key=api_key)

  async def render(self, prompt: str, *, source_image: bytes | None = None, source_mime_type: str = "image/png") -> ImageArtifact:
    contents: list = []
    if source_image is not None:
      contents.append(types.Part.from_bytes(data=source_image, mime_type=source_mime_type))
    contents.append(prompt)

    try:
      response = await self._client.aio.models.generate_content(model=self.name, contents=contents, config=types.GenerateContentConfig(response_modalities=["IMAGE", "TEXT"]))
    except (genai_errors.APIError, httpx.TransportError) as exc:
      raise translate_gemini_error(exc) from exc

    # Walk parts rather than trusting response.text; image bytes arrive as inline data.
    for part in response.parts or []:
      inline = part.inline_data
      if inline is not None and inline.data:
        return ImageArtifact(data=inline.data, mime_type=inline.mime_type or "image/png")

    logger.warning("Gemini response for model=%s carried no image data", self.name)
    raise MissingArtifactError("Image provider response did not include an image.")
