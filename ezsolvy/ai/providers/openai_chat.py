"""OpenAI-compatible chat and embedding clients (OpenAI itself, Perplexity)."""

from __future__ import annotations

import base64
import logging

import openai
from openai import AsyncOpenAI

from ezsolvy.ai.errors import PermanentPipelineError, PipelineError, TransientProviderError
from ezsolvy.ai.providers.base import AIModel, Embedder, GenerationRequest, SimpleModelResponse

logger = logging.getLogger(__name__)


def translate_openai_error(exc: Exception) -> PipelineError:
  """Map SDK exceptions onto transient vs permanent failures."""
  if isinstance(exc, openai.APIConnectionError | openai.RateLimitError | openai.InternalServerError):
    return TransientProviderError(f"OpenAI-compatible provider unavailable: {exc}")

  if isinstance(exc, openai.APIStatusError):
    if exc.status_code in {408, 409, 429} or exc.status_code >= 500:
      return TransientProviderError(f"OpenAI-compatible provider returned {exc.status_code}: {exc}")
    return PermanentPipelineError(f"OpenAI-compatible provider rejected the request ({exc.status_code}): {exc}")

  return PermanentPipelineError(f"OpenAI-compatible provider failed: {exc}")


def _usage(completion: object) -> dict[str, int] | None:
  usage = getattr(completion, "usage", None)
  if usage is None:
    return None
  return {"prompt_tokens": usage.prompt_tokens, "completion_tokens": usage.completion_tokens, "total_tokens": usage.total_tokens}


class OpenAIChatModel(AIModel):
  """Chat completion client; images are sent inline as data URIs."""

  def __init__(self, name: str, *, api_key: str | None, base_url: str | None = None, supports_json_mode: bool = True, timeout: float = 120.0) -> None:
    if not api_key:
      raise ValueError(f"An API key is required for model '{name}'.")

    self.name = name
    self._supports_json_mode = supports_json_mode
    self._client = AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0)

  def _messages(self, request: GenerationRequest) -> list[dict]:
    messages: list[dict] = []
    if request.system:
      messages.append({"role": "system", "content": request.system})

    if request.image is None:
      messages.append({"role": "user", "content": request.instructions})
      return messages

    encoded = base64.b64encode(request.image).decode("ascii")
    content = [{"type": "text", "text": request.instructions}, {"type": "image_url", "image_url": {"url": f"data:{request.image_mime_type};base64,{encoded}"}}]
    messages.append({"role": "user", "content": content})
    return messages

  async def generate(self, request: GenerationRequest) -> SimpleModelResponse:
    kwargs: dict = {"model": self.name, "messages": self._messages(request)}
    if request.expect_structured and self._supports_json_mode:
      kwargs["response_format"] = {"type": "json_object"}

    try:
      completion = await self._client.chat.completions.create(**kwargs)
    except openai.OpenAIError as exc:
      raise translate_openai_error(exc) from exc

    choice = completion.choices[0] if completion.choices else None
    content = choice.message.content if choice is not None else None
    logger.debug("Completion model=%s chars=%s", self.name, len(content or ""))
    return SimpleModelResponse(content=content or "", usage=_usage(completion))


class OpenAIEmbedder(Embedder):
  """Embedding client for the OpenAI embeddings endpoint."""

  def __init__(self, name: str, *, api_key: str | None, base_url: str | None = None) -> None:
    if not api_key:
      raise ValueError(f"An API key is required for embedding model '{name}'.")

    self.name = name
    self._client = AsyncOpenAI(api_key=api_key, base_url=base_url, max_retries=0)

  async def embed(self, texts: list[str]) -> list[list[float]]:
    if not texts:
      return []

    try:
      response = await self._client.embeddings.create(model=self.name, input=texts)
    except openai.OpenAIError as exc:
      raise translate_openai_error(exc) from exc

    ordered = sorted(response.data, key=lambda item: item.index)
    return [list(item.embedding) for item in ordered]
