"""Provider implementations."""

from ezsolvy.ai.providers.base import AIModel, Embedder, GenerationRequest, ImageArtifact, ImageModel, SimpleModelResponse, StructuredModelResponse
from ezsolvy.ai.providers.gemini import GeminiImageModel
from ezsolvy.ai.providers.openai_chat import OpenAIChatModel, OpenAIEmbedder

__all__ = ["AIModel", "Embedder", "GenerationRequest", "ImageArtifact", "ImageModel", "SimpleModelResponse", "StructuredModelResponse", "GeminiImageModel", "OpenAIChatModel", "OpenAIEmbedder"]
