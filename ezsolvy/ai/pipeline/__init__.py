"""Pipeline contracts and step orchestration."""

from ezsolvy.ai.pipeline.contracts import ArtifactRef, ExplanationRequest, ExplanationResult, ImageAnalysis, PageResult, RenderingPlan, StepCallback

__all__ = ["ArtifactRef", "ExplanationRequest", "ExplanationResult", "ImageAnalysis", "PageResult", "RenderingPlan", "StepCallback"]
