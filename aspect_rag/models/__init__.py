"""Provider capability interfaces and implementations."""

from .base import (
    EmbeddingProvider,
    FrameSample,
    QualityLevel,
    TextGenerationOptions,
    TextGenerationResult,
    TextGenerator,
    VideoAnalyzer,
)

__all__ = [
    "EmbeddingProvider",
    "TextGenerator",
    "VideoAnalyzer",
    "FrameSample",
    "QualityLevel",
    "TextGenerationOptions",
    "TextGenerationResult",
]
