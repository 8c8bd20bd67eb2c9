"""Gemini model wrappers for video extraction, text generation, and embeddings."""

from aspect_rag.models.gemini.gemini_embeddings import GeminiEmbeddings, TaskType
from aspect_rag.models.gemini.gemini_llm import GeminiLLM, LLMGenerationConfig
from aspect_rag.models.gemini.gemini_vlm import (
    ContextLengthExceededError,
    GenerationConfig,
    GenerationError,
    GeminiVLM,
    SafetyBlockedError,
    SafetySettings,
    VLMError,
)

__all__ = [
    # VLM
    "GeminiVLM",
    "GenerationConfig",
    "SafetySettings",
    "VLMError",
    "SafetyBlockedError",
    "ContextLengthExceededError",
    "GenerationError",
    # LLM
    "GeminiLLM",
    "LLMGenerationConfig",
    # Embeddings
    "GeminiEmbeddings",
    "TaskType",
]
