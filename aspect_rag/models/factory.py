"""Build providers and stores from configuration."""

from __future__ import annotations

import logging
from typing import Any

from ..config import (
    get_analysis_config,
    get_embeddings_config,
    get_gemini_config,
    get_groq_config,
    get_providers_config,
    get_vector_db_config,
)
from ..db.aspect_store import AspectStore, InMemoryAspectStore
from .base import EmbeddingProvider, TextGenerator, VideoAnalyzer

logger = logging.getLogger(__name__)


def create_embedding_provider(config: dict[str, Any]) -> EmbeddingProvider:
    """
    Create the configured embedding provider (not yet initialized).

    Args:
        config: Main configuration dictionary

    Returns:
        EmbeddingProvider
    """
    name = get_providers_config(config).get("embeddings", "local")
    embeddings = get_embeddings_config(config)
    batch_size = int(embeddings.get("batch_size", 32))

    if name == "local":
        from .local.sentence_embeddings import SentenceTransformerEmbeddings

        return SentenceTransformerEmbeddings(
            model=embeddings.get("model", SentenceTransformerEmbeddings.DEFAULT_MODEL),
            batch_size=batch_size,
        )
    if name == "gemini":
        from .gemini.gemini_embeddings import GeminiEmbeddings

        gemini = get_gemini_config(config)
        return GeminiEmbeddings(
            api_key=gemini.get("api_key", ""),
            model=gemini.get("embedding_model", GeminiEmbeddings.DEFAULT_MODEL),
            batch_size=batch_size,
        )
    raise ValueError(f"Unknown embedding provider: {name}")


def create_text_generator(config: dict[str, Any]) -> TextGenerator:
    """Create the configured text generator."""
    name = get_providers_config(config).get("text", "gemini")

    if name == "gemini":
        from .gemini.gemini_llm import GeminiLLM

        gemini = get_gemini_config(config)
        return GeminiLLM(
            api_key=gemini.get("api_key", ""),
            model=gemini.get("llm_model", "gemini-2.0-flash"),
        )
    if name == "groq":
        from .groq.groq_llm import GroqLLM

        groq = get_groq_config(config)
        return GroqLLM(
            api_key=groq.get("api_key", ""),
            model=groq.get("model", GroqLLM.DEFAULT_MODEL),
        )
    raise ValueError(f"Unknown text provider: {name}")


def create_video_analyzer(config: dict[str, Any]) -> VideoAnalyzer:
    """Create the configured multimodal analysis provider."""
    name = get_providers_config(config).get("analysis", "gemini")
    if name != "gemini":
        raise ValueError(f"Unknown analysis provider: {name}")

    from .gemini.gemini_vlm import GeminiVLM

    gemini = get_gemini_config(config)
    return GeminiVLM(
        api_key=gemini.get("api_key", ""),
        model=gemini.get("vlm_model", "gemini-2.0-flash"),
    )


def create_store(config: dict[str, Any], dimensions: int) -> AspectStore:
    """
    Create the configured aspect store (not yet connected).

    Args:
        config: Main configuration dictionary
        dimensions: Vector dimension of the embedding provider

    Returns:
        AspectStore
    """
    vector_db = get_vector_db_config(config)
    backend = vector_db.get("backend", "milvus")

    if backend == "memory":
        return InMemoryAspectStore(dimensions)
    if backend == "milvus":
        from ..db.milvus_store import MilvusAspectStore, MilvusConfig

        return MilvusAspectStore(
            MilvusConfig(
                host=vector_db.get("host", "localhost"),
                port=int(vector_db.get("port", 19530)),
                collection_prefix=vector_db.get("collection_prefix", "aspect_rag"),
                embedding_dim=dimensions,
                index_threshold=int(vector_db.get("index_threshold", 256)),
            )
        )
    raise ValueError(f"Unknown vector_db backend: {backend}")


def analysis_settings(config: dict[str, Any]) -> tuple[int, int]:
    """Batch size and concurrency for frame analysis."""
    analysis = get_analysis_config(config)
    return int(analysis.get("batch_size", 10)), int(analysis.get("max_concurrency", 6))
