"""Query classification, retrieval and grounded answer synthesis."""

from .context_builder import build_aspect_context, build_frame_context
from .query_classifier import QueryClassifier
from .rag_engine import RAGConfig, RAGEngine, Retrieval

__all__ = [
    # Classification
    "QueryClassifier",
    # Engine
    "RAGEngine",
    "RAGConfig",
    "Retrieval",
    # Context
    "build_aspect_context",
    "build_frame_context",
]
