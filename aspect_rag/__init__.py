"""Multi-aspect video RAG.

Indexes structured video observations as per-aspect records (people,
objects, scene, audio, on-screen text, actions), embeds them into a vector
store, and answers questions about indexed videos with grounded,
timestamp-citing answers from Gemini or Groq.
"""

__version__ = "0.1.0"

from .analysis import AnalysisResult, ConfidenceLevel, FrameObservation
from .exceptions import (
    ConflictError,
    EmbeddingDimensionError,
    InvalidInputError,
    NotFoundError,
    PartialExtractionError,
    UpstreamUnavailableError,
    VideoRAGError,
)
from .schema import AspectType, IndexResult, RAGResponse

__all__ = [
    # Version
    "__version__",
    # Analysis
    "AnalysisResult",
    "ConfidenceLevel",
    "FrameObservation",
    # Records
    "AspectType",
    "IndexResult",
    "RAGResponse",
    # Errors
    "VideoRAGError",
    "ConflictError",
    "NotFoundError",
    "InvalidInputError",
    "EmbeddingDimensionError",
    "UpstreamUnavailableError",
    "PartialExtractionError",
]


def __getattr__(name: str):
    """Lazy import for the service, which pulls in provider SDKs."""
    if name == "VideoRAGService":
        from .service import VideoRAGService

        return VideoRAGService
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
