"""Exceptions raised by the aspect RAG pipeline."""

from __future__ import annotations

from typing import Optional


class VideoRAGError(Exception):
    """Base exception for aspect RAG errors."""

    pass


class ConflictError(VideoRAGError):
    """A video with the same source URI is already indexed."""

    def __init__(self, source_uri: str, video_id: Optional[str] = None) -> None:
        self.source_uri = source_uri
        self.video_id = video_id
        super().__init__(f"Video already indexed: {source_uri}")


class NotFoundError(VideoRAGError):
    """Requested video does not exist."""

    def __init__(self, resource_id: str, kind: str = "Video") -> None:
        self.resource_id = resource_id
        super().__init__(f"{kind} not found: {resource_id}")


class InvalidInputError(VideoRAGError, ValueError):
    """Caller supplied unusable input."""

    pass


class EmbeddingDimensionError(InvalidInputError):
    """Vector dimension does not match the store dimension."""

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Embedding dimension mismatch: expected {expected}, got {actual}")


class UpstreamUnavailableError(VideoRAGError):
    """A provider or store was used before it was initialized, or is unreachable."""

    pass


class PartialExtractionError(VideoRAGError, ValueError):
    """A single frame observation could not be parsed or rendered."""

    pass
