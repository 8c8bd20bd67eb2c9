"""Stored records and response types for aspect RAG."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from .analysis import ConfidenceLevel, TokenUsage


class AspectType(Enum):
    """Category of information an aspect record describes."""

    PEOPLE = "people"
    OBJECTS = "objects"
    SCENE = "scene"
    AUDIO = "audio"
    ACTION = "action"
    TEXT = "text"


def generate_id() -> str:
    """Generate a unique record ID."""
    return str(uuid.uuid4())


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class VideoRecord:
    """A registered video."""

    id: str
    source_uri: str
    title: str
    full_summary: str
    confidence: ConfidenceLevel
    aspect_record_count: int = 0
    duration: Optional[float] = None
    thought_summary: Optional[str] = None
    indexed_at: str = field(default_factory=utc_now_iso)


@dataclass
class AspectRecordDraft:
    """An aspect record before its content has been embedded."""

    video_id: str
    timestamp: str
    timestamp_seconds: float
    aspect_type: AspectType
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=generate_id)

    def with_vector(self, vector: list[float]) -> AspectRecord:
        return AspectRecord(
            id=self.id,
            video_id=self.video_id,
            timestamp=self.timestamp,
            timestamp_seconds=self.timestamp_seconds,
            aspect_type=self.aspect_type,
            content=self.content,
            vector=vector,
            metadata=self.metadata,
        )


@dataclass
class AspectRecord:
    """A searchable, embedded observation about one aspect of one timestamp."""

    id: str
    video_id: str
    timestamp: str
    timestamp_seconds: float
    aspect_type: AspectType
    content: str
    vector: list[float]
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class FrameRecord:
    """Legacy single-description frame record."""

    id: str
    video_id: str
    timestamp: str
    timestamp_seconds: float
    description: str
    vector: list[float]


@dataclass
class AspectSearchResult:
    """An aspect record returned from vector search."""

    record: AspectRecord
    distance: float  # Cosine distance (0 = identical)

    @property
    def relevance_score(self) -> float:
        return 1.0 - self.distance


@dataclass
class FrameSearchResult:
    """A legacy frame record returned from vector search."""

    frame: FrameRecord
    distance: float

    @property
    def relevance_score(self) -> float:
        return 1.0 - self.distance


@dataclass
class IndexResult:
    """Outcome of an indexing operation."""

    video_id: str
    record_count: int
    duration_ms: int
    success: bool
    error: Optional[str] = None
    aspect_counts: dict[str, int] = field(default_factory=dict)


@dataclass
class QueryClassification:
    """Aspects a query is about."""

    aspects: list[AspectType]
    confidence: float


@dataclass
class RAGSource:
    """A retrieved record cited by an answer."""

    timestamp: str
    content: str
    aspect_type: Optional[AspectType] = None
    relevance_score: Optional[float] = None


@dataclass
class RAGResponse:
    """A grounded answer to a question about a video."""

    answer: str
    sources: list[RAGSource]
    latency_ms: int
    token_usage: Optional[TokenUsage] = None
    aspects: list[AspectType] = field(default_factory=list)
    classification_confidence: Optional[float] = None


@dataclass
class GlobalSearchHit:
    """A cross-video search hit."""

    video_id: str
    video_title: str
    timestamp: str
    content: str
    relevance_score: float
    aspect_type: Optional[AspectType] = None


@dataclass
class GlobalSearchResponse:
    """Result of searching across every indexed video."""

    hits: list[GlobalSearchHit]
    aspect_counts: dict[str, int]
    latency_ms: int
    aspects: list[AspectType] = field(default_factory=list)


@dataclass
class VideoSummary:
    """Listing entry for an indexed video."""

    id: str
    title: str
    source_uri: str
    record_count: int
    indexed_at: str
    confidence: ConfidenceLevel


@dataclass
class StoreStats:
    """Store-wide counts."""

    video_count: int
    record_count: int
    frame_count: int
    db_location: str
