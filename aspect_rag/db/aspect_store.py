"""Aspect store abstractions: video registry plus vector-searchable records."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import Counter
from typing import Optional

import numpy as np

from ..exceptions import EmbeddingDimensionError, UpstreamUnavailableError
from ..schema import (
    AspectRecord,
    AspectSearchResult,
    AspectType,
    FrameRecord,
    FrameSearchResult,
    VideoRecord,
)
from .filters import SearchFilter

logger = logging.getLogger(__name__)


class AspectStore(ABC):
    """Abstract base class for the video registry and aspect record store."""

    def __init__(self, dimensions: int) -> None:
        self._dimensions = dimensions

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    @abstractmethod
    def is_ready(self) -> bool:
        pass

    @property
    @abstractmethod
    def location(self) -> str:
        """Human-readable location of the underlying database."""
        pass

    @abstractmethod
    async def connect(self) -> None:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass

    def _require_ready(self) -> None:
        if not self.is_ready:
            raise UpstreamUnavailableError(f"Store at {self.location} is not connected")

    def _check_dimension(self, vector: list[float]) -> None:
        if len(vector) != self._dimensions:
            raise EmbeddingDimensionError(self._dimensions, len(vector))

    # Video registry

    @abstractmethod
    async def insert_video(self, video: VideoRecord) -> None:
        pass

    @abstractmethod
    async def get_video(self, video_id: str) -> Optional[VideoRecord]:
        pass

    @abstractmethod
    async def list_videos(self) -> list[VideoRecord]:
        """All videos, most recently indexed first."""
        pass

    @abstractmethod
    async def is_indexed(self, source_uri: str) -> Optional[str]:
        """
        Check whether a source URI is registered.

        Args:
            source_uri: Original video location

        Returns:
            The existing video ID, or None
        """
        pass

    # Aspect records

    @abstractmethod
    async def insert_aspect_records(self, records: list[AspectRecord]) -> int:
        """
        Insert embedded aspect records.

        Raises:
            EmbeddingDimensionError: If any vector has the wrong dimension
        """
        pass

    @abstractmethod
    async def search(
        self,
        query_vector: list[float],
        video_id: Optional[str] = None,
        aspect_types: Optional[list[AspectType]] = None,
        limit: int = 10,
    ) -> list[AspectSearchResult]:
        """
        Nearest aspect records by cosine distance.

        Args:
            query_vector: Query embedding
            video_id: Restrict to one video
            aspect_types: Restrict to any of these aspects
            limit: Maximum results

        Returns:
            Results ordered by ascending distance
        """
        pass

    @abstractmethod
    async def get_aspect_records(
        self,
        video_id: str,
        aspect_type: Optional[AspectType] = None,
    ) -> list[AspectRecord]:
        """Records of a video ordered by timestamp."""
        pass

    async def get_video_aspect_counts(self, video_id: str) -> dict[str, int]:
        """Number of records per aspect type for one video."""
        records = await self.get_aspect_records(video_id)
        counts = Counter(r.aspect_type.value for r in records)
        return {aspect.value: counts.get(aspect.value, 0) for aspect in AspectType}

    # Legacy frames

    @abstractmethod
    async def insert_frames(self, frames: list[FrameRecord]) -> int:
        pass

    @abstractmethod
    async def search_frames(
        self,
        query_vector: list[float],
        video_id: Optional[str] = None,
        limit: int = 10,
    ) -> list[FrameSearchResult]:
        pass

    @abstractmethod
    async def get_video_frames(self, video_id: str) -> list[FrameRecord]:
        pass

    # Maintenance

    @abstractmethod
    async def delete_by_video_id(self, video_id: str) -> int:
        """
        Delete a video with all of its aspect and frame records.

        Returns:
            Number of aspect and frame records deleted
        """
        pass

    @abstractmethod
    async def count_videos(self) -> int:
        pass

    @abstractmethod
    async def count_aspect_records(self) -> int:
        pass

    @abstractmethod
    async def count_frames(self) -> int:
        pass

    @abstractmethod
    async def build_index(self) -> None:
        """Switch to approximate search once the record count makes it worthwhile."""
        pass


def cosine_distances(query: list[float], vectors: list[list[float]]) -> np.ndarray:
    """Cosine distance from ``query`` to each row of ``vectors``."""
    matrix = np.asarray(vectors, dtype=np.float32)
    q = np.asarray(query, dtype=np.float32)
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(q)
    norms[norms == 0] = 1.0
    return 1.0 - (matrix @ q) / norms


class InMemoryAspectStore(AspectStore):
    """Exact-search store held in process memory."""

    def __init__(self, dimensions: int) -> None:
        super().__init__(dimensions)
        self._videos: dict[str, VideoRecord] = {}
        self._records: dict[str, AspectRecord] = {}
        self._frames: dict[str, FrameRecord] = {}
        self._connected = False
        self._indexed = False

    @property
    def is_ready(self) -> bool:
        return self._connected

    @property
    def location(self) -> str:
        return "memory"

    async def connect(self) -> None:
        self._connected = True

    async def close(self) -> None:
        self._connected = False

    async def insert_video(self, video: VideoRecord) -> None:
        self._require_ready()
        self._videos[video.id] = video

    async def get_video(self, video_id: str) -> Optional[VideoRecord]:
        self._require_ready()
        return self._videos.get(video_id)

    async def list_videos(self) -> list[VideoRecord]:
        self._require_ready()
        return sorted(self._videos.values(), key=lambda v: v.indexed_at, reverse=True)

    async def is_indexed(self, source_uri: str) -> Optional[str]:
        self._require_ready()
        for video in self._videos.values():
            if video.source_uri == source_uri:
                return video.id
        return None

    async def insert_aspect_records(self, records: list[AspectRecord]) -> int:
        self._require_ready()
        for record in records:
            self._check_dimension(record.vector)
        for record in records:
            self._records[record.id] = record
        return len(records)

    async def search(
        self,
        query_vector: list[float],
        video_id: Optional[str] = None,
        aspect_types: Optional[list[AspectType]] = None,
        limit: int = 10,
    ) -> list[AspectSearchResult]:
        self._require_ready()
        self._check_dimension(query_vector)
        search_filter = SearchFilter(video_id=video_id, aspect_types=aspect_types)
        candidates = [r for r in self._records.values() if search_filter.matches(r)]
        if not candidates:
            return []

        distances = cosine_distances(query_vector, [r.vector for r in candidates])
        order = np.argsort(distances, kind="stable")[:limit]
        return [
            AspectSearchResult(record=candidates[i], distance=float(distances[i]))
            for i in order
        ]

    async def get_aspect_records(
        self,
        video_id: str,
        aspect_type: Optional[AspectType] = None,
    ) -> list[AspectRecord]:
        self._require_ready()
        records = [
            r
            for r in self._records.values()
            if r.video_id == video_id and (aspect_type is None or r.aspect_type == aspect_type)
        ]
        records.sort(key=lambda r: r.timestamp_seconds)
        return records

    async def insert_frames(self, frames: list[FrameRecord]) -> int:
        self._require_ready()
        for frame in frames:
            self._check_dimension(frame.vector)
        for frame in frames:
            self._frames[frame.id] = frame
        return len(frames)

    async def search_frames(
        self,
        query_vector: list[float],
        video_id: Optional[str] = None,
        limit: int = 10,
    ) -> list[FrameSearchResult]:
        self._require_ready()
        self._check_dimension(query_vector)
        candidates = [
            f for f in self._frames.values() if video_id is None or f.video_id == video_id
        ]
        if not candidates:
            return []

        distances = cosine_distances(query_vector, [f.vector for f in candidates])
        order = np.argsort(distances, kind="stable")[:limit]
        return [
            FrameSearchResult(frame=candidates[i], distance=float(distances[i])) for i in order
        ]

    async def get_video_frames(self, video_id: str) -> list[FrameRecord]:
        self._require_ready()
        frames = [f for f in self._frames.values() if f.video_id == video_id]
        frames.sort(key=lambda f: f.timestamp_seconds)
        return frames

    async def delete_by_video_id(self, video_id: str) -> int:
        self._require_ready()
        record_ids = [rid for rid, r in self._records.items() if r.video_id == video_id]
        frame_ids = [fid for fid, f in self._frames.items() if f.video_id == video_id]
        for rid in record_ids:
            del self._records[rid]
        for fid in frame_ids:
            del self._frames[fid]
        self._videos.pop(video_id, None)
        return len(record_ids) + len(frame_ids)

    async def count_videos(self) -> int:
        return len(self._videos)

    async def count_aspect_records(self) -> int:
        return len(self._records)

    async def count_frames(self) -> int:
        return len(self._frames)

    async def build_index(self) -> None:
        # Exact scan regardless; only record that an index was requested.
        self._indexed = True
