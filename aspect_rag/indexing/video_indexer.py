"""Write path: analysis result to embedded, stored aspect records."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional

from ..analysis import AnalysisResult, ConfidenceLevel
from ..db.aspect_store import AspectStore
from ..exceptions import ConflictError, InvalidInputError, UpstreamUnavailableError
from ..models.base import EmbeddingProvider
from ..schema import FrameRecord, IndexResult, VideoRecord, generate_id
from ..utils import elapsed_ms, timestamp_to_seconds
from .aspect_extractor import AspectExtractor, count_aspects

logger = logging.getLogger(__name__)


@dataclass
class FrameDescription:
    """Legacy single-text description of a moment."""

    timestamp: str
    description: str


@dataclass
class TimestampRange:
    """A described span of the video."""

    start: str
    end: str
    description: str


class VideoIndexer:
    """Register videos and store their searchable records."""

    def __init__(
        self,
        store: AspectStore,
        embeddings: EmbeddingProvider,
        extractor: Optional[AspectExtractor] = None,
        index_threshold: int = 256,
    ) -> None:
        """
        Args:
            store: Destination store
            embeddings: Provider for record vectors
            extractor: Aspect extractor
            index_threshold: Aspect record count at which the ANN index is built
        """
        self._store = store
        self._embeddings = embeddings
        self._extractor = extractor or AspectExtractor()
        self._index_threshold = index_threshold

    async def ensure_not_indexed(self, source_uri: str) -> None:
        existing = await self._store.is_indexed(source_uri)
        if existing is not None:
            raise ConflictError(source_uri, existing)

    async def _rollback(self, video_id: str) -> None:
        try:
            await self._store.delete_by_video_id(video_id)
        except Exception as e:
            logger.error(f"Rollback of video {video_id} failed: {e}")

    async def _maybe_build_index(self) -> None:
        try:
            count = await self._store.count_aspect_records()
            if count >= self._index_threshold:
                await self._store.build_index()
        except Exception as e:
            logger.warning(f"Index build skipped: {e}")

    async def index_video(
        self,
        source_uri: str,
        title: str,
        analysis: AnalysisResult,
        duration: Optional[float] = None,
    ) -> IndexResult:
        """
        Index a video from its structured analysis.

        Args:
            source_uri: Original video location (dedup key)
            title: Display title
            analysis: Provider analysis with per-frame observations
            duration: Video length in seconds

        Returns:
            IndexResult; ``success`` is False when a write failed after validation

        Raises:
            ConflictError: If the source URI is already indexed
            InvalidInputError: If the analysis has no frames
            UpstreamUnavailableError: If the embedding provider or store is unavailable
        """
        start = time.perf_counter()
        await self.ensure_not_indexed(source_uri)
        if not analysis.frames:
            raise InvalidInputError("Analysis contains no frames to index")

        video_id = generate_id()
        drafts = self._extractor.extract(video_id, analysis.frames)
        if not drafts:
            raise InvalidInputError("Analysis frames contain no indexable observations")
        self._embeddings._require_ready()
        aspect_counts = count_aspects(drafts)
        logger.info(f"Indexing {title!r}: {len(drafts)} aspect records {aspect_counts}")

        video_written = False
        try:
            vectors = await self._embeddings.embed_batch([d.content for d in drafts])
            records = [draft.with_vector(v) for draft, v in zip(drafts, vectors)]

            await self._store.insert_video(
                VideoRecord(
                    id=video_id,
                    source_uri=source_uri,
                    title=title,
                    full_summary=analysis.summary,
                    confidence=analysis.confidence,
                    aspect_record_count=len(records),
                    duration=duration,
                    thought_summary=analysis.thought_summary,
                )
            )
            video_written = True
            await self._store.insert_aspect_records(records)
        except UpstreamUnavailableError:
            if video_written:
                await self._rollback(video_id)
            raise
        except Exception as e:
            logger.error(f"Indexing {source_uri} failed: {e}")
            if video_written:
                await self._rollback(video_id)
            return IndexResult(
                video_id=video_id,
                record_count=0,
                duration_ms=elapsed_ms(start),
                success=False,
                error=str(e),
            )

        await self._maybe_build_index()
        duration_ms = elapsed_ms(start)
        logger.info(f"Indexed video {video_id} with {len(records)} records in {duration_ms}ms")
        return IndexResult(
            video_id=video_id,
            record_count=len(records),
            duration_ms=duration_ms,
            success=True,
            aspect_counts=aspect_counts,
        )

    async def index_frame_descriptions(
        self,
        source_uri: str,
        title: str,
        summary: str,
        frames: list[FrameDescription],
        confidence: ConfidenceLevel = ConfidenceLevel.MEDIUM,
        duration: Optional[float] = None,
    ) -> IndexResult:
        """
        Index plain per-timestamp descriptions as legacy frame records.

        Args:
            source_uri: Original video location (dedup key)
            title: Display title
            summary: Full analysis text
            frames: Timestamped descriptions
            confidence: Analysis confidence
            duration: Video length in seconds

        Returns:
            IndexResult

        Raises:
            ConflictError: If the source URI is already indexed
            InvalidInputError: If there are no frames
            UpstreamUnavailableError: If the embedding provider or store is unavailable
        """
        start = time.perf_counter()
        await self.ensure_not_indexed(source_uri)
        if not frames:
            raise InvalidInputError("No frame descriptions to index")
        self._embeddings._require_ready()

        video_id = generate_id()
        video_written = False
        try:
            vectors = await self._embeddings.embed_batch([f.description for f in frames])
            records = [
                FrameRecord(
                    id=generate_id(),
                    video_id=video_id,
                    timestamp=f.timestamp,
                    timestamp_seconds=timestamp_to_seconds(f.timestamp),
                    description=f.description,
                    vector=v,
                )
                for f, v in zip(frames, vectors)
            ]

            await self._store.insert_video(
                VideoRecord(
                    id=video_id,
                    source_uri=source_uri,
                    title=title,
                    full_summary=summary,
                    confidence=confidence,
                    aspect_record_count=len(records),
                    duration=duration,
                )
            )
            video_written = True
            await self._store.insert_frames(records)
        except UpstreamUnavailableError:
            if video_written:
                await self._rollback(video_id)
            raise
        except Exception as e:
            logger.error(f"Frame indexing {source_uri} failed: {e}")
            if video_written:
                await self._rollback(video_id)
            return IndexResult(
                video_id=video_id,
                record_count=0,
                duration_ms=elapsed_ms(start),
                success=False,
                error=str(e),
            )

        return IndexResult(
            video_id=video_id,
            record_count=len(records),
            duration_ms=elapsed_ms(start),
            success=True,
        )

    async def index_from_timestamps(
        self,
        source_uri: str,
        title: str,
        summary: str,
        timestamps: list[TimestampRange],
        confidence: ConfidenceLevel = ConfidenceLevel.MEDIUM,
        duration: Optional[float] = None,
    ) -> IndexResult:
        """
        Index a summary with described time ranges.

        Each range becomes a frame at its start time. With no ranges, the
        whole summary is indexed as a single frame at 00:00.
        """
        if timestamps:
            frames = [
                FrameDescription(timestamp=t.start, description=f"[{t.start} - {t.end}] {t.description}")
                for t in timestamps
            ]
        else:
            frames = [FrameDescription(timestamp="00:00", description=summary)]

        return await self.index_frame_descriptions(
            source_uri,
            title,
            summary,
            frames,
            confidence=confidence,
            duration=duration,
        )
