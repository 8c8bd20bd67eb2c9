"""Service facade exposing indexing, question answering and registry operations."""

from __future__ import annotations

import logging
from typing import Any, Optional

from .analysis import AnalysisResult, ConfidenceLevel
from .config import get_rag_config, get_vector_db_config
from .db.aspect_store import AspectStore
from .exceptions import EmbeddingDimensionError, NotFoundError, UpstreamUnavailableError
from .indexing.batch_coordinator import BatchIndexingCoordinator
from .indexing.video_indexer import FrameDescription, TimestampRange, VideoIndexer
from .models.base import (
    EmbeddingProvider,
    FrameSample,
    QualityLevel,
    TextGenerator,
    VideoAnalyzer,
)
from .models import factory
from .rag.rag_engine import RAGConfig, RAGEngine
from .schema import (
    GlobalSearchHit,
    GlobalSearchResponse,
    IndexResult,
    RAGResponse,
    StoreStats,
    VideoRecord,
    VideoSummary,
)

logger = logging.getLogger(__name__)


class VideoRAGService:
    """Entry point for indexing videos and asking questions about them."""

    def __init__(
        self,
        store: AspectStore,
        embeddings: EmbeddingProvider,
        generator: TextGenerator,
        analyzer: Optional[VideoAnalyzer] = None,
        rag_config: Optional[RAGConfig] = None,
        index_threshold: int = 256,
        analysis_batch_size: int = 10,
        analysis_max_concurrency: int = 6,
    ) -> None:
        """
        Initialize the service from already-constructed components.

        Args:
            store: Aspect store
            embeddings: Embedding provider
            generator: Text generator for answers
            analyzer: Multimodal analysis provider (needed only to analyze raw media)
            rag_config: Retrieval configuration
            index_threshold: Record count at which the ANN index is built
            analysis_batch_size: Frames per analysis batch
            analysis_max_concurrency: Concurrent analysis batches
        """
        self._store = store
        self._embeddings = embeddings
        self._analyzer = analyzer
        self._indexer = VideoIndexer(store, embeddings, index_threshold=index_threshold)
        self._engine = RAGEngine(store, embeddings, generator, config=rag_config)
        self._batch_size = analysis_batch_size
        self._max_concurrency = analysis_max_concurrency

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> VideoRAGService:
        """
        Build a service from a loaded configuration dictionary.

        Args:
            config: Main configuration dictionary

        Returns:
            Unstarted service
        """
        embeddings = factory.create_embedding_provider(config)
        rag = get_rag_config(config)
        batch_size, max_concurrency = factory.analysis_settings(config)

        return cls(
            store=factory.create_store(config, embeddings.dimensions),
            embeddings=embeddings,
            generator=factory.create_text_generator(config),
            analyzer=factory.create_video_analyzer(config),
            rag_config=RAGConfig(
                default_top_k=int(rag.get("default_top_k", 5)),
                max_output_tokens=int(rag.get("max_output_tokens", 2048)),
                quality_level=QualityLevel(rag.get("quality_level", "medium")),
            ),
            index_threshold=int(get_vector_db_config(config).get("index_threshold", 256)),
            analysis_batch_size=batch_size,
            analysis_max_concurrency=max_concurrency,
        )

    @property
    def engine(self) -> RAGEngine:
        return self._engine

    @property
    def is_ready(self) -> bool:
        return self._store.is_ready and self._embeddings.is_ready

    async def start(self) -> None:
        """Initialize the embedding provider and connect the store."""
        await self._embeddings.initialize()
        if self._embeddings.dimensions != self._store.dimensions:
            raise EmbeddingDimensionError(self._store.dimensions, self._embeddings.dimensions)
        await self._store.connect()
        logger.info(
            f"Service ready: {self._embeddings.model_name} "
            f"({self._embeddings.dimensions}d) on {self._store.location}"
        )

    async def stop(self) -> None:
        await self._store.close()
        await self._embeddings.close()

    # Indexing

    async def index_video(
        self,
        source_uri: str,
        title: str,
        analysis: AnalysisResult,
        duration: Optional[float] = None,
    ) -> IndexResult:
        """Index a video from a structured analysis result."""
        return await self._indexer.index_video(source_uri, title, analysis, duration)

    async def index_frame_descriptions(
        self,
        source_uri: str,
        title: str,
        summary: str,
        frames: list[FrameDescription],
        confidence: ConfidenceLevel = ConfidenceLevel.MEDIUM,
    ) -> IndexResult:
        return await self._indexer.index_frame_descriptions(
            source_uri, title, summary, frames, confidence=confidence
        )

    async def index_from_timestamps(
        self,
        source_uri: str,
        title: str,
        summary: str,
        timestamps: list[TimestampRange],
        confidence: ConfidenceLevel = ConfidenceLevel.MEDIUM,
    ) -> IndexResult:
        return await self._indexer.index_from_timestamps(
            source_uri, title, summary, timestamps, confidence=confidence
        )

    def _require_analyzer(self) -> VideoAnalyzer:
        if self._analyzer is None:
            raise UpstreamUnavailableError("No video analysis provider configured")
        return self._analyzer

    async def analyze_and_index_frames(
        self,
        source_uri: str,
        title: str,
        frames: list[FrameSample],
        duration: Optional[float] = None,
    ) -> IndexResult:
        """
        Analyze sampled frames in batches, then index the merged result.

        Args:
            source_uri: Original video location (dedup key)
            title: Display title
            frames: Sampled frame images with timestamps
            duration: Video length in seconds

        Returns:
            IndexResult
        """
        await self._indexer.ensure_not_indexed(source_uri)
        coordinator = BatchIndexingCoordinator(
            self._require_analyzer(),
            batch_size=self._batch_size,
            max_concurrency=self._max_concurrency,
        )
        analysis = await coordinator.analyze(frames)
        return await self.index_video(source_uri, title, analysis, duration)

    async def analyze_and_index_video(
        self,
        file_uri: str,
        title: str,
        source_uri: Optional[str] = None,
        duration: Optional[float] = None,
    ) -> IndexResult:
        """Analyze an uploaded video file, then index it."""
        source_uri = source_uri or file_uri
        await self._indexer.ensure_not_indexed(source_uri)
        analysis = await self._require_analyzer().analyze_video(file_uri)
        return await self.index_video(source_uri, title, analysis, duration)

    # Question answering

    async def answer(
        self,
        video_id: str,
        query: str,
        top_k: Optional[int] = None,
    ) -> RAGResponse:
        return await self._engine.answer(video_id, query, top_k)

    async def answer_frames(
        self,
        video_id: str,
        query: str,
        top_k: Optional[int] = None,
    ) -> RAGResponse:
        return await self._engine.answer_frames(video_id, query, top_k)

    async def global_search(self, query: str, top_k: Optional[int] = None) -> GlobalSearchResponse:
        return await self._engine.global_search(query, top_k)

    async def find_similar(
        self,
        query: str,
        video_id: Optional[str] = None,
        top_k: Optional[int] = None,
    ) -> list[GlobalSearchHit]:
        return await self._engine.find_similar_by_query(query, video_id, top_k)

    # Registry

    async def list_videos(self) -> list[VideoSummary]:
        videos = await self._store.list_videos()
        return [
            VideoSummary(
                id=v.id,
                title=v.title,
                source_uri=v.source_uri,
                record_count=v.aspect_record_count,
                indexed_at=v.indexed_at,
                confidence=v.confidence,
            )
            for v in videos
        ]

    async def get_video(self, video_id: str) -> VideoRecord:
        """
        Get an indexed video.

        Raises:
            NotFoundError: If the video is not indexed
        """
        video = await self._store.get_video(video_id)
        if video is None:
            raise NotFoundError(video_id)
        return video

    async def get_video_aspect_counts(self, video_id: str) -> dict[str, int]:
        await self.get_video(video_id)
        return await self._store.get_video_aspect_counts(video_id)

    async def delete_video(self, video_id: str) -> int:
        """
        Delete a video and every record derived from it.

        Returns:
            Number of records deleted

        Raises:
            NotFoundError: If the video is not indexed
        """
        await self.get_video(video_id)
        deleted = await self._store.delete_by_video_id(video_id)
        logger.info(f"Deleted video {video_id} ({deleted} records)")
        return deleted

    async def get_stats(self) -> StoreStats:
        return StoreStats(
            video_count=await self._store.count_videos(),
            record_count=await self._store.count_aspect_records(),
            frame_count=await self._store.count_frames(),
            db_location=self._store.location,
        )
