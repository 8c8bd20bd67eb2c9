"""Retrieval-augmented question answering over indexed videos."""

from __future__ import annotations

import logging
import time
from collections import Counter
from dataclasses import dataclass
from typing import Optional

from ..db.aspect_store import AspectStore
from ..exceptions import InvalidInputError, NotFoundError
from ..models.base import (
    EmbeddingProvider,
    QualityLevel,
    TextGenerationOptions,
    TextGenerator,
)
from ..schema import (
    AspectSearchResult,
    AspectType,
    FrameSearchResult,
    GlobalSearchHit,
    GlobalSearchResponse,
    QueryClassification,
    RAGResponse,
    RAGSource,
)
from ..utils import elapsed_ms
from .context_builder import build_aspect_context, build_frame_context
from .prompts import (
    ANSWER_PROMPT_TEMPLATE,
    ASPECT_SYSTEM_INSTRUCTION,
    FRAME_SYSTEM_INSTRUCTION,
    NO_CONTENT_ANSWER,
)
from .query_classifier import QueryClassifier

logger = logging.getLogger(__name__)


@dataclass
class RAGConfig:
    """Configuration for retrieval and synthesis."""

    default_top_k: int = 5
    max_output_tokens: int = 2048
    quality_level: QualityLevel = QualityLevel.MEDIUM
    frame_max_output_tokens: int = 1024
    frame_quality_level: QualityLevel = QualityLevel.LOW

    @property
    def aspect_top_k(self) -> int:
        return self.default_top_k * 2


@dataclass
class Retrieval:
    """Records found for a query, from whichever stage of the cascade produced them."""

    aspect_results: list[AspectSearchResult]
    frame_results: list[FrameSearchResult]
    stage: str  # "filtered", "unfiltered", "frames" or "none"

    @property
    def is_empty(self) -> bool:
        return not self.aspect_results and not self.frame_results


class RAGEngine:
    """Classify, retrieve with cascading fallback, and synthesize grounded answers."""

    def __init__(
        self,
        store: AspectStore,
        embeddings: EmbeddingProvider,
        generator: TextGenerator,
        classifier: Optional[QueryClassifier] = None,
        config: Optional[RAGConfig] = None,
    ) -> None:
        """
        Initialize RAG engine.

        Args:
            store: Aspect store to search
            embeddings: Embedding provider for queries
            generator: Text generator for answer synthesis
            classifier: Query classifier (keyword based by default)
            config: Retrieval configuration
        """
        self._store = store
        self._embeddings = embeddings
        self._generator = generator
        self._classifier = classifier or QueryClassifier()
        self._config = config or RAGConfig()

    @staticmethod
    def _validate(query: str, top_k: Optional[int]) -> None:
        if not query or not query.strip():
            raise InvalidInputError("Query must not be empty")
        if top_k is not None and top_k <= 0:
            raise InvalidInputError(f"top_k must be positive, got {top_k}")

    async def _embed_query(self, query: str) -> Optional[list[float]]:
        """Embed a query, or None when the embedding provider is unavailable."""
        if not self._embeddings.is_ready:
            logger.warning("Query embedding unavailable: provider not initialized")
            return None
        try:
            return await self._embeddings.embed(query)
        except Exception as e:
            logger.error(f"Query embedding failed: {e}")
            return None

    async def _search_aspects(
        self,
        vector: list[float],
        video_id: Optional[str],
        aspect_types: Optional[list[AspectType]],
        limit: int,
    ) -> list[AspectSearchResult]:
        if not self._store.is_ready:
            logger.warning("Aspect search unavailable: store not connected")
            return []
        try:
            return await self._store.search(
                vector,
                video_id=video_id,
                aspect_types=aspect_types,
                limit=limit,
            )
        except Exception as e:
            logger.error(f"Aspect search failed: {e}")
            return []

    async def _search_frames(
        self,
        vector: list[float],
        video_id: Optional[str],
        limit: int,
    ) -> list[FrameSearchResult]:
        if not self._store.is_ready:
            return []
        try:
            return await self._store.search_frames(vector, video_id=video_id, limit=limit)
        except Exception as e:
            logger.error(f"Frame search failed: {e}")
            return []

    async def retrieve(
        self,
        vector: Optional[list[float]],
        classification: QueryClassification,
        video_id: Optional[str] = None,
        limit: int = 10,
    ) -> Retrieval:
        """
        Search with cascading fallback.

        Stages: aspect-filtered search, the same search without the aspect
        filter, then legacy frame search.

        Args:
            vector: Query embedding (None when embedding failed)
            classification: Aspects to filter on
            video_id: Restrict to one video
            limit: Maximum results

        Returns:
            Retrieval from the first stage with results
        """
        if vector is None:
            return Retrieval([], [], "none")

        results = await self._search_aspects(vector, video_id, classification.aspects, limit)
        if results:
            return Retrieval(results, [], "filtered")

        logger.info("Aspect-filtered search empty, retrying without aspect filter")
        results = await self._search_aspects(vector, video_id, None, limit)
        if results:
            return Retrieval(results, [], "unfiltered")

        logger.info("Aspect records empty, falling back to legacy frames")
        frames = await self._search_frames(vector, video_id, limit)
        if frames:
            return Retrieval([], frames, "frames")

        return Retrieval([], [], "none")

    async def answer(
        self,
        video_id: str,
        query: str,
        top_k: Optional[int] = None,
    ) -> RAGResponse:
        """
        Answer a question about one indexed video.

        Args:
            video_id: Indexed video ID
            query: User question
            top_k: Records to retrieve (default ``default_top_k * 2``)

        Returns:
            RAGResponse with answer, cited sources and timings

        Raises:
            NotFoundError: If the video is not indexed
            InvalidInputError: If the query or top_k is unusable
        """
        start = time.perf_counter()
        self._validate(query, top_k)
        limit = top_k or self._config.aspect_top_k

        video = await self._store.get_video(video_id)
        if video is None:
            raise NotFoundError(video_id)

        classification = self._classifier.classify(query)
        logger.info(
            f"Answering for video {video_id}: {query[:50]!r} "
            f"-> {[a.value for a in classification.aspects]}"
        )

        vector = await self._embed_query(query)
        retrieval = await self.retrieve(vector, classification, video_id=video_id, limit=limit)

        if retrieval.is_empty:
            return RAGResponse(
                answer=NO_CONTENT_ANSWER,
                sources=[],
                latency_ms=elapsed_ms(start),
                aspects=classification.aspects,
                classification_confidence=classification.confidence,
            )

        if retrieval.aspect_results:
            context = build_aspect_context(video.title, retrieval.aspect_results)
            system_instruction = ASPECT_SYSTEM_INSTRUCTION
            options = TextGenerationOptions(
                max_output_tokens=self._config.max_output_tokens,
                quality_level=self._config.quality_level,
            )
            sources = [
                RAGSource(
                    timestamp=r.record.timestamp,
                    content=r.record.content,
                    aspect_type=r.record.aspect_type,
                    relevance_score=r.relevance_score,
                )
                for r in retrieval.aspect_results
            ]
        else:
            context = build_frame_context(video.title, retrieval.frame_results)
            system_instruction = FRAME_SYSTEM_INSTRUCTION
            options = TextGenerationOptions(
                max_output_tokens=self._config.frame_max_output_tokens,
                quality_level=self._config.frame_quality_level,
            )
            sources = self._frame_sources(retrieval.frame_results)

        generation = await self._generator.generate(
            system_instruction,
            ANSWER_PROMPT_TEMPLATE.format(context=context, question=query),
            options,
        )

        latency = elapsed_ms(start)
        logger.info(
            f"Answered from {len(sources)} {retrieval.stage} sources in {latency}ms"
        )
        return RAGResponse(
            answer=generation.text,
            sources=sources,
            latency_ms=latency,
            token_usage=generation.token_usage,
            aspects=classification.aspects,
            classification_confidence=classification.confidence,
        )

    @staticmethod
    def _frame_sources(results: list[FrameSearchResult]) -> list[RAGSource]:
        return [
            RAGSource(
                timestamp=r.frame.timestamp,
                content=r.frame.description,
                relevance_score=r.relevance_score,
            )
            for r in results
        ]

    async def answer_frames(
        self,
        video_id: str,
        query: str,
        top_k: Optional[int] = None,
    ) -> RAGResponse:
        """
        Answer from legacy frame descriptions only.

        Args:
            video_id: Indexed video ID
            query: User question
            top_k: Frames to retrieve (default ``default_top_k``)

        Returns:
            RAGResponse
        """
        start = time.perf_counter()
        self._validate(query, top_k)
        limit = top_k or self._config.default_top_k

        video = await self._store.get_video(video_id)
        if video is None:
            raise NotFoundError(video_id)

        vector = await self._embed_query(query)
        frames = await self._search_frames(vector, video_id, limit) if vector else []
        if not frames:
            return RAGResponse(answer=NO_CONTENT_ANSWER, sources=[], latency_ms=elapsed_ms(start))

        generation = await self._generator.generate(
            FRAME_SYSTEM_INSTRUCTION,
            ANSWER_PROMPT_TEMPLATE.format(
                context=build_frame_context(video.title, frames),
                question=query,
            ),
            TextGenerationOptions(
                max_output_tokens=self._config.frame_max_output_tokens,
                quality_level=self._config.frame_quality_level,
            ),
        )
        return RAGResponse(
            answer=generation.text,
            sources=self._frame_sources(frames),
            latency_ms=elapsed_ms(start),
            token_usage=generation.token_usage,
        )

    async def _to_hits(self, retrieval: Retrieval) -> list[GlobalSearchHit]:
        """Attach video titles, looking each video up once."""
        titles: dict[str, str] = {}

        async def title_for(video_id: str) -> str:
            if video_id not in titles:
                video = await self._store.get_video(video_id)
                titles[video_id] = video.title if video else "Unknown"
            return titles[video_id]

        hits: list[GlobalSearchHit] = []
        for r in retrieval.aspect_results:
            hits.append(
                GlobalSearchHit(
                    video_id=r.record.video_id,
                    video_title=await title_for(r.record.video_id),
                    timestamp=r.record.timestamp,
                    content=r.record.content,
                    relevance_score=r.relevance_score,
                    aspect_type=r.record.aspect_type,
                )
            )
        for r in retrieval.frame_results:
            hits.append(
                GlobalSearchHit(
                    video_id=r.frame.video_id,
                    video_title=await title_for(r.frame.video_id),
                    timestamp=r.frame.timestamp,
                    content=r.frame.description,
                    relevance_score=r.relevance_score,
                )
            )
        return hits

    async def global_search(self, query: str, top_k: Optional[int] = None) -> GlobalSearchResponse:
        """
        Search every indexed video.

        Args:
            query: Natural-language query
            top_k: Maximum hits (default ``default_top_k * 2``)

        Returns:
            Hits with video titles and an aspect histogram
        """
        start = time.perf_counter()
        self._validate(query, top_k)
        limit = top_k or self._config.aspect_top_k

        classification = self._classifier.classify(query)
        vector = await self._embed_query(query)
        retrieval = await self.retrieve(vector, classification, video_id=None, limit=limit)
        hits = await self._to_hits(retrieval)

        counts = Counter(h.aspect_type.value for h in hits if h.aspect_type is not None)
        latency = elapsed_ms(start)
        logger.info(f"Global search {query[:50]!r}: {len(hits)} hits in {latency}ms")
        return GlobalSearchResponse(
            hits=hits,
            aspect_counts=dict(counts),
            latency_ms=latency,
            aspects=classification.aspects,
        )

    async def find_similar_by_query(
        self,
        query: str,
        video_id: Optional[str] = None,
        top_k: Optional[int] = None,
    ) -> list[GlobalSearchHit]:
        """
        Raw retrieval without synthesis.

        Aspect records are searched first without an aspect filter; legacy
        frames are used only when no aspect record matches.

        Args:
            query: Natural-language query
            video_id: Restrict to one video
            top_k: Maximum hits (default ``default_top_k``)

        Returns:
            Hits ordered by relevance
        """
        self._validate(query, top_k)
        limit = top_k or self._config.default_top_k

        vector = await self._embed_query(query)
        if vector is None:
            return []

        results = await self._search_aspects(vector, video_id, None, limit)
        if results:
            return await self._to_hits(Retrieval(results, [], "unfiltered"))
        frames = await self._search_frames(vector, video_id, limit)
        return await self._to_hits(Retrieval([], frames, "frames"))
