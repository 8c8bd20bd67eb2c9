"""Tests for the RAG engine."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from aspect_rag.analysis import ConfidenceLevel
from aspect_rag.db.aspect_store import InMemoryAspectStore
from aspect_rag.exceptions import InvalidInputError, NotFoundError
from aspect_rag.rag.context_builder import build_aspect_context, build_frame_context
from aspect_rag.rag.prompts import ASPECT_SYSTEM_INSTRUCTION, FRAME_SYSTEM_INSTRUCTION, NO_CONTENT_ANSWER
from aspect_rag.rag.rag_engine import RAGConfig, RAGEngine
from aspect_rag.schema import (
    AspectRecord,
    AspectSearchResult,
    AspectType,
    FrameRecord,
    FrameSearchResult,
    QueryClassification,
    VideoRecord,
)

from .conftest import DIM, FakeEmbeddings, FakeGenerator


def _video(video_id: str, title: str) -> VideoRecord:
    return VideoRecord(
        id=video_id,
        source_uri=f"file:///{video_id}.mp4",
        title=title,
        full_summary="",
        confidence=ConfidenceLevel.MEDIUM,
    )


def _aspect(
    embeddings: FakeEmbeddings,
    record_id: str,
    video_id: str,
    aspect: AspectType,
    timestamp: str,
    seconds: float,
    content: str,
) -> AspectRecord:
    return AspectRecord(
        id=record_id,
        video_id=video_id,
        timestamp=timestamp,
        timestamp_seconds=seconds,
        aspect_type=aspect,
        content=content,
        vector=embeddings.vector(content),
    )


class TestContextBuilder:
    """Tests for context assembly."""

    def _result(self, aspect: AspectType, seconds: float, content: str, distance: float) -> AspectSearchResult:
        record = AspectRecord("r", "v", "00:00", seconds, aspect, content, [])
        return AspectSearchResult(record=record, distance=distance)

    def test_sections_in_fixed_order(self) -> None:
        context = build_aspect_context(
            "Clip",
            [
                self._result(AspectType.ACTION, 1, "runs", 0.2),
                self._result(AspectType.PEOPLE, 9, "late person", 0.1),
                self._result(AspectType.PEOPLE, 2, "early person", 0.3),
                self._result(AspectType.AUDIO, 3, "shout", 0.4),
            ],
        )

        assert context.startswith('Video: "Clip"')
        assert context.index("## PEOPLE IN VIDEO") < context.index("## AUDIO & SPEECH")
        assert context.index("## AUDIO & SPEECH") < context.index("## ACTIONS & EVENTS")
        assert "## SCENE & SETTING" not in context
        assert context.index("early person") < context.index("late person")
        assert "• late person (relevance: 0.90)" in context

    def test_frame_context_numbered_by_time(self) -> None:
        results = [
            FrameSearchResult(FrameRecord("f1", "v", "00:09", 9, "later", []), 0.1),
            FrameSearchResult(FrameRecord("f2", "v", "00:01", 1, "earlier", []), 0.2),
        ]

        context = build_frame_context("Clip", results)

        assert "1. [00:01] earlier" in context
        assert "2. [00:09] later" in context


class TestRAGEngine:
    """Tests for RAGEngine."""

    @pytest_asyncio.fixture
    async def embeddings(self) -> FakeEmbeddings:
        embeddings = FakeEmbeddings()
        await embeddings.initialize()
        return embeddings

    @pytest_asyncio.fixture
    async def store(self, embeddings: FakeEmbeddings) -> InMemoryAspectStore:
        store = InMemoryAspectStore(DIM)
        await store.connect()
        await store.insert_video(_video("v1", "Store camera"))
        await store.insert_video(_video("v2", "Parking lot"))
        await store.insert_aspect_records(
            [
                _aspect(embeddings, "p1", "v1", AspectType.PEOPLE, "00:05", 5,
                        "At 00:05: Person 1: [PERPETRATOR], male, wearing black hoodie"),
                _aspect(embeddings, "a1", "v1", AspectType.AUDIO, "00:02", 2,
                        'At 00:02: Person 1 says: "Open the register"'),
                _aspect(embeddings, "s2", "v2", AspectType.SCENE, "00:01", 1,
                        "At 00:01: Scene - parking lot, dim lighting"),
            ]
        )
        return store

    @pytest.fixture
    def generator(self) -> FakeGenerator:
        return FakeGenerator("One robber, at 00:05.")

    @pytest.fixture
    def engine(self, store, embeddings, generator) -> RAGEngine:
        return RAGEngine(store, embeddings, generator)

    def test_config_defaults(self) -> None:
        config = RAGConfig()

        assert config.default_top_k == 5
        assert config.aspect_top_k == 10

    @pytest.mark.asyncio
    async def test_answer(self, engine: RAGEngine, generator: FakeGenerator) -> None:
        response = await engine.answer("v1", "How many robbers were there?")

        assert response.answer == "One robber, at 00:05."
        assert response.aspects == [AspectType.PEOPLE]
        assert [s.aspect_type for s in response.sources] == [AspectType.PEOPLE]
        assert response.sources[0].timestamp == "00:05"
        system_instruction, prompt, options = generator.calls[0]
        assert system_instruction == ASPECT_SYSTEM_INSTRUCTION
        assert "## PEOPLE IN VIDEO" in prompt
        assert "How many robbers were there?" in prompt
        assert options.max_output_tokens == 2048

    @pytest.mark.asyncio
    async def test_answer_unknown_video(self, engine: RAGEngine) -> None:
        with pytest.raises(NotFoundError):
            await engine.answer("missing", "who is there?")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query,top_k", [("", None), ("   ", None), ("who?", 0), ("who?", -1)])
    async def test_answer_invalid_input(self, engine: RAGEngine, query: str, top_k) -> None:
        with pytest.raises(InvalidInputError):
            await engine.answer("v1", query, top_k)

    @pytest.mark.asyncio
    async def test_falls_back_to_unfiltered(self, engine: RAGEngine, store: InMemoryAspectStore) -> None:
        search = AsyncMock(wraps=store.search)
        store.search = search

        response = await engine.answer("v1", "lighting")

        assert search.await_count == 2
        assert search.await_args_list[0].kwargs["aspect_types"] == [AspectType.SCENE]
        assert search.await_args_list[1].kwargs["aspect_types"] is None
        assert response.sources

    @pytest.mark.asyncio
    async def test_falls_back_to_frames(
        self, store: InMemoryAspectStore, embeddings: FakeEmbeddings, generator: FakeGenerator
    ) -> None:
        await store.insert_video(_video("v3", "Legacy"))
        await store.insert_frames(
            [FrameRecord("f1", "v3", "00:04", 4, "A dog runs", embeddings.vector("A dog runs"))]
        )
        engine = RAGEngine(store, embeddings, generator)

        response = await engine.answer("v3", "What does the dog do?")

        assert [s.content for s in response.sources] == ["A dog runs"]
        assert response.sources[0].aspect_type is None
        system_instruction, _, options = generator.calls[0]
        assert system_instruction == FRAME_SYSTEM_INSTRUCTION
        assert options.max_output_tokens == 1024

    @pytest.mark.asyncio
    async def test_no_content_skips_generation(
        self, store: InMemoryAspectStore, embeddings: FakeEmbeddings, generator: FakeGenerator
    ) -> None:
        await store.insert_video(_video("empty", "Empty"))
        engine = RAGEngine(store, embeddings, generator)

        response = await engine.answer("empty", "Who is there?")

        assert response.answer == NO_CONTENT_ANSWER
        assert response.sources == []
        assert generator.calls == []

    @pytest.mark.asyncio
    async def test_embedding_failure_degrades(
        self, store: InMemoryAspectStore, embeddings: FakeEmbeddings, generator: FakeGenerator
    ) -> None:
        embeddings.embed = AsyncMock(side_effect=RuntimeError("down"))
        engine = RAGEngine(store, embeddings, generator)

        response = await engine.answer("v1", "Who is there?")

        assert response.answer == NO_CONTENT_ANSWER
        assert generator.calls == []

    @pytest.mark.asyncio
    async def test_search_failure_degrades(self, engine: RAGEngine, store: InMemoryAspectStore) -> None:
        store.search = AsyncMock(side_effect=RuntimeError("timeout"))

        response = await engine.answer("v1", "Who is there?")

        assert response.answer == NO_CONTENT_ANSWER

    @pytest.mark.asyncio
    async def test_retrieve_without_vector(self, engine: RAGEngine) -> None:
        retrieval = await engine.retrieve(None, QueryClassification(list(AspectType), 0.3))

        assert retrieval.is_empty
        assert retrieval.stage == "none"

    @pytest.mark.asyncio
    async def test_answer_frames(self, store, embeddings, generator) -> None:
        await store.insert_frames(
            [FrameRecord("f1", "v1", "00:04", 4, "Man at counter", embeddings.vector("Man at counter"))]
        )
        engine = RAGEngine(store, embeddings, generator)

        response = await engine.answer_frames("v1", "man at counter")

        assert response.sources[0].content == "Man at counter"
        assert generator.calls[0][0] == FRAME_SYSTEM_INSTRUCTION

    @pytest.mark.asyncio
    async def test_global_search(self, engine: RAGEngine, store: InMemoryAspectStore) -> None:
        get_video = AsyncMock(wraps=store.get_video)
        store.get_video = get_video

        response = await engine.global_search("asdkj qwer", top_k=3)

        assert len(response.hits) == 3
        assert {h.video_title for h in response.hits} == {"Store camera", "Parking lot"}
        assert get_video.await_count == 2
        assert sum(response.aspect_counts.values()) == 3
        assert response.aspects == list(AspectType)

    @pytest.mark.asyncio
    async def test_global_search_unknown_title(self, engine: RAGEngine, store: InMemoryAspectStore) -> None:
        store._videos.pop("v2")

        response = await engine.global_search("parking lot lighting")

        titles = {h.video_id: h.video_title for h in response.hits}
        assert titles["v2"] == "Unknown"

    @pytest.mark.asyncio
    async def test_find_similar(self, engine: RAGEngine) -> None:
        hits = await engine.find_similar_by_query("black hoodie", video_id="v1", top_k=1)

        assert len(hits) == 1
        assert hits[0].video_id == "v1"
        assert hits[0].video_title == "Store camera"
