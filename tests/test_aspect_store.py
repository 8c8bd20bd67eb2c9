"""Tests for the in-memory aspect store."""

from __future__ import annotations

import pytest
import pytest_asyncio

from aspect_rag.analysis import ConfidenceLevel
from aspect_rag.db.aspect_store import InMemoryAspectStore, cosine_distances
from aspect_rag.exceptions import EmbeddingDimensionError, UpstreamUnavailableError
from aspect_rag.schema import AspectRecord, AspectType, FrameRecord, VideoRecord


def _unit(index: int, dim: int = 4) -> list[float]:
    vec = [0.0] * dim
    vec[index] = 1.0
    return vec


def _record(record_id: str, video_id: str, aspect: AspectType, vector: list[float], ts: float) -> AspectRecord:
    return AspectRecord(
        id=record_id,
        video_id=video_id,
        timestamp=f"00:{int(ts):02d}",
        timestamp_seconds=ts,
        aspect_type=aspect,
        content=f"{aspect.value} at {ts}",
        vector=vector,
    )


def _video(video_id: str, source_uri: str, indexed_at: str = "2024-01-01T00:00:00") -> VideoRecord:
    return VideoRecord(
        id=video_id,
        source_uri=source_uri,
        title=f"Video {video_id}",
        full_summary="summary",
        confidence=ConfidenceLevel.HIGH,
        indexed_at=indexed_at,
    )


class TestCosineDistances:
    """Tests for cosine_distances."""

    def test_identical_and_orthogonal(self) -> None:
        distances = cosine_distances(_unit(0), [_unit(0), _unit(1)])

        assert distances[0] == pytest.approx(0.0)
        assert distances[1] == pytest.approx(1.0)

    def test_zero_vector(self) -> None:
        distances = cosine_distances(_unit(0), [[0.0] * 4])

        assert distances[0] == pytest.approx(1.0)


class TestInMemoryAspectStore:
    """Tests for InMemoryAspectStore."""

    @pytest_asyncio.fixture
    async def store(self) -> InMemoryAspectStore:
        store = InMemoryAspectStore(4)
        await store.connect()
        await store.insert_video(_video("v1", "file:///a.mp4", "2024-01-01T00:00:00"))
        await store.insert_video(_video("v2", "file:///b.mp4", "2024-02-01T00:00:00"))
        await store.insert_aspect_records(
            [
                _record("r1", "v1", AspectType.PEOPLE, _unit(0), 5),
                _record("r2", "v1", AspectType.SCENE, _unit(1), 1),
                _record("r3", "v2", AspectType.PEOPLE, [0.9, 0.1, 0.0, 0.0], 3),
            ]
        )
        return store

    @pytest.mark.asyncio
    async def test_requires_connect(self) -> None:
        store = InMemoryAspectStore(4)

        with pytest.raises(UpstreamUnavailableError):
            await store.get_video("v1")

    @pytest.mark.asyncio
    async def test_registry(self, store: InMemoryAspectStore) -> None:
        assert (await store.get_video("v1")).title == "Video v1"
        assert await store.get_video("missing") is None
        assert await store.is_indexed("file:///a.mp4") == "v1"
        assert await store.is_indexed("file:///c.mp4") is None
        assert [v.id for v in await store.list_videos()] == ["v2", "v1"]

    @pytest.mark.asyncio
    async def test_search_orders_by_distance(self, store: InMemoryAspectStore) -> None:
        results = await store.search(_unit(0), limit=3)

        assert [r.record.id for r in results] == ["r1", "r3", "r2"]
        assert results[0].distance == pytest.approx(0.0)
        assert results[0].relevance_score == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_search_filters(self, store: InMemoryAspectStore) -> None:
        by_video = await store.search(_unit(0), video_id="v1")
        by_aspect = await store.search(_unit(0), aspect_types=[AspectType.SCENE])
        both = await store.search(_unit(0), video_id="v2", aspect_types=[AspectType.SCENE])

        assert {r.record.id for r in by_video} == {"r1", "r2"}
        assert [r.record.id for r in by_aspect] == ["r2"]
        assert both == []

    @pytest.mark.asyncio
    async def test_search_limit(self, store: InMemoryAspectStore) -> None:
        assert len(await store.search(_unit(0), limit=1)) == 1

    @pytest.mark.asyncio
    async def test_dimension_mismatch(self, store: InMemoryAspectStore) -> None:
        with pytest.raises(EmbeddingDimensionError):
            await store.search([1.0, 0.0])

        with pytest.raises(EmbeddingDimensionError):
            await store.insert_aspect_records([_record("bad", "v1", AspectType.TEXT, [1.0], 0)])
        assert await store.count_aspect_records() == 3

    @pytest.mark.asyncio
    async def test_get_aspect_records_sorted(self, store: InMemoryAspectStore) -> None:
        records = await store.get_aspect_records("v1")
        people = await store.get_aspect_records("v1", AspectType.PEOPLE)

        assert [r.id for r in records] == ["r2", "r1"]
        assert [r.id for r in people] == ["r1"]

    @pytest.mark.asyncio
    async def test_aspect_counts(self, store: InMemoryAspectStore) -> None:
        counts = await store.get_video_aspect_counts("v1")

        assert counts["people"] == 1
        assert counts["scene"] == 1
        assert counts["audio"] == 0

    @pytest.mark.asyncio
    async def test_frames(self, store: InMemoryAspectStore) -> None:
        await store.insert_frames(
            [
                FrameRecord("f1", "v1", "00:09", 9.0, "later", _unit(2)),
                FrameRecord("f2", "v1", "00:02", 2.0, "earlier", _unit(3)),
            ]
        )

        results = await store.search_frames(_unit(3), video_id="v1")
        frames = await store.get_video_frames("v1")

        assert results[0].frame.id == "f2"
        assert [f.id for f in frames] == ["f2", "f1"]
        assert await store.search_frames(_unit(3), video_id="v2") == []

    @pytest.mark.asyncio
    async def test_delete_by_video_id(self, store: InMemoryAspectStore) -> None:
        await store.insert_frames([FrameRecord("f1", "v1", "00:01", 1.0, "d", _unit(2))])

        deleted = await store.delete_by_video_id("v1")

        assert deleted == 3
        assert await store.get_video("v1") is None
        assert await store.get_aspect_records("v1") == []
        assert await store.count_videos() == 1
        assert await store.count_aspect_records() == 1
        assert await store.count_frames() == 0
