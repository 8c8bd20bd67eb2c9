"""Unit tests for the Milvus aspect store."""

from __future__ import annotations

import json
import threading
from unittest.mock import MagicMock, patch

import pytest

from aspect_rag.analysis import ConfidenceLevel
from aspect_rag.db.milvus_store import MilvusAspectStore, MilvusConfig
from aspect_rag.exceptions import EmbeddingDimensionError, UpstreamUnavailableError
from aspect_rag.schema import AspectRecord, AspectType, VideoRecord

MODULE = "aspect_rag.db.milvus_store"


class TestMilvusConfig:
    """Tests for MilvusConfig dataclass."""

    def test_default_values(self) -> None:
        """Test default configuration values."""
        config = MilvusConfig()
        assert config.host == "localhost"
        assert config.port == 19530
        assert config.collection_prefix == "aspect_rag"
        assert config.embedding_dim == 384
        assert config.index_threshold == 256


def _hit(record_id: str, score: float, **fields) -> MagicMock:
    hit = MagicMock()
    hit.id = record_id
    hit.score = score
    row = {
        "video_id": "v1",
        "timestamp": "00:05",
        "timestamp_seconds": 5.0,
        "aspect_type": "people",
        "content": "At 00:05: Person 1: male",
        "metadata": json.dumps({"people": [{"id": "Person 1"}]}),
    }
    row.update(fields)
    hit.entity.get.side_effect = row.get
    return hit


class TestMilvusAspectStore:
    """Tests for MilvusAspectStore class."""

    @pytest.fixture
    def config(self) -> MilvusConfig:
        """Create test configuration."""
        return MilvusConfig(collection_prefix="test", embedding_dim=4)

    @pytest.fixture
    def milvus(self):
        """Patch pymilvus entry points used by the store."""
        with patch(f"{MODULE}.connections") as connections, patch(
            f"{MODULE}.utility"
        ) as utility, patch(f"{MODULE}.Collection") as collection_cls:
            utility.has_collection.return_value = False
            collection = MagicMock()
            collection.indexes = []
            collection_cls.return_value = collection
            yield {
                "connections": connections,
                "utility": utility,
                "Collection": collection_cls,
                "collection": collection,
            }

    @pytest.fixture
    def store(self, config: MilvusConfig, milvus) -> MilvusAspectStore:
        return MilvusAspectStore(config)

    def test_collection_names(self, store: MilvusAspectStore) -> None:
        assert store.videos_name == "test_videos"
        assert store.aspects_name == "test_aspects"
        assert store.frames_name == "test_frames"
        assert store.location == "milvus://localhost:19530/test"

    @pytest.mark.asyncio
    async def test_connect(self, store: MilvusAspectStore, milvus) -> None:
        await store.connect()

        milvus["connections"].connect.assert_called_once_with(
            alias="default", host="localhost", port=19530
        )
        assert store.is_ready
        milvus["Collection"].assert_not_called()

    @pytest.mark.asyncio
    async def test_connect_opens_existing_collections(self, store: MilvusAspectStore, milvus) -> None:
        milvus["utility"].has_collection.return_value = True
        index = MagicMock()
        index.params = {"index_type": "IVF_FLAT"}
        milvus["collection"].indexes = [index]

        await store.connect()

        assert milvus["Collection"].call_count == 3
        assert store._search_params(store.aspects_name) == MilvusAspectStore.IVF_SEARCH_PARAMS

    @pytest.mark.asyncio
    async def test_requires_connect(self, store: MilvusAspectStore) -> None:
        with pytest.raises(UpstreamUnavailableError):
            await store.get_video("v1")

    @pytest.mark.asyncio
    async def test_close(self, store: MilvusAspectStore, milvus) -> None:
        await store.connect()
        await store.close()

        milvus["connections"].disconnect.assert_called_once_with(alias="default")
        assert not store.is_ready

    @pytest.mark.asyncio
    async def test_insert_video_creates_collection(self, store: MilvusAspectStore, milvus) -> None:
        await store.connect()
        video = VideoRecord(
            id="v1",
            source_uri="file:///a.mp4",
            title="A",
            full_summary="summary",
            confidence=ConfidenceLevel.LOW,
        )

        await store.insert_video(video)

        collection = milvus["collection"]
        assert milvus["Collection"].call_args.kwargs["name"] == "test_videos"
        collection.create_index.assert_called_once()
        data = collection.insert.call_args[0][0]
        assert data[0] == ["v1"]
        assert data[4] == ["Low"]
        assert data[7] == [-1.0]
        collection.flush.assert_called_once()

    @pytest.mark.asyncio
    async def test_get_video_missing_collection(self, store: MilvusAspectStore) -> None:
        await store.connect()

        assert await store.get_video("v1") is None
        assert await store.is_indexed("file:///a.mp4") is None
        assert await store.count_videos() == 0

    @pytest.mark.asyncio
    async def test_get_video(self, store: MilvusAspectStore, milvus) -> None:
        await store.connect()
        store._collections[store.videos_name] = milvus["collection"]
        milvus["collection"].query.return_value = [
            {
                "id": "v1",
                "source_uri": "file:///a.mp4",
                "title": "A",
                "full_summary": "s",
                "confidence": "High",
                "indexed_at": "2024-01-01",
                "aspect_record_count": 12,
                "duration": -1.0,
                "thought_summary": "",
            }
        ]

        video = await store.get_video("v1")

        assert video.confidence == ConfidenceLevel.HIGH
        assert video.aspect_record_count == 12
        assert video.duration is None
        assert video.thought_summary is None
        assert milvus["collection"].query.call_args.kwargs["expr"] == 'id == "v1"'

    @pytest.mark.asyncio
    async def test_insert_aspect_records_checks_dimension(self, store: MilvusAspectStore) -> None:
        await store.connect()
        record = AspectRecord(
            id="r1",
            video_id="v1",
            timestamp="00:01",
            timestamp_seconds=1.0,
            aspect_type=AspectType.SCENE,
            content="c",
            vector=[1.0, 0.0],
        )

        with pytest.raises(EmbeddingDimensionError):
            await store.insert_aspect_records([record])

    @pytest.mark.asyncio
    async def test_insert_aspect_records_batches(self, store: MilvusAspectStore, milvus) -> None:
        await store.connect()
        records = [
            AspectRecord(
                id=f"r{i}",
                video_id="v1",
                timestamp="00:01",
                timestamp_seconds=1.0,
                aspect_type=AspectType.ACTION,
                content="c",
                vector=[1.0, 0.0, 0.0, 0.0],
                metadata={"action": "c"},
            )
            for i in range(5)
        ]

        inserted = await store.insert_aspect_records(records, batch_size=2)

        assert inserted == 5
        assert milvus["collection"].insert.call_count == 3
        first = milvus["collection"].insert.call_args_list[0][0][0]
        assert first[4] == ["action", "action"]
        assert first[6] == ['{"action": "c"}'] * 2

    @pytest.mark.asyncio
    async def test_search_without_collection(self, store: MilvusAspectStore) -> None:
        await store.connect()

        assert await store.search([1.0, 0.0, 0.0, 0.0]) == []

    @pytest.mark.asyncio
    async def test_search(self, store: MilvusAspectStore, milvus) -> None:
        await store.connect()
        collection = milvus["collection"]
        store._collections[store.aspects_name] = collection
        collection.search.return_value = [[_hit("r1", 0.9), _hit("r2", 0.5, aspect_type="audio")]]

        results = await store.search(
            [1.0, 0.0, 0.0, 0.0],
            video_id="v1",
            aspect_types=[AspectType.PEOPLE, AspectType.AUDIO],
            limit=2,
        )

        kwargs = collection.search.call_args.kwargs
        assert kwargs["expr"] == 'video_id == "v1" and (aspect_type == "people" or aspect_type == "audio")'
        assert kwargs["limit"] == 2
        assert kwargs["param"] == MilvusAspectStore.FLAT_SEARCH_PARAMS
        assert [r.record.id for r in results] == ["r1", "r2"]
        assert results[0].distance == pytest.approx(0.1)
        assert results[0].relevance_score == pytest.approx(0.9)
        assert results[0].record.metadata == {"people": [{"id": "Person 1"}]}
        assert results[1].record.aspect_type == AspectType.AUDIO

    @pytest.mark.asyncio
    async def test_blocking_calls_run_off_event_loop(self, store: MilvusAspectStore, milvus) -> None:
        loop_thread = threading.get_ident()
        call_threads: list[int] = []
        milvus["connections"].connect.side_effect = lambda **_: call_threads.append(threading.get_ident())
        collection = milvus["collection"]
        collection.search.side_effect = lambda **_: call_threads.append(threading.get_ident()) or [[]]

        await store.connect()
        store._collections[store.aspects_name] = collection
        await store.search([1.0, 0.0, 0.0, 0.0])

        assert len(call_threads) == 2
        assert loop_thread not in call_threads

    @pytest.mark.asyncio
    async def test_count(self, store: MilvusAspectStore, milvus) -> None:
        await store.connect()
        store._collections[store.aspects_name] = milvus["collection"]
        milvus["collection"].query.return_value = [{"count(*)": 42}]

        assert await store.count_aspect_records() == 42

    @pytest.mark.asyncio
    async def test_delete_by_video_id(self, store: MilvusAspectStore, milvus) -> None:
        await store.connect()
        aspects = MagicMock()
        aspects.query.return_value = [{"id": "r1"}, {"id": "r2"}]
        videos = MagicMock()
        videos.query.return_value = [{"id": "v1"}]
        store._collections[store.aspects_name] = aspects
        store._collections[store.videos_name] = videos

        deleted = await store.delete_by_video_id("v1")

        assert deleted == 2
        aspects.delete.assert_called_once_with('video_id == "v1"')
        videos.delete.assert_called_once_with('id == "v1"')

    @pytest.mark.asyncio
    async def test_build_index(self, store: MilvusAspectStore, milvus) -> None:
        await store.connect()
        collection = milvus["collection"]
        store._collections[store.aspects_name] = collection

        await store.build_index()
        await store.build_index()

        collection.drop_index.assert_called_once()
        collection.create_index.assert_called_once_with(
            field_name="vector", index_params=MilvusAspectStore.IVF_INDEX_PARAMS
        )
        assert store._search_params(store.aspects_name) == MilvusAspectStore.IVF_SEARCH_PARAMS
