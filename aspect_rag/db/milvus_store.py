"""Milvus-backed aspect store."""

from __future__ import annotations

import asyncio
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar

from pymilvus import (
    Collection,
    CollectionSchema,
    DataType,
    FieldSchema,
    connections,
    utility,
)

from ..analysis import ConfidenceLevel
from ..schema import (
    AspectRecord,
    AspectSearchResult,
    AspectType,
    FrameRecord,
    FrameSearchResult,
    VideoRecord,
)
from .aspect_store import AspectStore
from .filters import SearchFilter, quote

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class MilvusConfig:
    """Milvus connection configuration."""

    host: str = "localhost"
    port: int = 19530
    collection_prefix: str = "aspect_rag"
    embedding_dim: int = 384
    alias: str = "default"
    index_threshold: int = 256
    query_limit: int = 16384


# Milvus requires a vector field in every collection
_PLACEHOLDER_DIM = 2

_VIDEO_FIELDS = [
    "id", "source_uri", "title", "full_summary", "confidence",
    "indexed_at", "aspect_record_count", "duration", "thought_summary",
]
_ASPECT_FIELDS = [
    "id", "video_id", "timestamp", "timestamp_seconds",
    "aspect_type", "content", "metadata",
]
_FRAME_FIELDS = ["id", "video_id", "timestamp", "timestamp_seconds", "description"]


def _varchar(name: str, max_length: int = 65535) -> FieldSchema:
    return FieldSchema(name=name, dtype=DataType.VARCHAR, max_length=max_length)


class MilvusAspectStore(AspectStore):
    """Video registry and aspect records in three Milvus collections."""

    FLAT_INDEX_PARAMS: dict[str, Any] = {
        "metric_type": "COSINE",
        "index_type": "FLAT",
        "params": {},
    }

    IVF_INDEX_PARAMS: dict[str, Any] = {
        "metric_type": "COSINE",
        "index_type": "IVF_FLAT",
        "params": {"nlist": 128},
    }

    FLAT_SEARCH_PARAMS: dict[str, Any] = {"metric_type": "COSINE", "params": {}}

    IVF_SEARCH_PARAMS: dict[str, Any] = {
        "metric_type": "COSINE",
        "params": {"nprobe": 10},
    }

    def __init__(self, config: MilvusConfig) -> None:
        """
        Initialize Milvus store.

        Args:
            config: Milvus connection configuration
        """
        super().__init__(config.embedding_dim)
        self._config = config
        self._collections: dict[str, Collection] = {}
        self._approximate: dict[str, bool] = {}
        self._connected = False
        # One worker serializes access to the collection cache
        self._executor = ThreadPoolExecutor(max_workers=1)

    async def _run(self, func: Callable[..., T], *args: Any) -> T:
        """Run a blocking pymilvus call off the event loop."""
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(self._executor, func, *args)

    @property
    def videos_name(self) -> str:
        return f"{self._config.collection_prefix}_videos"

    @property
    def aspects_name(self) -> str:
        return f"{self._config.collection_prefix}_aspects"

    @property
    def frames_name(self) -> str:
        return f"{self._config.collection_prefix}_frames"

    @property
    def is_ready(self) -> bool:
        return self._connected

    @property
    def location(self) -> str:
        return f"milvus://{self._config.host}:{self._config.port}/{self._config.collection_prefix}"

    async def connect(self) -> None:
        """Establish connection and open any collections that already exist."""
        await self._run(self._connect_sync)
        logger.info(f"Connected to {self.location}")

    def _connect_sync(self) -> None:
        connections.connect(
            alias=self._config.alias,
            host=self._config.host,
            port=self._config.port,
        )
        self._connected = True

        for name in (self.videos_name, self.aspects_name, self.frames_name):
            if utility.has_collection(name, using=self._config.alias):
                collection = Collection(name=name, using=self._config.alias)
                self._collections[name] = collection
                self._approximate[name] = any(
                    idx.params.get("index_type") == "IVF_FLAT" for idx in collection.indexes
                )

    async def close(self) -> None:
        """Close connection to Milvus."""
        await self._run(self._close_sync)

    def _close_sync(self) -> None:
        if self._connected:
            connections.disconnect(alias=self._config.alias)
            self._connected = False
            self._collections.clear()

    # Schema

    def _schema(self, name: str) -> tuple[CollectionSchema, str, int]:
        dim = self._config.embedding_dim
        text = _varchar
        primary = FieldSchema(name="id", dtype=DataType.VARCHAR, max_length=64, is_primary=True)

        if name == self.videos_name:
            fields = [
                primary,
                text("source_uri", 2048),
                text("title", 1024),
                text("full_summary"),
                text("confidence", 16),
                text("indexed_at", 64),
                FieldSchema(name="aspect_record_count", dtype=DataType.INT64),
                FieldSchema(name="duration", dtype=DataType.DOUBLE),
                text("thought_summary"),
                FieldSchema(name="vector", dtype=DataType.FLOAT_VECTOR, dim=_PLACEHOLDER_DIM),
            ]
            return CollectionSchema(fields=fields, description="Indexed videos"), "L2", _PLACEHOLDER_DIM

        if name == self.aspects_name:
            fields = [
                primary,
                text("video_id", 64),
                text("timestamp", 32),
                FieldSchema(name="timestamp_seconds", dtype=DataType.DOUBLE),
                text("aspect_type", 16),
                text("content"),
                text("metadata"),
                FieldSchema(name="vector", dtype=DataType.FLOAT_VECTOR, dim=dim),
            ]
            return CollectionSchema(fields=fields, description="Aspect records"), "COSINE", dim

        fields = [
            primary,
            text("video_id", 64),
            text("timestamp", 32),
            FieldSchema(name="timestamp_seconds", dtype=DataType.DOUBLE),
            text("description"),
            FieldSchema(name="vector", dtype=DataType.FLOAT_VECTOR, dim=dim),
        ]
        return CollectionSchema(fields=fields, description="Legacy frame records"), "COSINE", dim

    def _get_collection(self, name: str, create: bool = False) -> Optional[Collection]:
        """Get a collection, creating it on first write."""
        self._require_ready()
        if name in self._collections:
            return self._collections[name]
        if not create:
            return None

        schema, metric, _ = self._schema(name)
        collection = Collection(name=name, schema=schema, using=self._config.alias)
        index_params = dict(self.FLAT_INDEX_PARAMS, metric_type=metric)
        collection.create_index(field_name="vector", index_params=index_params)
        self._collections[name] = collection
        self._approximate[name] = False
        logger.info(f"Created collection {name}")
        return collection

    def _query(self, name: str, expr: str, output_fields: list[str]) -> list[dict]:
        collection = self._get_collection(name)
        if collection is None:
            return []
        collection.load()
        return collection.query(
            expr=expr,
            output_fields=output_fields,
            limit=self._config.query_limit,
        )

    def _count(self, name: str) -> int:
        collection = self._get_collection(name)
        if collection is None:
            return 0
        collection.load()
        rows = collection.query(expr="", output_fields=["count(*)"])
        return int(rows[0]["count(*)"]) if rows else 0

    # Row conversion

    @staticmethod
    def _to_video(row: dict) -> VideoRecord:
        duration = row.get("duration", -1.0)
        return VideoRecord(
            id=row["id"],
            source_uri=row["source_uri"],
            title=row["title"],
            full_summary=row.get("full_summary", ""),
            confidence=ConfidenceLevel.parse(row.get("confidence")),
            aspect_record_count=int(row.get("aspect_record_count", 0)),
            duration=duration if duration is not None and duration >= 0 else None,
            thought_summary=row.get("thought_summary") or None,
            indexed_at=row.get("indexed_at", ""),
        )

    @staticmethod
    def _to_aspect(row: dict) -> AspectRecord:
        return AspectRecord(
            id=row["id"],
            video_id=row["video_id"],
            timestamp=row["timestamp"],
            timestamp_seconds=float(row["timestamp_seconds"]),
            aspect_type=AspectType(row["aspect_type"]),
            content=row["content"],
            vector=[],  # Don't return embedding to save memory
            metadata=json.loads(row.get("metadata") or "{}"),
        )

    @staticmethod
    def _to_frame(row: dict) -> FrameRecord:
        return FrameRecord(
            id=row["id"],
            video_id=row["video_id"],
            timestamp=row["timestamp"],
            timestamp_seconds=float(row["timestamp_seconds"]),
            description=row["description"],
            vector=[],
        )

    # Video registry

    async def insert_video(self, video: VideoRecord) -> None:
        await self._run(self._insert_video_sync, video)

    def _insert_video_sync(self, video: VideoRecord) -> None:
        collection = self._get_collection(self.videos_name, create=True)
        collection.insert(
            [
                [video.id],
                [video.source_uri],
                [video.title],
                [video.full_summary],
                [video.confidence.value],
                [video.indexed_at],
                [video.aspect_record_count],
                [video.duration if video.duration is not None else -1.0],
                [video.thought_summary or ""],
                [[0.0] * _PLACEHOLDER_DIM],
            ]
        )
        collection.flush()

    async def get_video(self, video_id: str) -> Optional[VideoRecord]:
        rows = await self._run(self._query, self.videos_name, f"id == {quote(video_id)}", _VIDEO_FIELDS)
        return self._to_video(rows[0]) if rows else None

    async def list_videos(self) -> list[VideoRecord]:
        rows = await self._run(self._query, self.videos_name, 'id != ""', _VIDEO_FIELDS)
        videos = [self._to_video(r) for r in rows]
        videos.sort(key=lambda v: v.indexed_at, reverse=True)
        return videos

    async def is_indexed(self, source_uri: str) -> Optional[str]:
        rows = await self._run(
            self._query, self.videos_name, f"source_uri == {quote(source_uri)}", ["id"]
        )
        return rows[0]["id"] if rows else None

    # Aspect records

    async def insert_aspect_records(self, records: list[AspectRecord], batch_size: int = 100) -> int:
        """
        Insert aspect records in batches.

        Args:
            records: Embedded records
            batch_size: Records per insert call

        Returns:
            Number of records inserted
        """
        for record in records:
            self._check_dimension(record.vector)
        if not records:
            return 0
        return await self._run(self._insert_aspect_records_sync, records, batch_size)

    def _insert_aspect_records_sync(self, records: list[AspectRecord], batch_size: int) -> int:
        collection = self._get_collection(self.aspects_name, create=True)
        for i in range(0, len(records), batch_size):
            batch = records[i : i + batch_size]
            collection.insert(
                [
                    [r.id for r in batch],
                    [r.video_id for r in batch],
                    [r.timestamp for r in batch],
                    [r.timestamp_seconds for r in batch],
                    [r.aspect_type.value for r in batch],
                    [r.content for r in batch],
                    [json.dumps(r.metadata) for r in batch],
                    [r.vector for r in batch],
                ]
            )
        collection.flush()
        return len(records)

    def _search_params(self, name: str) -> dict[str, Any]:
        if self._approximate.get(name):
            return self.IVF_SEARCH_PARAMS
        return self.FLAT_SEARCH_PARAMS

    def _search_sync(
        self,
        name: str,
        query_vector: list[float],
        expr: str,
        limit: int,
        output_fields: list[str],
    ) -> list[tuple[dict, float]]:
        """Vector search returning (row, distance) pairs."""
        collection = self._get_collection(name)
        if collection is None:
            return []
        collection.load()

        results = collection.search(
            data=[query_vector],
            anns_field="vector",
            param=self._search_params(name),
            limit=limit,
            expr=expr,
            output_fields=output_fields,
        )

        rows: list[tuple[dict, float]] = []
        for hit in results[0]:
            row = {f: hit.entity.get(f) for f in output_fields}
            row["id"] = hit.id
            # COSINE metric reports similarity
            rows.append((row, 1.0 - hit.score))
        return rows

    async def search(
        self,
        query_vector: list[float],
        video_id: Optional[str] = None,
        aspect_types: Optional[list[AspectType]] = None,
        limit: int = 10,
    ) -> list[AspectSearchResult]:
        self._check_dimension(query_vector)
        expr = SearchFilter(video_id=video_id, aspect_types=aspect_types).to_expr()
        rows = await self._run(
            self._search_sync, self.aspects_name, query_vector, expr, limit, _ASPECT_FIELDS
        )
        return [
            AspectSearchResult(record=self._to_aspect(row), distance=distance)
            for row, distance in rows
        ]

    async def get_aspect_records(
        self,
        video_id: str,
        aspect_type: Optional[AspectType] = None,
    ) -> list[AspectRecord]:
        search_filter = SearchFilter(
            video_id=video_id,
            aspect_types=[aspect_type] if aspect_type else None,
        )
        rows = await self._run(self._query, self.aspects_name, search_filter.to_expr(), _ASPECT_FIELDS)
        records = [self._to_aspect(r) for r in rows]
        records.sort(key=lambda r: r.timestamp_seconds)
        return records

    # Legacy frames

    async def insert_frames(self, frames: list[FrameRecord]) -> int:
        for frame in frames:
            self._check_dimension(frame.vector)
        if not frames:
            return 0
        return await self._run(self._insert_frames_sync, frames)

    def _insert_frames_sync(self, frames: list[FrameRecord]) -> int:
        collection = self._get_collection(self.frames_name, create=True)
        collection.insert(
            [
                [f.id for f in frames],
                [f.video_id for f in frames],
                [f.timestamp for f in frames],
                [f.timestamp_seconds for f in frames],
                [f.description for f in frames],
                [f.vector for f in frames],
            ]
        )
        collection.flush()
        return len(frames)

    async def search_frames(
        self,
        query_vector: list[float],
        video_id: Optional[str] = None,
        limit: int = 10,
    ) -> list[FrameSearchResult]:
        self._check_dimension(query_vector)
        expr = SearchFilter(video_id=video_id).video_expr()
        rows = await self._run(
            self._search_sync, self.frames_name, query_vector, expr, limit, _FRAME_FIELDS
        )
        return [
            FrameSearchResult(frame=self._to_frame(row), distance=distance)
            for row, distance in rows
        ]

    async def get_video_frames(self, video_id: str) -> list[FrameRecord]:
        rows = await self._run(
            self._query, self.frames_name, f"video_id == {quote(video_id)}", _FRAME_FIELDS
        )
        frames = [self._to_frame(r) for r in rows]
        frames.sort(key=lambda f: f.timestamp_seconds)
        return frames

    # Maintenance

    def _delete_where(self, name: str, expr: str) -> int:
        collection = self._get_collection(name)
        if collection is None:
            return 0
        collection.load()
        count = len(collection.query(expr=expr, output_fields=["id"], limit=self._config.query_limit))
        if count > 0:
            collection.delete(expr)
            collection.flush()
        return count

    def _delete_video_sync(self, video_id: str) -> int:
        video_expr = f"video_id == {quote(video_id)}"
        deleted = self._delete_where(self.frames_name, video_expr)
        deleted += self._delete_where(self.aspects_name, video_expr)
        self._delete_where(self.videos_name, f"id == {quote(video_id)}")
        return deleted

    async def delete_by_video_id(self, video_id: str) -> int:
        deleted = await self._run(self._delete_video_sync, video_id)
        logger.info(f"Deleted video {video_id} and {deleted} records")
        return deleted

    async def count_videos(self) -> int:
        return await self._run(self._count, self.videos_name)

    async def count_aspect_records(self) -> int:
        return await self._run(self._count, self.aspects_name)

    async def count_frames(self) -> int:
        return await self._run(self._count, self.frames_name)

    def _build_index_sync(self) -> None:
        for name in (self.aspects_name, self.frames_name):
            collection = self._get_collection(name)
            if collection is None or self._approximate.get(name):
                continue
            collection.release()
            collection.drop_index()
            collection.create_index(field_name="vector", index_params=self.IVF_INDEX_PARAMS)
            collection.load()
            self._approximate[name] = True
            logger.info(f"Built IVF_FLAT index on {name}")

    async def build_index(self) -> None:
        """Replace the FLAT index with IVF_FLAT on the vector collections."""
        await self._run(self._build_index_sync)
