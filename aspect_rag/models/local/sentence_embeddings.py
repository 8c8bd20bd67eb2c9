"""Local sentence-transformers embeddings."""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from sentence_transformers import SentenceTransformer

from ...utils import chunk_list
from ..base import EmbeddingProvider

logger = logging.getLogger(__name__)


class SentenceTransformerEmbeddings(EmbeddingProvider):
    """Runs a sentence-transformers model in-process."""

    DEFAULT_MODEL = "all-MiniLM-L6-v2"

    EMBEDDING_DIMENSIONS = 384

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        batch_size: int = 32,
        dimensions: int = EMBEDDING_DIMENSIONS,
        device: Optional[str] = None,
    ) -> None:
        """
        Args:
            model: sentence-transformers model name or path
            batch_size: Texts encoded per chunk
            dimensions: Expected output dimension
            device: Torch device; chosen automatically when None
        """
        self._model_name = model
        self._batch_size = batch_size
        self._dimensions = dimensions
        self._device = device
        self._model: Optional[SentenceTransformer] = None
        self._executor = ThreadPoolExecutor(max_workers=1)

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def is_ready(self) -> bool:
        return self._model is not None

    def _load_sync(self) -> SentenceTransformer:
        model = SentenceTransformer(self._model_name, device=self._device)
        # Warm-up so the first real request does not pay the lazy init cost
        warm = model.encode(["warm up"], normalize_embeddings=True)
        actual = int(warm.shape[1])
        if actual != self._dimensions:
            logger.warning(
                f"Model {self._model_name} produces {actual}-d vectors, expected {self._dimensions}"
            )
            self._dimensions = actual
        return model

    async def initialize(self) -> None:
        if self._model is not None:
            return
        logger.info(f"Loading embedding model {self._model_name}")
        loop = asyncio.get_event_loop()
        self._model = await loop.run_in_executor(self._executor, self._load_sync)
        logger.info(f"Embedding model ready ({self._dimensions} dimensions)")

    async def close(self) -> None:
        self._model = None

    def _encode_sync(self, texts: list[str]) -> list[list[float]]:
        vectors: list[list[float]] = []
        for chunk in chunk_list(texts, self._batch_size):
            encoded = self._model.encode(chunk, normalize_embeddings=True)
            vectors.extend(v.tolist() for v in encoded)
        return vectors

    async def embed(self, text: str) -> list[float]:
        self._require_ready()
        vectors = await self.embed_batch([text])
        return vectors[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """
        Encode texts in sequential chunks of ``batch_size``.

        Args:
            texts: Texts to embed

        Returns:
            Normalized vectors in input order
        """
        self._require_ready()
        if not texts:
            return []
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(self._executor, self._encode_sync, texts)
