"""Gemini Embeddings for aspect record and query vectors."""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Optional

import google.generativeai as genai
import numpy as np

from ...utils import chunk_list, retry_with_backoff
from ..base import EmbeddingProvider


class TaskType(Enum):
    """Task type for embedding generation."""

    RETRIEVAL_DOCUMENT = "RETRIEVAL_DOCUMENT"
    RETRIEVAL_QUERY = "RETRIEVAL_QUERY"
    SEMANTIC_SIMILARITY = "SEMANTIC_SIMILARITY"


def normalize(vector: list[float]) -> list[float]:
    """L2-normalize a vector; zero vectors are returned unchanged."""
    arr = np.asarray(vector, dtype=np.float32)
    norm = np.linalg.norm(arr)
    if norm == 0:
        return arr.tolist()
    return (arr / norm).tolist()


class GeminiEmbeddings(EmbeddingProvider):
    """Gemini embedding generation for vector search."""

    DEFAULT_MODEL = "models/text-embedding-004"

    EMBEDDING_DIMENSIONS = 768

    # Maximum text length (in characters)
    MAX_TEXT_LENGTH = 10000

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        batch_size: int = 32,
        dimensions: int = EMBEDDING_DIMENSIONS,
        task_type: TaskType = TaskType.SEMANTIC_SIMILARITY,
    ) -> None:
        """
        Initialize Gemini embeddings client.

        Args:
            api_key: Google AI Studio API key
            model: Embedding model to use
            batch_size: Texts per request
            dimensions: Output dimension of the model
            task_type: Task type sent with every request
        """
        self._api_key = api_key
        self._model = model
        self._batch_size = batch_size
        self._dimensions = dimensions
        self._task_type = task_type
        self._executor: Optional[ThreadPoolExecutor] = None

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def model_name(self) -> str:
        return self._model

    @property
    def is_ready(self) -> bool:
        return self._executor is not None

    async def initialize(self) -> None:
        genai.configure(api_key=self._api_key)
        self._executor = ThreadPoolExecutor(max_workers=4)

    async def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None

    def _truncate_text(self, text: str) -> str:
        """Truncate text to maximum length."""
        if len(text) > self.MAX_TEXT_LENGTH:
            return text[: self.MAX_TEXT_LENGTH]
        return text

    @retry_with_backoff(max_retries=3)
    def _embed_sync(self, content) -> list:
        """Synchronous embedding call for use with executor."""
        result = genai.embed_content(
            model=self._model,
            content=content,
            task_type=self._task_type.value,
        )
        return result["embedding"]

    def _embed_batch_sync(self, texts: list[str]) -> list[list[float]]:
        texts = [self._truncate_text(t) for t in texts]

        all_embeddings: list[list[float]] = []
        for batch in chunk_list(texts, self._batch_size):
            all_embeddings.extend(normalize(v) for v in self._embed_sync(batch))
        return all_embeddings

    async def embed(self, text: str) -> list[float]:
        """
        Generate a normalized embedding for a single text.

        Args:
            text: Text to embed

        Returns:
            List of floats representing the embedding
        """
        self._require_ready()
        loop = asyncio.get_event_loop()
        vector = await loop.run_in_executor(
            self._executor,
            self._embed_sync,
            self._truncate_text(text),
        )
        return normalize(vector)

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """
        Generate normalized embeddings for multiple texts.

        Args:
            texts: List of texts to embed

        Returns:
            List of embeddings in input order
        """
        self._require_ready()
        if not texts:
            return []
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(
            self._executor,
            self._embed_batch_sync,
            texts,
        )
