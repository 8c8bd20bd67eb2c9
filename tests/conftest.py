"""Shared fixtures and fake providers."""

from __future__ import annotations

import zlib
from typing import Any, Optional

import numpy as np
import pytest

from aspect_rag.analysis import AnalysisResult
from aspect_rag.db.aspect_store import InMemoryAspectStore
from aspect_rag.models.base import (
    EmbeddingProvider,
    TextGenerationOptions,
    TextGenerationResult,
    TextGenerator,
)

DIM = 16


class FakeEmbeddings(EmbeddingProvider):
    """Bag-of-words hashing embeddings; texts sharing words are close."""

    def __init__(self, dimensions: int = DIM) -> None:
        self._dims = dimensions
        self._ready = False
        self.calls: list[list[str]] = []

    @property
    def dimensions(self) -> int:
        return self._dims

    @property
    def model_name(self) -> str:
        return "fake-hash"

    @property
    def is_ready(self) -> bool:
        return self._ready

    async def initialize(self) -> None:
        self._ready = True

    async def close(self) -> None:
        self._ready = False

    def vector(self, text: str) -> list[float]:
        vec = np.zeros(self._dims, dtype=np.float32)
        for word in text.lower().split():
            vec[zlib.crc32(word.strip('.,:;"()[]').encode()) % self._dims] += 1.0
        norm = np.linalg.norm(vec)
        if norm == 0:
            vec[0] = 1.0
            norm = 1.0
        return (vec / norm).tolist()

    async def embed(self, text: str) -> list[float]:
        self._require_ready()
        return self.vector(text)

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self._require_ready()
        self.calls.append(list(texts))
        return [self.vector(t) for t in texts]


class FakeGenerator(TextGenerator):
    """Records prompts and returns a canned answer."""

    def __init__(self, text: str = "Generated answer") -> None:
        self.text = text
        self.calls: list[tuple[str, str, Optional[TextGenerationOptions]]] = []

    async def generate(
        self,
        system_instruction: str,
        prompt: str,
        options: Optional[TextGenerationOptions] = None,
    ) -> TextGenerationResult:
        self.calls.append((system_instruction, prompt, options))
        return TextGenerationResult(text=self.text)


def frame_dict(timestamp: str, **overrides: Any) -> dict[str, Any]:
    """A fully populated provider frame."""
    frame = {
        "timestamp": timestamp,
        "people": [
            {
                "id": "Person 1",
                "gender": "male",
                "apparentAge": "30s",
                "clothing": ["black hoodie", "blue jeans"],
                "action": "pointing at the cashier",
                "role": "perpetrator",
                "threatLevel": "high",
            }
        ],
        "objects": [{"name": "cash register", "color": "grey", "state": "open"}],
        "scene": {"locationType": "convenience store", "lighting": "fluorescent"},
        "audio": {
            "speech": [{"speaker": "Person 1", "text": "Open the register", "tone": "aggressive"}],
            "sounds": ["door chime"],
        },
        "textOnScreen": [{"text": "OPEN 24 HOURS", "type": "sign", "position": "window"}],
        "actionDescription": "A man in a black hoodie demands cash at the counter",
    }
    frame.update(overrides)
    return frame


def analysis_dict(timestamps: tuple[str, ...] = ("00:01", "00:04", "00:07")) -> dict[str, Any]:
    return {
        "summary": "A robbery at a convenience store.",
        "confidence": "High",
        "frames": [frame_dict(ts) for ts in timestamps],
    }


@pytest.fixture
def fake_embeddings() -> FakeEmbeddings:
    return FakeEmbeddings()


@pytest.fixture
def fake_generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def memory_store() -> InMemoryAspectStore:
    return InMemoryAspectStore(DIM)


@pytest.fixture
def sample_analysis() -> AnalysisResult:
    return AnalysisResult.from_dict(analysis_dict())
