"""Capability interfaces for embedding, text generation and video analysis."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..analysis import AnalysisResult, TokenUsage
from ..exceptions import UpstreamUnavailableError


class QualityLevel(Enum):
    """Trade-off between determinism and creativity for generation."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def temperature(self) -> float:
        return {"low": 0.2, "medium": 0.4, "high": 0.7}[self.value]


@dataclass
class TextGenerationOptions:
    """Per-call generation options."""

    max_output_tokens: int = 2048
    quality_level: QualityLevel = QualityLevel.MEDIUM


@dataclass
class TextGenerationResult:
    """Generated text and usage."""

    text: str
    token_usage: Optional[TokenUsage] = None


@dataclass
class FrameSample:
    """A sampled video frame image."""

    timestamp: str
    data: bytes
    mime_type: str = "image/jpeg"


class EmbeddingProvider(ABC):
    """Maps text to fixed-dimension, unit-normalized vectors."""

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Vector dimension."""
        pass

    @property
    @abstractmethod
    def model_name(self) -> str:
        pass

    @property
    @abstractmethod
    def is_ready(self) -> bool:
        pass

    @abstractmethod
    async def initialize(self) -> None:
        """Load the model or client. Must be called before embedding."""
        pass

    async def close(self) -> None:
        """Release resources."""
        pass

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """
        Embed a single text.

        Args:
            text: Text to embed

        Returns:
            Unit-normalized vector
        """
        pass

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """
        Embed many texts; output order equals input order.

        Args:
            texts: Texts to embed

        Returns:
            One unit-normalized vector per text
        """
        pass

    def _require_ready(self) -> None:
        if not self.is_ready:
            raise UpstreamUnavailableError(
                f"Embedding provider {self.model_name} is not initialized"
            )


class TextGenerator(ABC):
    """Generates text from a system instruction and a prompt."""

    @abstractmethod
    async def generate(
        self,
        system_instruction: str,
        prompt: str,
        options: Optional[TextGenerationOptions] = None,
    ) -> TextGenerationResult:
        """
        Generate text.

        Args:
            system_instruction: Instruction constraining the model
            prompt: User prompt
            options: Token budget and quality level

        Returns:
            TextGenerationResult
        """
        pass


class VideoAnalyzer(ABC):
    """Turns raw video or sampled frames into structured observations."""

    @abstractmethod
    async def analyze_video(self, file_uri: str) -> AnalysisResult:
        """Analyze an uploaded video file."""
        pass

    @abstractmethod
    async def analyze_frame_batch(
        self,
        frames: list[FrameSample],
        batch_index: int = 0,
        total_batches: int = 1,
    ) -> AnalysisResult:
        """Analyze one batch of sampled frames."""
        pass
