"""Gemini LLM for grounded answer synthesis."""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

import google.generativeai as genai

from ...analysis import TokenUsage
from ...utils import retry_with_backoff
from ..base import TextGenerationOptions, TextGenerationResult, TextGenerator

logger = logging.getLogger(__name__)


@dataclass
class LLMGenerationConfig:
    """Sampling settings not controlled per call."""

    top_p: float = 0.9
    top_k: int = 40


class GeminiLLM(TextGenerator):
    """Gemini text generation with a system instruction."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.0-flash",
        generation_config: Optional[LLMGenerationConfig] = None,
    ) -> None:
        """
        Initialize Gemini LLM client.

        Args:
            api_key: Google AI Studio API key
            model: Gemini model to use
            generation_config: Default sampling configuration
        """
        self._api_key = api_key
        self._model_name = model
        self._generation_config = generation_config or LLMGenerationConfig()

        genai.configure(api_key=api_key)
        self._executor = ThreadPoolExecutor(max_workers=4)

    def _build_generation_config(self, options: TextGenerationOptions) -> dict:
        """Build generation config dict for API call."""
        return {
            "temperature": options.quality_level.temperature,
            "top_p": self._generation_config.top_p,
            "top_k": self._generation_config.top_k,
            "max_output_tokens": options.max_output_tokens,
        }

    def _extract_usage(self, response) -> Optional[TokenUsage]:
        """Extract token usage from response."""
        usage_metadata = getattr(response, "usage_metadata", None)
        if usage_metadata is None:
            return None
        thoughts = getattr(usage_metadata, "thoughts_token_count", None)
        return TokenUsage(
            input_tokens=getattr(usage_metadata, "prompt_token_count", 0) or 0,
            output_tokens=getattr(usage_metadata, "candidates_token_count", 0) or 0,
            thoughts_tokens=thoughts if isinstance(thoughts, int) else None,
        )

    @retry_with_backoff(max_retries=3)
    def _generate_sync(
        self,
        system_instruction: str,
        prompt: str,
        options: TextGenerationOptions,
    ) -> TextGenerationResult:
        """Synchronous generation for use with executor."""
        model = genai.GenerativeModel(
            self._model_name,
            system_instruction=system_instruction,
        )

        response = model.generate_content(
            prompt,
            generation_config=self._build_generation_config(options),
        )

        return TextGenerationResult(
            text=response.text,
            token_usage=self._extract_usage(response),
        )

    async def generate(
        self,
        system_instruction: str,
        prompt: str,
        options: Optional[TextGenerationOptions] = None,
    ) -> TextGenerationResult:
        """
        Generate text response.

        Args:
            system_instruction: System instruction
            prompt: User prompt
            options: Token budget and quality level

        Returns:
            TextGenerationResult with text and usage
        """
        options = options or TextGenerationOptions()
        loop = asyncio.get_event_loop()
        result = await loop.run_in_executor(
            self._executor,
            self._generate_sync,
            system_instruction,
            prompt,
            options,
        )
        logger.debug(f"Gemini generated {len(result.text)} chars with {self._model_name}")
        return result
