"""Groq chat-completions text generation."""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from groq import Groq

from ...analysis import TokenUsage
from ...utils import retry_with_backoff
from ..base import TextGenerationOptions, TextGenerationResult, TextGenerator

logger = logging.getLogger(__name__)


class GroqLLM(TextGenerator):
    """Text generation through Groq's OpenAI-compatible chat API."""

    DEFAULT_MODEL = "llama-3.3-70b-versatile"

    def __init__(self, api_key: str, model: str = DEFAULT_MODEL) -> None:
        """
        Initialize Groq client.

        Args:
            api_key: Groq API key
            model: Chat model to use
        """
        self._model_name = model
        self._client = Groq(api_key=api_key)
        self._executor = ThreadPoolExecutor(max_workers=4)

    @staticmethod
    def _extract_usage(response) -> Optional[TokenUsage]:
        usage = getattr(response, "usage", None)
        if usage is None:
            return None
        return TokenUsage(
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
        )

    @retry_with_backoff(max_retries=3)
    def _generate_sync(
        self,
        system_instruction: str,
        prompt: str,
        options: TextGenerationOptions,
    ) -> TextGenerationResult:
        response = self._client.chat.completions.create(
            model=self._model_name,
            messages=[
                {"role": "system", "content": system_instruction},
                {"role": "user", "content": prompt},
            ],
            temperature=options.quality_level.temperature,
            max_tokens=options.max_output_tokens,
        )
        text = response.choices[0].message.content or ""
        return TextGenerationResult(text=text, token_usage=self._extract_usage(response))

    async def generate(
        self,
        system_instruction: str,
        prompt: str,
        options: Optional[TextGenerationOptions] = None,
    ) -> TextGenerationResult:
        options = options or TextGenerationOptions()
        loop = asyncio.get_event_loop()
        result = await loop.run_in_executor(
            self._executor,
            self._generate_sync,
            system_instruction,
            prompt,
            options,
        )
        logger.debug(f"Groq generated {len(result.text)} chars with {self._model_name}")
        return result
