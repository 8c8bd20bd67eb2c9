"""Tests for Groq LLM."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from aspect_rag.models.base import QualityLevel, TextGenerationOptions
from aspect_rag.models.groq.groq_llm import GroqLLM


class TestGroqLLM:
    """Tests for GroqLLM class."""

    @pytest.fixture
    def client(self) -> MagicMock:
        with patch("aspect_rag.models.groq.groq_llm.Groq") as groq_cls:
            yield groq_cls.return_value

    @pytest.fixture
    def llm(self, client: MagicMock) -> GroqLLM:
        return GroqLLM(api_key="test_key")

    def test_init(self, llm: GroqLLM) -> None:
        assert llm._model_name == GroqLLM.DEFAULT_MODEL

    @pytest.mark.asyncio
    async def test_generate(self, llm: GroqLLM, client: MagicMock) -> None:
        """Test chat completion request and response mapping."""
        response = MagicMock()
        response.choices[0].message.content = "At 00:03 a man says hello."
        response.usage.prompt_tokens = 80
        response.usage.completion_tokens = 9
        client.chat.completions.create.return_value = response

        result = await llm.generate(
            "system",
            "prompt",
            TextGenerationOptions(max_output_tokens=256, quality_level=QualityLevel.HIGH),
        )

        assert result.text == "At 00:03 a man says hello."
        assert result.token_usage.input_tokens == 80
        assert result.token_usage.output_tokens == 9
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["messages"] == [
            {"role": "system", "content": "system"},
            {"role": "user", "content": "prompt"},
        ]
        assert kwargs["temperature"] == 0.7
        assert kwargs["max_tokens"] == 256

    @pytest.mark.asyncio
    async def test_generate_empty_content(self, llm: GroqLLM, client: MagicMock) -> None:
        response = MagicMock()
        response.choices[0].message.content = None
        response.usage = None
        client.chat.completions.create.return_value = response

        result = await llm.generate("system", "prompt")

        assert result.text == ""
        assert result.token_usage is None
