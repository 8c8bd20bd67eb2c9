"""Gemini VLM for structured multi-aspect video extraction."""

from __future__ import annotations

import asyncio
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Optional

import google.generativeai as genai
from google.generativeai.types import HarmBlockThreshold, HarmCategory

from ...analysis import AnalysisResult, TokenUsage
from ..base import FrameSample, VideoAnalyzer

logger = logging.getLogger(__name__)


@dataclass
class GenerationConfig:
    """Configuration for extraction requests."""

    temperature: float = 0.2
    top_p: float = 0.8
    top_k: int = 40
    max_output_tokens: int = 16384
    stop_sequences: list[str] = field(default_factory=list)


@dataclass
class SafetySettings:
    """Safety filter settings."""

    harassment: str = "BLOCK_ONLY_HIGH"
    hate_speech: str = "BLOCK_ONLY_HIGH"
    sexually_explicit: str = "BLOCK_ONLY_HIGH"
    dangerous_content: str = "BLOCK_ONLY_HIGH"


class VLMError(Exception):
    """Base exception for VLM errors."""

    pass


class SafetyBlockedError(VLMError):
    """Content was blocked by safety filters."""

    pass


class ContextLengthExceededError(VLMError):
    """Input exceeded maximum context length."""

    pass


class GenerationError(VLMError):
    """Generation failed or returned unusable output."""

    pass


EXTRACTION_INSTRUCTION = """You are a video analyst extracting structured observations for semantic search.
Sample the footage densely (every 2-3 seconds) and for each moment report:

PEOPLE: for every visible person give id ("Person 1", ...), gender, apparentAge,
apparentEthnicity, physicalBuild, clothing (items with colors), distinguishingFeatures,
facialExpression, emotion, bodyLanguage, action, interactionWith, position.
Infer a role (perpetrator, victim, witness, bystander, authority, employee, customer,
unknown), a threatLevel (none, low, moderate, high, critical) and a roleConfidence.
Keep the same id for the same individual throughout the video.

OBJECTS: name, color, brand, position, state, description.

SCENE: locationType, specificLocation, lighting, weather, timeOfDay, cameraAngle, mood.

AUDIO: transcribe speech verbatim with speaker, tone and language; describe music and sounds.

TEXT ON SCREEN: exact text, type (title, subtitle, sign, label, ui-element, caption, other), position.

ACTION: one sentence describing what happens.

Also return a personsSummary of unique individuals grouped by role with first and last
appearance, an overall summary and a confidence of Low, Medium or High.
Write "unclear" instead of guessing. Use MM:SS timestamps.

Respond with JSON only:
{"summary": str, "confidence": str, "frames": [{"timestamp": str, "people": [...],
"objects": [...], "scene": {...}, "audio": {"speech": [...], "music": str, "sounds": [...]},
"textOnScreen": [...], "actionDescription": str}],
"personsSummary": {"totalUniquePersons": int, "perpetrators": [...], "victims": [...],
"authorities": [...], "witnesses": [...], "unknown": [...]}}"""

VIDEO_PROMPT = "Extract structured observations covering the entire video."

FRAME_BATCH_PROMPT = """These are {count} frames sampled from a video (batch {batch} of {total}).
Each image is preceded by its timestamp. Extract structured observations for every frame,
using the given timestamps."""


class GeminiVLM(VideoAnalyzer):
    """Gemini-based video understanding returning typed observations."""

    # Safety setting mapping
    SAFETY_MAPPING = {
        "BLOCK_NONE": HarmBlockThreshold.BLOCK_NONE,
        "BLOCK_ONLY_HIGH": HarmBlockThreshold.BLOCK_ONLY_HIGH,
        "BLOCK_MEDIUM_AND_ABOVE": HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
        "BLOCK_LOW_AND_ABOVE": HarmBlockThreshold.BLOCK_LOW_AND_ABOVE,
    }

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.0-flash",
        generation_config: Optional[GenerationConfig] = None,
        safety_settings: Optional[SafetySettings] = None,
    ) -> None:
        """
        Initialize Gemini VLM client.

        Args:
            api_key: Google AI Studio API key
            model: Gemini model to use (default: gemini-2.0-flash)
            generation_config: Default generation configuration
            safety_settings: Default safety filter settings
        """
        self._api_key = api_key
        self._model_name = model
        self._generation_config = generation_config or GenerationConfig()
        self._safety_settings = safety_settings or SafetySettings()

        genai.configure(api_key=api_key)
        self._model = genai.GenerativeModel(model, system_instruction=EXTRACTION_INSTRUCTION)
        self._executor = ThreadPoolExecutor(max_workers=4)

    def _build_generation_config(self) -> dict:
        """Build generation config dict for API call."""
        config = self._generation_config
        result = {
            "temperature": config.temperature,
            "top_p": config.top_p,
            "top_k": config.top_k,
            "max_output_tokens": config.max_output_tokens,
            "response_mime_type": "application/json",
        }
        if config.stop_sequences:
            result["stop_sequences"] = config.stop_sequences
        return result

    def _build_safety_settings(self) -> list[dict]:
        """Build safety settings list for API call."""
        settings = {
            HarmCategory.HARM_CATEGORY_HARASSMENT: self._safety_settings.harassment,
            HarmCategory.HARM_CATEGORY_HATE_SPEECH: self._safety_settings.hate_speech,
            HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: self._safety_settings.sexually_explicit,
            HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: self._safety_settings.dangerous_content,
        }
        return [
            {
                "category": category,
                "threshold": self.SAFETY_MAPPING.get(level, HarmBlockThreshold.BLOCK_ONLY_HIGH),
            }
            for category, level in settings.items()
        ]

    def _extract_usage(self, response) -> Optional[TokenUsage]:
        """Extract token usage from response."""
        usage_metadata = getattr(response, "usage_metadata", None)
        if usage_metadata is None:
            return None
        return TokenUsage(
            input_tokens=getattr(usage_metadata, "prompt_token_count", 0) or 0,
            output_tokens=getattr(usage_metadata, "candidates_token_count", 0) or 0,
        )

    @staticmethod
    def _strip_fences(text: str) -> str:
        text = text.strip()
        if text.startswith("```"):
            text = text.split("\n", 1)[1] if "\n" in text else ""
            if text.rstrip().endswith("```"):
                text = text.rstrip()[:-3]
        return text.strip()

    def parse_response(self, text: str, token_usage: Optional[TokenUsage] = None) -> AnalysisResult:
        """
        Parse the model's JSON into an AnalysisResult.

        Args:
            text: Raw response text
            token_usage: Usage to attach when the payload carries none

        Returns:
            AnalysisResult

        Raises:
            GenerationError: If the response is not a JSON object
        """
        try:
            data: Any = json.loads(self._strip_fences(text))
        except json.JSONDecodeError as e:
            raise GenerationError(f"Model returned invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise GenerationError("Model response must be a JSON object")

        result = AnalysisResult.from_dict(data)
        if result.token_usage is None:
            result.token_usage = token_usage
        return result

    def _generate_sync(self, contents: list) -> AnalysisResult:
        """Synchronous extraction for use with executor."""
        try:
            response = self._model.generate_content(
                contents,
                generation_config=self._build_generation_config(),
                safety_settings=self._build_safety_settings(),
            )

            # Check for blocked content
            if not response.candidates:
                raise SafetyBlockedError("Content was blocked by safety filters")

            return self.parse_response(response.text, self._extract_usage(response))

        except VLMError:
            raise
        except Exception as e:
            error_str = str(e).lower()
            if "safety" in error_str or "blocked" in error_str:
                raise SafetyBlockedError(f"Content blocked: {e}") from e
            if "context" in error_str or "length" in error_str or "token" in error_str:
                raise ContextLengthExceededError(f"Context length exceeded: {e}") from e
            raise GenerationError(f"Generation failed: {e}") from e

    def _analyze_video_sync(self, file_uri: str) -> AnalysisResult:
        file_name = file_uri.split("/")[-1] if "/" in file_uri else file_uri
        video_file = genai.get_file(file_name)
        return self._generate_sync([video_file, VIDEO_PROMPT])

    async def analyze_video(self, file_uri: str) -> AnalysisResult:
        """
        Analyze an uploaded video using Gemini's native video understanding.

        Args:
            file_uri: Gemini File API URI (e.g., "files/abc123")

        Returns:
            AnalysisResult with per-frame observations
        """
        loop = asyncio.get_event_loop()
        result = await loop.run_in_executor(self._executor, self._analyze_video_sync, file_uri)
        logger.info(f"Extracted {len(result.frames)} frames from {file_uri}")
        return result

    async def analyze_frame_batch(
        self,
        frames: list[FrameSample],
        batch_index: int = 0,
        total_batches: int = 1,
    ) -> AnalysisResult:
        """
        Analyze a batch of sampled frame images.

        Args:
            frames: Frames with timestamps and image bytes
            batch_index: Zero-based batch position
            total_batches: Number of batches in the video

        Returns:
            AnalysisResult for this batch
        """
        contents: list = [
            FRAME_BATCH_PROMPT.format(
                count=len(frames),
                batch=batch_index + 1,
                total=total_batches,
            )
        ]
        for frame in frames:
            contents.append(f"Timestamp {frame.timestamp}:")
            contents.append({"mime_type": frame.mime_type, "data": frame.data})

        loop = asyncio.get_event_loop()
        result = await loop.run_in_executor(self._executor, self._generate_sync, contents)
        logger.debug(
            f"Batch {batch_index + 1}/{total_batches}: {len(result.frames)} frames extracted"
        )
        return result
