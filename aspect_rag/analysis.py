"""Typed observations returned by the multimodal analysis provider.

Provider JSON uses camelCase keys. Every parser here accepts that shape,
maps missing fields to ``None`` (or an empty list) and never invents values.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .exceptions import PartialExtractionError
from .utils import timestamp_to_seconds

logger = logging.getLogger(__name__)


class ConfidenceLevel(Enum):
    """Self-assessed analysis confidence."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    @property
    def rank(self) -> int:
        return _CONFIDENCE_RANK[self]

    @classmethod
    def parse(cls, value: Any) -> ConfidenceLevel:
        """Parse a provider value, defaulting to MEDIUM when unrecognized."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            for level in cls:
                if level.value.lower() == value.strip().lower():
                    return level
        logger.warning(f"Unrecognized confidence value {value!r}, defaulting to Medium")
        return cls.MEDIUM

    @classmethod
    def lowest(cls, levels: list[ConfidenceLevel]) -> ConfidenceLevel:
        """Return the least confident level (HIGH for an empty list)."""
        return min(levels, key=lambda level: level.rank, default=cls.HIGH)


_CONFIDENCE_RANK = {
    ConfidenceLevel.LOW: 0,
    ConfidenceLevel.MEDIUM: 1,
    ConfidenceLevel.HIGH: 2,
}


def _str(data: dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _str_list(data: dict[str, Any], key: str) -> list[str]:
    value = data.get(key)
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v).strip() for v in value if v is not None and str(v).strip()]


def _int(data: dict[str, Any], key: str) -> Optional[int]:
    value = data.get(key)
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring non-numeric {key!r}: {value!r}")
        return None


def _dict_list(data: dict[str, Any], key: str) -> list[dict[str, Any]]:
    value = data.get(key) or []
    if not isinstance(value, list):
        raise PartialExtractionError(f"Expected a list for {key!r}, got {type(value).__name__}")
    return [item for item in value if isinstance(item, dict)]


@dataclass
class PersonDescriptor:
    """A person visible in a frame."""

    id: Optional[str] = None
    gender: Optional[str] = None
    apparent_age: Optional[str] = None
    apparent_ethnicity: Optional[str] = None
    physical_build: Optional[str] = None
    clothing: list[str] = field(default_factory=list)
    facial_expression: Optional[str] = None
    emotion: Optional[str] = None
    body_language: Optional[str] = None
    action: Optional[str] = None
    interaction_with: Optional[str] = None
    position: Optional[str] = None
    distinguishing_features: list[str] = field(default_factory=list)
    role: Optional[str] = None
    threat_level: Optional[str] = None
    role_confidence: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PersonDescriptor:
        return cls(
            id=_str(data, "id"),
            gender=_str(data, "gender"),
            apparent_age=_str(data, "apparentAge"),
            apparent_ethnicity=_str(data, "apparentEthnicity"),
            physical_build=_str(data, "physicalBuild"),
            clothing=_str_list(data, "clothing"),
            facial_expression=_str(data, "facialExpression"),
            emotion=_str(data, "emotion"),
            body_language=_str(data, "bodyLanguage"),
            action=_str(data, "action"),
            interaction_with=_str(data, "interactionWith"),
            position=_str(data, "position"),
            distinguishing_features=_str_list(data, "distinguishingFeatures"),
            role=_str(data, "role"),
            threat_level=_str(data, "threatLevel"),
            role_confidence=_str(data, "roleConfidence"),
        )

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "id": self.id,
                "gender": self.gender,
                "apparentAge": self.apparent_age,
                "apparentEthnicity": self.apparent_ethnicity,
                "physicalBuild": self.physical_build,
                "clothing": self.clothing,
                "facialExpression": self.facial_expression,
                "emotion": self.emotion,
                "bodyLanguage": self.body_language,
                "action": self.action,
                "interactionWith": self.interaction_with,
                "position": self.position,
                "distinguishingFeatures": self.distinguishing_features,
                "role": self.role,
                "threatLevel": self.threat_level,
                "roleConfidence": self.role_confidence,
            }
        )


@dataclass
class ObjectDescriptor:
    """An object visible in a frame."""

    name: str
    color: Optional[str] = None
    brand: Optional[str] = None
    position: Optional[str] = None
    state: Optional[str] = None
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ObjectDescriptor:
        name = _str(data, "name")
        if name is None:
            raise PartialExtractionError("Object descriptor is missing a name")
        return cls(
            name=name,
            color=_str(data, "color"),
            brand=_str(data, "brand"),
            position=_str(data, "position"),
            state=_str(data, "state"),
            description=_str(data, "description"),
        )

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "name": self.name,
                "color": self.color,
                "brand": self.brand,
                "position": self.position,
                "state": self.state,
                "description": self.description,
            }
        )


@dataclass
class SceneDescriptor:
    """Setting of a frame."""

    location_type: Optional[str] = None
    specific_location: Optional[str] = None
    lighting: Optional[str] = None
    weather: Optional[str] = None
    time_of_day: Optional[str] = None
    camera_angle: Optional[str] = None
    mood: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SceneDescriptor:
        return cls(
            location_type=_str(data, "locationType"),
            specific_location=_str(data, "specificLocation"),
            lighting=_str(data, "lighting"),
            weather=_str(data, "weather"),
            time_of_day=_str(data, "timeOfDay"),
            camera_angle=_str(data, "cameraAngle"),
            mood=_str(data, "mood"),
        )

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "locationType": self.location_type,
                "specificLocation": self.specific_location,
                "lighting": self.lighting,
                "weather": self.weather,
                "timeOfDay": self.time_of_day,
                "cameraAngle": self.camera_angle,
                "mood": self.mood,
            }
        )


@dataclass
class SpeechEvent:
    """One transcribed utterance."""

    text: str
    speaker: Optional[str] = None
    tone: Optional[str] = None
    language: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Optional[SpeechEvent]:
        text = _str(data, "text")
        if text is None:
            return None
        return cls(
            text=text,
            speaker=_str(data, "speaker"),
            tone=_str(data, "tone"),
            language=_str(data, "language"),
        )

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "speaker": self.speaker,
                "text": self.text,
                "tone": self.tone,
                "language": self.language,
            }
        )


@dataclass
class AudioObservation:
    """Audio heard around a frame."""

    speech: list[SpeechEvent] = field(default_factory=list)
    music: Optional[str] = None
    sounds: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AudioObservation:
        speech = [SpeechEvent.from_dict(s) for s in _dict_list(data, "speech")]
        return cls(
            speech=[s for s in speech if s is not None],
            music=_str(data, "music"),
            sounds=_str_list(data, "sounds"),
        )

    def is_empty(self) -> bool:
        return not self.speech and not self.music and not self.sounds

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "speech": [s.to_dict() for s in self.speech],
                "music": self.music,
                "sounds": self.sounds,
            }
        )


@dataclass
class OnScreenText:
    """Text visible on screen."""

    text: str
    type: str = "other"
    position: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Optional[OnScreenText]:
        text = _str(data, "text")
        if text is None:
            return None
        return cls(
            text=text,
            type=_str(data, "type") or "other",
            position=_str(data, "position"),
        )

    def to_dict(self) -> dict[str, Any]:
        return _compact({"text": self.text, "type": self.type, "position": self.position})


@dataclass
class FrameObservation:
    """Structured observations for a single timestamp."""

    timestamp: str
    people: list[PersonDescriptor] = field(default_factory=list)
    objects: list[ObjectDescriptor] = field(default_factory=list)
    scene: Optional[SceneDescriptor] = None
    audio: Optional[AudioObservation] = None
    text_on_screen: list[OnScreenText] = field(default_factory=list)
    action_description: Optional[str] = None

    @property
    def timestamp_seconds(self) -> float:
        return timestamp_to_seconds(self.timestamp)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FrameObservation:
        """
        Parse a provider frame.

        Raises:
            PartialExtractionError: If the frame is malformed
        """
        if not isinstance(data, dict):
            raise PartialExtractionError(f"Frame must be an object, got {type(data).__name__}")

        timestamp = _str(data, "timestamp")
        if timestamp is None:
            raise PartialExtractionError("Frame is missing a timestamp")
        try:
            timestamp_to_seconds(timestamp)
        except ValueError as e:
            raise PartialExtractionError(str(e)) from e

        scene = data.get("scene")
        audio = data.get("audio")
        if scene is not None and not isinstance(scene, dict):
            raise PartialExtractionError("Frame scene must be an object")
        if audio is not None and not isinstance(audio, dict):
            raise PartialExtractionError("Frame audio must be an object")

        objects = []
        for obj in _dict_list(data, "objects"):
            try:
                objects.append(ObjectDescriptor.from_dict(obj))
            except PartialExtractionError as e:
                logger.warning(f"Skipping object at {timestamp}: {e}")

        text_items = [OnScreenText.from_dict(t) for t in _dict_list(data, "textOnScreen")]

        return cls(
            timestamp=timestamp,
            people=[PersonDescriptor.from_dict(p) for p in _dict_list(data, "people")],
            objects=objects,
            scene=SceneDescriptor.from_dict(scene) if scene else None,
            audio=AudioObservation.from_dict(audio) if audio else None,
            text_on_screen=[t for t in text_items if t is not None],
            action_description=_str(data, "actionDescription"),
        )


@dataclass
class TokenUsage:
    """Token usage reported by a provider."""

    input_tokens: int = 0
    output_tokens: int = 0
    thoughts_tokens: Optional[int] = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens + (self.thoughts_tokens or 0)

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> Optional[TokenUsage]:
        if not isinstance(data, dict) or not data:
            return None
        return cls(
            input_tokens=_int(data, "inputTokens") or 0,
            output_tokens=_int(data, "outputTokens") or 0,
            thoughts_tokens=_int(data, "thoughtsTokens"),
        )


@dataclass
class PersonSummaryEntry:
    """One unique individual tracked across the video."""

    person_id: str
    description: str = ""
    role: Optional[str] = None
    first_appearance: Optional[str] = None
    last_appearance: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PersonSummaryEntry:
        return cls(
            person_id=_str(data, "personId") or "Unknown",
            description=_str(data, "description") or "",
            role=_str(data, "role"),
            first_appearance=_str(data, "firstAppearance"),
            last_appearance=_str(data, "lastAppearance"),
        )


@dataclass
class PersonsSummary:
    """Unique individuals grouped by role."""

    total_unique_persons: int = 0
    perpetrators: list[PersonSummaryEntry] = field(default_factory=list)
    victims: list[PersonSummaryEntry] = field(default_factory=list)
    authorities: list[PersonSummaryEntry] = field(default_factory=list)
    witnesses: list[PersonSummaryEntry] = field(default_factory=list)
    unknown: list[PersonSummaryEntry] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> Optional[PersonsSummary]:
        if not isinstance(data, dict):
            return None

        def entries(key: str) -> list[PersonSummaryEntry]:
            try:
                return [PersonSummaryEntry.from_dict(e) for e in _dict_list(data, key)]
            except PartialExtractionError as e:
                logger.warning(f"Ignoring persons summary group: {e}")
                return []

        return cls(
            total_unique_persons=_int(data, "totalUniquePersons") or 0,
            perpetrators=entries("perpetrators"),
            victims=entries("victims"),
            authorities=entries("authorities"),
            witnesses=entries("witnesses"),
            unknown=entries("unknown"),
        )


@dataclass
class AnalysisResult:
    """Output of one multimodal analysis call."""

    summary: str
    frames: list[FrameObservation] = field(default_factory=list)
    confidence: ConfidenceLevel = ConfidenceLevel.MEDIUM
    persons_summary: Optional[PersonsSummary] = None
    thought_summary: Optional[str] = None
    token_usage: Optional[TokenUsage] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AnalysisResult:
        """
        Parse a provider response.

        Malformed frames are skipped with a warning rather than failing the
        whole result.

        Args:
            data: Decoded provider JSON

        Returns:
            AnalysisResult
        """
        raw_frames = data.get("frames") or []
        frames: list[FrameObservation] = []
        for i, raw in enumerate(raw_frames):
            try:
                frames.append(FrameObservation.from_dict(raw))
            except PartialExtractionError as e:
                logger.warning(f"Skipping malformed frame {i}: {e}")

        return cls(
            summary=_str(data, "summary") or "",
            frames=frames,
            confidence=ConfidenceLevel.parse(data.get("confidence")),
            persons_summary=PersonsSummary.from_dict(data.get("personsSummary")),
            thought_summary=_str(data, "thoughtSummary"),
            token_usage=TokenUsage.from_dict(data.get("tokenUsage")),
        )


def _compact(data: dict[str, Any]) -> dict[str, Any]:
    """Drop empty values so stored metadata only holds observed fields."""
    return {k: v for k, v in data.items() if v not in (None, "", [])}
