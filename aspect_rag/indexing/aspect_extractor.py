"""Turn structured frame observations into embeddable aspect records."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Optional

from ..analysis import (
    AudioObservation,
    FrameObservation,
    ObjectDescriptor,
    OnScreenText,
    PersonDescriptor,
    SceneDescriptor,
)
from ..exceptions import PartialExtractionError
from ..schema import AspectRecordDraft, AspectType

logger = logging.getLogger(__name__)


def describe_person(person: PersonDescriptor, index: int) -> str:
    """Render one person; role and threat lead so they dominate similarity."""
    parts: list[str] = []

    if person.role and person.role.lower() != "unknown":
        parts.append(f"[{person.role.upper()}]")
    if person.threat_level and person.threat_level.lower() != "none":
        parts.append(f"(threat: {person.threat_level})")

    if person.gender:
        parts.append(person.gender)
    if person.apparent_age:
        parts.append(person.apparent_age)
    if person.apparent_ethnicity:
        parts.append(f"appears {person.apparent_ethnicity}")
    if person.physical_build:
        parts.append(person.physical_build)
    if person.distinguishing_features:
        parts.append(f"with {', '.join(person.distinguishing_features)}")
    if person.clothing:
        parts.append(f"wearing {', '.join(person.clothing)}")
    if person.facial_expression:
        parts.append(f"expression: {person.facial_expression}")
    if person.emotion:
        parts.append(f"emotion: {person.emotion}")
    if person.body_language:
        parts.append(f"body language: {person.body_language}")
    if person.action:
        parts.append(f"action: {person.action}")
    if person.interaction_with:
        parts.append(f"interacting with: {person.interaction_with}")
    if person.position:
        parts.append(f"positioned {person.position}")

    person_id = person.id or f"Person {index + 1}"
    return f"{person_id}: {', '.join(parts)}"


def describe_people(timestamp: str, people: list[PersonDescriptor]) -> str:
    if not people:
        return ""
    descriptions = [describe_person(p, i) for i, p in enumerate(people)]
    return f"At {timestamp}: {'. '.join(descriptions)}"


def describe_objects(timestamp: str, objects: list[ObjectDescriptor]) -> str:
    if not objects:
        return ""
    descriptions = []
    for obj in objects:
        parts = [obj.name]
        if obj.color:
            parts.append(obj.color)
        if obj.brand:
            parts.append(f"({obj.brand})")
        if obj.state:
            parts.append(obj.state)
        if obj.description:
            parts.append(f"- {obj.description}")
        descriptions.append(" ".join(parts))
    return f"At {timestamp}: Objects visible - {', '.join(descriptions)}"


def describe_scene(timestamp: str, scene: Optional[SceneDescriptor]) -> str:
    if scene is None:
        return ""
    parts: list[str] = []
    if scene.location_type:
        parts.append(scene.location_type)
    if scene.specific_location:
        parts.append(scene.specific_location)
    if scene.lighting:
        parts.append(f"{scene.lighting} lighting")
    if scene.weather:
        parts.append(scene.weather)
    if scene.time_of_day:
        parts.append(scene.time_of_day)
    if scene.camera_angle:
        parts.append(f"{scene.camera_angle} shot")
    if scene.mood:
        parts.append(f"{scene.mood} atmosphere")
    if not parts:
        return ""
    return f"At {timestamp}: Scene - {', '.join(parts)}"


def describe_audio(timestamp: str, audio: Optional[AudioObservation]) -> str:
    if audio is None or audio.is_empty():
        return ""
    parts: list[str] = []
    if audio.speech:
        utterances = []
        for speech in audio.speech:
            tone = f" ({speech.tone} tone)" if speech.tone else ""
            utterances.append(f'{speech.speaker or "Someone"} says: "{speech.text}"{tone}')
        parts.append(". ".join(utterances))
    if audio.music:
        parts.append(f"Music: {audio.music}")
    if audio.sounds:
        parts.append(f"Sounds: {', '.join(audio.sounds)}")
    return f"At {timestamp}: {'. '.join(parts)}"


def describe_text(timestamp: str, items: list[OnScreenText]) -> str:
    if not items:
        return ""
    descriptions = []
    for item in items:
        position = f" ({item.position})" if item.position else ""
        descriptions.append(f'{item.type}: "{item.text}"{position}')
    return f"At {timestamp}: Text on screen - {', '.join(descriptions)}"


def describe_action(timestamp: str, action: Optional[str]) -> str:
    if not action:
        return ""
    return f"At {timestamp}: {action}"


def count_aspects(records: list[Any]) -> dict[str, int]:
    """Histogram of aspect types, with every type present."""
    counts = Counter(r.aspect_type.value for r in records)
    return {aspect.value: counts.get(aspect.value, 0) for aspect in AspectType}


class AspectExtractor:
    """Split frame observations into one record per non-empty aspect."""

    def extract_frame(self, video_id: str, frame: FrameObservation) -> list[AspectRecordDraft]:
        """
        Extract aspect drafts from a single frame.

        Args:
            video_id: Owning video
            frame: Parsed frame observation

        Returns:
            Drafts in canonical aspect order

        Raises:
            PartialExtractionError: If the frame timestamp cannot be parsed
        """
        try:
            seconds = frame.timestamp_seconds
        except ValueError as e:
            raise PartialExtractionError(str(e)) from e

        ts = frame.timestamp
        candidates: list[tuple[AspectType, str, Any]] = [
            (
                AspectType.PEOPLE,
                describe_people(ts, frame.people),
                {"people": [p.to_dict() for p in frame.people]},
            ),
            (
                AspectType.OBJECTS,
                describe_objects(ts, frame.objects),
                {"objects": [o.to_dict() for o in frame.objects]},
            ),
            (
                AspectType.SCENE,
                describe_scene(ts, frame.scene),
                frame.scene.to_dict() if frame.scene else {},
            ),
            (
                AspectType.AUDIO,
                describe_audio(ts, frame.audio),
                frame.audio.to_dict() if frame.audio else {},
            ),
            (
                AspectType.TEXT,
                describe_text(ts, frame.text_on_screen),
                {"textOnScreen": [t.to_dict() for t in frame.text_on_screen]},
            ),
            (
                AspectType.ACTION,
                describe_action(ts, frame.action_description),
                {"action": frame.action_description},
            ),
        ]

        return [
            AspectRecordDraft(
                video_id=video_id,
                timestamp=ts,
                timestamp_seconds=seconds,
                aspect_type=aspect,
                content=content,
                metadata=metadata,
            )
            for aspect, content, metadata in candidates
            if content
        ]

    def extract(self, video_id: str, frames: list[FrameObservation]) -> list[AspectRecordDraft]:
        """
        Extract aspect drafts from every frame.

        Malformed frames are logged and skipped.

        Args:
            video_id: Owning video
            frames: Parsed frame observations

        Returns:
            All drafts, frame order preserved
        """
        drafts: list[AspectRecordDraft] = []
        skipped = 0
        for frame in frames:
            try:
                drafts.extend(self.extract_frame(video_id, frame))
            except PartialExtractionError as e:
                skipped += 1
                logger.warning(f"Skipping frame {getattr(frame, 'timestamp', '?')}: {e}")

        if skipped:
            logger.warning(f"Skipped {skipped} of {len(frames)} frames for video {video_id}")
        logger.debug(f"Extracted {len(drafts)} aspect records from {len(frames)} frames")
        return drafts
