"""Keyword-based routing of questions to the aspects they concern."""

from __future__ import annotations

import logging
from typing import Optional

from ..schema import AspectType, QueryClassification

logger = logging.getLogger(__name__)

PEOPLE_KEYWORDS = [
    # appearance
    "person", "people", "man", "woman", "guy", "girl", "boy", "child", "kid",
    "gender", "male", "female", "age", "old", "young", "race", "ethnicity",
    "skin", "hair", "wearing", "clothes", "clothing", "dressed", "outfit",
    "emotion", "expression", "face", "facial", "looking", "appearance",
    "who", "somebody", "someone", "anybody", "anyone", "he", "she", "they",
    # roles
    "robber", "robbers", "thief", "thieves", "criminal", "criminals",
    "perpetrator", "perpetrators", "attacker", "attackers", "suspect",
    "suspects", "assailant", "burglar", "burglars", "victim", "victims",
    "target", "hostage", "police", "officer", "officers", "cop", "cops",
    "security", "guard", "guards", "authority", "authorities", "witness",
    "witnesses", "bystander", "bystanders", "employee", "staff", "worker",
    "customer", "customers",
    # counting
    "how many", "count", "number", "total",
]

AUDIO_KEYWORDS = [
    "say", "said", "speak", "spoke", "talk", "talking", "voice", "hear",
    "sound", "noise", "music", "song", "dialogue", "conversation", "word",
    "listen", "audio", "speech", "mention", "tell", "told", "ask", "asked",
    "shout", "whisper", "sing", "language", "accent", "tone",
]

OBJECT_KEYWORDS = [
    "object", "thing", "item", "product", "brand", "device", "tool", "car",
    "vehicle", "phone", "computer", "table", "chair", "furniture", "food",
    "drink", "bottle", "bag", "box", "book", "what is", "what are",
]

SCENE_KEYWORDS = [
    "where", "location", "place", "setting", "environment", "background",
    "indoor", "outdoor", "room", "building", "street", "city", "nature",
    "light", "lighting", "dark", "bright", "weather", "time of day",
    "atmosphere", "mood", "camera", "shot", "angle",
]

TEXT_KEYWORDS = [
    "text", "read", "written", "write", "sign", "title", "subtitle",
    "caption", "label", "display", "screen", "show", "letter", "word",
]

ACTION_KEYWORDS = [
    "do", "doing", "happen", "happening", "action", "event", "activity",
    "move", "moving", "walk", "run", "sit", "stand", "pick", "put", "open",
    "close", "start", "stop", "begin", "end", "then", "next",
]

DEFAULT_KEYWORDS: dict[AspectType, list[str]] = {
    AspectType.PEOPLE: PEOPLE_KEYWORDS,
    AspectType.OBJECTS: OBJECT_KEYWORDS,
    AspectType.SCENE: SCENE_KEYWORDS,
    AspectType.AUDIO: AUDIO_KEYWORDS,
    AspectType.ACTION: ACTION_KEYWORDS,
    AspectType.TEXT: TEXT_KEYWORDS,
}

# Confidence assigned when nothing matched and every aspect is searched
UNMATCHED_CONFIDENCE = 0.3

# Matches needed for full confidence
FULL_CONFIDENCE_MATCHES = 3


class QueryClassifier:
    """Classify a question into the aspect types it is about.

    Matching is case-insensitive substring counting, so short keywords also
    fire inside longer words ("he" in "the").
    """

    def __init__(self, keywords: Optional[dict[AspectType, list[str]]] = None) -> None:
        self._keywords = keywords or DEFAULT_KEYWORDS

    def match_counts(self, query: str) -> dict[AspectType, int]:
        lowered = query.lower()
        return {
            aspect: sum(1 for keyword in self._keywords.get(aspect, []) if keyword in lowered)
            for aspect in AspectType
        }

    def classify(self, query: str) -> QueryClassification:
        """
        Classify a query.

        Args:
            query: Natural-language question

        Returns:
            Matched aspects in canonical order, or every aspect with low
            confidence when nothing matched
        """
        counts = self.match_counts(query)
        aspects = [aspect for aspect, count in counts.items() if count > 0]
        total = sum(counts.values())

        if not aspects:
            logger.debug(f"No aspect keywords in {query[:50]!r}, searching all aspects")
            return QueryClassification(aspects=list(AspectType), confidence=UNMATCHED_CONFIDENCE)

        confidence = min(total / FULL_CONFIDENCE_MATCHES, 1.0)
        logger.debug(
            f"Classified {query[:50]!r} as {[a.value for a in aspects]} ({confidence:.2f})"
        )
        return QueryClassification(aspects=aspects, confidence=confidence)
