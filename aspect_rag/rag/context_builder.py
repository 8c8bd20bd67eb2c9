"""Assemble retrieved records into an LLM context block."""

from __future__ import annotations

from collections import defaultdict

from ..schema import AspectSearchResult, AspectType, FrameSearchResult

SECTION_TITLES: dict[AspectType, str] = {
    AspectType.PEOPLE: "PEOPLE IN VIDEO",
    AspectType.AUDIO: "AUDIO & SPEECH",
    AspectType.OBJECTS: "OBJECTS VISIBLE",
    AspectType.SCENE: "SCENE & SETTING",
    AspectType.TEXT: "TEXT ON SCREEN",
    AspectType.ACTION: "ACTIONS & EVENTS",
}


def build_aspect_context(title: str, results: list[AspectSearchResult]) -> str:
    """
    Group results by aspect into titled sections.

    Sections appear in a fixed order and only when non-empty. Lines inside a
    section are ordered by timestamp.

    Args:
        title: Video title
        results: Retrieved aspect records

    Returns:
        Context text
    """
    grouped: dict[AspectType, list[AspectSearchResult]] = defaultdict(list)
    for result in results:
        grouped[result.record.aspect_type].append(result)

    lines = [f'Video: "{title}"', "", "Video content organized by aspect:", ""]
    for aspect, section_title in SECTION_TITLES.items():
        section = grouped.get(aspect)
        if not section:
            continue
        lines.append(f"## {section_title}")
        for result in sorted(section, key=lambda r: r.record.timestamp_seconds):
            lines.append(f"• {result.record.content} (relevance: {result.relevance_score:.2f})")
        lines.append("")

    return "\n".join(lines).rstrip() + "\n"


def build_frame_context(title: str, results: list[FrameSearchResult]) -> str:
    """Numbered list of legacy frame descriptions in timestamp order."""
    ordered = sorted(results, key=lambda r: r.frame.timestamp_seconds)
    lines = [f'Video: "{title}"', "", "Relevant moments:"]
    for i, result in enumerate(ordered, start=1):
        lines.append(f"{i}. [{result.frame.timestamp}] {result.frame.description}")
    return "\n".join(lines) + "\n"
