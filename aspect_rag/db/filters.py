"""Search filters shared by every store backend."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..schema import AspectRecord, AspectType


def quote(value: str) -> str:
    """Render a Milvus string literal."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


@dataclass
class SearchFilter:
    """Restrict a search to one video and/or a set of aspect types.

    Conditions combine with AND; aspect types combine with OR. An empty
    filter matches everything.
    """

    video_id: Optional[str] = None
    aspect_types: Optional[list[AspectType]] = None

    def is_empty(self) -> bool:
        return self.video_id is None and not self.aspect_types

    def to_expr(self) -> Optional[str]:
        """
        Build a Milvus boolean expression.

        Returns:
            Expression string, or None when unrestricted
        """
        clauses: list[str] = []
        if self.video_id is not None:
            clauses.append(f"video_id == {quote(self.video_id)}")
        if self.aspect_types:
            ors = " or ".join(f"aspect_type == {quote(a.value)}" for a in self.aspect_types)
            clauses.append(f"({ors})")
        if not clauses:
            return None
        return " and ".join(clauses)

    def video_expr(self) -> Optional[str]:
        """Expression with only the video condition, for legacy frames."""
        if self.video_id is None:
            return None
        return f"video_id == {quote(self.video_id)}"

    def matches(self, record: AspectRecord) -> bool:
        if self.video_id is not None and record.video_id != self.video_id:
            return False
        if self.aspect_types and record.aspect_type not in self.aspect_types:
            return False
        return True
