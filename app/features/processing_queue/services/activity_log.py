"""
Bounded activity feed of reconciled queue changes.
"""

from collections import deque
from collections.abc import Iterable
from typing import Any

from app.features.processing_queue.domain.models import ActivityLogItem

DEFAULT_CAPACITY = 100


class ActivityLogBuffer:
    """Ring buffer of ``ActivityLogItem``; the oldest item is evicted first."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity <= 0:
            raise ValueError("Activity log capacity must be positive")
        self.capacity = capacity
        self._items: deque[ActivityLogItem] = deque(maxlen=capacity)

    def __len__(self) -> int:
        return len(self._items)

    def append(self, item: ActivityLogItem) -> None:
        self._items.append(item)

    def extend(self, items: Iterable[ActivityLogItem]) -> None:
        self._items.extend(items)

    def clear(self) -> None:
        self._items.clear()

    def items(self) -> list[ActivityLogItem]:
        """Oldest to newest."""
        return list(self._items)

    def latest(self, limit: int | None = None) -> list[ActivityLogItem]:
        """Newest first, as the dashboard renders the feed."""
        newest_first = list(reversed(self._items))
        return newest_first if limit is None else newest_first[:limit]


def summarize_result(result: dict[str, Any] | None) -> str | None:
    """Short human summary of a job result payload."""
    if not result:
        return None

    parts: list[str] = []
    faces = result.get("faces")
    objects = result.get("objects")

    if isinstance(faces, int) and faces > 0:
        parts.append(f"faces: {faces}")
    if isinstance(objects, int) and objects > 0:
        parts.append(f"objects: {objects}")
    if result.get("text"):
        parts.append("text detected")
    if result.get("description"):
        parts.append("described")
    if result.get("error"):
        parts.append(f"error: {str(result['error'])[:30]}")

    return ", ".join(parts) if parts else None
