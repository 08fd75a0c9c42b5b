"""
Bounded request/response timeline.

Each request produces two entries, ``request`` then ``response``, sharing
the hook entry's ``id``. The oldest entries are dropped once ``limit`` is
exceeded.
"""

from __future__ import annotations

import uuid
from collections import deque
from datetime import UTC, datetime
from typing import Any

DEFAULT_TIMELINE_LIMIT = 100


class Timeline:
    def __init__(self, limit: int = DEFAULT_TIMELINE_LIMIT) -> None:
        if limit < 1:
            raise ValueError(f"Timeline limit must be at least 1, got {limit}")
        self.limit = limit
        self._entries: deque[dict[str, Any]] = deque(maxlen=limit)

    def add(self, entry_type: str, data: dict[str, Any]) -> dict[str, Any]:
        """Append an entry of type ``"request"`` or ``"response"``."""
        entry = {
            "id": uuid.uuid4().hex,
            "timestamp": datetime.now(UTC).isoformat(),
            "type": entry_type,
            "data": data,
        }
        self._entries.append(entry)
        return entry

    def record_request(self, data: dict[str, Any]) -> None:
        self.add("request", data)

    def record_response(self, data: dict[str, Any]) -> None:
        self.add("response", data)

    def entries(self, limit: int | None = None) -> list[dict[str, Any]]:
        """Most recent entries, oldest first."""
        items = list(self._entries)
        if limit is not None and limit > 0:
            items = items[-limit:]
        return items

    def clear(self) -> int:
        """Drop every entry. Returns how many were dropped."""
        count = len(self._entries)
        self._entries.clear()
        return count

    def __len__(self) -> int:
        return len(self._entries)
