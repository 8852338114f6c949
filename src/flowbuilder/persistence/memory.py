"""In-memory persistence adapter."""

from __future__ import annotations

import copy
from typing import Any


class MemoryPersistence:
    """Dict-backed adapter for tests and throwaway sessions.

    Values are deep-copied on the way in and out so callers can never
    alias stored state. ``writes`` records every write in order.
    """

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = copy.deepcopy(data) if data else {}
        self.writes: list[tuple[str, Any]] = []
        self.closed = False

    def read(self, key: str) -> Any:
        return copy.deepcopy(self._data.get(key))

    def write(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)
        self.writes.append((key, copy.deepcopy(value)))

    def close(self) -> None:
        self.closed = True

    def to_dict(self) -> dict[str, Any]:
        return copy.deepcopy(self._data)
