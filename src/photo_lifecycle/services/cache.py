"""Bounded in-memory cache used for the image memory tier."""

from collections import OrderedDict
from dataclasses import dataclass, field


@dataclass
class MemoryCache:
    """Least-recently-used cache holding at most ``capacity`` entries."""

    capacity: int
    _entries: OrderedDict[str, bytes] = field(default_factory=OrderedDict)

    def __post_init__(self) -> None:
        if self.capacity < 1:
            raise ValueError("capacity must be at least 1")

    def get(self, key: str) -> bytes | None:
        """Return a cached value and mark it most recently used."""
        value = self._entries.get(key)
        if value is None:
            return None
        self._entries.move_to_end(key)
        return value

    def set(self, key: str, value: bytes) -> None:
        """Store a value, evicting the least recently used entry when full."""
        self._entries[key] = value
        self._entries.move_to_end(key)
        while len(self._entries) > self.capacity:
            self._entries.popitem(last=False)

    def pop(self, key: str) -> None:
        self._entries.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries
