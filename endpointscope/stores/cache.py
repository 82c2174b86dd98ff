"""In-memory caches owned by a project context."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Generic, Hashable, Optional, TypeVar

V = TypeVar("V")


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    """A cached value together with the version it was computed for."""

    version: Hashable
    value: V


class VersionedCache(Generic[V]):
    """Keeps the latest value per bucket, valid only for one version key.

    Storing a new version for a bucket replaces the previous entry for that
    bucket and leaves other buckets untouched.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, CacheEntry[V]] = {}

    def get(self, bucket: str, *, version: Hashable) -> Optional[CacheEntry[V]]:
        entry = self._entries.get(bucket)
        if entry is None or entry.version != version:
            return None
        return entry

    def store(self, bucket: str, *, version: Hashable, value: V) -> CacheEntry[V]:
        entry = CacheEntry(version=version, value=value)
        self._entries[bucket] = entry
        return entry

    def invalidate(self, bucket: str) -> None:
        self._entries.pop(bucket, None)

    def clear(self) -> None:
        self._entries = {}

    def __len__(self) -> int:
        return len(self._entries)


class BoundedCache(Generic[V]):
    """Size-capped cache that empties itself completely when full."""

    def __init__(self, max_entries: int = 256) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self._entries: Dict[Hashable, V] = {}

    def get(self, key: Hashable) -> Optional[V]:
        return self._entries.get(key)

    def store(self, key: Hashable, value: V) -> None:
        if key not in self._entries and len(self._entries) >= self.max_entries:
            self._entries = {}
        self._entries[key] = value

    def clear(self) -> None:
        self._entries = {}

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["BoundedCache", "CacheEntry", "VersionedCache"]
