"""Cache stores used by the discovery engine."""

from .cache import BoundedCache, CacheEntry, VersionedCache

__all__ = ["BoundedCache", "CacheEntry", "VersionedCache"]
