"""
In-process TTL cache utilities
"""

import time
from typing import Any, Callable, Dict, Optional, Tuple

from outreach.config import get_settings


def _get_settings():
    """Lazy settings loader"""
    return get_settings()


class CacheService:
    """
    Process-local cache with per-entry TTL.

    Entries are (expires_at, value) pairs keyed by "{prefix}:{key}".
    Reads of expired entries evict them. Values are stored as given, so
    callers should cache immutable snapshots rather than live objects.
    """

    def __init__(
        self,
        prefix: str = "outreach",
        default_ttl: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.prefix = prefix
        self.default_ttl = default_ttl
        self._clock = clock
        self._store: Dict[str, Tuple[float, Any]] = {}

    def _key(self, key: str) -> str:
        """Generate full cache key with prefix"""
        return f"{self.prefix}:{key}"

    def _ttl(self, ttl: Optional[int]) -> float:
        if ttl is not None:
            return ttl
        if self.default_ttl is not None:
            return self.default_ttl
        return _get_settings().KEY_CACHE_TTL_SECONDS

    def get(self, key: str) -> Optional[Any]:
        """Get value from cache"""
        full_key = self._key(key)
        entry = self._store.get(full_key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            self._store.pop(full_key, None)
            return None
        return value

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Set value in cache with optional TTL (seconds)"""
        self._store[self._key(key)] = (self._clock() + self._ttl(ttl), value)
        return True

    def delete(self, key: str) -> bool:
        """Delete value from cache"""
        return self._store.pop(self._key(key), None) is not None

    def exists(self, key: str) -> bool:
        """Check if key exists in cache"""
        return self.get(key) is not None

    def clear(self) -> int:
        """Drop every entry under this prefix"""
        count = len(self._store)
        self._store.clear()
        return count

    def __len__(self) -> int:
        return len(self._store)


# Shared cache for key lists and user preferences
key_cache = CacheService(prefix="outreach:ai_keys")
