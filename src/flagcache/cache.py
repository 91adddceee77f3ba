"""In-memory record stores for flags and tenant features."""

import asyncio
from typing import Dict, Generic, List, Optional, TypeVar

from .types import CachedFeatureRecord, CachedFlagRecord

R = TypeVar("R")


class RecordCache(Generic[R]):
    """Async-safe key -> record cache.

    Records are only ever replaced whole, so a reader sees either the old
    or the new record. There is no expiry; staleness is decided at read
    time by a StalenessPolicy.

    The lock binds to the first event loop that contends for it, so a store
    can be built outside any loop but should be shared within one loop.
    """

    def __init__(self) -> None:
        self._cache: Dict[str, R] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._cache)

    def keys(self) -> List[str]:
        """Return the keys currently held."""
        return list(self._cache)

    async def get(self, key: str) -> Optional[R]:
        """Get the cached record for key.

        Args:
            key: The opaque identity string.

        Returns:
            The cached record, or None if there is none.
        """
        async with self._lock:
            return self._cache.get(key)

    async def put(self, key: str, record: R) -> None:
        """Store record under key, replacing any previous record.

        Args:
            key: The opaque identity string.
            record: The full record to store.
        """
        async with self._lock:
            self._cache[key] = record

    async def evict(self, key: str) -> None:
        """Remove the record for key. Missing keys are ignored."""
        async with self._lock:
            self._cache.pop(key, None)

    async def clear(self) -> None:
        """Clear all entries from the cache."""
        async with self._lock:
            self._cache.clear()


class FlagCacheStore(RecordCache[CachedFlagRecord]):
    """Per-user feature flag records, keyed by user identifier."""


class FeatureCacheStore(RecordCache[CachedFeatureRecord]):
    """Per-tenant business feature records, keyed by tenant id."""
