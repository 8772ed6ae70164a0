"""
Tenant resolution cache.

Maps a tenant slug to "known / unknown" so tenant-scoped requests do not hit
the registry every time. Both answers are cached for a bounded TTL.
"""
import logging
import threading
import time
from typing import Callable, Dict, NamedTuple

logger = logging.getLogger(__name__)


class _Entry(NamedTuple):
    exists: bool
    expires_at: float


class TenantResolutionCache:
    """
    TTL cache in front of a registry lookup.

    Reads go straight to the dict without taking the lock. Writes and evictions
    are serialized; two concurrent misses for the same slug both query the
    registry and the last write wins, which is harmless because they computed
    the same answer. A lookup that overlaps an ``invalidate`` is returned but
    not stored, so an answer read before a tenant was created cannot outlive
    the invalidation.
    """

    def __init__(
        self,
        lookup: Callable[[str], bool],
        ttl_seconds: float = 60.0,
        max_entries: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._lookup = lookup
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._entries: Dict[str, _Entry] = {}
        self._lock = threading.Lock()
        self._generation = 0

    def resolve(self, slug: str) -> bool:
        """
        Tell whether ``slug`` names a provisioned tenant.

        Args:
            slug: Canonical tenant slug

        Returns:
            bool: True if the tenant exists
        """
        entry = self._entries.get(slug)
        now = self._clock()
        if entry is not None and entry.expires_at > now:
            return entry.exists

        # Registry call happens without holding the lock
        generation = self._generation
        exists = self._lookup(slug)
        with self._lock:
            if generation != self._generation:
                return exists
            if len(self._entries) >= self._max_entries and slug not in self._entries:
                self._evict(now)
            self._entries[slug] = _Entry(exists, now + self._ttl)
        return exists

    def invalidate(self, slug: str) -> None:
        with self._lock:
            self._entries.pop(slug, None)
            self._generation += 1
        logger.debug(f"Invalidated tenant cache entry {slug}")

    def __len__(self) -> int:
        return len(self._entries)

    def _evict(self, now: float) -> None:
        # Caller holds the lock
        expired = [slug for slug, entry in self._entries.items() if entry.expires_at <= now]
        for slug in expired:
            del self._entries[slug]
        if len(self._entries) >= self._max_entries:
            oldest = min(self._entries, key=lambda slug: self._entries[slug].expires_at)
            del self._entries[oldest]
