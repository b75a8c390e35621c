"""PriceCache: Bounded TTL cache of aggregated quotes keyed by token pair.

Keys are directional :class:`TokenPair` values. Each entry remembers when it
was stored and how often it was hit:

    - ``get`` returns the entry only while ``now - stored_at < max_age``;
      an expired entry is a miss even before it is swept.
    - ``sweep_expired`` drops entries with ``now - stored_at > max_age``.
    - ``evict_if_over_capacity`` drops the least-hit 20% of entries (oldest
      first on ties) until the size is at or under capacity. This is an
      approximate LFU policy, not LRU.

The cache is not locked; the owning oracle serializes mutations.

.. code-block:: python

    >>> cache = PriceCache(max_age=30.0, capacity=1000)
    >>> cache.put(TokenPair("wbnb", "usdt"), aggregated)
    >>> cache.get(TokenPair("wbnb", "usdt")).hits
    2
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .Quote import AggregatedQuote
    from .TokenPair import TokenPair

logger = logging.getLogger(__name__)

# Share of entries removed per eviction round.
EVICTION_FRACTION = 0.2


@dataclass
class CacheEntry:
    """A cached aggregated quote.

    :ivar data: The stored aggregated quote.
    :ivar stored_at: Unix timestamp (seconds) when the entry was written.
    :ivar hits: Access counter, 1 on creation.
    """

    data: AggregatedQuote
    stored_at: float
    hits: int = 1

    def age(self, now: float | None = None) -> float:
        """Seconds since the entry was stored."""
        if now is None:
            now = time.time()
        return now - self.stored_at


class PriceCache:
    """TTL and capacity bounded store of :class:`CacheEntry` per pair.

    :ivar max_age: Seconds an entry stays fresh.
    :ivar capacity: Entry count above which eviction kicks in.
    """

    def __init__(self, max_age: float, capacity: int) -> None:
        """Initialize the cache.

        :param max_age: Freshness window in seconds.
        :param capacity: Maximum number of entries kept after eviction.
        :raises ValueError: If parameters are invalid.
        """
        if max_age <= 0:
            raise ValueError("max_age must be positive")
        if capacity < 1:
            raise ValueError("capacity must be at least 1")

        self.max_age = max_age
        self.capacity = capacity
        # dict preserves insertion order, which doubles as the eviction tie-break
        self._entries: dict[TokenPair, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, pair: object) -> bool:
        return pair in self._entries

    def pairs(self) -> list[TokenPair]:
        """Stored pairs in insertion order (including expired ones)."""
        return list(self._entries)

    def get(self, pair: TokenPair) -> CacheEntry | None:
        """Look up a fresh entry and count the hit.

        :param pair: Directional token pair.
        :returns: The entry, or None on a miss or an expired entry.
        """
        entry = self._entries.get(pair)
        if entry is None:
            return None
        if entry.age() >= self.max_age:
            return None
        entry.hits += 1
        return entry

    def put(self, pair: TokenPair, data: AggregatedQuote) -> CacheEntry:
        """Insert or replace the entry for a pair.

        Replacement discards the old entry and appends a new one, so the
        replaced pair becomes the newest for eviction tie-breaks.

        :param pair: Directional token pair.
        :param data: Aggregated quote to store.
        :returns: The new entry.
        """
        self._entries.pop(pair, None)
        entry = CacheEntry(data=data, stored_at=time.time(), hits=1)
        self._entries[pair] = entry
        return entry

    def sweep_expired(self) -> int:
        """Remove entries older than max_age.

        :returns: Number of removed entries.
        """
        now = time.time()
        expired = [
            pair for pair, entry in self._entries.items()
            if entry.age(now) > self.max_age
        ]
        for pair in expired:
            del self._entries[pair]

        if expired:
            logger.debug(f"Swept {len(expired)} expired cache entries")
        return len(expired)

    def evict_if_over_capacity(self) -> int:
        """Evict the least-hit entries while the cache exceeds capacity.

        Each round removes 20% of the current entries (at least one), lowest
        hit count first and oldest first among equal counts.

        :returns: Number of evicted entries.
        """
        if len(self._entries) <= self.capacity:
            return 0

        # Stable sort keeps insertion order among equal hit counts
        ranked = sorted(self._entries.items(), key=lambda item: item[1].hits)
        evicted = 0
        while len(self._entries) > self.capacity:
            batch = max(1, int(len(self._entries) * EVICTION_FRACTION))
            for pair, _ in ranked[evicted:evicted + batch]:
                del self._entries[pair]
            evicted += batch

        logger.debug(
            f"Evicted {evicted} cache entries (size={len(self._entries)}, "
            f"capacity={self.capacity})"
        )
        return evicted

    def clear(self) -> None:
        """Remove every entry."""
        self._entries.clear()
