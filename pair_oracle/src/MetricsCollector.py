"""MetricsCollector: Request, cache, latency and error counters for the oracle.

The oracle updates the collector from its own operations (under its lock);
components never touch it directly.

Latency is a simple moving average over retained samples. Once more than
1000 samples are held, only the most recent 500 are kept ("halve, don't
roll"). The error rate is bumped as ``rate * 0.9 + 0.1`` on every error and
is left untouched on success.
"""

from __future__ import annotations

import time
from dataclasses import dataclass

MAX_LATENCY_SAMPLES = 1000
RETAINED_LATENCY_SAMPLES = 500
ERROR_DECAY = 0.9
ERROR_WEIGHT = 0.1


@dataclass(frozen=True)
class MetricsSnapshot:
    """Read-only copy of the oracle metrics.

    :ivar total_requests: Price requests received.
    :ivar cache_hits: Requests served from cache.
    :ivar cache_misses: Requests that triggered aggregation.
    :ivar average_response_time: Mean latency in milliseconds.
    :ivar error_rate: Exponentially bumped error rate.
    :ivar sources_online: Sources currently reachable.
    :ivar total_sources: Configured sources.
    :ivar price_updates: Aggregations stored in the cache.
    :ivar last_update_time: Unix timestamp (ms) of the last aggregation, 0 if none.
    """

    total_requests: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    average_response_time: float = 0.0
    error_rate: float = 0.0
    sources_online: int = 0
    total_sources: int = 0
    price_updates: int = 0
    last_update_time: int = 0

    @property
    def cache_hit_rate(self) -> float:
        """Share of requests served from cache."""
        return self.cache_hits / max(self.total_requests, 1)


class MetricsCollector:
    """Mutable metrics state owned by a single oracle."""

    def __init__(self, total_sources: int = 0) -> None:
        self.total_requests = 0
        self.cache_hits = 0
        self.cache_misses = 0
        self.price_updates = 0
        self.last_update_time = 0
        self.average_response_time = 0.0
        self.error_rate = 0.0
        self.sources_online = 0
        self.total_sources = total_sources
        self._response_times: list[float] = []

    def record_request(self) -> None:
        self.total_requests += 1

    def record_cache_hit(self) -> None:
        self.cache_hits += 1

    def record_cache_miss(self) -> None:
        self.cache_misses += 1

    def record_price_update(self) -> None:
        """Count a stored aggregation and stamp the update time."""
        self.price_updates += 1
        self.last_update_time = int(time.time() * 1000)

    def record_error(self) -> None:
        """Bump the error rate toward 1."""
        self.error_rate = self.error_rate * ERROR_DECAY + ERROR_WEIGHT

    def record_response_time(self, elapsed_ms: float) -> None:
        """Add a latency sample and refresh the moving average.

        :param elapsed_ms: Request latency in milliseconds.
        """
        self._response_times.append(elapsed_ms)
        if len(self._response_times) > MAX_LATENCY_SAMPLES:
            self._response_times = self._response_times[-RETAINED_LATENCY_SAMPLES:]
        self.average_response_time = sum(self._response_times) / len(
            self._response_times
        )

    def set_sources_online(self, online: int) -> None:
        self.sources_online = online

    @property
    def sample_count(self) -> int:
        """Number of retained latency samples."""
        return len(self._response_times)

    def snapshot(self) -> MetricsSnapshot:
        """Return an immutable copy of the current metrics."""
        return MetricsSnapshot(
            total_requests=self.total_requests,
            cache_hits=self.cache_hits,
            cache_misses=self.cache_misses,
            average_response_time=self.average_response_time,
            error_rate=self.error_rate,
            sources_online=self.sources_online,
            total_sources=self.total_sources,
            price_updates=self.price_updates,
            last_update_time=self.last_update_time,
        )
