"""SourceManager: Per-source liveness tracking with an exponential offline window.

A fetch that raises or times out marks the source offline for a backoff
window that doubles with each consecutive failure (capped, default 5
minutes). Any completed fetch, including a "no data" answer, marks the
source reachable again.

Sources are never skipped because of their window: every enabled source is
queried on each request. The window only drives the ``sources_online``
metric.

.. code-block:: python

    >>> manager = SourceManager(["chainlink", "binance_api"])
    >>> manager.record_failure("binance_api")
    5.0
    >>> manager.online_count()
    1
    >>> manager.record_success("binance_api")
    >>> manager.online_count()
    2
"""

from __future__ import annotations

import time
from dataclasses import dataclass


@dataclass
class SourceStatus:
    """Tracks the liveness of a single source.

    :ivar consecutive_failures: Number of consecutive failed fetches.
    :ivar offline_until: Unix timestamp when the offline window ends.
    :ivar total_failures: Failed fetches since tracking began.
    :ivar total_successes: Completed fetches since tracking began.
    :ivar last_error: Message of the most recent failure.
    """

    consecutive_failures: int = 0
    offline_until: float = 0.0
    total_failures: int = 0
    total_successes: int = 0
    last_error: str | None = None


class SourceManager:
    """Tracks which configured sources are currently reachable.

    :ivar sources: Tracked source names.
    :ivar base_backoff_seconds: Offline window after the first failure.
    :ivar max_backoff_seconds: Cap on the offline window.
    """

    DEFAULT_BASE_BACKOFF_SECONDS = 5
    DEFAULT_MAX_BACKOFF_SECONDS = 300  # 5 minutes

    def __init__(
        self,
        sources: list[str],
        base_backoff_seconds: float = DEFAULT_BASE_BACKOFF_SECONDS,
        max_backoff_seconds: float = DEFAULT_MAX_BACKOFF_SECONDS,
    ) -> None:
        self.sources = list(sources)
        self.base_backoff_seconds = base_backoff_seconds
        self.max_backoff_seconds = max_backoff_seconds
        self._status: dict[str, SourceStatus] = {s: SourceStatus() for s in sources}

    def record_failure(self, source: str, error: str | None = None) -> float:
        """Record a failed fetch and open an offline window.

        :param source: Source name that failed.
        :param error: Optional error description.
        :returns: Length of the offline window in seconds.
        """
        status = self._status.setdefault(source, SourceStatus())
        status.consecutive_failures += 1
        status.total_failures += 1
        status.last_error = error

        # base * 2^(failures-1), capped at max
        window = min(
            self.base_backoff_seconds * (2 ** (status.consecutive_failures - 1)),
            self.max_backoff_seconds,
        )
        status.offline_until = time.time() + window
        return float(window)

    def record_success(self, source: str) -> None:
        """Record a completed fetch, closing any offline window."""
        status = self._status.setdefault(source, SourceStatus())
        status.consecutive_failures = 0
        status.offline_until = 0.0
        status.total_successes += 1

    def get_source_status(self, source: str) -> SourceStatus | None:
        """Status of a source, or None if it is not tracked."""
        return self._status.get(source)

    def is_online(self, source: str) -> bool:
        """Check whether a tracked source is outside its offline window."""
        status = self._status.get(source)
        if status is None:
            return False
        return time.time() >= status.offline_until

    def online_sources(self) -> list[str]:
        """Tracked sources currently considered reachable."""
        now = time.time()
        return [s for s in self.sources if now >= self._status[s].offline_until]

    def online_count(self) -> int:
        """Number of tracked sources currently considered reachable."""
        return len(self.online_sources())
