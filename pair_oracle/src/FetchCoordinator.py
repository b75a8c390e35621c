"""FetchCoordinator: Concurrent fan-out of one pair to every enabled source.

Architecture:
    - One task per fetcher, each bounded by ``request_timeout``
    - A semaphore shared across all requests caps outstanding fetches
    - Outcomes joined with ``gather(return_exceptions=True)`` so one
      failing source never affects the others
    - Exceptions and timeouts feed the SourceManager; a "no data" answer
      counts as the source being reachable
    - The join is shielded: cancelling a caller (e.g. a scheduled refresh
      during shutdown) leaves its fetches running until they finish or time out
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .Quote import Quote
from .SourceManager import SourceManager

if TYPE_CHECKING:
    from .fetchers import BaseFetcher

logger = logging.getLogger(__name__)


@dataclass
class FanOutResult:
    """Outcome of fetching one pair from every source.

    :ivar quotes: Quotes in completion order.
    :ivar failed: Sources that raised or timed out.
    :ivar empty: Sources that answered with no data.
    """

    quotes: list[Quote] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    empty: list[str] = field(default_factory=list)


class FetchCoordinator:
    """Coordinates concurrent fetching from all price sources.

    :ivar fetchers: Dict mapping source names to fetcher instances.
    :ivar request_timeout: Per-source fetch timeout in seconds.
    :ivar source_manager: Liveness tracker updated after every fetch.
    """

    def __init__(
        self,
        fetchers: dict[str, BaseFetcher],
        request_timeout: float = 5.0,
        max_concurrent_requests: int = 20,
        source_manager: SourceManager | None = None,
    ) -> None:
        """Initialize the coordinator.

        :param fetchers: Dict mapping source names to fetcher instances.
        :param request_timeout: Timeout for each fetch (default: 5.0).
        :param max_concurrent_requests: Ceiling on outstanding fetches.
        :param source_manager: Liveness tracker (default: tracks ``fetchers``).
        """
        self.fetchers = fetchers
        self.request_timeout = request_timeout
        self.source_manager = source_manager or SourceManager(list(fetchers))
        self._semaphore = asyncio.Semaphore(max_concurrent_requests)
        self._in_flight: set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        """Number of fetch tasks not yet finished."""
        return len(self._in_flight)

    async def fetch_pair(self, token_a: str, token_b: str) -> FanOutResult:
        """Fetch a pair from every source concurrently.

        :param token_a: Base token identifier.
        :param token_b: Quote token identifier.
        :returns: FanOutResult with quotes in completion order.
        """
        result = FanOutResult()
        if not self.fetchers:
            return result

        tasks = []
        for source, fetcher in self.fetchers.items():
            task = asyncio.create_task(
                self._fetch_one(source, fetcher, token_a, token_b, result),
                name=f"fetch-{source}-{token_a}/{token_b}",
            )
            self._in_flight.add(task)
            task.add_done_callback(self._in_flight.discard)
            tasks.append(task)

        # Cancelling the caller must not kill the fetches; drain() awaits them
        outcomes = await asyncio.shield(asyncio.gather(*tasks, return_exceptions=True))
        for source, outcome in zip(self.fetchers, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                logger.warning(f"[{source}] Fetch cancelled for {token_a}/{token_b}")
                result.failed.append(source)
        return result

    async def _fetch_one(
        self,
        source: str,
        fetcher: BaseFetcher,
        token_a: str,
        token_b: str,
        result: FanOutResult,
    ) -> None:
        try:
            async with self._semaphore:
                quote = await asyncio.wait_for(
                    fetcher.fetch(token_a, token_b, timeout=self.request_timeout),
                    timeout=self.request_timeout,
                )
        except asyncio.TimeoutError:
            logger.warning(f"[{source}] Timeout fetching {token_a}/{token_b}")
            self.source_manager.record_failure(source, "timeout")
            result.failed.append(source)
            return
        except Exception as e:
            logger.warning(f"[{source}] Error fetching {token_a}/{token_b}: {e}")
            self.source_manager.record_failure(source, str(e))
            result.failed.append(source)
            return

        self.source_manager.record_success(source)
        if quote is None:
            logger.debug(f"[{source}] No data for {token_a}/{token_b}")
            result.empty.append(source)
            return
        result.quotes.append(quote)

    async def drain(self, timeout: float | None = None) -> bool:
        """Wait for in-flight fetches to finish.

        :param timeout: Seconds to wait (default: request_timeout).
        :returns: True if no fetch is left running.
        """
        if not self._in_flight:
            return True
        pending = set(self._in_flight)
        _, still_running = await asyncio.wait(
            pending, timeout=self.request_timeout if timeout is None else timeout
        )
        if still_running:
            logger.warning(f"{len(still_running)} fetches still running after drain timeout")
        return not still_running
