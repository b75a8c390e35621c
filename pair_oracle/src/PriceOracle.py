"""PriceOracle: Main orchestrator for consensus token-pair prices.

This module fans a price request out to every enabled source, filters the
answers for quality, aggregates the survivors and caches the result.

Architecture:
    - FetchCoordinator queries all sources concurrently per request
    - QualityFilter drops stale, thin or low-confidence quotes
    - PriceAggregator combines survivors (weighted mean + upper median)
    - PriceCache serves repeated requests within ``max_age``
    - UpdateScheduler refreshes watched pairs (fast) and prunes the cache (slow)
    - A single asyncio.Lock serializes cache and metrics mutation
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Iterable

from .ContractUtility import ContractUtility
from .FetchCoordinator import FetchCoordinator
from .fetchers import (
    FETCHER_REGISTRY,
    BaseFetcher,
    OnChainFetcher,
    get_available_fetchers,
    get_fetcher,
)
from .MetricsCollector import MetricsCollector, MetricsSnapshot
from .OracleConfig import OracleConfig
from .PriceAggregator import PriceAggregator
from .PriceCache import PriceCache
from .QualityFilter import QualityFilter
from .Quote import AggregatedQuote, from_fixed
from .SourceManager import SourceManager
from .TokenPair import TokenPair
from .UpdateScheduler import UpdateScheduler

logger = logging.getLogger(__name__)


class NoValidPriceData(Exception):
    """Raised when no quote for a pair survives quality filtering.

    :ivar token_a: Base token identifier.
    :ivar token_b: Quote token identifier.
    :ivar fetched: Quotes returned by sources.
    :ivar rejected: Quotes dropped by the quality filter.
    """

    def __init__(self, token_a: str, token_b: str, fetched: int = 0, rejected: int = 0):
        self.token_a = token_a
        self.token_b = token_b
        self.fetched = fetched
        self.rejected = rejected
        super().__init__(
            f"No valid price data for {token_a}/{token_b} "
            f"(fetched={fetched}, rejected={rejected})"
        )


@dataclass(frozen=True)
class BatchPriceResult:
    """Outcome of one pair in :meth:`PriceOracle.get_batch_prices`."""

    pair: TokenPair
    quote: AggregatedQuote | None = None
    error: Exception | None = None

    @property
    def success(self) -> bool:
        return self.quote is not None


def _as_pair(pair: TokenPair | tuple[str, str] | str) -> TokenPair:
    if isinstance(pair, str):
        return TokenPair.from_string(pair)
    return TokenPair(*pair)


class PriceOracle:
    """Consensus price oracle over multiple sources.

    :ivar config: Read-only oracle configuration.
    :ivar fetchers: Dict mapping source names to fetcher instances.
    :ivar contracts: ContractUtility shared by on-chain fetchers, if any.
    :ivar cache: Aggregated quotes by directional pair.
    :ivar metrics: Request, cache and latency metrics.
    :ivar source_manager: Per-source liveness tracking.
    """

    def __init__(
        self,
        config: OracleConfig | None = None,
        fetchers: dict[str, BaseFetcher] | None = None,
    ) -> None:
        """Initialize the price oracle.

        :param config: Oracle configuration (default: OracleConfig()).
        :param fetchers: Pre-built fetchers by source name. When omitted they
            are created from ``config.enabled_sources``.
        :raises ValueError: If an enabled source is not a registered fetcher.
        """
        self.config = config or OracleConfig()
        self.contracts: ContractUtility | None = None
        self.fetchers = fetchers if fetchers is not None else self._build_fetchers()

        self.quality_filter = QualityFilter(self.config)
        self.aggregator = PriceAggregator(self.config.source_weights)
        self.cache = PriceCache(self.config.max_age, self.config.cache_capacity)
        self.metrics = MetricsCollector(total_sources=len(self.fetchers))
        self.metrics.set_sources_online(len(self.fetchers))
        self.source_manager = SourceManager(list(self.fetchers))
        self.coordinator = FetchCoordinator(
            fetchers=self.fetchers,
            request_timeout=self.config.request_timeout,
            max_concurrent_requests=self.config.max_concurrent_requests,
            source_manager=self.source_manager,
        )
        self.scheduler = UpdateScheduler(
            fast_interval=self.config.fast_interval,
            slow_interval=self.config.slow_interval,
            on_fast=self._on_fast_tick,
            on_slow=self._on_slow_tick,
        )

        self._lock = asyncio.Lock()
        self._watched: dict[TokenPair, None] = dict.fromkeys(self.config.watch_pairs)
        self._running = False

        logger.info(
            f"PriceOracle initialized: network={self.config.network}, "
            f"sources={list(self.fetchers)}, fast_interval={self.config.fast_interval}s, "
            f"slow_interval={self.config.slow_interval}s"
        )

    def _build_fetchers(self) -> dict[str, BaseFetcher]:
        available = get_available_fetchers()
        invalid = [s for s in self.config.enabled_sources if s not in available]
        if invalid:
            raise ValueError(f"Unknown sources: {invalid}. Available: {available}")

        fetchers: dict[str, BaseFetcher] = {}
        for source in self.config.enabled_sources:
            kwargs = {}
            if issubclass(FETCHER_REGISTRY[source], OnChainFetcher):
                if self.contracts is None:
                    self.contracts = ContractUtility(self.config)
                kwargs["contracts"] = self.contracts
            fetchers[source] = get_fetcher(
                source,
                config=self.config,
                api_key=self.config.api_keys.get(source),
                **kwargs,
            )
        return fetchers

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def watched_pairs(self) -> list[TokenPair]:
        """Pairs refreshed on every fast tick, in insertion order."""
        return list(self._watched)

    async def start(self) -> None:
        """Open source connections and start the scheduler (idempotent)."""
        if self._running:
            return
        self._running = True

        outcomes = await asyncio.gather(
            *(fetcher.connect() for fetcher in self.fetchers.values()),
            return_exceptions=True,
        )
        for source, outcome in zip(self.fetchers, outcomes):
            if isinstance(outcome, Exception):
                logger.warning(f"[{source}] Failed to connect: {outcome}")

        self.scheduler.start()
        logger.info(f"PriceOracle started with {len(self.fetchers)} sources")

    async def stop(self) -> None:
        """Stop scheduled work and close connections (idempotent).

        In-flight fetches get up to ``request_timeout`` to finish before
        connections are closed.
        """
        if not self._running:
            return
        self._running = False

        await self.scheduler.stop()
        await self.coordinator.drain(self.config.request_timeout)

        outcomes = await asyncio.gather(
            *(fetcher.close() for fetcher in self.fetchers.values()),
            return_exceptions=True,
        )
        for source, outcome in zip(self.fetchers, outcomes):
            if isinstance(outcome, Exception):
                logger.warning(f"[{source}] Failed to close: {outcome}")

        await BaseFetcher.close_shared_client()
        if self.contracts is not None:
            await self.contracts.close()
        logger.info("PriceOracle stopped")

    async def get_price(self, token_a: str, token_b: str) -> AggregatedQuote:
        """Consensus price of token_a in token_b.

        :returns: Cached AggregatedQuote if fresh, otherwise a new aggregation.
        :raises NoValidPriceData: If no source returned an acceptable quote.
        """
        pair = TokenPair(token_a, token_b)
        started = time.perf_counter()

        async with self._lock:
            self.metrics.record_request()
            entry = self.cache.get(pair)
            if entry is not None:
                self.metrics.record_cache_hit()
                self.metrics.record_response_time(_elapsed_ms(started))
                logger.debug(f"Cache hit for {pair} (hits={entry.hits})")
                return entry.data
            self.metrics.record_cache_miss()
            logger.debug(f"Cache miss for {pair}")

        try:
            aggregated = await self._aggregate_pair(pair)
        except NoValidPriceData:
            async with self._lock:
                self.metrics.record_error()
                self.metrics.record_response_time(_elapsed_ms(started))
            raise

        async with self._lock:
            self._store(pair, aggregated)
            self.metrics.record_response_time(_elapsed_ms(started))
        return aggregated

    async def get_batch_prices(
        self, pairs: Iterable[TokenPair | tuple[str, str] | str]
    ) -> list[BatchPriceResult]:
        """Fetch several pairs concurrently; one failure never affects another.

        :param pairs: TokenPairs, (token_a, token_b) tuples or "A/B" strings.
        :returns: One BatchPriceResult per pair, in input order.
        """
        token_pairs = [_as_pair(p) for p in pairs]
        outcomes = await asyncio.gather(
            *(self.get_price(p.token_a, p.token_b) for p in token_pairs),
            return_exceptions=True,
        )

        results = []
        for pair, outcome in zip(token_pairs, outcomes):
            if isinstance(outcome, AggregatedQuote):
                results.append(BatchPriceResult(pair=pair, quote=outcome))
            elif isinstance(outcome, Exception):
                if not isinstance(outcome, NoValidPriceData):
                    logger.warning(f"Unexpected error for {pair}: {outcome}")
                results.append(BatchPriceResult(pair=pair, error=outcome))
            else:
                raise outcome
        return results

    def get_metrics(self) -> MetricsSnapshot:
        """Read-only snapshot of the current metrics."""
        return self.metrics.snapshot()

    async def refresh(self, token_a: str, token_b: str) -> AggregatedQuote:
        """Recompute a pair's price, bypassing the cache.

        :raises NoValidPriceData: If no source returned an acceptable quote.
        """
        pair = TokenPair(token_a, token_b)
        aggregated = await self._aggregate_pair(pair)
        async with self._lock:
            self._store(pair, aggregated)
        return aggregated

    def watch(self, pair: TokenPair | tuple[str, str] | str) -> None:
        """Add a pair to the fast-cadence refresh list."""
        self._watched[_as_pair(pair)] = None

    def unwatch(self, pair: TokenPair | tuple[str, str] | str) -> None:
        """Remove a pair from the fast-cadence refresh list (no-op if absent)."""
        self._watched.pop(_as_pair(pair), None)

    async def _aggregate_pair(self, pair: TokenPair) -> AggregatedQuote:
        """Fan out, filter and aggregate one pair without touching the cache."""
        fan_out = await self.coordinator.fetch_pair(pair.token_a, pair.token_b)
        accepted = self.quality_filter.filter(fan_out.quotes)

        if not accepted:
            logger.warning(
                f"No valid price data for {pair}: fetched={len(fan_out.quotes)}, "
                f"failed={fan_out.failed}, empty={fan_out.empty}"
            )
            raise NoValidPriceData(
                pair.token_a,
                pair.token_b,
                fetched=len(fan_out.quotes),
                rejected=len(fan_out.quotes) - len(accepted),
            )

        aggregated = self.aggregator.aggregate(pair.token_a, pair.token_b, accepted)
        logger.info(
            f"{pair}: price={from_fixed(aggregated.weighted_price):.8f} "
            f"median={from_fixed(aggregated.median_price):.8f} "
            f"sources={aggregated.source_names} "
            f"confidence={aggregated.confidence:.1f}"
        )
        return aggregated

    def _store(self, pair: TokenPair, aggregated: AggregatedQuote) -> None:
        """Cache an aggregation and update metrics. Caller holds the lock."""
        self.cache.put(pair, aggregated)
        self.metrics.record_price_update()
        if len(self.cache) > self.config.cache_capacity:
            swept = self.cache.sweep_expired()
            evicted = self.cache.evict_if_over_capacity()
            logger.debug(f"Cache over capacity: swept={swept}, evicted={evicted}")
        self.metrics.set_sources_online(self.source_manager.online_count())

    async def _on_fast_tick(self) -> None:
        """Refresh watched pairs, then update the sources-online tally."""
        pairs = self.watched_pairs
        if pairs:
            outcomes = await asyncio.gather(
                *(self.refresh(p.token_a, p.token_b) for p in pairs),
                return_exceptions=True,
            )
            for pair, outcome in zip(pairs, outcomes):
                if isinstance(outcome, Exception):
                    logger.warning(f"Refresh failed for {pair}: {outcome}")

        async with self._lock:
            self.metrics.set_sources_online(self.source_manager.online_count())

    async def _on_slow_tick(self) -> None:
        """Sweep expired entries, then evict if over capacity."""
        async with self._lock:
            swept = self.cache.sweep_expired()
            evicted = self.cache.evict_if_over_capacity()
        if swept or evicted:
            logger.debug(f"Cache maintenance: swept={swept}, evicted={evicted}")


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000
