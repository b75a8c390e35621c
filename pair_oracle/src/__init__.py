"""
Pair Oracle - Multi-Source Token-Pair Price Aggregation

This module provides consensus prices for token pairs from on-chain DEXes,
oracle feeds and REST APIs:
- Quote / AggregatedQuote: Price observations and consensus results
- TokenPair: Directional pair key
- OracleConfig: Read-only configuration
- QualityFilter: Confidence, spread, age and liquidity screening
- PriceAggregator: Weighted mean and upper median over accepted quotes
- PriceCache: TTL cache with approximate-LFU eviction
- UpdateScheduler: Fast and slow cancellable cadences
- MetricsCollector: Request, cache, latency and error metrics
- SourceManager: Per-source liveness with exponential backoff
- PriceOracle: Main orchestrator
- fetchers: Modular price fetcher implementations
"""

from .FetchCoordinator import FanOutResult, FetchCoordinator
from .MetricsCollector import MetricsCollector, MetricsSnapshot
from .OracleConfig import OracleConfig
from .PriceAggregator import EmptyInputError, PriceAggregator
from .PriceCache import CacheEntry, PriceCache
from .PriceOracle import BatchPriceResult, NoValidPriceData, PriceOracle
from .QualityFilter import QualityFilter
from .Quote import PRICE_SCALE, AggregatedQuote, PriceSource, Quote, from_fixed, to_fixed
from .SourceManager import SourceManager, SourceStatus
from .TokenPair import TokenPair
from .UpdateScheduler import UpdateScheduler

__all__ = [
    "AggregatedQuote",
    "BatchPriceResult",
    "CacheEntry",
    "EmptyInputError",
    "FanOutResult",
    "FetchCoordinator",
    "MetricsCollector",
    "MetricsSnapshot",
    "NoValidPriceData",
    "OracleConfig",
    "PRICE_SCALE",
    "PriceAggregator",
    "PriceCache",
    "PriceOracle",
    "PriceSource",
    "QualityFilter",
    "Quote",
    "SourceManager",
    "SourceStatus",
    "TokenPair",
    "UpdateScheduler",
    "from_fixed",
    "to_fixed",
]
