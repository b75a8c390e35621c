"""OracleConfig: Process-wide, read-only oracle configuration.

All durations are in seconds. ``min_liquidity`` is a fixed-point integer in
the same 18-decimal scale as quote prices.

.. code-block:: python

    >>> cfg = OracleConfig(enabled_sources=("chainlink", "binance_api"))
    >>> cfg.source_weights["chainlink"]
    4
    >>> cfg.max_age_ms
    30000
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from .Quote import PRICE_SCALE, PriceSource
from .TokenPair import TokenPair

# Default RPC endpoints per network.
DEFAULT_RPC_URLS: dict[str, str] = {
    "bsc": "https://bsc-dataseed.binance.org",
    "bsc-testnet": "https://data-seed-prebsc-1-s1.binance.org:8545",
    "ethereum": "https://eth.llamarpc.com",
}

DEFAULT_ENABLED_SOURCES: tuple[str, ...] = (
    PriceSource.PANCAKESWAP_V2.value,
    PriceSource.PANCAKESWAP_V3.value,
    PriceSource.UNISWAP_V2.value,
    PriceSource.CHAINLINK.value,
    PriceSource.BINANCE_API.value,
)

DEFAULT_SOURCE_WEIGHTS: dict[str, float] = {
    PriceSource.PANCAKESWAP_V2.value: 2,
    PriceSource.PANCAKESWAP_V3.value: 3,
    PriceSource.UNISWAP_V2.value: 2,
    PriceSource.UNISWAP_V3.value: 3,
    PriceSource.SUSHISWAP.value: 1,
    PriceSource.BISWAP.value: 1,
    PriceSource.APESWAP.value: 1,
    PriceSource.CHAINLINK.value: 4,
    PriceSource.BINANCE_API.value: 3,
    PriceSource.COINGECKO.value: 2,
    PriceSource.DEXSCREENER.value: 2,
}


def _frozen(mapping: Mapping | None) -> Mapping:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class OracleConfig:
    """Configuration for a :class:`~pair_oracle.src.PriceOracle.PriceOracle`.

    :ivar network: Network selector (bsc, bsc-testnet, ethereum).
    :ivar rpc_url: RPC endpoint override; defaults per network.
    :ivar ws_url: WebSocket stream URL override for streaming sources.
    :ivar enabled_sources: Fetcher names queried on every price request.
    :ivar source_weights: Source name to aggregation weight; unmapped is 1.
    :ivar fast_interval: Seconds between fast cadence ticks.
    :ivar slow_interval: Seconds between slow cadence ticks.
    :ivar min_confidence: Minimum quote confidence (0-100).
    :ivar max_spread: Maximum quote spread as a fraction.
    :ivar max_age: Seconds a quote or cache entry stays fresh.
    :ivar min_liquidity: Minimum declared liquidity, fixed point.
    :ivar cache_capacity: Entry count above which the cache evicts.
    :ivar request_timeout: Per-source fetch timeout in seconds.
    :ivar max_concurrent_requests: Ceiling on outstanding fetches system-wide.
    :ivar enable_websocket: Use persistent streams where a source has one.
    :ivar ws_reconnect_delay: Seconds to wait before reconnecting a stream.
    :ivar ws_max_reconnects: Consecutive reconnect attempts before giving up.
    :ivar api_keys: Source name to API key.
    :ivar token_symbols: Token identifier to exchange ticker (REST sources).
    :ivar token_decimals: Token identifier to ERC-20 decimals override.
    :ivar chainlink_feeds: "tokenA/tokenB" to Chainlink aggregator address.
    :ivar watch_pairs: Pairs proactively refreshed on the fast cadence.
    :ivar reference_trade_size: Whole token_a units used for slippage estimates.
    """

    network: str = "bsc"
    rpc_url: str | None = None
    ws_url: str | None = None

    enabled_sources: tuple[str, ...] = DEFAULT_ENABLED_SOURCES
    source_weights: Mapping[str, float] = field(
        default_factory=lambda: dict(DEFAULT_SOURCE_WEIGHTS)
    )

    fast_interval: float = 1.0
    slow_interval: float = 10.0

    min_confidence: int = 80
    max_spread: float = 0.01
    max_age: float = 30.0
    min_liquidity: int = 10_000 * PRICE_SCALE

    cache_capacity: int = 1000
    request_timeout: float = 5.0
    max_concurrent_requests: int = 20

    enable_websocket: bool = True
    ws_reconnect_delay: float = 5.0
    ws_max_reconnects: int = 10

    api_keys: Mapping[str, str] = field(default_factory=dict)
    token_symbols: Mapping[str, str] = field(default_factory=dict)
    token_decimals: Mapping[str, int] = field(default_factory=dict)
    chainlink_feeds: Mapping[str, str] = field(default_factory=dict)
    watch_pairs: tuple[TokenPair, ...] = ()
    reference_trade_size: float = 1.0

    def __post_init__(self) -> None:
        """Validate values and freeze the mapping fields.

        :raises ValueError: If any parameter is out of range.
        """
        if not self.enabled_sources:
            raise ValueError("enabled_sources must not be empty")
        if self.fast_interval <= 0 or self.slow_interval <= 0:
            raise ValueError("fast_interval and slow_interval must be positive")
        if not 0 <= self.min_confidence <= 100:
            raise ValueError("min_confidence must be in 0-100")
        if self.max_spread < 0:
            raise ValueError("max_spread must be non-negative")
        if self.max_age <= 0:
            raise ValueError("max_age must be positive")
        if self.min_liquidity < 0:
            raise ValueError("min_liquidity must be non-negative")
        if self.cache_capacity < 1:
            raise ValueError("cache_capacity must be at least 1")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")
        if self.max_concurrent_requests < 1:
            raise ValueError("max_concurrent_requests must be at least 1")
        if self.ws_reconnect_delay < 0 or self.ws_max_reconnects < 0:
            raise ValueError("ws_reconnect_delay and ws_max_reconnects must be non-negative")
        if any(w < 0 for w in self.source_weights.values()):
            raise ValueError("source_weights must be non-negative")

        # Frozen dataclass: assign through object.__setattr__
        object.__setattr__(self, "enabled_sources", tuple(self.enabled_sources))
        object.__setattr__(self, "watch_pairs", tuple(self.watch_pairs))
        for name in (
            "source_weights",
            "api_keys",
            "token_symbols",
            "token_decimals",
            "chainlink_feeds",
        ):
            object.__setattr__(self, name, _frozen(getattr(self, name)))

    @property
    def resolved_rpc_url(self) -> str:
        """RPC URL for the configured network."""
        return self.rpc_url or DEFAULT_RPC_URLS.get(self.network, self.network)

    @property
    def max_age_ms(self) -> int:
        """Freshness window in milliseconds (quote timestamps are in ms)."""
        return int(self.max_age * 1000)
