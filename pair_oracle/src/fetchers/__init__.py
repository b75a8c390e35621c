"""
Price fetchers for on-chain DEXes, oracle feeds and REST APIs.

This module provides a unified interface for fetching token-pair quotes
from every supported source.

Usage:
    from pair_oracle.src.fetchers import get_fetcher, get_available_fetchers

    # Get list of available fetchers
    available = get_available_fetchers()
    # ['apeswap', 'binance_api', 'biswap', 'chainlink', 'coingecko', ...]

    # REST fetchers need only the config
    fetcher = get_fetcher("binance_api", config=config)
    quote = await fetcher.fetch(wbnb, usdt)

    # On-chain fetchers share a ContractUtility
    fetcher = get_fetcher("pancakeswap_v2", config=config, contracts=contracts)
"""

# Import base classes and utilities
from .base import (
    FETCHER_REGISTRY,
    BaseFetcher,
    FetcherConfigError,
    FetcherHTTPError,
    SourceFetchError,
    SourceKind,
    get_available_fetchers,
    get_fetcher,
    register_fetcher,
)

# Import all fetcher implementations to trigger registration
from .binance import BinanceFetcher
from .chainlink import ChainlinkFetcher
from .coingecko import CoinGeckoFetcher
from .dex import (
    ApeSwapFetcher,
    BiswapFetcher,
    PancakeSwapV2Fetcher,
    SushiSwapFetcher,
    UniswapV2Fetcher,
)
from .dex_v3 import PancakeSwapV3Fetcher, UniswapV3Fetcher
from .dexscreener import DexScreenerFetcher
from .onchain import OnChainFetcher
from .stream import BookTicker, BookTickerStream

__all__ = [
    # Base classes
    "BaseFetcher",
    "OnChainFetcher",
    "SourceKind",
    "SourceFetchError",
    "FetcherConfigError",
    "FetcherHTTPError",
    # Registry functions
    "register_fetcher",
    "get_fetcher",
    "get_available_fetchers",
    "FETCHER_REGISTRY",
    # Fetcher implementations
    "ApeSwapFetcher",
    "BinanceFetcher",
    "BiswapFetcher",
    "ChainlinkFetcher",
    "CoinGeckoFetcher",
    "DexScreenerFetcher",
    "PancakeSwapV2Fetcher",
    "PancakeSwapV3Fetcher",
    "SushiSwapFetcher",
    "UniswapV2Fetcher",
    "UniswapV3Fetcher",
    # Streaming
    "BookTicker",
    "BookTickerStream",
]
