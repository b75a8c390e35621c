#!/usr/bin/env python3
"""Pair Oracle.

Fetches token-pair prices from on-chain DEXes, oracle feeds and REST APIs,
filters them for quality and logs the consensus price of each pair.

Configure via CLI arguments or the environment variables listed in --help.
"""

import argparse
import asyncio
import logging
import os
import sys

from .src.fetchers import get_available_fetchers
from .src.OracleConfig import OracleConfig
from .src.PriceOracle import PriceOracle
from .src.Quote import from_fixed, to_fixed
from .src.TokenPair import TokenPair

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def parse_mapping(mapping_str: str | None, lower_keys: bool = False) -> dict[str, str]:
    """Parse a comma-separated ``key=value`` string into a dictionary.

    Example: 0xbb4C...=BNB,0x55d3...=USDT

    :param mapping_str: Comma-separated mapping string.
    :param lower_keys: Lowercase the keys (source names).
    :returns: Dict of stripped keys to stripped values.
    """
    if not mapping_str:
        return {}

    mapping = {}
    for item in mapping_str.split(","):
        item = item.strip()
        if "=" in item:
            key, value = item.split("=", 1)
            key = key.strip()
            mapping[key.lower() if lower_keys else key] = value.strip()
    return mapping


def parse_api_keys(api_key_str: str | None) -> dict[str, str]:
    """Parse comma-separated API key string into a dictionary.

    Format: source1=key1,source2=key2
    Example: coingecko=demo:CG-abc123

    :param api_key_str: Comma-separated API key string.
    :returns: Dict mapping source names to API keys.
    """
    return parse_mapping(api_key_str, lower_keys=True)


def parse_env_api_keys() -> dict[str, str]:
    """Parse API keys from individual environment variables.

    Looks for: API_KEY_COINGECKO, API_KEY_BINANCE_API, etc.

    :returns: Dict mapping source names to API keys.
    """
    api_keys = {}
    prefixes = ["API_KEY_", "APIKEY_"]

    for key, value in os.environ.items():
        for prefix in prefixes:
            if key.startswith(prefix) and value:
                source = key[len(prefix):].lower()
                api_keys[source] = value
                break

    return api_keys


def parse_weights(weight_str: str | None) -> dict[str, float]:
    """Parse ``source=weight`` pairs.

    :raises ValueError: If a weight is not a number.
    """
    return {source: float(w) for source, w in parse_mapping(weight_str, lower_keys=True).items()}


def parse_pairs(pairs_str: str | None) -> list[TokenPair]:
    """Parse comma-separated ``tokenA/tokenB`` pairs.

    :raises ValueError: If a pair is malformed.
    """
    if not pairs_str:
        return []
    return [TokenPair.from_string(p) for p in pairs_str.split(",") if p.strip()]


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI parser; every option falls back to an environment variable."""
    available_sources = get_available_fetchers()
    defaults = OracleConfig()

    parser = argparse.ArgumentParser(
        description="Pair Oracle: Multi-source token-pair price aggregation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Available price sources:
  {', '.join(available_sources)}

Examples:
  # WBNB/USDT from PancakeSwap and Binance
  python -m pair_oracle.main \\
      --pairs 0xbb4CdB9CBd36B01bD1cBaEBF2De08d9173bc095c/0x55d398326f99059fF775485246999027B3197955 \\
      --sources pancakeswap_v2,pancakeswap_v3,binance_api \\
      --token-symbols 0xbb4CdB9CBd36B01bD1cBaEBF2De08d9173bc095c=BNB,0x55d398326f99059fF775485246999027B3197955=USDT

  # Keep refreshing the pairs and log metrics until Ctrl-C
  python -m pair_oracle.main --pairs ... --watch

Environment variables (CLI args take precedence):
  PAIRS, WATCH_PAIRS, SOURCES, SOURCE_WEIGHTS, NETWORK, RPC_URL, WS_URL,
  WS_RECONNECT_DELAY, WS_MAX_RECONNECTS, MIN_CONFIDENCE, MAX_SPREAD, MAX_AGE, MIN_LIQUIDITY, FAST_INTERVAL,
  SLOW_INTERVAL, REQUEST_TIMEOUT, MAX_CONCURRENT_REQUESTS, CACHE_CAPACITY,
  TOKEN_SYMBOLS, CHAINLINK_FEEDS, API_KEYS, API_KEY_COINGECKO, etc.
""",
    )

    parser.add_argument(
        "--pairs",
        type=str,
        help="Comma-separated token pairs (e.g., 0xA/0xB,0xC/0xD)",
        default=os.environ.get("PAIRS"),
    )

    parser.add_argument(
        "--watch-pairs",
        dest="watch_pairs",
        type=str,
        help="Comma-separated pairs refreshed on every fast tick (default: --pairs with --watch)",
        default=os.environ.get("WATCH_PAIRS"),
    )

    parser.add_argument(
        "--sources",
        type=str,
        help=f"Comma-separated price sources. Available: {', '.join(available_sources)}",
        default=os.environ.get("SOURCES") or ",".join(defaults.enabled_sources),
    )

    parser.add_argument(
        "--source-weights",
        dest="source_weights",
        type=str,
        help="Comma-separated source=weight overrides (e.g., chainlink=5,biswap=0)",
        default=os.environ.get("SOURCE_WEIGHTS"),
    )

    parser.add_argument(
        "--network",
        type=str,
        help="Network to connect to (bsc, bsc-testnet, ethereum)",
        default=os.environ.get("NETWORK") or defaults.network,
    )

    parser.add_argument(
        "--rpc-url",
        dest="rpc_url",
        type=str,
        help="RPC endpoint (default: per network)",
        default=os.environ.get("RPC_URL"),
    )

    parser.add_argument(
        "--ws-url",
        dest="ws_url",
        type=str,
        help="Binance combined-stream URL override",
        default=os.environ.get("WS_URL"),
    )

    parser.add_argument(
        "--no-websocket",
        dest="enable_websocket",
        action="store_false",
        help="Disable streaming sources and poll REST endpoints only",
    )

    parser.add_argument(
        "--ws-reconnect-delay",
        dest="ws_reconnect_delay",
        type=float,
        help=f"Seconds between stream reconnect attempts (default: {defaults.ws_reconnect_delay})",
        default=float(os.environ.get("WS_RECONNECT_DELAY") or defaults.ws_reconnect_delay),
    )

    parser.add_argument(
        "--ws-max-reconnects",
        dest="ws_max_reconnects",
        type=int,
        help=f"Consecutive reconnect attempts before a stream gives up (default: {defaults.ws_max_reconnects})",
        default=int(os.environ.get("WS_MAX_RECONNECTS") or defaults.ws_max_reconnects),
    )

    parser.add_argument(
        "--min-confidence",
        dest="min_confidence",
        type=int,
        help=f"Minimum quote confidence 0-100 (default: {defaults.min_confidence})",
        default=int(os.environ.get("MIN_CONFIDENCE") or defaults.min_confidence),
    )

    parser.add_argument(
        "--max-spread",
        dest="max_spread",
        type=float,
        help=f"Maximum quote spread as a fraction (default: {defaults.max_spread})",
        default=float(os.environ.get("MAX_SPREAD") or defaults.max_spread),
    )

    parser.add_argument(
        "--max-age",
        dest="max_age",
        type=float,
        help=f"Seconds a quote or cached price stays fresh (default: {defaults.max_age})",
        default=float(os.environ.get("MAX_AGE") or defaults.max_age),
    )

    parser.add_argument(
        "--min-liquidity",
        dest="min_liquidity",
        type=str,
        help="Minimum pool liquidity in whole token_b units (default: 10000)",
        default=os.environ.get("MIN_LIQUIDITY") or "10000",
    )

    parser.add_argument(
        "--fast-interval",
        dest="fast_interval",
        type=float,
        help=f"Seconds between fast ticks (default: {defaults.fast_interval})",
        default=float(os.environ.get("FAST_INTERVAL") or defaults.fast_interval),
    )

    parser.add_argument(
        "--slow-interval",
        dest="slow_interval",
        type=float,
        help=f"Seconds between slow ticks (default: {defaults.slow_interval})",
        default=float(os.environ.get("SLOW_INTERVAL") or defaults.slow_interval),
    )

    parser.add_argument(
        "--request-timeout",
        dest="request_timeout",
        type=float,
        help=f"Per-source fetch timeout in seconds (default: {defaults.request_timeout})",
        default=float(os.environ.get("REQUEST_TIMEOUT") or defaults.request_timeout),
    )

    parser.add_argument(
        "--max-concurrent-requests",
        dest="max_concurrent_requests",
        type=int,
        help=f"Ceiling on outstanding fetches (default: {defaults.max_concurrent_requests})",
        default=int(
            os.environ.get("MAX_CONCURRENT_REQUESTS") or defaults.max_concurrent_requests
        ),
    )

    parser.add_argument(
        "--cache-capacity",
        dest="cache_capacity",
        type=int,
        help=f"Cached pairs before eviction (default: {defaults.cache_capacity})",
        default=int(os.environ.get("CACHE_CAPACITY") or defaults.cache_capacity),
    )

    parser.add_argument(
        "--token-symbols",
        dest="token_symbols",
        type=str,
        help="Comma-separated token=TICKER mappings for exchange sources",
        default=os.environ.get("TOKEN_SYMBOLS"),
    )

    parser.add_argument(
        "--chainlink-feeds",
        dest="chainlink_feeds",
        type=str,
        help="Comma-separated tokenA/tokenB=aggregator mappings",
        default=os.environ.get("CHAINLINK_FEEDS"),
    )

    parser.add_argument(
        "--api-keys",
        dest="api_keys",
        type=str,
        help="Comma-separated API keys (e.g., coingecko=demo:CG-abc)",
        default=os.environ.get("API_KEYS"),
    )

    parser.add_argument(
        "--watch",
        action="store_true",
        help="Keep running, refreshing pairs and logging metrics until Ctrl-C",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    return parser


def build_config(args: argparse.Namespace) -> OracleConfig:
    """Build an OracleConfig from parsed CLI arguments.

    :raises ValueError: If an argument is malformed or out of range.
    """
    sources = tuple(s.strip().lower() for s in args.sources.split(",") if s.strip())
    available = get_available_fetchers()
    invalid = [s for s in sources if s not in available]
    if invalid:
        raise ValueError(f"Unknown sources: {invalid}. Available: {', '.join(available)}")

    weights = dict(OracleConfig().source_weights)
    weights.update(parse_weights(args.source_weights))

    # CLI + environment
    api_keys = parse_env_api_keys()
    api_keys.update(parse_api_keys(args.api_keys))

    watch_pairs = parse_pairs(args.watch_pairs)
    if args.watch and not watch_pairs:
        watch_pairs = parse_pairs(args.pairs)

    return OracleConfig(
        network=args.network,
        rpc_url=args.rpc_url,
        ws_url=args.ws_url,
        enabled_sources=sources,
        source_weights=weights,
        fast_interval=args.fast_interval,
        slow_interval=args.slow_interval,
        min_confidence=args.min_confidence,
        max_spread=args.max_spread,
        max_age=args.max_age,
        min_liquidity=to_fixed(args.min_liquidity),
        cache_capacity=args.cache_capacity,
        request_timeout=args.request_timeout,
        max_concurrent_requests=args.max_concurrent_requests,
        enable_websocket=args.enable_websocket,
        ws_reconnect_delay=args.ws_reconnect_delay,
        ws_max_reconnects=args.ws_max_reconnects,
        api_keys=api_keys,
        token_symbols=parse_mapping(args.token_symbols),
        chainlink_feeds=parse_mapping(args.chainlink_feeds),
        watch_pairs=tuple(watch_pairs),
    )


async def run(config: OracleConfig, pairs: list[TokenPair], watch: bool = False) -> None:
    """Fetch all pairs once; with ``watch`` keep the scheduler running."""
    oracle = PriceOracle(config)
    await oracle.start()
    try:
        for result in await oracle.get_batch_prices(pairs):
            if result.success:
                quote = result.quote
                logger.info(
                    f"{result.pair}: {from_fixed(quote.weighted_price):.8f} "
                    f"(median {from_fixed(quote.median_price):.8f}) "
                    f"sources={quote.source_names} confidence={quote.confidence:.1f} "
                    f"liquidity={from_fixed(quote.liquidity):.2f}"
                )
            else:
                logger.warning(f"{result.pair}: {result.error}")

        while watch:
            await asyncio.sleep(config.slow_interval)
            m = oracle.get_metrics()
            logger.info(
                f"Metrics: requests={m.total_requests} hit_rate={m.cache_hit_rate:.2f} "
                f"updates={m.price_updates} avg_ms={m.average_response_time:.1f} "
                f"error_rate={m.error_rate:.3f} sources={m.sources_online}/{m.total_sources}"
            )
    finally:
        await oracle.stop()


def main() -> None:
    """Main entry point for the Pair Oracle CLI."""
    parser = build_parser()
    args = parser.parse_args()

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        pairs = parse_pairs(args.pairs)
        config = build_config(args)
    except ValueError as e:
        parser.error(str(e))

    if not pairs:
        parser.error("At least one token pair must be specified")

    # Log configuration
    logger.info("=" * 60)
    logger.info("Pair Oracle - Multi-Source Aggregation")
    logger.info("=" * 60)
    logger.info(f"Network:           {config.network} ({config.resolved_rpc_url})")
    logger.info(f"Token Pairs:       {', '.join(str(p) for p in pairs)}")
    logger.info(f"Sources:           {', '.join(config.enabled_sources)}")
    logger.info(f"Min Confidence:    {config.min_confidence}")
    logger.info(f"Max Spread:        {config.max_spread}")
    logger.info(f"Max Age:           {config.max_age}s")
    logger.info(f"Intervals:         fast={config.fast_interval}s slow={config.slow_interval}s")
    logger.info(f"Request Timeout:   {config.request_timeout}s")
    if config.api_keys:
        logger.info(f"API Keys:          {', '.join(config.api_keys.keys())}")
    logger.info("=" * 60)

    try:
        asyncio.run(run(config, pairs, watch=args.watch))
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
