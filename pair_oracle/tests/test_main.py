"""Unit tests for the CLI argument handling."""

import pytest

from pair_oracle.main import (
    build_config,
    build_parser,
    parse_env_api_keys,
    parse_mapping,
    parse_pairs,
    parse_weights,
)
from pair_oracle.src.OracleConfig import DEFAULT_SOURCE_WEIGHTS
from pair_oracle.src.Quote import PRICE_SCALE
from pair_oracle.src.TokenPair import TokenPair

WBNB = "0xbb4CdB9CBd36B01bD1cBaEBF2De08d9173bc095c"
USDT = "0x55d398326f99059fF775485246999027B3197955"


class TestParsers:
    """Test string parsers."""

    def test_parse_mapping(self) -> None:
        """Items are split on commas and the first '='; blanks are skipped."""
        assert parse_mapping(f" {WBNB} = BNB ,, {USDT}=USDT") == {WBNB: "BNB", USDT: "USDT"}
        assert parse_mapping("CoinGecko=demo:CG=1", lower_keys=True) == {"coingecko": "demo:CG=1"}
        assert parse_mapping(None) == {}

    def test_parse_weights(self) -> None:
        """Weights are floats keyed by lowercase source."""
        assert parse_weights("Chainlink=5,biswap=0") == {"chainlink": 5.0, "biswap": 0.0}
        with pytest.raises(ValueError):
            parse_weights("chainlink=heavy")

    def test_parse_pairs(self) -> None:
        """Pairs are tokenA/tokenB separated by commas."""
        assert parse_pairs(f"{WBNB}/{USDT}, wbnb/busd") == [
            TokenPair(WBNB, USDT),
            TokenPair("wbnb", "busd"),
        ]
        assert parse_pairs("") == []
        with pytest.raises(ValueError):
            parse_pairs("wbnb-usdt")

    def test_parse_env_api_keys(self, monkeypatch) -> None:
        """API_KEY_ and APIKEY_ prefixes map to lowercase source names."""
        monkeypatch.setenv("API_KEY_COINGECKO", "demo:CG-abc")
        monkeypatch.setenv("APIKEY_DEXSCREENER", "ds-key")
        monkeypatch.setenv("API_KEY_EMPTY", "")

        keys = parse_env_api_keys()

        assert keys["coingecko"] == "demo:CG-abc"
        assert keys["dexscreener"] == "ds-key"
        assert "empty" not in keys


class TestBuildConfig:
    """Test CLI to OracleConfig conversion."""

    def test_defaults(self) -> None:
        """Without options the config matches OracleConfig defaults."""
        config = build_config(build_parser().parse_args([]))
        assert config.min_liquidity == 10_000 * PRICE_SCALE
        assert config.enable_websocket is True
        assert dict(config.source_weights) == DEFAULT_SOURCE_WEIGHTS
        assert config.watch_pairs == ()

    def test_options(self) -> None:
        """Options flow into the config."""
        args = build_parser().parse_args(
            [
                "--sources", "Chainlink, binance_api",
                "--source-weights", "chainlink=5",
                "--network", "ethereum",
                "--min-liquidity", "2500.5",
                "--max-age", "15",
                "--no-websocket",
                "--token-symbols", f"{WBNB}=BNB,{USDT}=USDT",
                "--chainlink-feeds", "wbnb/usdt=0xfeed",
                "--api-keys", "CoinGecko=pro-key",
            ]
        )
        config = build_config(args)

        assert config.enabled_sources == ("chainlink", "binance_api")
        assert config.source_weights["chainlink"] == 5.0
        assert config.source_weights["binance_api"] == DEFAULT_SOURCE_WEIGHTS["binance_api"]
        assert config.network == "ethereum"
        assert config.min_liquidity == 2500 * PRICE_SCALE + PRICE_SCALE // 2
        assert config.max_age_ms == 15_000
        assert config.enable_websocket is False
        assert config.token_symbols[WBNB] == "BNB"
        assert config.chainlink_feeds["wbnb/usdt"] == "0xfeed"
        assert config.api_keys["coingecko"] == "pro-key"

    def test_watch_defaults_to_pairs(self) -> None:
        """--watch without --watch-pairs watches every requested pair."""
        args = build_parser().parse_args(["--pairs", f"{WBNB}/{USDT}", "--watch"])
        assert build_config(args).watch_pairs == (TokenPair(WBNB, USDT),)

    def test_unknown_source(self) -> None:
        """Unregistered sources are rejected."""
        args = build_parser().parse_args(["--sources", "pancakeswap_v2,nope"])
        with pytest.raises(ValueError, match="nope"):
            build_config(args)

    def test_environment_fallback(self, monkeypatch) -> None:
        """Environment variables provide defaults for unset options."""
        monkeypatch.setenv("NETWORK", "bsc-testnet")
        monkeypatch.setenv("CACHE_CAPACITY", "50")
        config = build_config(build_parser().parse_args([]))
        assert config.network == "bsc-testnet"
        assert config.cache_capacity == 50

    def test_stream_reconnect_options(self, monkeypatch) -> None:
        """Reconnect settings come from flags, then the environment, then defaults."""
        config = build_config(build_parser().parse_args([]))
        assert config.ws_reconnect_delay == 5.0
        assert config.ws_max_reconnects == 10

        monkeypatch.setenv("WS_RECONNECT_DELAY", "2.5")
        monkeypatch.setenv("WS_MAX_RECONNECTS", "3")
        config = build_config(build_parser().parse_args([]))
        assert config.ws_reconnect_delay == 2.5
        assert config.ws_max_reconnects == 3

        args = build_parser().parse_args(["--ws-reconnect-delay", "0.5", "--ws-max-reconnects", "0"])
        config = build_config(args)
        assert config.ws_reconnect_delay == 0.5
        assert config.ws_max_reconnects == 0
