"""Unit tests for Quote and fixed-point helpers."""

from decimal import Decimal
from unittest.mock import patch

import pytest

from pair_oracle.src.Quote import (
    PRICE_SCALE,
    AggregatedQuote,
    PriceSource,
    Quote,
    from_fixed,
    now_ms,
    to_fixed,
)


def make_quote(**overrides) -> Quote:
    fields = dict(
        source="chainlink",
        token_a="wbnb",
        token_b="usdt",
        price=to_fixed("600"),
        timestamp=1_000,
        confidence=99,
    )
    fields.update(overrides)
    return Quote(**fields)


class TestFixedPoint:
    """Test decimal to fixed-point conversion."""

    def test_to_fixed_exact(self) -> None:
        """Strings, ints, floats and Decimals convert without drift."""
        assert to_fixed("1.5") == 15 * PRICE_SCALE // 10
        assert to_fixed(2) == 2 * PRICE_SCALE
        assert to_fixed(1.48) == 1_480_000_000_000_000_000
        assert to_fixed(Decimal("0.000000000000000001")) == 1

    def test_to_fixed_truncates_below_scale(self) -> None:
        """Digits past 18 decimals are dropped."""
        assert to_fixed("0.0000000000000000019") == 1

    @pytest.mark.parametrize("value", ["abc", "", "NaN", "Infinity"])
    def test_to_fixed_invalid(self, value) -> None:
        """Non-numeric and non-finite input raises ValueError."""
        with pytest.raises(ValueError):
            to_fixed(value)

    def test_from_fixed(self) -> None:
        """Fixed point converts back to the same Decimal."""
        assert from_fixed(to_fixed("612.25")) == Decimal("612.25")

    @patch("pair_oracle.src.Quote.time.time")
    def test_now_ms(self, mock_time) -> None:
        """Wall clock is reported in whole milliseconds."""
        mock_time.return_value = 1700000000.1239
        assert now_ms() == 1700000000123


class TestQuote:
    """Test Quote validation."""

    def test_defaults(self) -> None:
        """Optional fields default to 'not provided'."""
        quote = make_quote()
        assert quote.liquidity == 0
        assert quote.volume_24h == 0
        assert quote.spread == 0.0
        assert quote.is_on_chain is False
        assert make_quote(block_height=123).is_on_chain is True

    @pytest.mark.parametrize(
        "overrides",
        [
            {"price": -1},
            {"confidence": 101},
            {"confidence": -1},
            {"spread": -0.1},
            {"slippage": -0.1},
            {"liquidity": -1},
        ],
    )
    def test_invalid_fields(self, overrides) -> None:
        """Out-of-range fields raise ValueError."""
        with pytest.raises(ValueError):
            make_quote(**overrides)

    def test_zero_price_allowed(self) -> None:
        """A zero price is representable and left to aggregation."""
        assert make_quote(price=0).price == 0

    def test_source_enum_is_string(self) -> None:
        """PriceSource members compare and print as their names."""
        assert PriceSource.CHAINLINK == "chainlink"
        assert str(PriceSource.BINANCE_API) == "binance_api"
        assert make_quote(source=PriceSource.CHAINLINK).source == "chainlink"


class TestAggregatedQuote:
    """Test AggregatedQuote helpers."""

    def test_source_names(self) -> None:
        """source_names lists contributing sources in order."""
        aggregated = AggregatedQuote(
            token_a="wbnb",
            token_b="usdt",
            weighted_price=1,
            median_price=1,
            sources=[make_quote(source="binance_api"), make_quote(source=PriceSource.CHAINLINK)],
        )
        assert aggregated.source_names == ["binance_api", "chainlink"]
