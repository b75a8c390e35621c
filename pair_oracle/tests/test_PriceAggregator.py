"""Unit tests for PriceAggregator."""

from unittest.mock import patch

import pytest

from pair_oracle.src.PriceAggregator import (
    EmptyInputError,
    PriceAggregator,
    price_impact,
    upper_median,
    volatility,
    weighted_price,
)
from pair_oracle.src.Quote import PRICE_SCALE, Quote, to_fixed


def make_quote(source: str, price: str, **fields) -> Quote:
    fields.setdefault("timestamp", 1_700_000_000_000)
    fields.setdefault("confidence", 95)
    return Quote(source=source, token_a="wbnb", token_b="usdt", price=to_fixed(price), **fields)


class TestPriceAggregatorInit:
    """Test PriceAggregator initialization."""

    def test_default_weights(self) -> None:
        """Unmapped sources should weigh 1."""
        agg = PriceAggregator()
        assert agg.weight_for("anything") == 1

    def test_custom_weights(self) -> None:
        """Configured weights should be used, including zero."""
        agg = PriceAggregator({"chainlink": 4, "biswap": 0})
        assert agg.weight_for("chainlink") == 4
        assert agg.weight_for("biswap") == 0

    def test_negative_weight(self) -> None:
        """Negative weights should raise ValueError."""
        with pytest.raises(ValueError, match="non-negative"):
            PriceAggregator({"chainlink": -1})


class TestWeightedPrice:
    """Test the integer weighted average."""

    def test_equal_weights(self) -> None:
        """Equal weights should give the plain mean."""
        assert weighted_price([100, 200], [1, 1]) == 150

    def test_fractional_weights(self) -> None:
        """Weights are scaled to three decimals before averaging."""
        assert weighted_price([100, 200], [0.5, 1.5]) == 175

    def test_all_zero_weights(self) -> None:
        """Zero total weight should give 0 rather than dividing by zero."""
        assert weighted_price([100, 200], [0, 0]) == 0

    def test_floor_division(self) -> None:
        """Integer division floors the result."""
        assert weighted_price([1, 2], [1, 1]) == 1


class TestUpperMedian:
    """Test median selection."""

    def test_odd_count(self) -> None:
        """Odd count should give the middle element."""
        assert upper_median([3, 1, 2]) == 2

    def test_even_count_takes_upper(self) -> None:
        """Even count should take index n // 2, not the average."""
        assert upper_median([1, 2, 3, 4]) == 3

    def test_unsorted_input(self) -> None:
        """Input order should not matter."""
        assert upper_median([4, 1, 3, 2]) == 3


class TestImpactAndVolatility:
    """Test the float estimators."""

    def test_impact(self) -> None:
        """Impact is (max - min) / max."""
        prices = [to_fixed("1.0"), to_fixed("0.9")]
        assert price_impact(prices) == pytest.approx(0.1)

    def test_volatility(self) -> None:
        """Volatility is population stddev / mean."""
        prices = [to_fixed("1.0"), to_fixed("3.0")]
        # mean 2, pstdev 1
        assert volatility(prices) == pytest.approx(0.5)

    def test_single_price(self) -> None:
        """A single price has no impact and no volatility."""
        assert price_impact([PRICE_SCALE]) == 0.0
        assert volatility([PRICE_SCALE]) == 0.0

    def test_zero_prices(self) -> None:
        """All-zero prices should not divide by zero."""
        assert price_impact([0, 0]) == 0.0
        assert volatility([0, 0]) == 0.0


class TestAggregate:
    """Test full aggregation."""

    def test_empty_input(self) -> None:
        """Aggregating nothing is a caller bug."""
        with pytest.raises(EmptyInputError):
            PriceAggregator().aggregate("wbnb", "usdt", [])

    def test_single_quote(self) -> None:
        """One quote: weighted == median == price, no impact or volatility."""
        quote = make_quote("chainlink", "1.51")
        result = PriceAggregator({"chainlink": 4}).aggregate("wbnb", "usdt", [quote])

        assert result.weighted_price == quote.price
        assert result.median_price == quote.price
        assert result.price_impact == 0.0
        assert result.volatility == 0.0

    def test_weighted_scenario(self) -> None:
        """Three quotes weighted 2/3/2 should give exactly 1.5."""
        quotes = [
            make_quote("pancakeswap_v2", "1.48"),
            make_quote("pancakeswap_v3", "1.50"),
            make_quote("uniswap_v2", "1.52"),
        ]
        agg = PriceAggregator({"pancakeswap_v2": 2, "pancakeswap_v3": 3, "uniswap_v2": 2})
        result = agg.aggregate("wbnb", "usdt", quotes)

        assert result.weighted_price == 15 * PRICE_SCALE // 10
        assert result.median_price == to_fixed("1.50")

    def test_bounds(self) -> None:
        """Weighted and median prices lie within the input range."""
        quotes = [
            make_quote("a", "10.0"),
            make_quote("b", "10.7"),
            make_quote("c", "9.3"),
            make_quote("d", "11.1"),
        ]
        result = PriceAggregator({"a": 0.3, "b": 7, "c": 1.25}).aggregate("x", "y", quotes)
        prices = [q.price for q in quotes]

        assert min(prices) <= result.weighted_price <= max(prices)
        assert min(prices) <= result.median_price <= max(prices)

    def test_summary_fields(self) -> None:
        """Confidence and spread are means; liquidity and volume are sums."""
        quotes = [
            make_quote("a", "1.0", confidence=90, spread=0.002, liquidity=100, volume_24h=7),
            make_quote("b", "1.0", confidence=100, spread=0.004, liquidity=50, volume_24h=3),
        ]
        result = PriceAggregator().aggregate("wbnb", "usdt", quotes)

        assert result.confidence == 95
        assert result.spread == pytest.approx(0.003)
        assert result.liquidity == 150
        assert result.volume_24h == 10
        assert result.source_names == ["a", "b"]

    def test_sources_are_copies(self) -> None:
        """Stored quotes equal the inputs but are distinct objects."""
        quote = make_quote("a", "1.0")
        result = PriceAggregator().aggregate("wbnb", "usdt", [quote])

        assert result.sources == [quote]
        assert result.sources[0] is not quote

    @patch("pair_oracle.src.Quote.time.time")
    def test_timestamp(self, mock_time) -> None:
        """The aggregation is stamped with the current time in ms."""
        mock_time.return_value = 1234.5
        result = PriceAggregator().aggregate("wbnb", "usdt", [make_quote("a", "1.0")])
        assert result.timestamp == 1_234_500
