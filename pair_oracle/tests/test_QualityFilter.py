"""Unit tests for QualityFilter."""

from pair_oracle.src.OracleConfig import OracleConfig
from pair_oracle.src.QualityFilter import QualityFilter
from pair_oracle.src.Quote import PRICE_SCALE, Quote, to_fixed

NOW = 1_700_000_000_000


def make_quote(**fields) -> Quote:
    fields.setdefault("source", "pancakeswap_v2")
    fields.setdefault("timestamp", NOW)
    fields.setdefault("confidence", 95)
    return Quote(token_a="wbnb", token_b="usdt", price=to_fixed("600.1"), **fields)


def make_filter(**overrides) -> QualityFilter:
    return QualityFilter(OracleConfig(**overrides))


class TestConfidence:
    """Test the confidence threshold."""

    def test_boundary(self) -> None:
        """min_confidence is accepted, one below is rejected."""
        qf = make_filter(min_confidence=80)
        assert qf.accepts(make_quote(confidence=80), now=NOW)
        assert not qf.accepts(make_quote(confidence=79), now=NOW)


class TestSpread:
    """Test the spread threshold."""

    def test_boundary(self) -> None:
        """max_spread is accepted, anything wider is rejected."""
        qf = make_filter(max_spread=0.01)
        assert qf.accepts(make_quote(spread=0.01), now=NOW)
        assert not qf.accepts(make_quote(spread=0.0101), now=NOW)


class TestAge:
    """Test the age threshold (config seconds, quote milliseconds)."""

    def test_boundary(self) -> None:
        """A quote exactly max_age old passes; one ms older fails."""
        qf = make_filter(max_age=30.0)
        assert qf.accepts(make_quote(timestamp=NOW - 30_000), now=NOW)
        assert not qf.accepts(make_quote(timestamp=NOW - 30_001), now=NOW)

    def test_reason_mentions_age(self) -> None:
        """The rejection reason should name the failed rule."""
        qf = make_filter(max_age=1.0)
        reason = qf.rejection_reason(make_quote(timestamp=NOW - 5_000), now=NOW)
        assert reason.startswith("age")


class TestLiquidity:
    """Test the liquidity threshold."""

    def test_zero_liquidity_exempt(self) -> None:
        """Sources that report no liquidity are never rejected for it."""
        qf = make_filter(min_liquidity=10_000 * PRICE_SCALE)
        assert qf.accepts(make_quote(liquidity=0), now=NOW)

    def test_thin_pool_rejected(self) -> None:
        """Declared liquidity below the minimum is rejected."""
        qf = make_filter(min_liquidity=10_000 * PRICE_SCALE)
        assert not qf.accepts(make_quote(liquidity=9_999 * PRICE_SCALE), now=NOW)
        assert qf.accepts(make_quote(liquidity=10_000 * PRICE_SCALE), now=NOW)


class TestFilter:
    """Test list filtering."""

    def test_keeps_order(self) -> None:
        """Accepted quotes keep their input order."""
        qf = make_filter()
        good_1 = make_quote(source="a")
        bad = make_quote(source="b", confidence=10)
        good_2 = make_quote(source="c")

        assert qf.filter([good_1, bad, good_2], now=NOW) == [good_1, good_2]

    def test_empty(self) -> None:
        """Filtering nothing gives nothing."""
        assert make_filter().filter([], now=NOW) == []
