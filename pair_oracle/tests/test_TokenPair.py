"""Unit tests for TokenPair."""

import pytest

from pair_oracle.src.TokenPair import TokenPair

WBNB = "0xbb4CdB9CBd36B01bD1cBaEBF2De08d9173bc095c"
USDT = "0x55d398326f99059fF775485246999027B3197955"


class TestTokenPairBasics:
    """Test basic TokenPair functionality."""

    def test_keeps_identifiers_verbatim(self) -> None:
        """Token identifiers are opaque and must not be normalized."""
        pair = TokenPair(WBNB, USDT)
        assert pair.token_a == WBNB
        assert pair.token_b == USDT

    def test_str_format(self) -> None:
        """String format should be 'a/b'."""
        assert str(TokenPair("wbnb", "usdt")) == "wbnb/usdt"

    def test_direction_matters(self) -> None:
        """(A, B) and (B, A) are distinct keys."""
        pair = TokenPair(WBNB, USDT)
        assert pair != pair.reversed()
        assert pair.reversed().reversed() == pair

    def test_usable_as_dict_key(self) -> None:
        """Equal pairs should collapse to one dictionary entry."""
        d: dict[TokenPair, str] = {}
        d[TokenPair(WBNB, USDT)] = "first"
        d[TokenPair(WBNB, USDT)] = "second"
        d[TokenPair(USDT, WBNB)] = "reverse"

        assert len(d) == 2
        assert d[TokenPair(WBNB, USDT)] == "second"

    def test_canonical_is_symmetric(self) -> None:
        """canonical() should map both directions to the same key."""
        pair = TokenPair("b", "a")
        assert pair.canonical() == TokenPair("a", "b")
        assert pair.reversed().canonical() == pair.canonical()


class TestTokenPairFromString:
    """Test TokenPair.from_string() parsing."""

    def test_valid_pair(self) -> None:
        """Parse valid pair string."""
        pair = TokenPair.from_string(f"{WBNB}/{USDT}")
        assert pair == TokenPair(WBNB, USDT)

    def test_whitespace_stripped(self) -> None:
        """Surrounding whitespace should be stripped."""
        assert TokenPair.from_string(" wbnb / usdt ") == TokenPair("wbnb", "usdt")

    def test_invalid_no_slash(self) -> None:
        """String without slash should raise ValueError."""
        with pytest.raises(ValueError, match="Invalid pair format"):
            TokenPair.from_string("wbnbusdt")

    def test_invalid_too_many_slashes(self) -> None:
        """String with too many slashes should raise ValueError."""
        with pytest.raises(ValueError, match="Invalid pair format"):
            TokenPair.from_string("a/b/c")

    def test_invalid_empty_side(self) -> None:
        """Empty token identifiers should raise ValueError."""
        with pytest.raises(ValueError, match="Invalid pair format"):
            TokenPair.from_string("/")
        with pytest.raises(ValueError, match="Invalid pair format"):
            TokenPair.from_string("")
