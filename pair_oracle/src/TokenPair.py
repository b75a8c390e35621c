"""TokenPair: Directional token pair used as the cache and watch-list key.

The pair is ordered: ``TokenPair(a, b)`` and ``TokenPair(b, a)`` are distinct
keys. Token identifiers are opaque and kept exactly as given; callers that
want symmetric lookups use :meth:`TokenPair.canonical`.

.. code-block:: python

    >>> pair = TokenPair.from_string("0xbb4C/0x55d3")
    >>> str(pair)
    '0xbb4C/0x55d3'
    >>> pair == pair.reversed()
    False
"""

from __future__ import annotations

from typing import NamedTuple


class TokenPair(NamedTuple):
    """An ordered pair of token identifiers.

    :ivar token_a: Base token (priced).
    :ivar token_b: Quote token (unit of the price).
    """

    token_a: str
    token_b: str

    def __str__(self) -> str:
        """Return the pair in "a/b" form."""
        return f"{self.token_a}/{self.token_b}"

    def reversed(self) -> TokenPair:
        """Return the same pair in the opposite direction."""
        return TokenPair(self.token_b, self.token_a)

    def canonical(self) -> TokenPair:
        """Return a direction-independent form (lexicographic order)."""
        if self.token_a <= self.token_b:
            return self
        return self.reversed()

    @classmethod
    def from_string(cls, pair_str: str) -> TokenPair:
        """Parse a pair string in format "a/b".

        :param pair_str: Pair string like "0xbb4C.../0x55d3..." or "wbnb/usdt".
        :returns: New TokenPair instance.
        :raises ValueError: If pair string format is invalid.

        .. code-block:: python

            >>> TokenPair.from_string(" wbnb / usdt ")
            TokenPair(token_a='wbnb', token_b='usdt')
        """
        parts = [p.strip() for p in pair_str.split("/")]
        if len(parts) != 2 or not all(parts):
            raise ValueError(
                f"Invalid pair format '{pair_str}'. Expected 'tokenA/tokenB'"
            )
        return cls(parts[0], parts[1])
