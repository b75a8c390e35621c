"""Quote: Price observations and aggregated results.

Prices, liquidity and volume are fixed-point integers with 18 decimals
(``PRICE_SCALE``), so large aggregations never drift through float rounding.

.. code-block:: python

    >>> q = Quote(
    ...     source="chainlink",
    ...     token_a="0xbb4c",
    ...     token_b="0x55d3",
    ...     price=to_fixed("1.51"),
    ...     timestamp=now_ms(),
    ...     confidence=99,
    ... )
    >>> from_fixed(q.price)
    Decimal('1.51')
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum

# Fixed-point units per whole token.
PRICE_DECIMALS = 18
PRICE_SCALE = 10**PRICE_DECIMALS


class PriceSource(str, Enum):
    """Known price source identifiers.

    The set is open: any registered fetcher name is a valid ``Quote.source``.
    """

    PANCAKESWAP_V2 = "pancakeswap_v2"
    PANCAKESWAP_V3 = "pancakeswap_v3"
    UNISWAP_V2 = "uniswap_v2"
    UNISWAP_V3 = "uniswap_v3"
    SUSHISWAP = "sushiswap"
    BISWAP = "biswap"
    APESWAP = "apeswap"
    CHAINLINK = "chainlink"
    BINANCE_API = "binance_api"
    COINGECKO = "coingecko"
    DEXSCREENER = "dexscreener"

    def __str__(self) -> str:
        return self.value


def now_ms() -> int:
    """Current wall-clock time in milliseconds since epoch."""
    return int(time.time() * 1000)


def to_fixed(value: str | int | float | Decimal) -> int:
    """Convert a decimal amount to 18-decimal fixed point.

    Floats go through ``str()`` first so ``1.48`` becomes exactly
    ``1480000000000000000``.

    :param value: Decimal amount (e.g., "1.5", 2, Decimal("0.3")).
    :returns: Fixed-point integer.
    :raises ValueError: If the value is not a finite number.
    """
    if isinstance(value, float):
        value = str(value)
    try:
        dec = Decimal(value)
    except InvalidOperation as e:
        raise ValueError(f"Cannot convert {value!r} to fixed point") from e
    if not dec.is_finite():
        raise ValueError(f"Cannot convert {value!r} to fixed point")
    return int(dec * PRICE_SCALE)


def from_fixed(value: int) -> Decimal:
    """Convert an 18-decimal fixed-point integer back to a Decimal."""
    return Decimal(value) / PRICE_SCALE


@dataclass(frozen=True)
class Quote:
    """One source's observation of a token-pair price.

    :ivar source: Identifier of the originating fetcher.
    :ivar token_a: Base token identifier.
    :ivar token_b: Quote token identifier.
    :ivar price: Price of token_a in token_b, fixed point.
    :ivar liquidity: Pool liquidity, fixed point. 0 means not provided.
    :ivar volume_24h: 24h volume, fixed point. 0 means not provided.
    :ivar timestamp: Observation time in milliseconds since epoch.
    :ivar block_height: Observed block for on-chain sources, 0 otherwise.
    :ivar confidence: Source-declared reliability, 0-100.
    :ivar spread: Bid/ask spread estimate as a fraction.
    :ivar slippage: Estimated slippage for the reference trade size.
    """

    source: str
    token_a: str
    token_b: str
    price: int
    timestamp: int
    confidence: int
    liquidity: int = 0
    volume_24h: int = 0
    block_height: int = 0
    spread: float = 0.0
    slippage: float = 0.0

    def __post_init__(self) -> None:
        if self.price < 0:
            raise ValueError(f"price must be non-negative, got {self.price}")
        if not 0 <= self.confidence <= 100:
            raise ValueError(f"confidence must be in 0-100, got {self.confidence}")
        if self.spread < 0 or self.slippage < 0:
            raise ValueError("spread and slippage must be non-negative")
        if self.liquidity < 0 or self.volume_24h < 0:
            raise ValueError("liquidity and volume_24h must be non-negative")

    @property
    def is_on_chain(self) -> bool:
        """True if the quote was observed at a block height."""
        return self.block_height > 0


@dataclass(frozen=True)
class AggregatedQuote:
    """Consensus price for a token pair across accepted quotes.

    :ivar weighted_price: Weight-averaged price, fixed point.
    :ivar median_price: Upper median price, fixed point.
    :ivar sources: Accepted quotes in fetch completion order.
    :ivar confidence: Mean confidence of accepted quotes.
    :ivar spread: Mean spread of accepted quotes.
    :ivar liquidity: Sum of liquidity across accepted quotes.
    :ivar volume_24h: Sum of 24h volume across accepted quotes.
    :ivar price_impact: (max - min) / max over accepted prices.
    :ivar volatility: Coefficient of variation of accepted prices.
    :ivar timestamp: Aggregation time in milliseconds since epoch.
    """

    token_a: str
    token_b: str
    weighted_price: int
    median_price: int
    sources: list[Quote] = field(default_factory=list)
    confidence: float = 0.0
    spread: float = 0.0
    liquidity: int = 0
    volume_24h: int = 0
    price_impact: float = 0.0
    volatility: float = 0.0
    timestamp: int = 0

    @property
    def source_names(self) -> list[str]:
        """Names of the sources that contributed to this quote."""
        return [str(q.source) for q in self.sources]
