"""PriceAggregator: Weighted and median aggregation of accepted quotes.

Algorithm:
    1. Weighted price: each weight is scaled to an integer with three decimals
       (``round(weight * 1000)``), prices are multiplied by their scaled weight,
       summed and floor-divided by the sum of scaled weights. A zero total
       weight yields a price of 0.
    2. Median price: quotes sorted by price, element at index ``n // 2``
       (upper median, no averaging of the middle pair).
    3. Liquidity and volume are summed, confidence and spread averaged.
    4. Price impact is ``(max - min) / max`` and volatility is the population
       coefficient of variation, both on float prices.

The weighted sum is exact integer arithmetic; impact and volatility are
display statistics and use floats.

.. code-block:: python

    >>> agg = PriceAggregator({"a": 2, "b": 3, "c": 2})
    >>> result = agg.aggregate("wbnb", "usdt", quotes)  # 1.48, 1.50, 1.52
    >>> from_fixed(result.weighted_price)
    Decimal('1.5')
    >>> from_fixed(result.median_price)
    Decimal('1.5')
"""

from __future__ import annotations

import dataclasses
from statistics import fmean, pstdev
from typing import Mapping

from .Quote import PRICE_SCALE, AggregatedQuote, Quote, now_ms

# Decimal digits of weight precision kept in integer math.
WEIGHT_SCALE = 1000


class EmptyInputError(ValueError):
    """Raised when aggregation is invoked with no quotes.

    Callers are expected to check for an empty accepted set first, so this
    indicates a programming error rather than missing market data.
    """

    pass


def scale_weight(weight: float) -> int:
    """Scale a source weight to an integer with three decimals of precision."""
    return int(round(weight * WEIGHT_SCALE))


def weighted_price(prices: list[int], weights: list[float]) -> int:
    """Integer weighted average of fixed-point prices.

    :param prices: Fixed-point prices.
    :param weights: Per-price weights, same length as prices.
    :returns: Weighted average, or 0 when the scaled weights sum to 0.
    """
    scaled = [scale_weight(w) for w in weights]
    total = sum(scaled)
    if total == 0:
        return 0
    return sum(p * w for p, w in zip(prices, scaled, strict=True)) // total


def upper_median(prices: list[int]) -> int:
    """Element at index ``n // 2`` of the sorted prices."""
    return sorted(prices)[len(prices) // 2]


def price_impact(prices: list[int]) -> float:
    """Relative spread between the highest and lowest price.

    :returns: ``(max - min) / max``, or 0.0 for fewer than two prices.
    """
    if len(prices) < 2:
        return 0.0
    values = [p / PRICE_SCALE for p in prices]
    highest = max(values)
    if highest <= 0:
        return 0.0
    return (highest - min(values)) / highest


def volatility(prices: list[int]) -> float:
    """Coefficient of variation (population stddev / mean) of the prices.

    :returns: The ratio, or 0.0 for fewer than two prices or a zero mean.
    """
    if len(prices) < 2:
        return 0.0
    values = [p / PRICE_SCALE for p in prices]
    mean = fmean(values)
    if mean == 0:
        return 0.0
    return pstdev(values, mu=mean) / mean


class PriceAggregator:
    """Combines accepted quotes into a single :class:`AggregatedQuote`.

    :ivar weights: Source name to weight; unmapped sources weigh 1.
    """

    def __init__(self, weights: Mapping[str, float] | None = None) -> None:
        """Initialize the aggregator.

        :param weights: Source name to weight mapping.
        :raises ValueError: If any weight is negative.
        """
        weights = dict(weights or {})
        if any(w < 0 for w in weights.values()):
            raise ValueError("weights must be non-negative")
        self.weights = weights

    def weight_for(self, source: str) -> float:
        """Configured weight of a source (1 when unmapped)."""
        return self.weights.get(str(source), 1)

    def aggregate(
        self,
        token_a: str,
        token_b: str,
        quotes: list[Quote],
    ) -> AggregatedQuote:
        """Aggregate accepted quotes into a consensus price.

        :param token_a: Base token identifier.
        :param token_b: Quote token identifier.
        :param quotes: Non-empty list of quotes that passed quality filtering.
        :returns: AggregatedQuote stamped with the aggregation time.
        :raises EmptyInputError: If quotes is empty.
        """
        if not quotes:
            raise EmptyInputError(f"No quotes to aggregate for {token_a}/{token_b}")

        prices = [q.price for q in quotes]
        count = len(quotes)

        return AggregatedQuote(
            token_a=token_a,
            token_b=token_b,
            weighted_price=weighted_price(
                prices, [self.weight_for(q.source) for q in quotes]
            ),
            median_price=upper_median(prices),
            sources=[dataclasses.replace(q) for q in quotes],
            confidence=sum(q.confidence for q in quotes) / count,
            spread=sum(q.spread for q in quotes) / count,
            liquidity=sum(q.liquidity for q in quotes),
            volume_24h=sum(q.volume_24h for q in quotes),
            price_impact=price_impact(prices),
            volatility=volatility(prices),
            timestamp=now_ms(),
        )
