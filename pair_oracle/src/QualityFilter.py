"""QualityFilter: Accept or reject quotes against configured thresholds.

A quote survives iff all of the following hold:
    1. confidence >= min_confidence
    2. spread <= max_spread
    3. now - timestamp <= max_age (evaluated at filter time)
    4. liquidity == 0 (not provided) or liquidity >= min_liquidity

Order is preserved and duplicates by source are kept.

.. code-block:: python

    >>> qf = QualityFilter(OracleConfig(min_confidence=80))
    >>> [q.source for q in qf.filter(quotes)]
    ['pancakeswap_v3', 'chainlink']
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .Quote import now_ms

if TYPE_CHECKING:
    from .OracleConfig import OracleConfig
    from .Quote import Quote

logger = logging.getLogger(__name__)


class QualityFilter:
    """Pure quality gate over a list of quotes.

    :ivar min_confidence: Minimum accepted confidence.
    :ivar max_spread: Maximum accepted spread.
    :ivar max_age_ms: Maximum accepted quote age in milliseconds.
    :ivar min_liquidity: Minimum accepted liquidity when liquidity is declared.
    """

    def __init__(self, config: OracleConfig) -> None:
        self.min_confidence = config.min_confidence
        self.max_spread = config.max_spread
        self.max_age_ms = config.max_age_ms
        self.min_liquidity = config.min_liquidity

    def rejection_reason(self, quote: Quote, now: int | None = None) -> str | None:
        """Return the first failed rule for a quote, or None if it passes.

        :param quote: Quote to check.
        :param now: Filter time in milliseconds (default: current time).
        :returns: Short reason string, or None.
        """
        if now is None:
            now = now_ms()

        if quote.confidence < self.min_confidence:
            return f"confidence {quote.confidence} < {self.min_confidence}"
        if quote.spread > self.max_spread:
            return f"spread {quote.spread:.4f} > {self.max_spread:.4f}"
        if now - quote.timestamp > self.max_age_ms:
            return f"age {now - quote.timestamp}ms > {self.max_age_ms}ms"
        # Sources without liquidity data (oracle feeds, CEX APIs) are exempt
        if quote.liquidity > 0 and quote.liquidity < self.min_liquidity:
            return f"liquidity {quote.liquidity} < {self.min_liquidity}"
        return None

    def accepts(self, quote: Quote, now: int | None = None) -> bool:
        """Check a single quote against all thresholds."""
        return self.rejection_reason(quote, now) is None

    def filter(self, quotes: list[Quote], now: int | None = None) -> list[Quote]:
        """Return the quotes that pass every threshold, in input order.

        :param quotes: Candidate quotes.
        :param now: Filter time in milliseconds (default: current time).
        :returns: Accepted quotes.
        """
        if now is None:
            now = now_ms()

        accepted: list[Quote] = []
        for quote in quotes:
            reason = self.rejection_reason(quote, now)
            if reason is None:
                accepted.append(quote)
            else:
                logger.debug(
                    f"[{quote.source}] Rejected {quote.token_a}/{quote.token_b}: {reason}"
                )
        return accepted
