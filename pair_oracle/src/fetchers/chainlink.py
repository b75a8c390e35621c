"""Chainlink aggregator fetcher.

Feeds are configured per pair as ``chainlink_feeds["tokenA/tokenB"]``.
Pairs with no configured feed are not supported. The feed's ``updatedAt``
becomes the quote timestamp, so a stalled feed is rejected by the quality
filter's age rule rather than here.
"""

import logging
from typing import ClassVar

from ..Quote import PRICE_DECIMALS, Quote
from ..TokenPair import TokenPair
from .base import SourceKind, register_fetcher
from .onchain import OnChainFetcher

logger = logging.getLogger(__name__)


def scale_answer(answer: int, feed_decimals: int) -> int:
    """Rescale a feed answer to 18-decimal fixed point."""
    if feed_decimals <= PRICE_DECIMALS:
        return answer * 10 ** (PRICE_DECIMALS - feed_decimals)
    return answer // 10 ** (feed_decimals - PRICE_DECIMALS)


@register_fetcher
class ChainlinkFetcher(OnChainFetcher):
    """Reads ``latestRoundData`` from a configured aggregator contract."""

    name = "chainlink"
    kind: ClassVar[SourceKind] = SourceKind.ORACLE_FEED
    DEFAULT_CONFIDENCE = 99

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._feed_decimals: dict[str, int] = {}

    def feed_address(self, token_a: str, token_b: str) -> str | None:
        """Configured aggregator for a pair, if any."""
        return self.config.chainlink_feeds.get(str(TokenPair(token_a, token_b)))

    async def fetch(
        self, token_a: str, token_b: str, *, timeout: float | None = None
    ) -> Quote | None:
        """Fetch the latest round of the pair's feed.

        :returns: Quote, or None if no feed is configured or the answer is
            not positive.
        :raises SourceFetchError: On RPC failure.
        """
        address = self.feed_address(token_a, token_b)
        if not address:
            logger.debug(f"[chainlink] No feed configured for {token_a}/{token_b}")
            return None

        feed = self.contracts.contract(address, "AggregatorV3")
        if address not in self._feed_decimals:
            self._feed_decimals[address] = await self._call(
                "decimals", feed.functions.decimals().call()
            )
        _, answer, _, updated_at, _ = await self._call(
            "latestRoundData", feed.functions.latestRoundData().call()
        )
        if answer <= 0:
            logger.warning(f"[chainlink] Non-positive answer {answer} for {token_a}/{token_b}")
            return None

        block = await self._call("block_number", self.contracts.block_number())
        return self._quote(
            token_a,
            token_b,
            price=scale_answer(answer, self._feed_decimals[address]),
            timestamp=updated_at * 1000,
            block_height=block,
        )
