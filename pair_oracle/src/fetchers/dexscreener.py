"""DexScreener fetcher.

Endpoint: https://api.dexscreener.com/latest/dex/tokens/{tokenAddress}
Rate Limit: 300 calls/min, no key

DexScreener lists every pool trading token_a. The fetcher keeps the pools
on the configured chain whose quote token is token_b and quotes from the
deepest one.
"""

import logging

from ..Quote import Quote, to_fixed
from .base import BaseFetcher, SourceFetchError, register_fetcher

logger = logging.getLogger(__name__)


@register_fetcher
class DexScreenerFetcher(BaseFetcher):
    """Fetcher for DexScreener pair data."""

    name = "dexscreener"
    DEFAULT_CONFIDENCE = 88
    BASE_URL = "https://api.dexscreener.com/latest/dex"

    # Network name to DexScreener chainId
    CHAINS = {
        "bsc": "bsc",
        "ethereum": "ethereum",
    }

    def _matching_pairs(self, pairs: list[dict], token_a: str, token_b: str) -> list[dict]:
        chain = self.CHAINS.get(self.config.network)
        return [
            p
            for p in pairs
            if p.get("chainId") == chain
            and p.get("baseToken", {}).get("address", "").lower() == token_a.lower()
            and p.get("quoteToken", {}).get("address", "").lower() == token_b.lower()
        ]

    async def fetch(
        self, token_a: str, token_b: str, *, timeout: float | None = None
    ) -> Quote | None:
        """Fetch the pair's price from its deepest pool.

        :returns: Quote, or None if no pool pairs token_a with token_b.
        :raises SourceFetchError: On HTTP failure or an unparseable response.
        """
        response = await self._get(f"{self.BASE_URL}/tokens/{token_a}", timeout=timeout)

        try:
            pairs = response.json().get("pairs") or []
            matching = self._matching_pairs(pairs, token_a, token_b)
            if not matching:
                logger.debug(f"[dexscreener] No pool for {token_a}/{token_b}")
                return None
            best = max(matching, key=lambda p: float((p.get("liquidity") or {}).get("quote") or 0))
            price = to_fixed(best["priceNative"])
            # liquidity.quote is the token_b side of the pool
            liquidity = 2 * to_fixed((best.get("liquidity") or {}).get("quote") or 0)
            volume_usd = (best.get("volume") or {}).get("h24") or 0
            price_usd = best.get("priceUsd")
            volume = 0
            if price_usd and float(price_usd) > 0:
                # h24 volume is in USD; convert through token_a's USD price
                volume = to_fixed(volume_usd) * price // to_fixed(price_usd)
        except (AttributeError, KeyError, ValueError, TypeError, ZeroDivisionError) as e:
            raise SourceFetchError(f"[dexscreener] Failed to parse response: {e}") from e

        return self._quote(
            token_a,
            token_b,
            price=price,
            liquidity=liquidity,
            volume_24h=volume,
        )
