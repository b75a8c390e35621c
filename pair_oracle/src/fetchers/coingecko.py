"""CoinGecko fetcher.

Endpoint: https://api.coingecko.com/api/v3/simple/token_price/{platform}
Rate Limit: 30 calls/min (free), higher with API key

Both tokens are looked up by contract address in one request and the pair
price is the cross rate of their USD prices.
"""

import logging

from ..Quote import PRICE_SCALE, Quote, now_ms, to_fixed
from .base import BaseFetcher, SourceFetchError, register_fetcher

logger = logging.getLogger(__name__)


@register_fetcher
class CoinGeckoFetcher(BaseFetcher):
    """Fetcher for CoinGecko token prices.

    API tiers:
        - Free: api.coingecko.com (no key, 30 calls/min)
        - Demo: api.coingecko.com + x-cg-demo-api-key header
        - Pro: pro-api.coingecko.com + x-cg-pro-api-key header

    To use a demo key, prefix with "demo:": API_KEY_COINGECKO=demo:CG-xxxxx
    Pro keys need no prefix: API_KEY_COINGECKO=xxxxx
    """

    name = "coingecko"
    DEFAULT_CONFIDENCE = 85
    BASE_URL_FREE = "https://api.coingecko.com/api/v3"
    BASE_URL_PRO = "https://pro-api.coingecko.com/api/v3"

    # Network name to CoinGecko asset platform
    PLATFORMS = {
        "bsc": "binance-smart-chain",
        "ethereum": "ethereum",
    }

    def __init__(self, *args, api_key: str | None = None, **kwargs):
        """Initialize with optional demo: prefix handling."""
        self._is_demo = False
        if api_key and api_key.lower().startswith("demo:"):
            self._is_demo = True
            api_key = api_key[5:]
        super().__init__(*args, api_key=api_key, **kwargs)

    @property
    def base_url(self) -> str:
        """Return appropriate base URL based on API key type."""
        if not self.has_api_key:
            return self.BASE_URL_FREE
        return self.BASE_URL_FREE if self._is_demo else self.BASE_URL_PRO

    @property
    def api_header(self) -> tuple[str, str] | None:
        """Return appropriate header name and value for API key."""
        if not self.api_key:
            return None
        header_name = "x-cg-demo-api-key" if self._is_demo else "x-cg-pro-api-key"
        return (header_name, self.api_key)

    async def fetch(
        self, token_a: str, token_b: str, *, timeout: float | None = None
    ) -> Quote | None:
        """Fetch the USD cross rate of two tokens.

        :returns: Quote, or None if either token is unknown to CoinGecko.
        :raises SourceFetchError: On HTTP failure or an unparseable response.
        """
        platform = self.PLATFORMS.get(self.config.network)
        if not platform:
            logger.debug(f"[coingecko] No platform for network {self.config.network}")
            return None

        headers = {}
        if self.api_header:
            header_name, header_value = self.api_header
            headers[header_name] = header_value

        response = await self._get(
            f"{self.base_url}/simple/token_price/{platform}",
            params={
                "contract_addresses": f"{token_a},{token_b}",
                "vs_currencies": "usd",
                "include_24hr_vol": "true",
                "include_last_updated_at": "true",
            },
            headers=headers or None,
            timeout=timeout,
        )

        try:
            data = {k.lower(): v for k, v in response.json().items()}
            entry_a = data.get(token_a.lower())
            entry_b = data.get(token_b.lower())
            if not entry_a or not entry_b:
                logger.debug(f"[coingecko] No USD price for {token_a}/{token_b}")
                return None
            usd_a = to_fixed(entry_a["usd"])
            usd_b = to_fixed(entry_b["usd"])
            volume_usd = to_fixed(entry_a.get("usd_24h_vol") or 0)
            updated_at = entry_a.get("last_updated_at")
            timestamp = int(updated_at) * 1000 if updated_at else now_ms()
        except (AttributeError, KeyError, ValueError, TypeError) as e:
            raise SourceFetchError(f"[coingecko] Failed to parse response: {e}") from e

        if usd_a <= 0 or usd_b <= 0:
            return None

        return self._quote(
            token_a,
            token_b,
            price=usd_a * PRICE_SCALE // usd_b,
            # volume reported in USD, expressed in token_b units
            volume_24h=volume_usd * PRICE_SCALE // usd_b,
            timestamp=timestamp,
        )
