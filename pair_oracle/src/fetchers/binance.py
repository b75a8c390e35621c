"""Binance spot fetcher.

Token identifiers are mapped to exchange tickers through
``config.token_symbols``; the pair symbol is the concatenation
(e.g., BNB + USDT -> BNBUSDT). Pairs without both tickers are not supported.

When ``enable_websocket`` is set, best bid/ask come from a
:class:`~pair_oracle.src.fetchers.stream.BookTickerStream` while it is fresh,
with the REST ticker as fallback.

Endpoint: https://api.binance.com/api/v3/ticker/24hr
Rate Limit: High (no key required for public endpoints)
"""

import logging
from decimal import Decimal, InvalidOperation

from ..Quote import Quote, to_fixed
from .base import BaseFetcher, FetcherHTTPError, SourceFetchError, register_fetcher
from .stream import BookTicker, BookTickerStream

logger = logging.getLogger(__name__)


@register_fetcher
class BinanceFetcher(BaseFetcher):
    """Binance spot ticker fetcher with optional book-ticker stream.

    :ivar stream: BookTickerStream, or None when websockets are disabled.
    """

    name = "binance_api"
    DEFAULT_CONFIDENCE = 97
    BASE_URL = "https://api.binance.com/api/v3"

    def __init__(self, *args, stream: BookTickerStream | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        if stream is None and self.config.enable_websocket:
            stream = BookTickerStream(
                url=self.config.ws_url,
                reconnect_delay=self.config.ws_reconnect_delay,
                max_reconnects=self.config.ws_max_reconnects,
            )
        self.stream = stream

    def pair_symbol(self, token_a: str, token_b: str) -> str | None:
        """Binance symbol for a pair, or None if a ticker is not configured."""
        symbol_a = self.symbol_for(token_a)
        symbol_b = self.symbol_for(token_b)
        if not symbol_a or not symbol_b:
            return None
        return f"{symbol_a}{symbol_b}".upper()

    async def connect(self) -> None:
        if self.stream is not None:
            await self.stream.connect()

    async def close(self) -> None:
        if self.stream is not None:
            await self.stream.close()

    async def fetch(
        self, token_a: str, token_b: str, *, timeout: float | None = None
    ) -> Quote | None:
        """Fetch the pair's price from the stream or the 24h ticker.

        :returns: Quote, or None if the pair is not listed.
        :raises SourceFetchError: On HTTP failure or an unparseable response.
        """
        symbol = self.pair_symbol(token_a, token_b)
        if symbol is None:
            logger.debug(f"[binance_api] No ticker mapping for {token_a}/{token_b}")
            return None

        if self.stream is not None:
            await self.stream.subscribe(symbol)
            book = self.stream.latest(symbol, max_age_ms=self.config.max_age_ms)
            if book is not None:
                return self._quote_from_book(token_a, token_b, book)

        try:
            response = await self._get(
                f"{self.BASE_URL}/ticker/24hr",
                params={"symbol": symbol},
                timeout=timeout,
            )
        except FetcherHTTPError as e:
            # Binance answers 400 for symbols it does not list
            if e.status_code == 400:
                logger.debug(f"[binance_api] Symbol {symbol} not listed: {e}")
                return None
            raise

        try:
            data = response.json()
            last = Decimal(data["lastPrice"])
            bid = Decimal(data["bidPrice"])
            ask = Decimal(data["askPrice"])
            volume = Decimal(data["quoteVolume"])
        except (KeyError, ValueError, TypeError, InvalidOperation) as e:
            raise SourceFetchError(f"[binance_api] Failed to parse {symbol}: {e}") from e

        if last <= 0:
            return None

        mid = (bid + ask) / 2
        spread = float((ask - bid) / mid) if mid > 0 else 0.0
        return self._quote(
            token_a,
            token_b,
            price=to_fixed(last),
            volume_24h=to_fixed(volume),
            spread=spread,
        )

    def _quote_from_book(self, token_a: str, token_b: str, book: BookTicker) -> Quote | None:
        if book.mid <= 0:
            return None
        return self._quote(
            token_a,
            token_b,
            price=to_fixed(book.mid),
            timestamp=book.received_at,
            spread=book.spread,
        )
