"""BookTickerStream: Best bid/ask over Binance's combined WebSocket stream.

Symbols are subscribed on demand. The latest book per symbol is kept in
memory so REST polling can be skipped while the stream is fresh. The
connection is re-established after ``reconnect_delay`` seconds, giving up
after ``max_reconnects`` consecutive failed attempts.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

import websockets
from websockets.exceptions import WebSocketException

from ..Quote import now_ms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookTicker:
    """Best bid/ask for one symbol.

    :ivar received_at: Local receive time in milliseconds since epoch.
    """

    symbol: str
    bid: Decimal
    ask: Decimal
    received_at: int

    @property
    def mid(self) -> Decimal:
        return (self.bid + self.ask) / 2

    @property
    def spread(self) -> float:
        """(ask - bid) / mid, 0.0 for an empty book."""
        mid = self.mid
        if mid <= 0:
            return 0.0
        return float((self.ask - self.bid) / mid)


class BookTickerStream:
    """Maintains a combined ``@bookTicker`` subscription.

    :ivar url: Combined-stream endpoint.
    :ivar reconnect_delay: Seconds between reconnect attempts.
    :ivar max_reconnects: Consecutive failed attempts before the stream stops.
    """

    DEFAULT_URL = "wss://stream.binance.com:9443/stream"

    def __init__(
        self,
        url: str | None = None,
        reconnect_delay: float = 5.0,
        max_reconnects: int = 10,
    ) -> None:
        self.url = url or self.DEFAULT_URL
        self.reconnect_delay = reconnect_delay
        self.max_reconnects = max_reconnects
        self._books: dict[str, BookTicker] = {}
        self._symbols: set[str] = set()
        self._ws = None
        self._task: asyncio.Task | None = None
        self._request_id = 0

    @property
    def is_connected(self) -> bool:
        return self._ws is not None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def connect(self) -> None:
        """Start the background connection loop (idempotent)."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run(), name="book-ticker-stream")

    async def close(self) -> None:
        """Stop the connection loop and close the socket."""
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._ws = None

    async def subscribe(self, symbol: str) -> None:
        """Add a symbol to the subscription set.

        Sent immediately when connected, otherwise on the next connect.
        """
        symbol = symbol.upper()
        if symbol in self._symbols:
            return
        self._symbols.add(symbol)
        if self._ws is not None:
            await self._send_subscribe([symbol])

    def latest(self, symbol: str, max_age_ms: int | None = None) -> BookTicker | None:
        """Latest book for a symbol, or None if unseen or older than max_age_ms."""
        book = self._books.get(symbol.upper())
        if book is None:
            return None
        if max_age_ms is not None and now_ms() - book.received_at > max_age_ms:
            return None
        return book

    def _handle_message(self, raw: str | bytes) -> BookTicker | None:
        """Parse one frame and record it if it is a book update.

        Accepts both combined (``{"stream": ..., "data": {...}}``) and raw
        frames. Subscription acknowledgements and malformed frames are ignored.
        """
        try:
            message = json.loads(raw)
        except json.JSONDecodeError:
            logger.debug(f"[binance_api] Ignoring non-JSON frame: {raw!r:.80}")
            return None
        if not isinstance(message, dict):
            return None
        data = message.get("data", message)
        if not isinstance(data, dict) or not {"s", "b", "a"} <= data.keys():
            return None
        try:
            book = BookTicker(
                symbol=str(data["s"]).upper(),
                bid=Decimal(str(data["b"])),
                ask=Decimal(str(data["a"])),
                received_at=now_ms(),
            )
        except InvalidOperation:
            logger.debug(f"[binance_api] Malformed book update: {data}")
            return None
        self._books[book.symbol] = book
        return book

    async def _send_subscribe(self, symbols: list[str]) -> None:
        self._request_id += 1
        payload = {
            "method": "SUBSCRIBE",
            "params": [f"{s.lower()}@bookTicker" for s in symbols],
            "id": self._request_id,
        }
        await self._ws.send(json.dumps(payload, separators=(",", ":")))

    async def _run(self) -> None:
        attempts = 0
        while True:
            try:
                async with websockets.connect(self.url) as ws:
                    self._ws = ws
                    attempts = 0
                    logger.info(f"[binance_api] Stream connected to {self.url}")
                    if self._symbols:
                        await self._send_subscribe(sorted(self._symbols))
                    async for raw in ws:
                        self._handle_message(raw)
            except asyncio.CancelledError:
                raise
            except (WebSocketException, OSError) as e:
                logger.warning(f"[binance_api] Stream error: {e}")
            finally:
                self._ws = None

            attempts += 1
            if attempts > self.max_reconnects:
                logger.error(
                    f"[binance_api] Stream gave up after {self.max_reconnects} reconnects"
                )
                return
            await asyncio.sleep(self.reconnect_delay)
