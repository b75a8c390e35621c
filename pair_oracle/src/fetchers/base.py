"""Base fetcher interface and shared HTTP client management.

Every price source is a BaseFetcher subclass implementing ``fetch()``, which
returns a :class:`~pair_oracle.src.Quote.Quote` or None when the source has
no data for the pair. Transport and protocol failures raise
:class:`SourceFetchError`; the oracle logs and skips both outcomes.

Fetchers declare a :class:`SourceKind` so callers can tell on-chain DEX
readers, oracle feeds and off-chain REST APIs apart without knowing any
concrete source. A shared httpx.AsyncClient is used by all REST fetchers to
avoid connection overhead.

.. code-block:: python

    @register_fetcher
    class MyFetcher(BaseFetcher):
        name = "myfetcher"
        kind = SourceKind.REST_API

        async def fetch(self, token_a, token_b, *, timeout=None):
            response = await self._get(f"https://api.example.com/{token_a}/{token_b}")
            return self._quote(token_a, token_b, price=to_fixed(response.json()["price"]))
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import ClassVar

import httpx

from ..OracleConfig import OracleConfig
from ..Quote import Quote, now_ms

logger = logging.getLogger(__name__)


class SourceKind(str, Enum):
    """Capability class of a price source."""

    DEX = "dex"
    ORACLE_FEED = "oracle_feed"
    REST_API = "rest_api"


class SourceFetchError(Exception):
    """Base exception for per-source fetch failures."""

    pass


class FetcherConfigError(SourceFetchError):
    """Raised when fetcher configuration is invalid (e.g., missing feed address)."""

    pass


class FetcherHTTPError(SourceFetchError):
    """Raised when an HTTP request returns a non-2xx status.

    :ivar status_code: HTTP status code from the failed request.
    """

    def __init__(self, status_code: int, message: str):
        """Initialize the HTTP error.

        :param status_code: HTTP status code.
        :param message: Error message from response.
        """
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}: {message}")


class BaseFetcher(ABC):
    """Abstract base class for price fetchers.

    Subclasses must define:
        - name: Class variable identifying the source (e.g., "chainlink")
        - kind: The SourceKind of the source
        - fetch(): Async method returning a Quote for a token pair

    :cvar name: Unique identifier for this fetcher.
    :cvar kind: Capability class of this fetcher.
    :cvar DEFAULT_CONFIDENCE: Confidence declared on produced quotes.
    :cvar DEFAULT_TIMEOUT: Default request timeout in seconds.
    :ivar config: Oracle configuration (network, token maps, feeds).
    :ivar api_key: Optional API key for authenticated endpoints.
    :ivar timeout: Request timeout in seconds.
    """

    # Class-level shared HTTP client
    _shared_client: ClassVar[httpx.AsyncClient | None] = None

    # Fetcher identification
    name: ClassVar[str] = ""
    kind: ClassVar[SourceKind] = SourceKind.REST_API

    DEFAULT_CONFIDENCE: ClassVar[int] = 80
    DEFAULT_TIMEOUT = 10.0

    def __init__(
        self,
        config: OracleConfig | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
    ):
        """Initialize the fetcher.

        :param config: Oracle configuration (default: OracleConfig()).
        :param api_key: Optional API key for authenticated endpoints.
        :param timeout: Request timeout in seconds (default: config.request_timeout).
        """
        self.config = config or OracleConfig()
        self.api_key = api_key
        self.timeout = timeout or self.config.request_timeout or self.DEFAULT_TIMEOUT

    @property
    def has_api_key(self) -> bool:
        """Check if this fetcher has an API key configured."""
        return self.api_key is not None and len(self.api_key) > 0

    @classmethod
    def get_shared_client(cls) -> httpx.AsyncClient:
        """Get or create the shared HTTP client.

        The client is shared across all fetcher instances to reuse connections.

        :returns: Shared httpx.AsyncClient instance.
        """
        if BaseFetcher._shared_client is None or BaseFetcher._shared_client.is_closed:
            BaseFetcher._shared_client = httpx.AsyncClient(
                timeout=httpx.Timeout(30.0, connect=10.0),
                limits=httpx.Limits(max_connections=50, max_keepalive_connections=20),
                follow_redirects=True,
            )
        return BaseFetcher._shared_client

    @classmethod
    async def close_shared_client(cls) -> None:
        """Close the shared HTTP client."""
        client = BaseFetcher._shared_client
        if client is not None and not client.is_closed:
            await client.aclose()
        BaseFetcher._shared_client = None

    @abstractmethod
    async def fetch(
        self, token_a: str, token_b: str, *, timeout: float | None = None
    ) -> Quote | None:
        """Fetch the current quote for a token pair.

        :param token_a: Base token identifier.
        :param token_b: Quote token identifier.
        :param timeout: Optional per-call timeout overriding self.timeout.
        :returns: Quote, or None if the source has no data for the pair.
        :raises SourceFetchError: On transport or protocol failure.
        """
        pass

    async def connect(self) -> None:
        """Open persistent connections. Default: nothing to open."""
        return None

    async def close(self) -> None:
        """Close persistent connections. Default: nothing to close."""
        return None

    def symbol_for(self, token: str) -> str | None:
        """Exchange ticker configured for a token identifier."""
        return self.config.token_symbols.get(token)

    def _quote(self, token_a: str, token_b: str, price: int, **fields) -> Quote:
        """Build a Quote stamped with this source, its confidence and now."""
        fields.setdefault("timestamp", now_ms())
        fields.setdefault("confidence", self.DEFAULT_CONFIDENCE)
        return Quote(
            source=self.name,
            token_a=token_a,
            token_b=token_b,
            price=price,
            **fields,
        )

    async def _get(
        self,
        url: str,
        *,
        params: dict | None = None,
        headers: dict | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        """Make an HTTP GET request using the shared client.

        :param url: Request URL.
        :param params: Optional query parameters.
        :param headers: Optional request headers.
        :param timeout: Optional timeout overriding self.timeout.
        :returns: httpx.Response object.
        :raises FetcherHTTPError: On non-2xx response.
        :raises SourceFetchError: On network/timeout errors.
        """
        client = self.get_shared_client()
        try:
            response = await client.get(
                url,
                params=params,
                headers=headers,
                timeout=timeout or self.timeout,
            )
            if not response.is_success:
                logger.debug(
                    "HTTP GET %s failed with status %s: %s",
                    url,
                    response.status_code,
                    response.text[:200],
                )
                raise FetcherHTTPError(response.status_code, response.text[:200])
            return response
        except httpx.TimeoutException as e:
            raise SourceFetchError(f"Request timeout: {e}") from e
        except httpx.RequestError as e:
            raise SourceFetchError(f"Request failed: {e}") from e


# Registry of available fetchers (populated by subclass imports)
FETCHER_REGISTRY: dict[str, type[BaseFetcher]] = {}


def register_fetcher(cls: type[BaseFetcher]) -> type[BaseFetcher]:
    """Decorator to register a fetcher class in the global registry.

    :param cls: Fetcher class to register.
    :returns: The registered class (unchanged).
    :raises ValueError: If fetcher has no name defined.

    .. code-block:: python

        @register_fetcher
        class ChainlinkFetcher(BaseFetcher):
            name = "chainlink"
            ...
    """
    if not cls.name:
        raise ValueError(f"Fetcher {cls.__name__} must define a 'name' class variable")
    FETCHER_REGISTRY[cls.name] = cls
    return cls


def get_fetcher(
    name: str,
    config: OracleConfig | None = None,
    api_key: str | None = None,
    **kwargs,
) -> BaseFetcher:
    """Get a fetcher instance by name.

    :param name: Fetcher name (e.g., "pancakeswap_v2", "binance_api").
    :param config: Oracle configuration passed to the fetcher.
    :param api_key: Optional API key.
    :param kwargs: Extra constructor arguments (e.g., ``contracts`` for on-chain fetchers).
    :returns: Fetcher instance.
    :raises ValueError: If fetcher name is unknown.
    """
    if name not in FETCHER_REGISTRY:
        available = ", ".join(sorted(FETCHER_REGISTRY.keys()))
        raise ValueError(f"Unknown fetcher '{name}'. Available: {available}")
    return FETCHER_REGISTRY[name](config=config, api_key=api_key, **kwargs)


def get_available_fetchers() -> list[str]:
    """Get list of available fetcher names.

    :returns: Sorted list of registered fetcher names.
    """
    return sorted(FETCHER_REGISTRY.keys())
