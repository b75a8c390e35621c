"""Shared base for fetchers that read contracts through AsyncWeb3."""

from __future__ import annotations

import asyncio
import logging
from typing import ClassVar

import aiohttp
from web3 import Web3
from web3.exceptions import Web3Exception

from ..ContractUtility import ContractUtility
from ..OracleConfig import OracleConfig
from .base import BaseFetcher, FetcherConfigError, SourceFetchError, SourceKind

logger = logging.getLogger(__name__)


class OnChainFetcher(BaseFetcher):
    """Base class for DEX and oracle-feed fetchers.

    :ivar contracts: ContractUtility shared by all on-chain fetchers.
    """

    kind: ClassVar[SourceKind] = SourceKind.DEX

    def __init__(
        self,
        config: OracleConfig | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        contracts: ContractUtility | None = None,
    ):
        """Initialize the fetcher.

        :param contracts: ContractUtility providing the AsyncWeb3 connection.
        :raises FetcherConfigError: If no ContractUtility is given.
        """
        super().__init__(config=config, api_key=api_key, timeout=timeout)
        if contracts is None:
            raise FetcherConfigError(f"[{self.name}] on-chain fetcher requires contracts")
        self.contracts = contracts

    @staticmethod
    def is_token_address(token: str) -> bool:
        """True if the token identifier is an EVM address."""
        return Web3.is_address(token)

    async def _call(self, what: str, awaitable):
        """Await a contract call, converting web3 and transport errors to SourceFetchError."""
        try:
            return await awaitable
        except Web3Exception as e:
            raise SourceFetchError(f"[{self.name}] {what} failed: {e}") from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise SourceFetchError(f"[{self.name}] {what} request failed: {e!r}") from e
