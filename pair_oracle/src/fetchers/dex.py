"""Constant-product (Uniswap V2 style) DEX fetchers.

Price, liquidity and slippage come from the pair contract's reserves:
    - price = reserve_b / reserve_a, adjusted for token decimals
    - liquidity = 2 * reserve_b (pool value expressed in token_b)
    - slippage = dx / (reserve_a + dx) for dx = reference_trade_size of token_a
    - spread = pool swap fee

Forks differ only in factory addresses, fee and declared confidence.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import ClassVar

from ..ContractUtility import ZERO_ADDRESS
from ..Quote import PRICE_SCALE, Quote
from .base import register_fetcher
from .onchain import OnChainFetcher

logger = logging.getLogger(__name__)


def reserves_to_price(reserve_a: int, reserve_b: int, decimals_a: int, decimals_b: int) -> int:
    """Fixed-point price of token_a in token_b from raw reserves.

    :returns: Price scaled by PRICE_SCALE, or 0 if reserve_a is empty.
    """
    if reserve_a <= 0:
        return 0
    return reserve_b * 10**decimals_a * PRICE_SCALE // (reserve_a * 10**decimals_b)


def reserves_to_liquidity(reserve_b: int, decimals_b: int) -> int:
    """Pool value in token_b (both sides), as 18-decimal fixed point."""
    return 2 * reserve_b * PRICE_SCALE // 10**decimals_b


def constant_product_slippage(reserve_a: int, trade_size: float, decimals_a: int) -> float:
    """Price movement caused by selling ``trade_size`` whole token_a units.

    :returns: ``dx / (reserve_a + dx)``, 0.0 for an empty trade.
    """
    dx = int(Decimal(str(trade_size)) * 10**decimals_a)
    if dx <= 0:
        return 0.0
    return dx / (reserve_a + dx)


class UniswapV2StyleFetcher(OnChainFetcher):
    """Reads reserves from a Uniswap V2 compatible pair contract.

    :cvar FACTORIES: Network name to factory address.
    :cvar FEE: Pool swap fee as a fraction, reported as the spread.
    """

    FACTORIES: ClassVar[dict[str, str]] = {}
    FEE: ClassVar[float] = 0.003

    def factory_address(self) -> str | None:
        """Factory address on the configured network."""
        return self.FACTORIES.get(self.config.network)

    async def fetch(
        self, token_a: str, token_b: str, *, timeout: float | None = None
    ) -> Quote | None:
        """Fetch a reserves-based quote.

        :param token_a: Base token address.
        :param token_b: Quote token address.
        :param timeout: Unused; RPC timeout comes from the provider.
        :returns: Quote, or None if the pair does not exist on this DEX.
        :raises SourceFetchError: On RPC failure.
        """
        factory_address = self.factory_address()
        if not factory_address:
            logger.debug(f"[{self.name}] No factory on network {self.config.network}")
            return None
        if not (self.is_token_address(token_a) and self.is_token_address(token_b)):
            logger.debug(f"[{self.name}] Non-address tokens {token_a}/{token_b}")
            return None

        factory = self.contracts.contract(factory_address, "UniswapV2Factory")
        pair_address = await self._call(
            "getPair",
            factory.functions.getPair(
                self.contracts.w3.to_checksum_address(token_a),
                self.contracts.w3.to_checksum_address(token_b),
            ).call(),
        )
        if not pair_address or pair_address == ZERO_ADDRESS:
            logger.debug(f"[{self.name}] No pair for {token_a}/{token_b}")
            return None

        pair = self.contracts.contract(pair_address, "UniswapV2Pair")
        token0 = await self._call("token0", pair.functions.token0().call())
        reserve0, reserve1, _ = await self._call(
            "getReserves", pair.functions.getReserves().call()
        )
        block = await self._call("block_number", self.contracts.block_number())
        decimals_a = await self._call("decimals", self.contracts.token_decimals(token_a))
        decimals_b = await self._call("decimals", self.contracts.token_decimals(token_b))

        if token0.lower() == token_a.lower():
            reserve_a, reserve_b = reserve0, reserve1
        else:
            reserve_a, reserve_b = reserve1, reserve0

        if reserve_a == 0 or reserve_b == 0:
            logger.debug(f"[{self.name}] Empty reserves for {token_a}/{token_b}")
            return None

        return self._quote(
            token_a,
            token_b,
            price=reserves_to_price(reserve_a, reserve_b, decimals_a, decimals_b),
            liquidity=reserves_to_liquidity(reserve_b, decimals_b),
            block_height=block,
            spread=self.FEE,
            slippage=constant_product_slippage(
                reserve_a, self.config.reference_trade_size, decimals_a
            ),
        )


@register_fetcher
class PancakeSwapV2Fetcher(UniswapV2StyleFetcher):
    """PancakeSwap V2 on BNB Chain."""

    name = "pancakeswap_v2"
    DEFAULT_CONFIDENCE = 95
    FEE = 0.0025
    FACTORIES = {
        "bsc": "0xcA143Ce32Fe78f1f7019d7d551a6402fC5350c73",
        "bsc-testnet": "0x6725F303b657a9451d8BA641348b6761A6CC7a17",
        "ethereum": "0x1097053Fd2ea711dad45caCcc45EfF7548fCB362",
    }


@register_fetcher
class UniswapV2Fetcher(UniswapV2StyleFetcher):
    """Uniswap V2."""

    name = "uniswap_v2"
    DEFAULT_CONFIDENCE = 90
    FEE = 0.003
    FACTORIES = {
        "ethereum": "0x5C69bEe701ef814a2B6a3EDD4B1652CB9cc5aA6f",
        "bsc": "0x8909Dc15e40173Ff4699343b6eB8132c65e18eC6",
    }


@register_fetcher
class SushiSwapFetcher(UniswapV2StyleFetcher):
    """SushiSwap (V2 AMM)."""

    name = "sushiswap"
    DEFAULT_CONFIDENCE = 85
    FEE = 0.003
    FACTORIES = {
        "ethereum": "0xC0AEe478e3658e2610c5F7A4A2E1777cE9e4f2Ac",
        "bsc": "0xc35DADB65012eC5796536bD9864eD8773aBc74C4",
    }


@register_fetcher
class BiswapFetcher(UniswapV2StyleFetcher):
    """Biswap on BNB Chain."""

    name = "biswap"
    DEFAULT_CONFIDENCE = 82
    FEE = 0.001
    FACTORIES = {
        "bsc": "0x858E3312ed3A876947EA49d572A7C42DE08af7EE",
    }


@register_fetcher
class ApeSwapFetcher(UniswapV2StyleFetcher):
    """ApeSwap on BNB Chain."""

    name = "apeswap"
    DEFAULT_CONFIDENCE = 82
    FEE = 0.002
    FACTORIES = {
        "bsc": "0x0841BD0B734E4F5853f0dD8d7Ea041c241fb0Da6",
    }
