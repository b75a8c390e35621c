"""Concentrated-liquidity (Uniswap V3 style) DEX fetchers.

A pair may have one pool per fee tier. The fetcher reads every tier and
quotes from the pool with the most in-range liquidity. Price comes from
``slot0.sqrtPriceX96``; liquidity and slippage use the pool's virtual
reserves at the current price:

    x = L * 2^96 / sqrtP   (token0)
    y = L * sqrtP / 2^96   (token1)
"""

from __future__ import annotations

import asyncio
import logging
from typing import ClassVar

from ..ContractUtility import ZERO_ADDRESS
from ..Quote import PRICE_SCALE, Quote
from .base import register_fetcher
from .dex import constant_product_slippage, reserves_to_liquidity
from .onchain import OnChainFetcher

logger = logging.getLogger(__name__)

Q96 = 2**96
Q192 = 2**192
FEE_DENOMINATOR = 1_000_000


def sqrt_price_to_fixed(
    sqrt_price_x96: int, a_is_token0: bool, decimals_a: int, decimals_b: int
) -> int:
    """Fixed-point price of token_a in token_b from a pool's sqrtPriceX96.

    :param sqrt_price_x96: ``sqrt(token1/token0) * 2^96`` from slot0.
    :param a_is_token0: True if token_a is the pool's token0.
    :returns: Price scaled by PRICE_SCALE, or 0 for an uninitialized pool.
    """
    if sqrt_price_x96 <= 0:
        return 0
    squared = sqrt_price_x96 * sqrt_price_x96
    if a_is_token0:
        numerator, denominator = squared * 10**decimals_a, Q192 * 10**decimals_b
    else:
        numerator, denominator = Q192 * 10**decimals_a, squared * 10**decimals_b
    return numerator * PRICE_SCALE // denominator


def virtual_reserves(liquidity: int, sqrt_price_x96: int) -> tuple[int, int]:
    """Virtual (token0, token1) reserves of the active range."""
    if sqrt_price_x96 <= 0:
        return 0, 0
    return liquidity * Q96 // sqrt_price_x96, liquidity * sqrt_price_x96 // Q96


class UniswapV3StyleFetcher(OnChainFetcher):
    """Reads slot0 and liquidity from Uniswap V3 compatible pools.

    :cvar FACTORIES: Network name to factory address.
    :cvar FEE_TIERS: Fee tiers probed, in hundredths of a basis point.
    """

    FACTORIES: ClassVar[dict[str, str]] = {}
    FEE_TIERS: ClassVar[tuple[int, ...]] = (500, 3000, 10000)

    async def _pool_state(self, pool_address: str) -> tuple[str, int, int]:
        pool = self.contracts.contract(pool_address, "UniswapV3Pool")
        token0 = await self._call("token0", pool.functions.token0().call())
        liquidity = await self._call("liquidity", pool.functions.liquidity().call())
        slot0 = await self._call("slot0", pool.functions.slot0().call())
        return token0, liquidity, slot0[0]

    async def fetch(
        self, token_a: str, token_b: str, *, timeout: float | None = None
    ) -> Quote | None:
        """Fetch a quote from the deepest pool across fee tiers.

        :returns: Quote, or None if no initialized pool exists.
        :raises SourceFetchError: On RPC failure.
        """
        factory_address = self.FACTORIES.get(self.config.network)
        if not factory_address:
            logger.debug(f"[{self.name}] No factory on network {self.config.network}")
            return None
        if not (self.is_token_address(token_a) and self.is_token_address(token_b)):
            logger.debug(f"[{self.name}] Non-address tokens {token_a}/{token_b}")
            return None

        factory = self.contracts.contract(factory_address, "UniswapV3Factory")
        checksum_a = self.contracts.w3.to_checksum_address(token_a)
        checksum_b = self.contracts.w3.to_checksum_address(token_b)
        pools = await asyncio.gather(
            *(
                self._call(
                    "getPool", factory.functions.getPool(checksum_a, checksum_b, fee).call()
                )
                for fee in self.FEE_TIERS
            )
        )

        best = None
        for fee, pool_address in zip(self.FEE_TIERS, pools):
            if not pool_address or pool_address == ZERO_ADDRESS:
                continue
            token0, liquidity, sqrt_price = await self._pool_state(pool_address)
            if liquidity == 0 or sqrt_price == 0:
                continue
            if best is None or liquidity > best[2]:
                best = (fee, token0, liquidity, sqrt_price)

        if best is None:
            logger.debug(f"[{self.name}] No initialized pool for {token_a}/{token_b}")
            return None

        fee, token0, liquidity, sqrt_price = best
        block = await self._call("block_number", self.contracts.block_number())
        decimals_a = await self._call("decimals", self.contracts.token_decimals(token_a))
        decimals_b = await self._call("decimals", self.contracts.token_decimals(token_b))

        a_is_token0 = token0.lower() == token_a.lower()
        reserve0, reserve1 = virtual_reserves(liquidity, sqrt_price)
        reserve_a, reserve_b = (reserve0, reserve1) if a_is_token0 else (reserve1, reserve0)

        return self._quote(
            token_a,
            token_b,
            price=sqrt_price_to_fixed(sqrt_price, a_is_token0, decimals_a, decimals_b),
            liquidity=reserves_to_liquidity(reserve_b, decimals_b),
            block_height=block,
            spread=fee / FEE_DENOMINATOR,
            slippage=constant_product_slippage(
                reserve_a, self.config.reference_trade_size, decimals_a
            ),
        )


@register_fetcher
class PancakeSwapV3Fetcher(UniswapV3StyleFetcher):
    """PancakeSwap V3."""

    name = "pancakeswap_v3"
    DEFAULT_CONFIDENCE = 98
    FEE_TIERS = (100, 500, 2500, 10000)
    FACTORIES = {
        "bsc": "0x0BFbCF9fa4f9C56B0F40a671Ad40E0805A091865",
        "bsc-testnet": "0x0BFbCF9fa4f9C56B0F40a671Ad40E0805A091865",
        "ethereum": "0x0BFbCF9fa4f9C56B0F40a671Ad40E0805A091865",
    }


@register_fetcher
class UniswapV3Fetcher(UniswapV3StyleFetcher):
    """Uniswap V3."""

    name = "uniswap_v3"
    DEFAULT_CONFIDENCE = 95
    FEE_TIERS = (100, 500, 3000, 10000)
    FACTORIES = {
        "ethereum": "0x1F98431c8aD98523631AE4a59f267346ea31F984",
        "bsc": "0xdB1d10011AD0Ff90774D0C6Bb92e5C5c8b4461F7",
    }
