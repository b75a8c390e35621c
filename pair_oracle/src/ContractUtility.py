"""ContractUtility: AsyncWeb3 initialization and contract ABIs for on-chain sources.

Only read calls are made, so the ABIs below carry just the functions the
DEX and oracle-feed fetchers use.
"""

from __future__ import annotations

import logging

from web3 import AsyncWeb3
from web3.contract import AsyncContract

from .OracleConfig import OracleConfig

logger = logging.getLogger(__name__)


def _fn(name: str, inputs: list[tuple[str, str]], outputs: list[tuple[str, str]]) -> dict:
    return {
        "type": "function",
        "name": name,
        "stateMutability": "view",
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": n, "type": t} for n, t in outputs],
    }


ABIS: dict[str, list[dict]] = {
    "ERC20": [
        _fn("decimals", [], [("", "uint8")]),
    ],
    "UniswapV2Factory": [
        _fn("getPair", [("tokenA", "address"), ("tokenB", "address")], [("pair", "address")]),
    ],
    "UniswapV2Pair": [
        _fn("token0", [], [("", "address")]),
        _fn(
            "getReserves",
            [],
            [
                ("reserve0", "uint112"),
                ("reserve1", "uint112"),
                ("blockTimestampLast", "uint32"),
            ],
        ),
    ],
    "UniswapV3Factory": [
        _fn(
            "getPool",
            [("tokenA", "address"), ("tokenB", "address"), ("fee", "uint24")],
            [("pool", "address")],
        ),
    ],
    # slot0 differs between forks after `tick`; only the shared prefix is decoded
    "UniswapV3Pool": [
        _fn("token0", [], [("", "address")]),
        _fn("liquidity", [], [("", "uint128")]),
        _fn("slot0", [], [("sqrtPriceX96", "uint160"), ("tick", "int24")]),
    ],
    "AggregatorV3": [
        _fn("decimals", [], [("", "uint8")]),
        _fn(
            "latestRoundData",
            [],
            [
                ("roundId", "uint80"),
                ("answer", "int256"),
                ("startedAt", "uint256"),
                ("updatedAt", "uint256"),
                ("answeredInRound", "uint80"),
            ],
        ),
    ],
}

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class ContractUtility:
    """Utility for AsyncWeb3 connection and contract construction.

    :ivar network: Network RPC URL.
    :ivar w3: AsyncWeb3 instance shared by all on-chain fetchers.
    """

    def __init__(self, config: OracleConfig) -> None:
        """Initialize the contract utility.

        :param config: Oracle configuration; ``rpc_url`` overrides the
            network default.
        """
        self.network = config.resolved_rpc_url
        self.w3 = AsyncWeb3(
            AsyncWeb3.AsyncHTTPProvider(
                self.network,
                request_kwargs={"timeout": config.request_timeout},
            )
        )
        self._decimals: dict[str, int] = dict(config.token_decimals)
        logger.debug(f"AsyncWeb3 provider configured for {self.network}")

    @staticmethod
    def get_abi(contract_name: str) -> list[dict]:
        """Return the ABI of a known contract.

        :param contract_name: Name of the contract (e.g., "UniswapV2Pair").
        :returns: ABI list.
        :raises KeyError: If the contract is unknown.
        """
        return ABIS[contract_name]

    def contract(self, address: str, contract_name: str) -> AsyncContract:
        """Build an AsyncContract for a checksummed address."""
        return self.w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(address),
            abi=self.get_abi(contract_name),
        )

    async def block_number(self) -> int:
        """Latest block height."""
        return await self.w3.eth.block_number

    async def token_decimals(self, token: str) -> int:
        """ERC-20 decimals of a token, read once and memoized.

        Config overrides (``token_decimals``) take precedence.
        """
        if token not in self._decimals:
            decimals = await self.contract(token, "ERC20").functions.decimals().call()
            self._decimals[token] = int(decimals)
        return self._decimals[token]

    async def close(self) -> None:
        """Close the provider's HTTP session."""
        await self.w3.provider.disconnect()
