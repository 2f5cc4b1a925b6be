from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from web3.exceptions import ContractLogicError

from ..chain_client import ChainClient
from .quotes import Direction

logger = logging.getLogger(__name__)

GasUnitsEstimator = Callable[[Direction, int], Awaitable[int]]


@dataclass(frozen=True)
class GasEstimate:
    gas_price_wei: int
    gas_units: int

    @property
    def cost_wei(self) -> int:
        return self.gas_price_wei * self.gas_units

    def cost_in_quote(self, eth_price_wei: int) -> int:
        """Gas cost in quote-token smallest units, given the quote value of 1 ETH."""
        return self.cost_wei * eth_price_wei // 10**18


class GasOracle:
    """
    Supplies the current gas price and the gas units for a flash-loan call.

    Without an estimator every direction costs `default_units`. With one
    (LIVE mode: eth_estimateGas on the contract call) a reverted estimate
    means that direction gets no estimate for this block. Any other estimator
    error (transport, timeout) propagates and the block is skipped.
    """

    def __init__(
        self,
        client: ChainClient,
        default_units: int = 200_000,
        estimator: Optional[GasUnitsEstimator] = None,
    ) -> None:
        self._client = client
        self.default_units = default_units
        self._estimator = estimator

    async def gas_price(self) -> int:
        return await self._client.gas_price()

    async def units_for(self, direction: Direction, amount: int) -> Optional[int]:
        if self._estimator is None:
            return self.default_units
        try:
            return int(await self._estimator(direction, amount))
        except ContractLogicError as exc:
            logger.info("gas estimate reverted direction=%s: %s", direction.name, exc)
            return None
