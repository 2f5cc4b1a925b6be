from __future__ import annotations

import logging
from typing import Optional, Tuple

from web3 import Web3

from ..quotes import OrderSide, QuoteError
from .base import BlockIdentifier, PriceSource, load_abi

logger = logging.getLogger(__name__)

FEE_NUMERATOR = 997
FEE_DENOMINATOR = 1000


def get_amount_out(amount_in: int, reserve_in: int, reserve_out: int) -> int:
    """Constant-product output for an exact input, 0.3% LP fee (UniswapV2Library.getAmountOut)."""
    if amount_in <= 0:
        raise ValueError("insufficient input amount")
    if reserve_in <= 0 or reserve_out <= 0:
        raise ValueError("insufficient liquidity")
    amount_in_with_fee = amount_in * FEE_NUMERATOR
    numerator = amount_in_with_fee * reserve_out
    denominator = reserve_in * FEE_DENOMINATOR + amount_in_with_fee
    return numerator // denominator


class UniswapV2PairQuoter(PriceSource):
    """
    Quotes ETH/DAI against a Uniswap V2 DAI/WETH pair from its reserves.

    token0 is read once and cached; reserves are read for every quote at the
    requested block.
    """

    def __init__(
        self,
        web3: Web3,
        pair_address: str,
        dai_address: str,
        weth_address: str,
        name: str = "uniswap",
    ) -> None:
        super().__init__(name)
        self._pair = web3.eth.contract(
            address=Web3.to_checksum_address(pair_address),
            abi=load_abi("UniswapV2Pair"),
        )
        self._dai = Web3.to_checksum_address(dai_address)
        self._weth = Web3.to_checksum_address(weth_address)
        self._token0: Optional[str] = None

    def _dai_is_token0(self) -> bool:
        if self._token0 is None:
            token0 = Web3.to_checksum_address(self._pair.functions.token0().call())
            if token0 not in (self._dai, self._weth):
                raise QuoteError(f"{self.name}: pair token0={token0} is neither DAI nor WETH")
            self._token0 = token0
            logger.debug("%s: pair token0=%s", self.name, token0)
        return self._token0 == self._dai

    def reserves(self, block_identifier: BlockIdentifier = "latest") -> Tuple[int, int]:
        """Return (dai_reserve, weth_reserve)."""
        r0, r1, _ = self._pair.functions.getReserves().call(block_identifier=block_identifier)
        if self._dai_is_token0():
            return int(r0), int(r1)
        return int(r1), int(r0)

    def _quote_sync(
        self,
        side: OrderSide,
        amount_in: int,
        block_identifier: BlockIdentifier,
    ) -> int:
        dai_reserve, weth_reserve = self.reserves(block_identifier)
        try:
            if side is OrderSide.BUY:
                return get_amount_out(amount_in, dai_reserve, weth_reserve)
            return get_amount_out(amount_in, weth_reserve, dai_reserve)
        except ValueError as exc:
            raise QuoteError(f"{self.name}: {exc}") from exc
