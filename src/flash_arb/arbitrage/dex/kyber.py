"""
Kyber aggregator quotes via KyberNetworkProxy.getExpectedRate.

getExpectedRate(src, dest, srcQty) returns the rate as dest-per-src scaled by
1e18, independent of token decimals. Native ETH is the pseudo address
0xEeee...EEeE.
"""

from __future__ import annotations

import logging
from typing import Any, Tuple

from web3 import Web3

from ..quotes import OrderSide, QuoteError
from .base import BlockIdentifier, PriceSource, load_abi

logger = logging.getLogger(__name__)

RATE_PRECISION = 10**18


def convert_with_rate(
    amount_in: int,
    rate: int,
    src_decimals: int = 18,
    dst_decimals: int = 18,
) -> int:
    """Apply a Kyber rate to a source amount, adjusting for token decimals."""
    return amount_in * rate * 10**dst_decimals // (10**src_decimals * RATE_PRECISION)


class KyberQuoter(PriceSource):
    def __init__(
        self,
        web3: Web3,
        proxy_address: str,
        dai_address: str,
        eth_address: str,
        dai_decimals: int = 18,
        name: str = "kyber",
    ) -> None:
        super().__init__(name)
        self._contract = web3.eth.contract(
            address=Web3.to_checksum_address(proxy_address),
            abi=load_abi("KyberNetworkProxy"),
        )
        self._dai = Web3.to_checksum_address(dai_address)
        self._eth = Web3.to_checksum_address(eth_address)
        self._dai_decimals = dai_decimals

    def _route(self, side: OrderSide) -> Tuple[str, str, int, int]:
        if side is OrderSide.BUY:
            return self._dai, self._eth, self._dai_decimals, 18
        return self._eth, self._dai, 18, self._dai_decimals

    def expected_rate(
        self,
        src: str,
        dest: str,
        amount_in: int,
        block_identifier: BlockIdentifier = "latest",
    ) -> int:
        result: Any = self._contract.functions.getExpectedRate(src, dest, int(amount_in)).call(
            block_identifier=block_identifier
        )
        return int(result[0])

    def _quote_sync(
        self,
        side: OrderSide,
        amount_in: int,
        block_identifier: BlockIdentifier,
    ) -> int:
        src, dest, src_dec, dst_dec = self._route(side)
        rate = self.expected_rate(src, dest, amount_in, block_identifier)
        if rate <= 0:
            raise QuoteError(f"{self.name}: no rate for {side.value} amount_in={amount_in}")
        return convert_with_rate(amount_in, rate, src_dec, dst_dec)

    async def eth_price(self) -> int:
        """DAI smallest units received for 1 ETH at the current expected rate."""
        one_eth = 10**18
        rate = await self._run_sync(self.expected_rate, self._eth, self._dai, one_eth)
        if rate <= 0:
            raise QuoteError(f"{self.name}: no ETH/DAI rate")
        return convert_with_rate(one_eth, rate, 18, self._dai_decimals)
