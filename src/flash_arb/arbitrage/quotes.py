from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum, IntEnum
from typing import Optional


class OrderSide(str, Enum):
    """BUY spends DAI for ETH; SELL spends ETH for DAI."""

    BUY = "BUY"
    SELL = "SELL"


class Direction(IntEnum):
    """
    Arbitrage direction, valued like the Flashloan contract's Direction enum.

    KYBER_TO_UNISWAP: buy ETH on Kyber with borrowed DAI, sell it on Uniswap.
    UNISWAP_TO_KYBER: buy ETH on Uniswap with borrowed DAI, sell it on Kyber.
    """

    KYBER_TO_UNISWAP = 0
    UNISWAP_TO_KYBER = 1

    @property
    def buy_venue(self) -> str:
        return "kyber" if self is Direction.KYBER_TO_UNISWAP else "uniswap"

    @property
    def sell_venue(self) -> str:
        return "uniswap" if self is Direction.KYBER_TO_UNISWAP else "kyber"


class QuoteError(RuntimeError):
    """A pricing source could not produce a quote for this cycle."""


@dataclass(frozen=True)
class Quote:
    """
    Exchange rate observed from one venue for one input amount.

    Amounts are integers in the token's smallest unit.
    """

    source: str
    side: OrderSide
    amount_in: int
    amount_out: int
    block_number: Optional[int] = None

    @property
    def price(self) -> Decimal:
        """DAI per ETH implied by this quote. Display only."""
        if self.side is OrderSide.BUY:
            if self.amount_out == 0:
                return Decimal(0)
            return Decimal(self.amount_in) / Decimal(self.amount_out)
        if self.amount_in == 0:
            return Decimal(0)
        return Decimal(self.amount_out) / Decimal(self.amount_in)
