"""
Kyber / Uniswap round-trip evaluator

For a fixed DAI notional this module prices both arbitrage directions and
decides whether either is worth a flash loan:

- KYBER_TO_UNISWAP: DAI -> ETH on Kyber, ETH -> DAI on Uniswap
- UNISWAP_TO_KYBER: DAI -> ETH on Uniswap, ETH -> DAI on Kyber
- Net profit = DAI out - DAI in - gas cost (converted to DAI)
- A direction is chosen only if its net profit is strictly above min_profit

All amounts are integers in the token's smallest unit. The selection step is
a pure function of its inputs; all I/O happens in OpportunityEvaluator.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Optional

from .dex.base import PriceSource
from .gas import GasEstimate, GasOracle
from .quotes import Direction, OrderSide, Quote

logger = logging.getLogger(__name__)

WEI = 10**18


def _fmt_units(amount: int) -> str:
    sign = "-" if amount < 0 else ""
    whole, frac = divmod(abs(amount), WEI)
    return f"{sign}{whole}.{frac:018d}".rstrip("0").rstrip(".")


@dataclass(frozen=True)
class RoundTrip:
    """Buy leg and sell leg for one direction."""

    direction: Direction
    buy: Quote
    sell: Quote

    @property
    def amount_in(self) -> int:
        return self.buy.amount_in

    @property
    def amount_out(self) -> int:
        return self.sell.amount_out


@dataclass(frozen=True)
class ArbitrageOpportunity:
    """
    A profitable direction for one block.

    Attributes:
        block_number: Block the quotes were taken at (None for "latest")
        direction: Which venue buys and which sells
        amount_in: DAI borrowed (notional)
        amount_out: DAI received after both swaps
        gas_cost: Gas cost converted to DAI smallest units
        net_profit: amount_out - amount_in - gas_cost
        buy_quote / sell_quote: The two legs
        gas: Gas price and units behind gas_cost
    """

    block_number: Optional[int]
    direction: Direction
    amount_in: int
    amount_out: int
    gas_cost: int
    net_profit: int
    buy_quote: Optional[Quote] = None
    sell_quote: Optional[Quote] = None
    gas: Optional[GasEstimate] = None

    @property
    def gross_profit(self) -> int:
        return self.amount_out - self.amount_in

    def __str__(self) -> str:
        buy_px = f"{self.buy_quote.price:.4f}" if self.buy_quote else "N/A"
        sell_px = f"{self.sell_quote.price:.4f}" if self.sell_quote else "N/A"
        return (
            f"Arbitrage: ETH/DAI block={self.block_number} {self.direction.name}\n"
            f"  Buy  ETH on {self.direction.buy_venue} @ {buy_px} DAI\n"
            f"  Sell ETH on {self.direction.sell_venue} @ {sell_px} DAI\n"
            f"  DAI in {_fmt_units(self.amount_in)} -> out {_fmt_units(self.amount_out)}\n"
            f"  Gas cost: {_fmt_units(self.gas_cost)} DAI\n"
            f"  Net Profit: {_fmt_units(self.net_profit)} DAI"
        )


def net_profit(amount_in: int, amount_out: int, gas_cost: int) -> int:
    return amount_out - amount_in - gas_cost


def select_opportunity(
    round_trips: Iterable[RoundTrip],
    gas_costs: Mapping[Direction, int],
    min_profit: int = 0,
    block_number: Optional[int] = None,
    gas: Optional[Mapping[Direction, GasEstimate]] = None,
) -> Optional[ArbitrageOpportunity]:
    """
    Pick the most profitable direction whose net profit is > min_profit.

    Directions missing from gas_costs are not executable and are skipped.
    Ties keep the first direction seen.
    """
    best: Optional[ArbitrageOpportunity] = None
    for rt in round_trips:
        cost = gas_costs.get(rt.direction)
        if cost is None:
            continue
        profit = net_profit(rt.amount_in, rt.amount_out, cost)
        if profit <= min_profit:
            continue
        if best is not None and profit <= best.net_profit:
            continue
        best = ArbitrageOpportunity(
            block_number=block_number,
            direction=rt.direction,
            amount_in=rt.amount_in,
            amount_out=rt.amount_out,
            gas_cost=cost,
            net_profit=profit,
            buy_quote=rt.buy,
            sell_quote=rt.sell,
            gas=(gas or {}).get(rt.direction),
        )
    return best


class OpportunityEvaluator:
    """
    Fetches quotes from both venues for one block and selects a direction.

    Quote fetches inside a stage run concurrently; each stage completes
    before the next starts. Any source error propagates to the caller, which
    skips the block.
    """

    def __init__(
        self,
        kyber: PriceSource,
        uniswap: PriceSource,
        gas_oracle: GasOracle,
        notional: int,
        min_profit: int = 0,
    ) -> None:
        if notional <= 0:
            raise ValueError(f"notional must be positive, got {notional}")
        self.kyber = kyber
        self.uniswap = uniswap
        self.gas_oracle = gas_oracle
        self.notional = notional
        self.min_profit = min_profit

    async def fetch_round_trips(self, block_number: Optional[int] = None):
        block_id = block_number if block_number is not None else "latest"

        kyber_buy, uniswap_buy, gas_price = await asyncio.gather(
            self.kyber.quote(OrderSide.BUY, self.notional, block_id),
            self.uniswap.quote(OrderSide.BUY, self.notional, block_id),
            self.gas_oracle.gas_price(),
        )

        uniswap_sell, kyber_sell, units_k2u, units_u2k = await asyncio.gather(
            self.uniswap.quote(OrderSide.SELL, kyber_buy.amount_out, block_id),
            self.kyber.quote(OrderSide.SELL, uniswap_buy.amount_out, block_id),
            self.gas_oracle.units_for(Direction.KYBER_TO_UNISWAP, self.notional),
            self.gas_oracle.units_for(Direction.UNISWAP_TO_KYBER, self.notional),
        )

        logger.info(
            "kyber ETH/DAI buy=%.4f sell=%.4f | uniswap ETH/DAI buy=%.4f sell=%.4f",
            kyber_buy.price,
            kyber_sell.price,
            uniswap_buy.price,
            uniswap_sell.price,
        )

        round_trips = [
            RoundTrip(Direction.KYBER_TO_UNISWAP, kyber_buy, uniswap_sell),
            RoundTrip(Direction.UNISWAP_TO_KYBER, uniswap_buy, kyber_sell),
        ]
        gas: Dict[Direction, GasEstimate] = {}
        for direction, units in (
            (Direction.KYBER_TO_UNISWAP, units_k2u),
            (Direction.UNISWAP_TO_KYBER, units_u2k),
        ):
            if units is not None:
                gas[direction] = GasEstimate(gas_price_wei=int(gas_price), gas_units=int(units))
        return round_trips, gas

    async def evaluate(
        self,
        block_number: Optional[int],
        eth_price_wei: int,
    ) -> Optional[ArbitrageOpportunity]:
        round_trips, gas = await self.fetch_round_trips(block_number)
        gas_costs = {d: g.cost_in_quote(eth_price_wei) for d, g in gas.items()}

        for rt in round_trips:
            cost = gas_costs.get(rt.direction)
            logger.debug(
                "block=%s direction=%s dai_in=%s dai_out=%s gas_cost_dai=%s net=%s",
                block_number,
                rt.direction.name,
                _fmt_units(rt.amount_in),
                _fmt_units(rt.amount_out),
                _fmt_units(cost) if cost is not None else "n/a",
                _fmt_units(net_profit(rt.amount_in, rt.amount_out, cost)) if cost is not None else "n/a",
            )

        return select_opportunity(
            round_trips,
            gas_costs,
            min_profit=self.min_profit,
            block_number=block_number,
            gas=gas,
        )
