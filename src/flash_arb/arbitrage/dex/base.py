from __future__ import annotations

import abc
import asyncio
import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, List, TypeVar, Union

from ..quotes import OrderSide, Quote, QuoteError

logger = logging.getLogger(__name__)

T = TypeVar("T")

ABI_DIR = Path(__file__).resolve().parent / "abi"

BlockIdentifier = Union[int, str]


@lru_cache(maxsize=None)
def load_abi(name: str) -> List[Any]:
    """Load an ABI shipped under dex/abi/<name>.json."""
    abi = json.loads((ABI_DIR / f"{name}.json").read_text())
    if isinstance(abi, dict) and "abi" in abi:
        abi = abi["abi"]
    return abi


class PriceSource(abc.ABC):
    """
    Abstract base class for a venue that quotes ETH/DAI swaps.

    Subclasses implement `_quote_sync`, which performs blocking web3 calls;
    `quote` runs it in the default executor and wraps every failure in
    QuoteError so a bad venue aborts only the current cycle.
    """

    def __init__(self, name: str) -> None:
        self.name = name

    @abc.abstractmethod
    def _quote_sync(
        self,
        side: OrderSide,
        amount_in: int,
        block_identifier: BlockIdentifier,
    ) -> int:
        """Return the output amount for `amount_in` (smallest units)."""
        raise NotImplementedError

    async def _run_sync(self, fn: Callable[..., T], *args: Any) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, fn, *args)

    async def quote(
        self,
        side: OrderSide,
        amount_in: int,
        block_identifier: BlockIdentifier = "latest",
    ) -> Quote:
        if amount_in <= 0:
            raise QuoteError(f"{self.name}: amount_in must be positive, got {amount_in}")
        try:
            amount_out = await self._run_sync(self._quote_sync, side, int(amount_in), block_identifier)
        except QuoteError:
            raise
        except Exception as exc:
            raise QuoteError(f"{self.name} {side.value} quote failed: {exc}") from exc

        return Quote(
            source=self.name,
            side=side,
            amount_in=int(amount_in),
            amount_out=int(amount_out),
            block_number=block_identifier if isinstance(block_identifier, int) else None,
        )
