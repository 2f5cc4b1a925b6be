from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Optional

from ..blocks import sleep_or_stop

logger = logging.getLogger(__name__)

PriceFetcher = Callable[[], Awaitable[int]]


@dataclass
class SharedPrice:
    """
    The current ETH price in DAI smallest units per 1 ETH.

    Written only by EthPriceFeed; the block handler reads a snapshot and
    passes it into the evaluator.
    """

    value: int
    source: str = "static"
    updated_at: Optional[datetime] = None

    def snapshot(self) -> int:
        return self.value


class EthPriceFeed:
    """Refresh SharedPrice on a fixed timer, independently of the block feed."""

    def __init__(
        self,
        fetch: PriceFetcher,
        shared: SharedPrice,
        interval: float = 15.0,
        source: str = "kyber",
    ) -> None:
        self._fetch = fetch
        self._shared = shared
        self._interval = interval
        self._source = source

    async def refresh_once(self) -> bool:
        try:
            value = int(await self._fetch())
        except Exception as exc:
            logger.warning(
                "eth price refresh failed, keeping %s: %s",
                self._shared.value,
                exc,
            )
            return False

        if value <= 0:
            logger.warning("eth price refresh returned %s, keeping %s", value, self._shared.value)
            return False

        self._shared.value = value
        self._shared.source = self._source
        self._shared.updated_at = datetime.utcnow()
        logger.debug("eth price updated value=%s source=%s", value, self._source)
        return True

    async def run(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            await self.refresh_once()
            if await sleep_or_stop(stop_event, self._interval):
                break
