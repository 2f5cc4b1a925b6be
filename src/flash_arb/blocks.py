"""
Chain head feeds.

Heads are published into a BlockChannel and consumed by the evaluation loop.
Because heads can arrive faster than one evaluation completes, the channel has
an explicit back-pressure policy:

- DROP:  keep at most one pending head; a newer head replaces it.
- QUEUE: keep every head in arrival order (optionally bounded; the producer
         waits when full).

Two producers are available: HTTP polling of the latest block and an
eth_subscribe("newHeads") websocket subscription.
"""

from __future__ import annotations

import asyncio
import json
import logging
from enum import Enum
from typing import Callable, Optional, Union

import websockets
from hexbytes import HexBytes
from websockets.exceptions import ConnectionClosed
from web3 import Web3

from .chain_client import BlockHeader, ChainClient

logger = logging.getLogger(__name__)

ErrorHandler = Callable[[BaseException], None]


class BackpressurePolicy(str, Enum):
    DROP = "DROP"
    QUEUE = "QUEUE"


def log_feed_error(exc: BaseException) -> None:
    logger.warning("block feed error: %s", exc)


async def sleep_or_stop(stop_event: asyncio.Event, timeout: float) -> bool:
    """Sleep up to `timeout` seconds; return True if stop_event was set."""
    try:
        await asyncio.wait_for(stop_event.wait(), timeout=timeout)
    except asyncio.TimeoutError:
        return False
    return True


class BlockChannel:
    def __init__(
        self,
        policy: BackpressurePolicy = BackpressurePolicy.DROP,
        max_pending: int = 0,
    ) -> None:
        self.policy = policy
        if policy is BackpressurePolicy.DROP:
            self._queue: asyncio.Queue[BlockHeader] = asyncio.Queue(maxsize=1)
        else:
            self._queue = asyncio.Queue(maxsize=max(0, int(max_pending)))
        self.published = 0
        self.dropped = 0

    def pending(self) -> int:
        return self._queue.qsize()

    async def publish(self, header: BlockHeader) -> None:
        self.published += 1
        if self.policy is BackpressurePolicy.DROP:
            if self._queue.full():
                stale = self._queue.get_nowait()
                self.dropped += 1
                logger.debug(
                    "evaluator busy; dropping pending block=%s for block=%s",
                    stale.number,
                    header.number,
                )
            self._queue.put_nowait(header)
            return
        await self._queue.put(header)

    async def get(self) -> BlockHeader:
        return await self._queue.get()


def parse_new_head(message: Union[str, bytes]) -> BlockHeader:
    """
    Parse an eth_subscription notification carrying a newHeads result.

    Raises ValueError / KeyError for anything that is not a head notification.
    """
    payload = json.loads(message)
    if not isinstance(payload, dict) or payload.get("method") != "eth_subscription":
        raise ValueError(f"not a subscription notification: {payload!r}")
    params = payload.get("params")
    result = params.get("result") if isinstance(params, dict) else None
    if not isinstance(result, dict):
        raise ValueError(f"subscription notification without a head: {payload!r}")
    number = int(result["number"], 16)
    ts = result.get("timestamp")
    return BlockHeader(
        number=number,
        hash=Web3.to_hex(HexBytes(result["hash"])) if result.get("hash") else None,
        timestamp=int(ts, 16) if isinstance(ts, str) else None,
    )


class PollingHeadSource:
    """Poll the latest block over HTTP and publish each new head once."""

    def __init__(
        self,
        client: ChainClient,
        channel: BlockChannel,
        poll_interval: float = 2.0,
        on_error: Optional[ErrorHandler] = None,
    ) -> None:
        self._client = client
        self._channel = channel
        self._poll_interval = poll_interval
        self._on_error = on_error or log_feed_error
        self.last_number: Optional[int] = None

    async def poll_once(self) -> Optional[BlockHeader]:
        try:
            header = await self._client.latest_header()
        except Exception as exc:
            self._on_error(exc)
            return None

        if self.last_number is not None and header.number <= self.last_number:
            return None
        if self.last_number is not None and header.number > self.last_number + 1:
            logger.debug(
                "poll gap: last=%s latest=%s (intermediate heads not published)",
                self.last_number,
                header.number,
            )
        self.last_number = header.number
        await self._channel.publish(header)
        return header

    async def run(self, stop_event: asyncio.Event) -> None:
        logger.info("polling block heads every %.1fs", self._poll_interval)
        while not stop_event.is_set():
            await self.poll_once()
            if await sleep_or_stop(stop_event, self._poll_interval):
                break


class NewHeadsSubscription:
    """
    eth_subscribe("newHeads") over a websocket.

    Bad messages are reported to the error handler and listening continues.
    A closed connection is reported and ends the feed; there is no reconnect.
    """

    def __init__(
        self,
        ws_url: str,
        channel: BlockChannel,
        on_error: Optional[ErrorHandler] = None,
        recv_timeout: float = 30.0,
    ) -> None:
        self._ws_url = ws_url
        self._channel = channel
        self._on_error = on_error or log_feed_error
        self._recv_timeout = recv_timeout
        self.subscription_id: Optional[str] = None

    async def run(self, stop_event: asyncio.Event) -> None:
        async with websockets.connect(self._ws_url) as websocket:
            await websocket.send(
                json.dumps(
                    {
                        "jsonrpc": "2.0",
                        "id": 1,
                        "method": "eth_subscribe",
                        "params": ["newHeads"],
                    }
                )
            )
            ack = json.loads(await websocket.recv())
            if not isinstance(ack, dict) or "error" in ack:
                raise RuntimeError(f"eth_subscribe newHeads failed: {ack!r}")
            self.subscription_id = ack.get("result")
            logger.info("subscribed to newHeads id=%s", self.subscription_id)

            while not stop_event.is_set():
                try:
                    message = await asyncio.wait_for(websocket.recv(), timeout=self._recv_timeout)
                except asyncio.TimeoutError:
                    continue
                except ConnectionClosed as exc:
                    self._on_error(exc)
                    logger.warning("newHeads subscription closed; feed ended")
                    return

                try:
                    header = parse_new_head(message)
                except (ValueError, KeyError, TypeError, AttributeError) as exc:
                    self._on_error(exc)
                    continue

                await self._channel.publish(header)
