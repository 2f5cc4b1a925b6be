"""
Thin asyncio wrapper around a synchronous web3.py connection.

Every RPC call runs in the default thread pool executor so block handling,
price refresh and head polling can share one event loop without blocking it.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar

from web3 import Web3

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class BlockHeader:
    """Minimal view of a chain head notification."""

    number: int
    hash: Optional[str] = None
    timestamp: Optional[int] = None


@dataclass
class ChainConfig:
    """
    Connection settings for the node.

    - rpc_url: HTTP(S) JSON-RPC endpoint used for all reads and submissions
    - ws_url: optional websocket endpoint for eth_subscribe newHeads
    - poa: inject the PoA extraData middleware (geth --dev, BSC, Polygon forks)
    - request_timeout: HTTP provider timeout in seconds
    """

    rpc_url: str
    ws_url: Optional[str] = None
    poa: bool = False
    request_timeout: float = 10.0


def _apply_poa_middleware(w3: Web3) -> None:
    """
    Inject PoA middleware for chains whose headers carry a long extraData field.

    web3.py v6: geth_poa_middleware
    web3.py v7+: ExtraDataToPOAMiddleware
    """
    try:
        from web3.middleware import geth_poa_middleware  # type: ignore[attr-defined]

        w3.middleware_onion.inject(geth_poa_middleware, layer=0)
        return
    except ImportError:
        pass

    try:
        from web3.middleware import ExtraDataToPOAMiddleware  # type: ignore[attr-defined]

        w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
        return
    except ImportError:
        logger.warning("PoA middleware not available in this web3 version; continuing without it")


def make_web3(config: ChainConfig) -> Web3:
    w3 = Web3(
        Web3.HTTPProvider(
            config.rpc_url,
            request_kwargs={"timeout": config.request_timeout},
        )
    )
    if config.poa:
        _apply_poa_middleware(w3)
    return w3


class ChainClient:
    """
    Async facade over the node connection.

    Only read helpers the evaluation loop needs live here; contract-specific
    calls are made by the quoters and the executor through `run_sync`.
    """

    def __init__(self, web3: Web3) -> None:
        self.web3 = web3

    @classmethod
    def from_config(cls, config: ChainConfig) -> "ChainClient":
        return cls(make_web3(config))

    async def run_sync(self, fn: Callable[..., T], *args: Any) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, fn, *args)

    async def is_connected(self) -> bool:
        return bool(await self.run_sync(self.web3.is_connected))

    async def chain_id(self) -> int:
        return int(await self.run_sync(lambda: self.web3.eth.chain_id))

    async def block_number(self) -> int:
        return int(await self.run_sync(lambda: self.web3.eth.block_number))

    async def gas_price(self) -> int:
        return int(await self.run_sync(lambda: self.web3.eth.gas_price))

    async def latest_header(self) -> BlockHeader:
        block = await self.run_sync(self.web3.eth.get_block, "latest")
        raw_hash = block.get("hash")
        return BlockHeader(
            number=int(block["number"]),
            hash=Web3.to_hex(raw_hash) if raw_hash is not None else None,
            timestamp=int(block["timestamp"]) if block.get("timestamp") is not None else None,
        )
