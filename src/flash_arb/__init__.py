from __future__ import annotations

"""
Root package for the flash_arb library.

Re-exports the chain client and block feed types for convenience.
"""

from .blocks import BackpressurePolicy, BlockChannel, NewHeadsSubscription, PollingHeadSource
from .chain_client import BlockHeader, ChainClient, ChainConfig

__all__ = [
    "BackpressurePolicy",
    "BlockChannel",
    "BlockHeader",
    "ChainClient",
    "ChainConfig",
    "NewHeadsSubscription",
    "PollingHeadSource",
]
