from __future__ import annotations

from .base import PriceSource, load_abi
from .kyber import KyberQuoter
from .uniswap_v2 import UniswapV2PairQuoter, get_amount_out

__all__ = [
    "PriceSource",
    "load_abi",
    "KyberQuoter",
    "UniswapV2PairQuoter",
    "get_amount_out",
]
