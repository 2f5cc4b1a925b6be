# src/flash_arb/arbitrage/__init__.py
from __future__ import annotations

"""
Kyber/Uniswap ETH-DAI flash-loan arbitrage.

Public API:
- OpportunityEvaluator / ArbitrageOpportunity / select_opportunity
- BotConfig / ExecutionMode / run_arbitrage_bot
"""

from .bot import process_block, run_arbitrage_bot
from .config import BotConfig, ConfigError, ExecutionMode
from .evaluator import ArbitrageOpportunity, OpportunityEvaluator, RoundTrip, select_opportunity
from .gas import GasEstimate
from .quotes import Direction, OrderSide, Quote, QuoteError

__all__ = [
    "ArbitrageOpportunity",
    "BotConfig",
    "ConfigError",
    "Direction",
    "ExecutionMode",
    "GasEstimate",
    "OpportunityEvaluator",
    "OrderSide",
    "Quote",
    "QuoteError",
    "RoundTrip",
    "process_block",
    "run_arbitrage_bot",
    "select_opportunity",
]
