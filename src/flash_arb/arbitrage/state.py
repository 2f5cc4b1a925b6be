# src/flash_arb/arbitrage/state.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..chain_client import BlockHeader
from .evaluator import ArbitrageOpportunity
from .executor import SubmissionResult


@dataclass
class BotState:
    """
    In-memory run statistics for the bot.

    Nothing here feeds back into evaluation; it exists for logging and the
    final summary, and is discarded when the process exits.
    """

    started_at: datetime = field(default_factory=datetime.utcnow)

    blocks_seen: int = 0
    blocks_evaluated: int = 0
    blocks_skipped: int = 0

    opportunities_found: int = 0
    best_net_profit: Optional[int] = None
    last_block: Optional[int] = None

    submissions: List[SubmissionResult] = field(default_factory=list)
    failed_submissions: int = 0

    def record_block(self, header: BlockHeader) -> None:
        self.blocks_seen += 1
        self.last_block = header.number

    def record_evaluation(self, opp: Optional[ArbitrageOpportunity]) -> None:
        self.blocks_evaluated += 1
        if opp is None:
            return
        self.opportunities_found += 1
        if self.best_net_profit is None or opp.net_profit > self.best_net_profit:
            self.best_net_profit = opp.net_profit

    def record_skip(self) -> None:
        self.blocks_skipped += 1

    def record_submission(self, result: SubmissionResult) -> None:
        self.submissions.append(result)

    def record_failed_submission(self) -> None:
        self.failed_submissions += 1

    def summary(self, blocks_dropped: int = 0) -> Dict[str, Any]:
        """Convenience helper for the shutdown log line."""
        return {
            "started_at": self.started_at.strftime("%Y-%m-%d %H:%M:%S"),
            "last_block": self.last_block,
            "blocks_seen": self.blocks_seen,
            "blocks_evaluated": self.blocks_evaluated,
            "blocks_skipped": self.blocks_skipped,
            "blocks_dropped": blocks_dropped,
            "opportunities_found": self.opportunities_found,
            "best_net_profit": self.best_net_profit,
            "submitted": len(self.submissions),
            "failed_submissions": self.failed_submissions,
        }
