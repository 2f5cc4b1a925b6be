"""
FlashloanExecutor: turns an ArbitrageOpportunity into a signed
initiateFlashloan transaction on the deployed Flashloan contract.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, TypeVar

from eth_account import Account
from web3 import Web3

from .dex.base import load_abi
from .evaluator import ArbitrageOpportunity
from .quotes import Direction

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class SubmissionResult:
    tx_hash: str
    direction: Direction
    block_number: Optional[int]
    amount: int
    success: bool
    status: Optional[int] = None
    gas_used: Optional[int] = None
    gas_cost_wei: Optional[int] = None
    message: str = ""


class FlashloanExecutor:
    """
    Signs locally with eth_account and sends via eth_sendRawTransaction.

    The contract borrows `amount` of `token` from the dYdX Solo margin,
    swaps in the requested direction, repays and sends the rest to its
    beneficiary.
    """

    def __init__(
        self,
        web3: Web3,
        contract_address: str,
        solo_address: str,
        token_address: str,
        private_key: str,
        wait_for_receipt: bool = True,
        receipt_timeout: float = 120.0,
        gas_headroom_pct: int = 20,
    ) -> None:
        self._web3 = web3
        self._contract = web3.eth.contract(
            address=Web3.to_checksum_address(contract_address),
            abi=load_abi("Flashloan"),
        )
        self._solo = Web3.to_checksum_address(solo_address)
        self._token = Web3.to_checksum_address(token_address)
        self._account = Account.from_key(private_key)
        self._wait_for_receipt = wait_for_receipt
        self._receipt_timeout = receipt_timeout
        self._gas_headroom_pct = gas_headroom_pct

    @property
    def address(self) -> str:
        return self._account.address

    async def _run_sync(self, fn: Callable[..., T], *args: Any) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, fn, *args)

    def _call(self, direction: Direction, amount: int):
        return self._contract.functions.initiateFlashloan(
            self._solo,
            self._token,
            int(amount),
            int(direction),
        )

    def _estimate_gas_sync(self, direction: Direction, amount: int) -> int:
        return int(self._call(direction, amount).estimate_gas({"from": self.address}))

    async def estimate_gas(self, direction: Direction, amount: int) -> int:
        return await self._run_sync(self._estimate_gas_sync, direction, amount)

    def gas_limit(self, gas_units: int) -> int:
        """Gas limit sent with the tx: the estimate plus gas_headroom_pct percent."""
        return int(gas_units) * (100 + self._gas_headroom_pct) // 100

    def _get_nonce_pending(self) -> int:
        try:
            return int(self._web3.eth.get_transaction_count(self.address, "pending"))
        except Exception:
            return int(self._web3.eth.get_transaction_count(self.address))

    def _submit_sync(self, opp: ArbitrageOpportunity) -> SubmissionResult:
        if opp.gas is None:
            raise ValueError(f"opportunity for block={opp.block_number} has no gas estimate")

        web3 = self._web3
        tx: Dict[str, Any] = self._call(opp.direction, opp.amount_in).build_transaction(
            {
                "from": self.address,
                "gas": self.gas_limit(opp.gas.gas_units),
                "gasPrice": int(opp.gas.gas_price_wei),
                "nonce": self._get_nonce_pending(),
                "chainId": int(web3.eth.chain_id),
            }
        )

        signed = self._account.sign_transaction(tx)
        raw_tx = getattr(signed, "raw_transaction", None) or getattr(signed, "rawTransaction", None)
        tx_hash = web3.eth.send_raw_transaction(raw_tx)
        tx_hash_hex = Web3.to_hex(tx_hash)

        result = SubmissionResult(
            tx_hash=tx_hash_hex,
            direction=opp.direction,
            block_number=opp.block_number,
            amount=opp.amount_in,
            success=True,
            message="submitted",
        )
        if not self._wait_for_receipt:
            return result

        receipt = web3.eth.wait_for_transaction_receipt(tx_hash, timeout=self._receipt_timeout)
        status = int(receipt.get("status", 0))
        gas_used = int(receipt.get("gasUsed", 0))
        gas_price = int(receipt.get("effectiveGasPrice", 0) or opp.gas.gas_price_wei)

        result.status = status
        result.gas_used = gas_used
        result.gas_cost_wei = gas_used * gas_price
        if status != 1:
            raise RuntimeError(f"tx reverted: hash={tx_hash_hex}")
        result.message = "mined"
        return result

    async def submit(self, opp: ArbitrageOpportunity) -> SubmissionResult:
        logger.info(
            "[EXECUTOR] Sending flash loan: block=%s direction=%s amount=%s gas=%s gas_price=%s",
            opp.block_number,
            opp.direction.name,
            opp.amount_in,
            opp.gas.gas_units if opp.gas else None,
            opp.gas.gas_price_wei if opp.gas else None,
        )
        result = await self._run_sync(self._submit_sync, opp)
        logger.info(
            "[EXECUTOR] Done: tx=%s status=%s gas_used=%s",
            result.tx_hash,
            result.status,
            result.gas_used,
        )
        return result
