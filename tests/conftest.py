import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

# Ensure "src" is on sys.path so that "flash_arb" can be imported without install
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import pytest

from flash_arb.arbitrage.dex.base import PriceSource
from flash_arb.arbitrage.quotes import OrderSide

WEI = 10**18


class FakeSource(PriceSource):
    """PriceSource whose output is computed by a plain function (side, amount) -> amount."""

    def __init__(self, name: str, fn: Callable[[OrderSide, int], int]) -> None:
        super().__init__(name)
        self._fn = fn
        self.calls: List[Tuple[OrderSide, int, Any]] = []

    def _quote_sync(self, side, amount_in, block_identifier):
        self.calls.append((side, amount_in, block_identifier))
        return self._fn(side, amount_in)


class FakeGasClient:
    def __init__(self, gas_price: int) -> None:
        self._gas_price = gas_price

    async def gas_price(self) -> int:
        return self._gas_price


class FakeCall:
    def __init__(self, fn: Callable[..., Any]) -> None:
        self._fn = fn

    def call(self, block_identifier: Any = "latest", **_: Any) -> Any:
        return self._fn(block_identifier)


class FakeFunctions:
    """Attribute access returns contract functions built from a {name: callable} map."""

    def __init__(self, impls: Dict[str, Callable[..., Any]]) -> None:
        self._impls = impls

    def __getattr__(self, name: str) -> Any:
        try:
            impl = self._impls[name]
        except KeyError:
            raise AttributeError(name)
        return impl


class FakeContract:
    def __init__(self, address: str, impls: Dict[str, Callable[..., Any]]) -> None:
        self.address = address
        self.functions = FakeFunctions(impls)


class FakeEth:
    def __init__(self) -> None:
        self.contracts: Dict[str, FakeContract] = {}
        self.chain_id = 1
        self.gas_price = 1_000_000_000
        self.block_number = 100
        self.nonce = 7
        self.sent_raw: List[bytes] = []
        self.receipt: Optional[Dict[str, Any]] = {"status": 1, "gasUsed": 150_000, "effectiveGasPrice": 1_000_000_000}
        self.receipt_requests: List[Any] = []

    def contract(self, address: str, abi: Any) -> FakeContract:
        return self.contracts[address]

    def get_block(self, identifier: Any) -> Dict[str, Any]:
        self.block_number += 1
        return {"number": self.block_number, "hash": bytes([self.block_number % 256]) * 32, "timestamp": 1_600_000_000}

    def get_transaction_count(self, address: str, block_identifier: Any = "latest") -> int:
        return self.nonce

    def send_raw_transaction(self, raw: bytes) -> bytes:
        self.sent_raw.append(raw)
        return bytes([0x11]) * 32

    def wait_for_transaction_receipt(self, tx_hash: Any, timeout: float = 120) -> Dict[str, Any]:
        self.receipt_requests.append(tx_hash)
        return self.receipt


class FakeWeb3:
    def __init__(self) -> None:
        self.eth = FakeEth()
        self.connected = True

    def is_connected(self) -> bool:
        return self.connected


@pytest.fixture
def fake_web3() -> FakeWeb3:
    return FakeWeb3()
