from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Mapping, Optional

from dotenv import load_dotenv
from web3 import Web3

from ..blocks import BackpressurePolicy
from ..chain_client import ChainConfig


class ExecutionMode(str, Enum):
    PAPER = "PAPER"
    LIVE = "LIVE"


class ConfigError(ValueError):
    """Raised when the bot configuration is incomplete or inconsistent."""


_TRUE = {"1", "true", "yes", "on"}


@dataclass
class BotConfig:
    """
    Static configuration for the flash-loan arbitrage bot.

    - rpc_url: HTTP(S) node endpoint (reads, gas, submissions)
    - ws_url: optional websocket endpoint; if set, heads come from newHeads
    - mode: PAPER (evaluate and log) / LIVE (also submit flash-loan txs)
    - private_key / flashloan_address: required in LIVE mode
    - amount_eth: trade size in ETH; notional in DAI = amount_eth * recent_eth_price
    - recent_eth_price: DAI per ETH, seeds the shared price until the first refresh
    - gas_units: gas units assumed per flash-loan tx when no estimate is available
    - gas_headroom_pct: extra gas limit (percent) on top of the estimate in LIVE txs
    - min_profit_dai: a direction is selected only if net profit exceeds this
    - poll_interval: seconds between head polls (HTTP feed)
    - price_refresh_interval: seconds between ETH price refreshes
    - backpressure / max_pending_blocks: block channel policy
    - wait_for_receipt: LIVE mode waits for (and checks) the receipt
    - poa: inject PoA middleware into the web3 connection
    - network: key into the address books
    """

    rpc_url: str
    ws_url: Optional[str] = None

    mode: ExecutionMode = ExecutionMode.PAPER
    private_key: Optional[str] = None
    flashloan_address: Optional[str] = None

    amount_eth: Decimal = Decimal("100")
    recent_eth_price: Decimal = Decimal("1825")
    gas_units: int = 200_000
    gas_headroom_pct: int = 20
    min_profit_dai: Decimal = Decimal("0")

    poll_interval: float = 2.0
    price_refresh_interval: float = 15.0

    backpressure: BackpressurePolicy = BackpressurePolicy.DROP
    max_pending_blocks: int = 0

    wait_for_receipt: bool = True
    poa: bool = False
    network: str = "mainnet"

    @property
    def notional_dai_wei(self) -> int:
        return int(Web3.to_wei(self.amount_eth * self.recent_eth_price, "ether"))

    @property
    def recent_eth_price_wei(self) -> int:
        return int(Web3.to_wei(self.recent_eth_price, "ether"))

    @property
    def min_profit_wei(self) -> int:
        return int(Web3.to_wei(self.min_profit_dai, "ether"))

    def chain_config(self) -> ChainConfig:
        return ChainConfig(rpc_url=self.rpc_url, ws_url=self.ws_url, poa=self.poa)

    def validate(self) -> None:
        if not self.rpc_url:
            raise ConfigError("rpc_url is required")
        if self.amount_eth <= 0:
            raise ConfigError(f"amount_eth must be positive, got {self.amount_eth}")
        if self.recent_eth_price <= 0:
            raise ConfigError(f"recent_eth_price must be positive, got {self.recent_eth_price}")
        if self.gas_units <= 0:
            raise ConfigError(f"gas_units must be positive, got {self.gas_units}")
        if self.gas_headroom_pct < 0:
            raise ConfigError(f"gas_headroom_pct must not be negative, got {self.gas_headroom_pct}")
        if self.min_profit_dai < 0:
            raise ConfigError(f"min_profit_dai must not be negative, got {self.min_profit_dai}")
        if self.poll_interval <= 0 or self.price_refresh_interval <= 0:
            raise ConfigError("poll_interval and price_refresh_interval must be positive")
        if self.mode is ExecutionMode.LIVE:
            if not self.private_key:
                raise ConfigError("LIVE mode requires private_key (PRIVATE_KEY)")
            if not self.flashloan_address:
                raise ConfigError("LIVE mode requires flashloan_address (FLASHLOAN_ADDRESS)")
            if not Web3.is_address(self.flashloan_address):
                raise ConfigError(f"invalid flashloan_address: {self.flashloan_address}")

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        dotenv_path: Optional[str] = None,
    ) -> "BotConfig":
        """
        Build a config from environment variables.

        When `env` is None the process environment is used, after loading a
        .env file (python-dotenv; existing variables win).
        """
        if env is None:
            load_dotenv(dotenv_path=dotenv_path)
            env = os.environ

        def _get(name: str, default: Optional[str] = None) -> Optional[str]:
            raw = env.get(name)
            if raw is None or not raw.strip():
                return default
            return raw.strip()

        def _decimal(name: str, default: Decimal) -> Decimal:
            raw = _get(name)
            if raw is None:
                return default
            try:
                return Decimal(raw)
            except InvalidOperation as exc:
                raise ConfigError(f"{name} is not a number: {raw!r}") from exc

        def _number(name: str, default, cast):
            raw = _get(name)
            if raw is None:
                return default
            try:
                return cast(raw)
            except ValueError as exc:
                raise ConfigError(f"{name} is not a number: {raw!r}") from exc

        def _enum(name: str, enum_cls, default):
            raw = _get(name)
            if raw is None:
                return default
            try:
                return enum_cls(raw.upper())
            except ValueError as exc:
                choices = ", ".join(m.value for m in enum_cls)
                raise ConfigError(f"{name} must be one of {choices}, got {raw!r}") from exc

        rpc_url = _get("RPC_URL") or _get("INFURA_URL") or ""

        return cls(
            rpc_url=rpc_url,
            ws_url=_get("WS_URL"),
            mode=_enum("EXECUTION_MODE", ExecutionMode, ExecutionMode.PAPER),
            private_key=_get("PRIVATE_KEY"),
            flashloan_address=_get("FLASHLOAN_ADDRESS"),
            amount_eth=_decimal("AMOUNT_ETH", Decimal("100")),
            recent_eth_price=_decimal("RECENT_ETH_PRICE", Decimal("1825")),
            gas_units=_number("GAS_UNITS", 200_000, int),
            gas_headroom_pct=_number("GAS_HEADROOM_PCT", 20, int),
            min_profit_dai=_decimal("MIN_PROFIT_DAI", Decimal("0")),
            poll_interval=_number("POLL_INTERVAL", 2.0, float),
            price_refresh_interval=_number("PRICE_REFRESH_INTERVAL", 15.0, float),
            backpressure=_enum("BACKPRESSURE", BackpressurePolicy, BackpressurePolicy.DROP),
            max_pending_blocks=_number("MAX_PENDING_BLOCKS", 0, int),
            wait_for_receipt=(_get("WAIT_FOR_RECEIPT", "1") or "1").lower() in _TRUE,
            poa=(_get("POA", "0") or "0").lower() in _TRUE,
            network=(_get("NETWORK", "mainnet") or "mainnet").lower(),
        )
