# src/flash_arb/arbitrage/addresses.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

# Kyber represents native ETH with this pseudo token address.
KYBER_ETH_ADDRESS = "0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE"


@dataclass(frozen=True)
class AddressBook:
    kyber_network_proxy: str
    uniswap_router: str
    uniswap_dai_weth_pair: str
    dydx_solo: str
    weth: str
    dai: str


MAINNET = AddressBook(
    kyber_network_proxy="0x818E6FECD516Ecc3849DAf6845e3EC868087B755",
    uniswap_router="0x7a250d5630B4cF539739dF2C5dAcb4c659F2488D",
    uniswap_dai_weth_pair="0xA478c2975Ab1Ea89e8196811F51A7B7Ade33eB11",
    dydx_solo="0x1E0447b19BB6EcFdAe1e4AE1694b0C3659614e4e",
    weth="0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
    dai="0x6B175474E89094C44Da98b954EedeAC495271d0F",
)

ADDRESS_BOOKS: Dict[str, AddressBook] = {
    "mainnet": MAINNET,
}


def resolve_addresses(network: str) -> AddressBook:
    key = network.strip().lower()
    if key not in ADDRESS_BOOKS:
        raise ValueError(f"Unknown network={network}. known={sorted(ADDRESS_BOOKS)}")
    return ADDRESS_BOOKS[key]
