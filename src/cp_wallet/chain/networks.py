"""Built-in EVM networks the toolkit knows by name."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Network:
    """An EVM-compatible blockchain network."""

    name: str
    chain_id: int
    rpc_url: str


NETWORKS: dict[str, Network] = {
    "swan": Network(
        name="swan",
        chain_id=254,
        rpc_url="https://mainnet-rpc.swanchain.org",
    ),
    "proxima": Network(
        name="proxima",
        chain_id=20241133,
        rpc_url="https://rpc-proxima.swanchain.io",
    ),
    "saturn": Network(
        name="saturn",
        chain_id=2024,
        rpc_url="https://saturn-rpc.swanchain.io",
    ),
}
