"""
Network configuration.

Built-in defaults for mainnet and testnet, overridable per call or via
environment variables:

    NEAR_CONNECT_<NETWORK>_RPC_URLS    comma-separated provider list
    NEAR_CONNECT_<NETWORK>_WALLET_URL  popup wallet base URL
    NEAR_CONNECT_RPC_TIMEOUT           starting RPC timeout in seconds

Explicit arguments win over the environment, which wins over defaults.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, replace

DEFAULT_RPC_TIMEOUT = 30.0


@dataclass(frozen=True)
class NetworkConfig:
    """Endpoints for one NEAR network.

    Attributes:
        network_id: "mainnet" or "testnet".
        providers: Ordered RPC endpoint pool.
        wallet_url: Base URL of the popup web wallet.
        helper_url: Account helper service.
        explorer_url: Block explorer.
    """

    network_id: str
    providers: tuple[str, ...]
    wallet_url: str
    helper_url: str
    explorer_url: str

    @property
    def node_url(self) -> str:
        return self.providers[0]


MAINNET = NetworkConfig(
    network_id="mainnet",
    providers=(
        "https://relmn.aurora.dev",
        "https://nearrpc.aurora.dev",
        "https://c1.rpc.fastnear.com",
        "https://c2.rpc.fastnear.com",
    ),
    wallet_url="https://app.mynearwallet.com",
    helper_url="https://helper.mainnet.near.org",
    explorer_url="https://explorer.mainnet.near.org",
)

TESTNET = NetworkConfig(
    network_id="testnet",
    providers=(
        "https://rpc.testnet.fastnear.com",
        "https://rpc.testnet.near.org",
    ),
    wallet_url="https://testnet.mynearwallet.com",
    helper_url="https://helper.testnet.near.org",
    explorer_url="https://explorer.testnet.near.org",
)

DEFAULT_NETWORKS: dict[str, NetworkConfig] = {
    MAINNET.network_id: MAINNET,
    TESTNET.network_id: TESTNET,
}


def _split_urls(value: str) -> tuple[str, ...]:
    return tuple(url.strip() for url in value.split(",") if url.strip())


def load_network_config(
    network_id: str,
    *,
    providers: list[str] | None = None,
    wallet_url: str | None = None,
    env: Mapping[str, str] | None = None,
) -> NetworkConfig:
    """Resolve the configuration for ``network_id``.

    Raises:
        ValueError: If the network is unknown.
    """
    base = DEFAULT_NETWORKS.get(network_id)
    if base is None:
        raise ValueError(f"Unknown NEAR network: {network_id!r}")
    env = os.environ if env is None else env
    prefix = f"NEAR_CONNECT_{network_id.upper()}"

    env_providers = _split_urls(env.get(f"{prefix}_RPC_URLS", ""))
    resolved_providers = tuple(providers or ()) or env_providers or base.providers
    resolved_wallet = wallet_url or env.get(f"{prefix}_WALLET_URL") or base.wallet_url

    return replace(base, providers=resolved_providers, wallet_url=resolved_wallet.rstrip("/"))


def rpc_timeout_from_env(env: Mapping[str, str] | None = None) -> float:
    """Starting RPC timeout from NEAR_CONNECT_RPC_TIMEOUT, else the default."""
    env = os.environ if env is None else env
    raw = env.get("NEAR_CONNECT_RPC_TIMEOUT")
    if not raw:
        return DEFAULT_RPC_TIMEOUT
    try:
        value = float(raw)
    except ValueError as e:
        raise ValueError(f"NEAR_CONNECT_RPC_TIMEOUT must be a number, got: {raw!r}") from e
    if value <= 0:
        raise ValueError(f"NEAR_CONNECT_RPC_TIMEOUT must be positive, got: {value}")
    return value
