"""
Supported network descriptors.

Each entry carries everything the session needs to talk to one chain:
RPC, bundler, paymaster and index endpoints plus the account factory and
EntryPoint contracts.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional


ENTRYPOINT_V07_ADDRESS = "0x0000000071727De22E5E9d8BAf0edAc6f37da032"
JIFFYSCAN_API_URL = "https://api.jiffyscan.xyz/v0"
JIFFYSCAN_UI_URL = "https://jiffyscan.xyz"


class UnknownNetworkError(KeyError):
    """Requested network is not in the table."""
    pass


@dataclass(frozen=True)
class NetworkConfig:
    """Static configuration for a supported chain."""
    slug: str  # network id understood by the index
    chain_id: int
    name: str
    native_symbol: str
    rpc_url: str
    explorer_url: str
    bundler_url: str
    paymaster_url: str
    factory_address: str
    entry_point: str = ENTRYPOINT_V07_ADDRESS
    index_api_url: str = JIFFYSCAN_API_URL
    index_ui_url: str = JIFFYSCAN_UI_URL
    native_decimals: int = 18

    # CREATE2 inputs of the account factory; needed for local address derivation
    account_implementation: Optional[str] = None
    proxy_creation_code: Optional[str] = None

    def transaction_url(self, tx_hash: str) -> str:
        return f"{self.explorer_url.rstrip('/')}/tx/{tx_hash}"

    def user_operation_url(self, user_op_hash: str) -> str:
        return f"{self.index_ui_url.rstrip('/')}/userOpHash/{user_op_hash}?network={self.slug}"


VANAR_MAINNET = NetworkConfig(
    slug="vanar-mainnet",
    chain_id=2040,
    name="Vanar Mainnet",
    native_symbol="VANRY",
    rpc_url="https://rpc.vanarchain.com/",
    explorer_url="https://explorer.vanarchain.com",
    bundler_url="https://vanar.jiffyscan.xyz",
    paymaster_url="https://vanar.jiffyscan.xyz",
    factory_address="0xd02a5f77c53a3520b92677efcfeda69ac123ebce",
)

VANAR_TESTNET = NetworkConfig(
    slug="vanar-testnet",
    chain_id=78600,
    name="Vanar Vanguard Testnet",
    native_symbol="VANRY",
    rpc_url="https://rpca-vanguard.vanarchain.com/",
    explorer_url="https://explorer-vanguard.vanarchain.com",
    bundler_url="https://vanar.jiffyscan.xyz",
    paymaster_url="https://vanar.jiffyscan.xyz",
    factory_address="0xd02a5f77c53a3520b92677efcfeda69ac123ebce",
)

NETWORKS: Dict[str, NetworkConfig] = {
    VANAR_MAINNET.slug: VANAR_MAINNET,
    VANAR_TESTNET.slug: VANAR_TESTNET,
}


def list_networks() -> List[NetworkConfig]:
    return list(NETWORKS.values())


def get_network(key: "str | int") -> NetworkConfig:
    """Look up a network by slug or chain id."""
    if isinstance(key, int):
        for network in NETWORKS.values():
            if network.chain_id == key:
                return network
        raise UnknownNetworkError(f"Unsupported chain id: {key}")

    normalized = key.strip().lower().replace("_", "-")
    try:
        return NETWORKS[normalized]
    except KeyError:
        raise UnknownNetworkError(f"Unsupported network: {key}") from None
