"""EVM chain metadata used for display.

The engine never switches chains itself; it only reports the chain the
wallet is on. This table turns a chain id into a human readable name.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ChainConfig:
    """Display configuration for an EVM chain."""

    chain_id: int
    name: str
    symbol: str
    explorer_url: Optional[str] = None
    is_testnet: bool = False


# ======================
# Chain Configurations
# ======================

CHAINS: dict[int, ChainConfig] = {
    1: ChainConfig(
        chain_id=1,
        name="Ethereum Mainnet",
        symbol="ETH",
        explorer_url="https://etherscan.io",
    ),
    5: ChainConfig(
        chain_id=5,
        name="Goerli Testnet",
        symbol="ETH",
        explorer_url="https://goerli.etherscan.io",
        is_testnet=True,
    ),
    11155111: ChainConfig(
        chain_id=11155111,
        name="Sepolia Testnet",
        symbol="ETH",
        explorer_url="https://sepolia.etherscan.io",
        is_testnet=True,
    ),
    137: ChainConfig(
        chain_id=137,
        name="Polygon Mainnet",
        symbol="MATIC",
        explorer_url="https://polygonscan.com",
    ),
    80001: ChainConfig(
        chain_id=80001,
        name="Polygon Mumbai",
        symbol="MATIC",
        explorer_url="https://mumbai.polygonscan.com",
        is_testnet=True,
    ),
    56: ChainConfig(
        chain_id=56,
        name="BSC Mainnet",
        symbol="BNB",
        explorer_url="https://bscscan.com",
    ),
    97: ChainConfig(
        chain_id=97,
        name="BSC Testnet",
        symbol="BNB",
        explorer_url="https://testnet.bscscan.com",
        is_testnet=True,
    ),
}


# ======================
# Helper Functions
# ======================

def get_chain(chain_id: Optional[int]) -> Optional[ChainConfig]:
    """Get chain configuration by id."""
    return CHAINS.get(chain_id)


def get_all_chains() -> list[ChainConfig]:
    """Get all chain configurations."""
    return list(CHAINS.values())


def network_name(chain_id: Optional[int]) -> str:
    """Get the display name for a chain id.

    Unknown ids render as ``"Chain ID: {id}"``.
    """
    if chain_id is None:
        return "Not connected"
    chain = get_chain(chain_id)
    return chain.name if chain else f"Chain ID: {chain_id}"


def explorer_tx_url(chain_id: Optional[int], tx_hash: str) -> Optional[str]:
    """Get a block explorer link for a transaction, if the chain has one."""
    chain = get_chain(chain_id)
    if not chain or not chain.explorer_url:
        return None
    return f"{chain.explorer_url}/tx/{tx_hash}"
