"""
Supported networks and block-explorer links.
"""

from typing import Dict, List, Optional, Union

SUPPORTED_CHAINS: Dict[int, str] = {
    8453:  "Base",
    84532: "Base Sepolia",
    42161: "Arbitrum One",
    42220: "Celo",
    1135:  "Lisk",
}

EXPLORERS: Dict[int, str] = {
    8453:  "https://basescan.org",
    84532: "https://sepolia.basescan.org",
    42161: "https://arbiscan.io",
    42220: "https://celoscan.io",
    1135:  "https://blockscout.lisk.com",
}


def _chain_id(chain_id: Union[str, int, None]) -> Optional[int]:
    if chain_id is None or chain_id == "":
        return None
    try:
        return int(chain_id, 0) if isinstance(chain_id, str) else int(chain_id)
    except ValueError:
        return None


def is_supported_chain(chain_id: Union[str, int, None]) -> bool:
    """Accepts ints, decimal strings and ``0x``-prefixed hex strings."""
    return _chain_id(chain_id) in SUPPORTED_CHAINS


def get_network_name(chain_id: Union[str, int, None], default: str = "Unknown Network") -> str:
    return SUPPORTED_CHAINS.get(_chain_id(chain_id), default)


def explorer_tx_url(chain_id: int, tx_hash: str, base_url: Optional[str] = None) -> Optional[str]:
    base = base_url or EXPLORERS.get(chain_id)
    if not base:
        return None
    return f"{base.rstrip('/')}/tx/{tx_hash}"


def all_networks() -> List[Dict[str, Union[int, str]]]:
    return [{"chainId": cid, "name": name} for cid, name in SUPPORTED_CHAINS.items()]
