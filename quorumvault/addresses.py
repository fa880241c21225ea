"""
Account address helpers (EIP-55 checksum form).
"""

from typing import Optional

from eth_utils import is_address, to_checksum_address

from .constants import ZERO_ADDRESS


def is_valid_address(address) -> bool:
    return isinstance(address, str) and is_address(address)


def checksum(address: str) -> str:
    """
    Return the EIP-55 form of *address*.

    Raises:
        ValueError: if *address* is not a 20-byte hex address.
    """
    if not is_valid_address(address):
        raise ValueError(f"Invalid address: {address!r}")
    return to_checksum_address(address)


def same_address(a: Optional[str], b: Optional[str]) -> bool:
    """Case-insensitive comparison; False when either side is missing or invalid."""
    if not a or not b or not is_valid_address(a) or not is_valid_address(b):
        return False
    return a.lower() == b.lower()


def is_zero_address(address: Optional[str]) -> bool:
    return not address or same_address(address, ZERO_ADDRESS)
