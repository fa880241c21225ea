"""
Known assets

Provides:
  - TokenInfo      : native currency or ERC-20 token metadata
  - Amount         : smallest-unit amount bound to its asset
  - TokenRegistry  : address -> TokenInfo lookup with fallbacks
"""

from .registry import (
    Amount,
    TokenInfo,
    TokenRegistry,
    TokenRegistryError,
)

__all__ = [
    "Amount",
    "TokenInfo",
    "TokenRegistry",
    "TokenRegistryError",
]
