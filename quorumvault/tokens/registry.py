"""
Known-asset registry.

Resolves the display symbol and decimal count of the native currency and of
each ERC-20 token the vault deals with. Every amount shown to a user is an
`Amount`, which carries the decimals of the asset it was resolved from.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from ..addresses import checksum, is_valid_address, is_zero_address
from ..constants import (
    NATIVE_DECIMALS,
    NATIVE_SYMBOL,
    UNKNOWN_TOKEN_DECIMALS,
    UNKNOWN_TOKEN_SYMBOL,
    ZERO_ADDRESS,
)
from ..formatting import format_units
from ..logger import get_logger

logger = get_logger(__name__)


class TokenRegistryError(ValueError):
    """Raised on invalid token definitions."""


@dataclass(frozen=True)
class TokenInfo:
    """
    A fungible asset.

    Fields:
        name:      Display name
        symbol:    Ticker
        address:   Contract address (zero address for the native currency)
        decimals:  Smallest-unit exponent
        native:    True for the chain's native currency
    """
    name: str
    symbol: str
    address: str
    decimals: int
    native: bool = False

    def __post_init__(self):
        if not self.symbol:
            raise TokenRegistryError("Token symbol cannot be empty")
        if not 0 <= self.decimals <= 77:
            raise TokenRegistryError(f"Decimals must be 0-77, got {self.decimals}")
        if not is_valid_address(self.address):
            raise TokenRegistryError(f"Invalid token address: {self.address!r}")

    def amount(self, raw: int) -> "Amount":
        return Amount(raw=int(raw), decimals=self.decimals, symbol=self.symbol)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "symbol": self.symbol,
            "address": self.address,
            "decimals": self.decimals,
            "native": self.native,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenInfo":
        address = data.get("address", "")
        if not is_valid_address(address):
            raise TokenRegistryError(f"Invalid token address: {address!r}")
        return cls(
            name=data.get("name") or data["symbol"],
            symbol=data["symbol"],
            address=checksum(address),
            decimals=int(data.get("decimals", 18)),
        )


@dataclass(frozen=True)
class Amount:
    """A smallest-unit integer bound to the asset it is denominated in."""
    raw: int
    decimals: int
    symbol: str

    @property
    def formatted(self) -> str:
        return format_units(self.raw, self.decimals)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "raw": str(self.raw),
            "decimals": self.decimals,
            "symbol": self.symbol,
            "formatted": self.formatted,
        }

    def __str__(self) -> str:
        return f"{self.formatted} {self.symbol}"


class TokenRegistry:
    """
    Lookup table of known assets keyed by lower-cased contract address.

    The native currency is always present under the zero address.
    """

    def __init__(
        self,
        tokens: Iterable[TokenInfo] = (),
        native_symbol: str = NATIVE_SYMBOL,
        native_decimals: int = NATIVE_DECIMALS,
        native_name: str = "Ether",
    ):
        self.native = TokenInfo(
            name=native_name,
            symbol=native_symbol,
            address=ZERO_ADDRESS,
            decimals=native_decimals,
            native=True,
        )
        self._tokens: Dict[str, TokenInfo] = {}
        for token in tokens:
            self.register(token)

    # ── Registration ──────────────────────────────────────────────────

    def register(self, token: TokenInfo) -> TokenInfo:
        if is_zero_address(token.address):
            raise TokenRegistryError("The zero address is reserved for the native currency")
        key = token.address.lower()
        if key in self._tokens:
            logger.debug(f"Token {token.symbol} replaces {self._tokens[key].symbol} at {token.address}")
        self._tokens[key] = token
        return token

    # ── Lookup ────────────────────────────────────────────────────────

    def get(self, address: Optional[str]) -> Optional[TokenInfo]:
        if is_zero_address(address):
            return self.native
        if not is_valid_address(address):
            return None
        return self._tokens.get(address.lower())

    def resolve(self, address: Optional[str]) -> TokenInfo:
        """
        Return the registered token, or a generic placeholder carrying the
        fallback symbol and decimals when the address is unknown.
        """
        token = self.get(address)
        if token is not None:
            return token
        return self.placeholder(address)

    def resolve_token(self, address: Optional[str]) -> TokenInfo:
        """
        Like `resolve`, for an address that names an ERC-20. A missing or
        zero address gets the placeholder rather than the native currency.
        """
        if is_zero_address(address):
            return self.placeholder()
        return self.resolve(address)

    def placeholder(self, address: Optional[str] = None) -> TokenInfo:
        """Generic token carrying the fallback symbol and decimals, for display only."""
        fallback_address = address if is_valid_address(address) else ZERO_ADDRESS
        return TokenInfo(
            name="Unknown token",
            symbol=UNKNOWN_TOKEN_SYMBOL,
            address=fallback_address,
            decimals=UNKNOWN_TOKEN_DECIMALS,
        )

    def is_known(self, address: Optional[str]) -> bool:
        return self.get(address) is not None

    def all_tokens(self) -> List[TokenInfo]:
        return [self.native, *self._tokens.values()]

    @property
    def count(self) -> int:
        return len(self._tokens)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "native": self.native.to_dict(),
            "tokens": [t.to_dict() for t in self._tokens.values()],
        }

    def __repr__(self) -> str:
        return f"<TokenRegistry native={self.native.symbol} tokens={len(self._tokens)}>"
