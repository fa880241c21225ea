"""
quorumvault TOML Configuration Loader

Loads every section of quorumvault.toml with environment variable overrides
(dataclass + from_dict + apply_env + from_file).

Environment variable mapping:
    [network] rpc_url       → QUORUMVAULT_RPC_URL
    [network] chain_id      → QUORUMVAULT_CHAIN_ID
    [contracts] controller  → QUORUMVAULT_CONTROLLER
    [contracts] vault       → QUORUMVAULT_VAULT
    [ledger] window         → QUORUMVAULT_LEDGER_WINDOW
    [annotations] path      → QUORUMVAULT_ANNOTATIONS_PATH
    [writes] account        → QUORUMVAULT_ACCOUNT
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    import tomli  # type: ignore[no-redef]

from ..addresses import checksum, is_valid_address
from ..constants import (
    COUNTDOWN_TICK_SECONDS,
    DEFAULT_ANNOTATIONS_PATH,
    DEFAULT_CHAIN_ID,
    DEFAULT_CONTROLLER_ADDRESS,
    DEFAULT_RPC_URL,
    DEFAULT_TOKENS,
    DEFAULT_VAULT_ADDRESS,
    LEDGER_WINDOW,
    MAX_LEDGER_WINDOW,
    NATIVE_DECIMALS,
    NATIVE_SYMBOL,
    WRITE_POLL_INTERVAL,
    WRITE_SETTLE_TIMEOUT,
)
from ..decoding import ContractDirectory
from ..exceptions import ConfigurationError
from ..logger import get_logger
from ..networks import EXPLORERS, get_network_name
from ..tokens.registry import TokenInfo, TokenRegistry, TokenRegistryError

logger = get_logger(__name__)


def _int_env(name: str) -> Optional[int]:
    v = os.environ.get(name)
    if not v:
        return None
    try:
        return int(v, 0)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {v!r}") from None


def _address(value: str, where: str) -> str:
    if not is_valid_address(value):
        raise ConfigurationError(f"{where} is not a valid address: {value!r}")
    return checksum(value)


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass
class NetworkConfig:
    """[network] section."""
    chain_id: int = DEFAULT_CHAIN_ID
    name: str = ""
    rpc_url: str = DEFAULT_RPC_URL
    native_symbol: str = NATIVE_SYMBOL
    native_decimals: int = NATIVE_DECIMALS
    explorer_url: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NetworkConfig":
        return cls(
            chain_id=data.get("chain_id", DEFAULT_CHAIN_ID),
            name=data.get("name", ""),
            rpc_url=data.get("rpc_url", DEFAULT_RPC_URL),
            native_symbol=data.get("native_symbol", NATIVE_SYMBOL),
            native_decimals=data.get("native_decimals", NATIVE_DECIMALS),
            explorer_url=data.get("explorer_url", ""),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("QUORUMVAULT_RPC_URL"):
            self.rpc_url = v
        if (v := _int_env("QUORUMVAULT_CHAIN_ID")) is not None:
            self.chain_id = v

    @property
    def display_name(self) -> str:
        return self.name or get_network_name(self.chain_id)

    @property
    def explorer(self) -> Optional[str]:
        return self.explorer_url or EXPLORERS.get(self.chain_id)

    def validate(self) -> None:
        if self.chain_id < 1:
            raise ConfigurationError("chain_id must be >= 1")
        if not self.rpc_url.startswith(("http://", "https://")):
            raise ConfigurationError(f"rpc_url must be an http(s) URL, got {self.rpc_url!r}")
        if not 0 <= self.native_decimals <= 77:
            raise ConfigurationError(f"native_decimals must be 0-77, got {self.native_decimals}")


@dataclass
class ContractsConfig:
    """[contracts] section."""
    controller: str = DEFAULT_CONTROLLER_ADDRESS
    vault: str = DEFAULT_VAULT_ADDRESS

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContractsConfig":
        return cls(
            controller=data.get("controller", DEFAULT_CONTROLLER_ADDRESS),
            vault=data.get("vault", DEFAULT_VAULT_ADDRESS),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("QUORUMVAULT_CONTROLLER"):
            self.controller = v
        if v := os.environ.get("QUORUMVAULT_VAULT"):
            self.vault = v

    def validate(self) -> None:
        self.controller = _address(self.controller, "contracts.controller")
        self.vault = _address(self.vault, "contracts.vault")

    def directory(self) -> ContractDirectory:
        return ContractDirectory(controller=self.controller, vault=self.vault)


@dataclass
class LedgerConfig:
    """[ledger] section."""
    window: int = LEDGER_WINDOW

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LedgerConfig":
        return cls(window=data.get("window", LEDGER_WINDOW))

    def apply_env(self) -> None:
        if (v := _int_env("QUORUMVAULT_LEDGER_WINDOW")) is not None:
            self.window = v

    def validate(self) -> None:
        if not 1 <= self.window <= MAX_LEDGER_WINDOW:
            raise ConfigurationError(f"ledger.window must be 1-{MAX_LEDGER_WINDOW}, got {self.window}")


@dataclass
class AnnotationsConfig:
    """[annotations] section."""
    path: str = DEFAULT_ANNOTATIONS_PATH

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnnotationsConfig":
        return cls(path=data.get("path", DEFAULT_ANNOTATIONS_PATH))

    def apply_env(self) -> None:
        if v := os.environ.get("QUORUMVAULT_ANNOTATIONS_PATH"):
            self.path = v

    @property
    def resolved_path(self) -> Path:
        return Path(self.path).expanduser()


@dataclass
class CountdownConfig:
    """[countdown] section."""
    tick_interval: float = COUNTDOWN_TICK_SECONDS

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CountdownConfig":
        return cls(tick_interval=float(data.get("tick_interval", COUNTDOWN_TICK_SECONDS)))

    def validate(self) -> None:
        if self.tick_interval <= 0:
            raise ConfigurationError("countdown.tick_interval must be positive")


@dataclass
class WritesConfig:
    """[writes] section. ``account`` must be unlocked on the node."""
    account: str = ""
    poll_interval: float = WRITE_POLL_INTERVAL
    settle_timeout: float = WRITE_SETTLE_TIMEOUT

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WritesConfig":
        return cls(
            account=data.get("account", ""),
            poll_interval=float(data.get("poll_interval", WRITE_POLL_INTERVAL)),
            settle_timeout=float(data.get("settle_timeout", WRITE_SETTLE_TIMEOUT)),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("QUORUMVAULT_ACCOUNT"):
            self.account = v

    def validate(self) -> None:
        if self.account:
            self.account = _address(self.account, "writes.account")
        if self.poll_interval <= 0:
            raise ConfigurationError("writes.poll_interval must be positive")
        if self.settle_timeout <= 0:
            raise ConfigurationError("writes.settle_timeout must be positive")


# -----------------------------------------------------------------------
# Top-level config
# -----------------------------------------------------------------------

@dataclass
class QuorumVaultConfig:
    """
    Unified client configuration.

    Loads every section of quorumvault.toml and applies environment
    variable overrides.
    """
    network: NetworkConfig = field(default_factory=NetworkConfig)
    contracts: ContractsConfig = field(default_factory=ContractsConfig)
    tokens: List[Dict[str, Any]] = field(default_factory=lambda: [dict(t) for t in DEFAULT_TOKENS])
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    annotations: AnnotationsConfig = field(default_factory=AnnotationsConfig)
    countdown: CountdownConfig = field(default_factory=CountdownConfig)
    writes: WritesConfig = field(default_factory=WritesConfig)

    # --- factories --------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QuorumVaultConfig":
        """Create config from a parsed TOML dict."""
        tokens = data.get("tokens")
        if tokens is not None and not isinstance(tokens, list):
            raise ConfigurationError("[[tokens]] must be an array of tables")
        return cls(
            network=NetworkConfig.from_dict(data.get("network", {})),
            contracts=ContractsConfig.from_dict(data.get("contracts", {})),
            tokens=[dict(t) for t in (tokens if tokens is not None else DEFAULT_TOKENS)],
            ledger=LedgerConfig.from_dict(data.get("ledger", {})),
            annotations=AnnotationsConfig.from_dict(data.get("annotations", {})),
            countdown=CountdownConfig.from_dict(data.get("countdown", {})),
            writes=WritesConfig.from_dict(data.get("writes", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "QuorumVaultConfig":
        """
        Load configuration from a TOML file.

        A missing file yields the defaults plus environment overrides.

        Raises:
            ConfigurationError: unparseable TOML or invalid values
        """
        path = Path(config_path).expanduser()
        if not path.exists():
            logger.warning(f"Config file not found: {config_path}, using defaults")
            cfg = cls()
        else:
            try:
                with open(path, "rb") as f:
                    raw = tomli.load(f)
            except tomli.TOMLDecodeError as e:
                raise ConfigurationError(f"Invalid TOML in {config_path}: {e}") from e
            cfg = cls.from_dict(raw)
        cfg.apply_env()
        cfg.validate()
        return cfg

    # --- env overrides ----------------------------------------------------

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.network.apply_env()
        self.contracts.apply_env()
        self.ledger.apply_env()
        self.annotations.apply_env()
        self.writes.apply_env()

    # --- validation -------------------------------------------------------

    def validate(self) -> bool:
        """
        Validate all sections, normalising addresses to checksum form.

        Raises:
            ConfigurationError: on invalid config
        """
        self.network.validate()
        self.contracts.validate()
        self.ledger.validate()
        self.countdown.validate()
        self.writes.validate()
        self.token_registry()
        return True

    # --- derived objects --------------------------------------------------

    def token_registry(self) -> TokenRegistry:
        try:
            return TokenRegistry(
                (TokenInfo.from_dict(t) for t in self.tokens),
                native_symbol=self.network.native_symbol,
                native_decimals=self.network.native_decimals,
            )
        except (TokenRegistryError, KeyError, TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid [[tokens]] entry: {e}") from e

    # --- serialisation ----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics, NOT for re-creating TOML)."""
        return {
            "network": {
                "chain_id": self.network.chain_id,
                "name": self.network.display_name,
                "rpc_url": self.network.rpc_url,
                "native_symbol": self.network.native_symbol,
                "native_decimals": self.network.native_decimals,
                "explorer_url": self.network.explorer,
            },
            "contracts": {
                "controller": self.contracts.controller,
                "vault": self.contracts.vault,
            },
            "tokens": [dict(t) for t in self.tokens],
            "ledger": {"window": self.ledger.window},
            "annotations": {"path": self.annotations.path},
            "countdown": {"tick_interval": self.countdown.tick_interval},
            "writes": {
                "account": self.writes.account,
                "poll_interval": self.writes.poll_interval,
                "settle_timeout": self.writes.settle_timeout,
            },
        }


# -----------------------------------------------------------------------
# Convenience function
# -----------------------------------------------------------------------

def load_config(path: Optional[str] = None) -> QuorumVaultConfig:
    """
    Load client configuration.

    Resolution order:
        1. Explicit *path* argument
        2. QUORUMVAULT_CONFIG env var
        3. ./quorumvault.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("QUORUMVAULT_CONFIG", "quorumvault.toml")

    return QuorumVaultConfig.from_file(path)
