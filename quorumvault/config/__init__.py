"""
quorumvault Configuration

Loads all sections of quorumvault.toml.
Environment variables override TOML values.
"""

from ..exceptions import ConfigurationError
from .loader import (
    AnnotationsConfig,
    ContractsConfig,
    CountdownConfig,
    LedgerConfig,
    NetworkConfig,
    QuorumVaultConfig,
    WritesConfig,
    load_config,
)

__all__ = [
    "AnnotationsConfig",
    "ConfigurationError",
    "ContractsConfig",
    "CountdownConfig",
    "LedgerConfig",
    "NetworkConfig",
    "QuorumVaultConfig",
    "WritesConfig",
    "load_config",
]
