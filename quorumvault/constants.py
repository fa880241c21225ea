"""
quorumvault Constants

Deployment defaults, protocol limits and timings shared across the package,
plus the logging settings read from `.env`.
"""
from typing import Optional

from dotenv import dotenv_values


# ==================================================================================
# .ENV SETTINGS
# ==================================================================================
# Read once at import; only the logging keys are taken from `.env`.
_env = dotenv_values(".env")


def env_flag(value) -> Optional[bool]:
    """'true' / 'false' in any case and padding as a bool, anything else None."""
    if isinstance(value, bool):
        return value
    if not isinstance(value, str):
        return None
    return {"true": True, "false": False}.get(value.strip().casefold())


class Setting(str):
    """
    A `.env` value that remembers its built-in default. Truthiness follows
    the flag meaning for "True"/"False" strings.
    """

    def __new__(cls, key: str, default: str):
        raw = _env.get(key)
        obj = super().__new__(cls, default if raw is None else raw)
        obj.key = key
        obj._default = default
        return obj

    def default(self) -> str:
        return self._default

    def __bool__(self) -> bool:
        flag = env_flag(str(self))
        return bool(str(self)) if flag is None else flag


LOG_LEVEL = Setting("LOG_LEVEL", "INFO")
LOG_FORMAT = Setting("LOG_FORMAT", "%(asctime)s - %(levelname)s - %(name)s - %(message)s")
LOG_DATE_FORMAT = Setting("LOG_DATE_FORMAT", "%Y-%m-%dT%H:%M:%S")
LOG_CONSOLE_HIGHLIGHTING = Setting("LOG_CONSOLE_HIGHLIGHTING", "True")
LOG_FILE_OUTPUT = Setting("LOG_FILE_OUTPUT", "False")

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5


# ==================================================================================
# DEFAULT DEPLOYMENT (Base Sepolia)
# ==================================================================================
DEFAULT_CHAIN_ID = 84532
DEFAULT_RPC_URL = "https://sepolia.base.org"
DEFAULT_CONTROLLER_ADDRESS = "0x8704324b8BFbf8d9d9D969F700A0cb06B7B503Aa"
DEFAULT_VAULT_ADDRESS = "0x0584aa5138E12275212C390E7B398fDb4B1c94B9"

ZERO_ADDRESS = "0x" + "0" * 40

NATIVE_SYMBOL = "ETH"
NATIVE_DECIMALS = 18

# Fallback display for tokens missing from the registry
UNKNOWN_TOKEN_SYMBOL = "Tokens"
UNKNOWN_TOKEN_DECIMALS = 18

DEFAULT_TOKENS = (
    {
        'name':     "USD Coin (Testnet)",
        'symbol':   "USDC",
        'address':  "0x036CbD53842c5426634e7929541eC2318f3dCF7e",
        'decimals': 6,
    },
)


# ==================================================================================
# GOVERNANCE LIMITS
# ==================================================================================
MAX_PERCENTAGE = 100
MAX_OWNER_NAME_LENGTH = 64


# ==================================================================================
# LEDGER CACHE
# ==================================================================================
# Number of most recent proposals fetched per refresh
LEDGER_WINDOW = 50
MAX_LEDGER_WINDOW = 500


# ==================================================================================
# COUNTDOWN
# ==================================================================================
COUNTDOWN_TICK_SECONDS = 1.0

# Urgency thresholds (seconds remaining)
COUNTDOWN_CALM_ABOVE = 24 * 60 * 60
COUNTDOWN_CAUTION_ABOVE = 60 * 60
COUNTDOWN_URGENT_ABOVE = 10 * 60


# ==================================================================================
# WRITES
# ==================================================================================
WRITE_POLL_INTERVAL = 2.0
WRITE_SETTLE_TIMEOUT = 120.0
CONNECTION_TIMEOUT = 10.0


# ==================================================================================
# LOCAL ANNOTATIONS
# ==================================================================================
IGNORED_KEY = "ignoredTxs"
DEFAULT_ANNOTATIONS_PATH = "~/.quorumvault/annotations.json"

