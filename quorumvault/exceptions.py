"""
quorumvault Exceptions

Custom exception classes for the governance client.
"""

from typing import Optional


class QuorumVaultError(Exception):
    """Base exception for quorumvault."""
    pass


class ConfigurationError(QuorumVaultError):
    """Configuration error."""
    pass


class ChainReadError(QuorumVaultError):
    """A read from the chain failed (RPC timeout, node error)."""
    pass


class ProposalNotFoundError(ChainReadError):
    """The requested proposal id is out of range."""

    def __init__(self, proposal_id: int, message: Optional[str] = None):
        self.proposal_id = proposal_id
        super().__init__(message or f"Proposal #{proposal_id} not found")


class InvalidInputError(QuorumVaultError):
    """Input to a write action was rejected before submission."""
    pass


class WriteRejectedError(QuorumVaultError):
    """
    The chain rejected a write (revert, already executed, quorum not met,
    expired). `reason` carries the underlying message unchanged.
    """

    def __init__(self, action: str, reason: str, tx_hash: Optional[str] = None):
        self.action = action
        self.reason = reason
        self.tx_hash = tx_hash
        super().__init__(f"Failed to {action}: {reason}")


class SettlementTimeoutError(WriteRejectedError):
    """A submitted write was not observed as settled in time."""

    def __init__(self, action: str, tx_hash: str, timeout: float):
        self.timeout = timeout
        super().__init__(action, f"not settled after {timeout:.0f}s", tx_hash=tx_hash)


class LedgerRefreshError(QuorumVaultError):
    """A ledger refresh could not complete; the previous snapshot is kept."""
    pass
