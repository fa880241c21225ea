"""
Proposal Status Engine

Maps a proposal record, the governance parameters and the current time to a
lifecycle status. Rules are evaluated in precedence order, first match wins:

  1. executed                                  → EXECUTED
  2. expiry set and now > submitted + expiry   → EXPIRED
  3. weight sum ≥ required percentage          → READY_TO_EXECUTE
       executable once the timelock (if any) has elapsed
  4. weight sum > 0                            → PENDING
  5. otherwise                                 → PROPOSED

Expiry outranks quorum: the controller rejects every call on an expired
proposal.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Optional

from .models import GovernanceParameters, Proposal


class ProposalStatus(IntEnum):
    """Lifecycle stage as displayed to owners."""
    PROPOSED = 0           # No confirmations yet
    PENDING = 1            # Some weight, below quorum
    READY_TO_EXECUTE = 2   # Quorum reached (see StatusReport.executable)
    EXECUTED = 3           # Terminal
    EXPIRED = 4            # Terminal for user actions


TERMINAL_STATUSES = frozenset({ProposalStatus.EXECUTED, ProposalStatus.EXPIRED})


@dataclass(frozen=True)
class StatusReport:
    """
    Result of `compute_status`.

    Fields:
        status:          Lifecycle stage
        quorum_reached:  Weight sum ≥ required percentage (informational when
                         terminal)
        executable:      READY_TO_EXECUTE and past the timelock
        executable_at:   submitted_at + timelock_period (None when no timelock)
        expires_at:      submitted_at + expiry_period (None when never expires)
    """
    status: ProposalStatus
    quorum_reached: bool = False
    executable: bool = False
    executable_at: Optional[int] = None
    expires_at: Optional[int] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def timelocked(self) -> bool:
        return self.status == ProposalStatus.READY_TO_EXECUTE and not self.executable

    @property
    def label(self) -> str:
        if self.timelocked:
            return "Timelocked"
        return {
            ProposalStatus.PROPOSED: "Proposed",
            ProposalStatus.PENDING: "Pending",
            ProposalStatus.READY_TO_EXECUTE: "Ready to Execute",
            ProposalStatus.EXECUTED: "Executed",
            ProposalStatus.EXPIRED: "Expired",
        }[self.status]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.name,
            "label": self.label,
            "quorumReached": self.quorum_reached,
            "executable": self.executable,
            "executableAt": self.executable_at,
            "expiresAt": self.expires_at,
        }


def compute_status(
    proposal: Proposal,
    params: GovernanceParameters,
    now: int,
) -> StatusReport:
    """
    Derive the status of *proposal* at time *now* (chain seconds).

    Pure and total: identical inputs always give identical reports.
    """
    now = int(now)
    executable_at = (
        proposal.submitted_at + params.timelock_period
        if params.timelock_period > 0 else None
    )
    expires_at = (
        proposal.submitted_at + params.expiry_period
        if params.expiry_period > 0 else None
    )
    quorum_reached = proposal.confirmation_weight_sum >= params.required_percentage

    def report(status: ProposalStatus, executable: bool = False) -> StatusReport:
        return StatusReport(
            status=status,
            quorum_reached=quorum_reached,
            executable=executable,
            executable_at=executable_at,
            expires_at=expires_at,
        )

    if proposal.executed:
        return report(ProposalStatus.EXECUTED)

    if expires_at is not None and now > expires_at:
        return report(ProposalStatus.EXPIRED)

    if quorum_reached:
        timelocked = executable_at is not None and now < executable_at
        return report(ProposalStatus.READY_TO_EXECUTE, executable=not timelocked)

    if proposal.confirmation_weight_sum > 0:
        return report(ProposalStatus.PENDING)

    return report(ProposalStatus.PROPOSED)
