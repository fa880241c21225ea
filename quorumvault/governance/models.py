"""
Governance Records

Read-only mirrors of the controller contract's state: owners with voting
weight, proposal records and the quorum / timelock / expiry parameters.
Instances are built from chain reads and never mutated locally; a changed
proposal is observed by reading it again.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from ..addresses import same_address
from ..constants import MAX_PERCENTAGE


# ══════════════════════════════════════════════════════════════════════
#  OWNERS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Owner:
    """
    A multisig owner.

    Fields:
        address:        Account address
        name:           Display label (not unique, not consensus relevant)
        voting_weight:  Integer percentage of quorum weight
        removable:      False for protected owners such as the deployer
    """
    address: str
    name: str
    voting_weight: int
    removable: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "name": self.name,
            "votingWeight": self.voting_weight,
            "removable": self.removable,
        }


@dataclass(frozen=True)
class OwnerSet:
    """
    Owners in chain order.

    Weights are whatever the chain reports; they are not required to sum
    to 100.
    """
    owners: tuple = ()

    @classmethod
    def from_columns(
        cls,
        addresses: List[str],
        names: List[str],
        weights: List[int],
        removables: List[bool],
    ) -> "OwnerSet":
        """Build from the parallel arrays returned by ``getOwners()``."""
        if not len(addresses) == len(names) == len(weights) == len(removables):
            raise ValueError(
                f"Owner columns differ in length: {len(addresses)} addresses, "
                f"{len(names)} names, {len(weights)} weights, {len(removables)} flags"
            )
        return cls(tuple(
            Owner(address=a, name=n, voting_weight=int(w), removable=bool(r))
            for a, n, w, r in zip(addresses, names, weights, removables)
        ))

    def get(self, address: Optional[str]) -> Optional[Owner]:
        for owner in self.owners:
            if same_address(owner.address, address):
                return owner
        return None

    def is_owner(self, address: Optional[str]) -> bool:
        return self.get(address) is not None

    @property
    def total_weight(self) -> int:
        return sum(o.voting_weight for o in self.owners)

    def __iter__(self) -> Iterator[Owner]:
        return iter(self.owners)

    def __len__(self) -> int:
        return len(self.owners)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owners": [o.to_dict() for o in self.owners],
            "totalWeight": self.total_weight,
        }


@dataclass(frozen=True)
class OwnerRecord:
    """
    The controller's per-address ``owners(address)`` entry.

    ``exists`` is False (and the other fields zero) for addresses that are
    not owners.
    """
    address: str
    voting_weight: int
    exists: bool
    removable: bool
    index: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "votingWeight": self.voting_weight,
            "exists": self.exists,
            "removable": self.removable,
            "index": self.index,
        }


@dataclass(frozen=True)
class ControllerInfo:
    """Controller-wide figures outside the quorum parameters."""
    deployer: str
    owner_count: int
    min_owners: int
    pool_percentage: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "deployer": self.deployer,
            "ownerCount": self.owner_count,
            "minOwners": self.min_owners,
            "poolPercentage": self.pool_percentage,
        }


# ══════════════════════════════════════════════════════════════════════
#  PARAMETERS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class GovernanceParameters:
    """
    Fields:
        required_percentage:  Quorum, 0-100; 0 means quorum on submission
        timelock_period:      Seconds after submission before execution; 0 disables
        expiry_period:        Seconds after submission before expiry; 0 means never
    """
    required_percentage: int
    timelock_period: int = 0
    expiry_period: int = 0

    def __post_init__(self):
        if not 0 <= self.required_percentage <= MAX_PERCENTAGE:
            raise ValueError(
                f"required_percentage must be 0-{MAX_PERCENTAGE}, got {self.required_percentage}"
            )
        if self.timelock_period < 0 or self.expiry_period < 0:
            raise ValueError("Periods cannot be negative")

    @property
    def expires(self) -> bool:
        return self.expiry_period > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "requiredPercentage": self.required_percentage,
            "timelockPeriod": self.timelock_period,
            "expiryPeriod": self.expiry_period,
        }


# ══════════════════════════════════════════════════════════════════════
#  PROPOSAL
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Proposal:
    """
    Mirror of one on-chain transaction record.

    Fields:
        id:                       Chain-assigned monotonic id
        initiator:                Owner that submitted it
        target:                   Destination of the proposed call
        value:                    Native smallest units, or token units when
                                  ``is_token_transfer``
        call_data:                Raw payload; empty means plain value transfer
        is_token_transfer:        Value is denominated in ``token_address``
        token_address:            ERC-20 contract for token transfers
        executed:                 Terminal once True
        confirmation_weight_sum:  Summed weight of confirming owners
        submitted_at:             Chain timestamp (seconds) of submission
    """
    id: int
    initiator: str
    target: str
    value: int
    call_data: bytes = b""
    is_token_transfer: bool = False
    token_address: Optional[str] = None
    executed: bool = False
    confirmation_weight_sum: int = 0
    submitted_at: int = 0

    @property
    def is_plain_transfer(self) -> bool:
        return len(self.call_data) == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "initiator": self.initiator,
            "target": self.target,
            "value": str(self.value),
            "callData": "0x" + self.call_data.hex(),
            "isTokenTransfer": self.is_token_transfer,
            "tokenAddress": self.token_address,
            "executed": self.executed,
            "confirmationWeightSum": self.confirmation_weight_sum,
            "submittedAt": self.submitted_at,
        }

    def __repr__(self) -> str:
        return (
            f"<Proposal #{self.id} to={self.target} "
            f"weight={self.confirmation_weight_sum}% executed={self.executed}>"
        )


@dataclass(frozen=True)
class ConfirmationRecord:
    """Whether *owner* has confirmed proposal *proposal_id*."""
    proposal_id: int
    owner: str
    confirmed: bool


@dataclass(frozen=True)
class ConfirmationBreakdown:
    """Owners split by whether they confirmed a proposal."""
    proposal_id: int
    initiator_name: str
    confirmed_by: tuple = field(default_factory=tuple)
    pending_from: tuple = field(default_factory=tuple)

    @property
    def confirmed_weight(self) -> int:
        return sum(o.voting_weight for o in self.confirmed_by)

    @property
    def pending_weight(self) -> int:
        return sum(o.voting_weight for o in self.pending_from)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposalId": self.proposal_id,
            "initiatorName": self.initiator_name,
            "confirmedBy": [o.to_dict() for o in self.confirmed_by],
            "pendingFrom": [o.to_dict() for o in self.pending_from],
            "confirmedWeight": self.confirmed_weight,
            "pendingWeight": self.pending_weight,
        }
