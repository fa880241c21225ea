"""
Decoded intent of a proposal.

Each variant is a frozen dataclass carrying a ``kind`` tag, a one-line
``summary`` and ``to_dict()``. Every amount is an `Amount` bound to the
asset that the decoding branch identified.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from ..formatting import truncate_address
from ..tokens.registry import Amount


class GovernanceAction(str, Enum):
    ADD_OWNER = "add_owner"
    REMOVE_OWNER = "remove_owner"
    CHANGE_QUORUM = "change_quorum"
    PAUSE = "pause"
    UNPAUSE = "unpause"
    TEST = "test"


class TokenOperation(str, Enum):
    TRANSFER = "transfer"
    APPROVE = "approve"
    TRANSFER_FROM = "transfer_from"
    INTERACTION = "interaction"   # token call whose payload was not recognised


@dataclass(frozen=True)
class GovernanceProposal:
    """
    A controller call changing the multisig itself.

    ``owner``/``name``/``weight`` are set for owner changes, ``percentage``
    for quorum changes. ``scheduled`` marks the self-call form
    (``addOwner``) as opposed to the proposal entry point (``submitAddOwner``).
    """
    action: GovernanceAction
    owner: Optional[str] = None
    name: Optional[str] = None
    weight: Optional[int] = None
    percentage: Optional[int] = None
    scheduled: bool = False
    kind: str = "governance"

    @property
    def summary(self) -> str:
        if self.action == GovernanceAction.ADD_OWNER:
            return f"Add owner {self.name} ({truncate_address(self.owner)}) with {self.weight}% voting power"
        if self.action == GovernanceAction.REMOVE_OWNER:
            return f"Remove owner {truncate_address(self.owner)}"
        if self.action == GovernanceAction.CHANGE_QUORUM:
            return f"Change required percentage to {self.percentage}%"
        if self.action == GovernanceAction.PAUSE:
            return "Pause the controller"
        if self.action == GovernanceAction.UNPAUSE:
            return "Unpause the controller"
        return "Test call"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "action": self.action.value,
            "owner": self.owner,
            "name": self.name,
            "weight": self.weight,
            "percentage": self.percentage,
            "scheduled": self.scheduled,
            "summary": self.summary,
        }


@dataclass(frozen=True)
class VaultApproval:
    """Vault-forwarded ERC-20 approve. Grants an allowance, moves no funds."""
    token: str
    spender: str
    amount: Amount
    kind: str = "vault_approval"

    @property
    def summary(self) -> str:
        return f"Approve {truncate_address(self.spender)} to spend {self.amount}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "token": self.token,
            "spender": self.spender,
            "amount": self.amount.to_dict(),
            "summary": self.summary,
        }


@dataclass(frozen=True)
class VaultSend:
    """Vault-forwarded native or token send, optionally carrying a payload."""
    recipient: str
    amount: Amount
    is_token_transfer: bool
    token: Optional[str] = None
    inner_call_data: bytes = b""
    kind: str = "vault_send"

    @property
    def summary(self) -> str:
        text = f"Vault sends {self.amount} to {truncate_address(self.recipient)}"
        if self.inner_call_data:
            text += f" with call data 0x{self.inner_call_data[:4].hex()}"
        return text

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "recipient": self.recipient,
            "amount": self.amount.to_dict(),
            "isTokenTransfer": self.is_token_transfer,
            "token": self.token,
            "innerCallData": "0x" + self.inner_call_data.hex(),
            "summary": self.summary,
        }


@dataclass(frozen=True)
class TokenTransfer:
    """
    Token movement denominated in ``amount.symbol``.

    ``counterparty`` is the recipient for transfers, the spender for
    approvals; ``source`` is set only for ``transferFrom``.
    """
    operation: TokenOperation
    token: str
    amount: Amount
    counterparty: Optional[str] = None
    source: Optional[str] = None
    kind: str = "token_transfer"

    @property
    def summary(self) -> str:
        if self.operation == TokenOperation.APPROVE:
            return f"Approve {truncate_address(self.counterparty)} to spend {self.amount}"
        if self.operation == TokenOperation.TRANSFER_FROM:
            return (
                f"Transfer {self.amount} from {truncate_address(self.source)} "
                f"to {truncate_address(self.counterparty)}"
            )
        if self.operation == TokenOperation.TRANSFER:
            return f"Transfer {self.amount} to {truncate_address(self.counterparty)}"
        return f"Token interaction with {truncate_address(self.token)} ({self.amount})"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "operation": self.operation.value,
            "token": self.token,
            "amount": self.amount.to_dict(),
            "counterparty": self.counterparty,
            "source": self.source,
            "summary": self.summary,
        }


@dataclass(frozen=True)
class NativeTransfer:
    recipient: str
    amount: Amount
    kind: str = "native_transfer"

    @property
    def summary(self) -> str:
        return f"Send {self.amount} to {truncate_address(self.recipient)}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "recipient": self.recipient,
            "amount": self.amount.to_dict(),
            "summary": self.summary,
        }


@dataclass(frozen=True)
class UnknownCall:
    """Contract call that matched no known shape."""
    target: str
    selector: Optional[str]
    value: Optional[Amount] = None
    kind: str = "unknown_call"

    @property
    def summary(self) -> str:
        text = f"Contract interaction with {truncate_address(self.target)}"
        if self.selector:
            text += f" (function {self.selector})"
        if self.value is not None and self.value.raw:
            text += f" sending {self.value}"
        return text

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "target": self.target,
            "selector": self.selector,
            "value": self.value.to_dict() if self.value is not None else None,
            "summary": self.summary,
        }


@dataclass(frozen=True)
class NoOp:
    target: str
    kind: str = "noop"

    @property
    def summary(self) -> str:
        return "Unresolved transaction"

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "target": self.target, "summary": self.summary}


Description = Union[
    GovernanceProposal, VaultApproval, VaultSend, TokenTransfer,
    NativeTransfer, UnknownCall, NoOp,
]
