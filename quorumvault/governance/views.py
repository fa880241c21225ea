"""
Per-proposal view models.

Combines the Status Engine, Call Decoder, Action Gate and Countdown
Projector into one record per proposal, plus the list filters offered to
owners.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, AbstractSet, Dict, FrozenSet, Iterable, List, Optional

from ..decoding import ContractDirectory, Description, describe
from ..tokens.registry import Amount, TokenRegistry
from .countdown import Countdown, project_countdown
from .gate import Action, allowed_actions
from .models import GovernanceParameters, Proposal
from .status import ProposalStatus, StatusReport, compute_status


class ViewFilter(str, Enum):
    ALL = "all"
    PENDING = "pending"
    EXECUTED = "executed"
    IGNORED = "ignored"


@dataclass(frozen=True)
class ProposalView:
    proposal: Proposal
    report: StatusReport
    description: Description
    amount: Amount
    actions: FrozenSet[Action]
    ignored: bool
    user_confirmed: bool
    countdown: Optional[Countdown] = None

    @property
    def id(self) -> int:
        return self.proposal.id

    @property
    def label(self) -> str:
        status = self.report.status
        if status in (ProposalStatus.EXECUTED, ProposalStatus.EXPIRED, ProposalStatus.READY_TO_EXECUTE):
            return self.report.label
        if self.ignored:
            return "Ignored"
        return self.report.label

    def can(self, action: Action) -> bool:
        return action in self.actions

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.proposal.id,
            "label": self.label,
            "proposal": self.proposal.to_dict(),
            "status": self.report.to_dict(),
            "description": self.description.to_dict(),
            "amount": self.amount.to_dict(),
            "actions": sorted(a.value for a in self.actions),
            "ignored": self.ignored,
            "userConfirmed": self.user_confirmed,
            "countdown": self.countdown.to_dict() if self.countdown else None,
        }


def proposal_amount(proposal: Proposal, tokens: TokenRegistry) -> Amount:
    """The proposal's value in the asset it is denominated in."""
    if proposal.is_token_transfer:
        return tokens.resolve_token(proposal.token_address).amount(proposal.value)
    return tokens.native.amount(proposal.value)


def countdown_for(report: StatusReport, now: int) -> Optional[Countdown]:
    """Countdown to the timelock end while timelocked, else to expiry."""
    if report.is_terminal:
        return None
    if report.timelocked and report.executable_at is not None:
        return project_countdown(report.executable_at, now)
    if report.expires_at is not None:
        return project_countdown(report.expires_at, now)
    return None


def build_view(
    proposal: Proposal,
    params: GovernanceParameters,
    now: int,
    contracts: ContractDirectory,
    tokens: TokenRegistry,
    ignored: bool = False,
    user_confirmed: bool = False,
) -> ProposalView:
    report = compute_status(proposal, params, now)
    return ProposalView(
        proposal=proposal,
        report=report,
        description=describe(
            proposal.target,
            proposal.value,
            proposal.call_data,
            proposal.is_token_transfer,
            proposal.token_address,
            contracts,
            tokens,
        ),
        amount=proposal_amount(proposal, tokens),
        actions=allowed_actions(report, proposal.executed, ignored, user_confirmed),
        ignored=ignored,
        user_confirmed=user_confirmed,
        countdown=countdown_for(report, now),
    )


def build_views(
    proposals: Iterable[Proposal],
    params: GovernanceParameters,
    now: int,
    contracts: ContractDirectory,
    tokens: TokenRegistry,
    ignored_ids: AbstractSet[int] = frozenset(),
    user_confirmations: Optional[Dict[int, bool]] = None,
) -> List[ProposalView]:
    confirmations = user_confirmations or {}
    return [
        build_view(
            p, params, now, contracts, tokens,
            ignored=p.id in ignored_ids,
            user_confirmed=confirmations.get(p.id, False),
        )
        for p in proposals
    ]


def filter_views(views: Iterable[ProposalView], view_filter: ViewFilter = ViewFilter.ALL) -> List[ProposalView]:
    """
    ALL       everything
    PENDING   not executed and not ignored
    EXECUTED  executed on chain
    IGNORED   in the local ignore set
    """
    view_filter = ViewFilter(view_filter)
    if view_filter == ViewFilter.PENDING:
        return [v for v in views if not v.proposal.executed and not v.ignored]
    if view_filter == ViewFilter.EXECUTED:
        return [v for v in views if v.proposal.executed]
    if view_filter == ViewFilter.IGNORED:
        return [v for v in views if v.ignored]
    return list(views)
