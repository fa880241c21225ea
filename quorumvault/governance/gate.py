"""
Action Gate

Decides which user actions a proposal offers right now. Ignore and
un-ignore are local view toggles; confirm, revoke and execute become chain
writes. CONFIRM and REVOKE are never offered together.
"""

from enum import Enum
from typing import FrozenSet

from .status import StatusReport


class Action(str, Enum):
    CONFIRM = "confirm"
    REVOKE = "revoke"
    EXECUTE = "execute"
    IGNORE = "ignore"
    UNIGNORE = "unignore"


CHAIN_ACTIONS = frozenset({Action.CONFIRM, Action.REVOKE, Action.EXECUTE})


def allowed_actions(
    report: StatusReport,
    executed: bool,
    ignored: bool,
    user_confirmed: bool,
) -> FrozenSet[Action]:
    """
    Args:
        report:          Status Engine output for the proposal
        executed:        Proposal's on-chain executed flag
        ignored:         Proposal is in the local ignore set
        user_confirmed:  Current user has already confirmed

    Returns:
        The actions the UI may offer; empty for executed or expired proposals.
    """
    if executed or report.is_terminal:
        return frozenset()

    actions = set()
    if user_confirmed:
        actions.add(Action.REVOKE)
    elif ignored:
        actions.add(Action.UNIGNORE)
    else:
        actions.update((Action.CONFIRM, Action.IGNORE))

    # An ignored proposal stays executable; ignoring only hides it.
    if report.quorum_reached and report.executable:
        actions.add(Action.EXECUTE)

    return frozenset(actions)
