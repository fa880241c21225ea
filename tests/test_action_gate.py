"""
Action Gate tests.
"""

import itertools

import pytest

from quorumvault.governance.gate import Action, allowed_actions
from quorumvault.governance.status import ProposalStatus, StatusReport


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

def report(status, quorum=False, executable=False) -> StatusReport:
    return StatusReport(status=status, quorum_reached=quorum, executable=executable)


PROPOSED = report(ProposalStatus.PROPOSED)
PENDING = report(ProposalStatus.PENDING)
READY = report(ProposalStatus.READY_TO_EXECUTE, quorum=True, executable=True)
TIMELOCKED = report(ProposalStatus.READY_TO_EXECUTE, quorum=True, executable=False)
EXECUTED = report(ProposalStatus.EXECUTED, quorum=True)
EXPIRED = report(ProposalStatus.EXPIRED, quorum=True)

ALL_REPORTS = [PROPOSED, PENDING, READY, TIMELOCKED, EXECUTED, EXPIRED]


# ══════════════════════════════════════════════════════════════════════
#  TESTS
# ══════════════════════════════════════════════════════════════════════

class TestAllowedActions:

    def test_fresh_proposal_offers_confirm_and_ignore(self):
        assert allowed_actions(PROPOSED, False, False, False) == {Action.CONFIRM, Action.IGNORE}

    def test_confirmed_user_gets_revoke(self):
        assert allowed_actions(PENDING, False, False, True) == {Action.REVOKE}

    def test_ignored_offers_unignore(self):
        assert allowed_actions(PENDING, False, True, False) == {Action.UNIGNORE}

    def test_ready_adds_execute(self):
        actions = allowed_actions(READY, False, False, True)
        assert actions == {Action.REVOKE, Action.EXECUTE}

    def test_ignored_ready_proposal_can_still_execute(self):
        actions = allowed_actions(READY, False, True, False)
        assert Action.EXECUTE in actions
        assert Action.UNIGNORE in actions

    def test_timelocked_has_no_execute(self):
        actions = allowed_actions(TIMELOCKED, False, False, False)
        assert Action.EXECUTE not in actions
        assert Action.CONFIRM in actions

    @pytest.mark.parametrize("terminal", [EXECUTED, EXPIRED])
    def test_terminal_offers_nothing(self, terminal):
        for ignored, confirmed in itertools.product([False, True], repeat=2):
            assert allowed_actions(terminal, True, ignored, confirmed) == frozenset()
            assert allowed_actions(terminal, False, ignored, confirmed) == frozenset()

    def test_executed_flag_overrides_report(self):
        assert allowed_actions(READY, True, False, False) == frozenset()


class TestExclusivity:

    def test_confirm_and_revoke_never_together(self):
        for r, executed, ignored, confirmed in itertools.product(
            ALL_REPORTS, [False, True], [False, True], [False, True]
        ):
            actions = allowed_actions(r, executed, ignored, confirmed)
            assert not {Action.CONFIRM, Action.REVOKE} <= actions
