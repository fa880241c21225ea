"""
Governance Session tests: write actions with settle/refresh, validation,
rejections, local ignore toggles, views and confirmation breakdowns.
"""

from unittest.mock import AsyncMock, patch

import pytest
from eth_utils import to_checksum_address

from quorumvault.constants import ZERO_ADDRESS
from quorumvault.decoding import GovernanceAction, GovernanceProposal, TokenTransfer
from quorumvault.exceptions import (
    InvalidInputError,
    LedgerRefreshError,
    ProposalNotFoundError,
    WriteRejectedError,
)
from quorumvault.governance.gate import Action
from quorumvault.governance.models import GovernanceParameters
from quorumvault.governance.views import ViewFilter

from conftest import ALICE, BOB, CAROL, CONTROLLER, RECIPIENT, STRANGER, USDC


UNLISTED_TOKEN = "0x" + "f6" * 20


@pytest.mark.asyncio
class TestWriteActions:

    async def test_confirm_refreshes_from_chain(self, session, chain):
        chain.add_proposal()
        await session.ledger.refresh()

        result = await session.confirm(0)

        assert result.snapshot.get(0).confirmation_weight_sum == 40
        assert result.snapshot.user_confirmed(0)
        assert session.ledger.snapshot is result.snapshot
        assert chain.writes == [("confirm transaction", 0)]

    async def test_revoke(self, session, chain):
        chain.add_proposal(confirmed_by=[ALICE, BOB])
        result = await session.revoke(0)
        assert result.snapshot.get(0).confirmation_weight_sum == 35

    async def test_execute(self, session, chain):
        chain.add_proposal(confirmed_by=[ALICE, BOB])
        result = await session.execute(0)
        assert result.snapshot.get(0).executed

    async def test_confirm_batch(self, session, chain):
        for _ in range(3):
            chain.add_proposal()
        result = await session.confirm_batch([0, 2])
        assert result.snapshot.user_confirmed(0)
        assert not result.snapshot.user_confirmed(1)
        assert result.snapshot.user_confirmed(2)

    async def test_submit_native_transaction(self, session, chain):
        result = await session.submit_transaction(RECIPIENT, "1.5")
        assert result.proposal_id == 0
        proposal = result.snapshot.get(0)
        assert proposal.value == 15 * 10 ** 17
        assert not proposal.is_token_transfer

    async def test_submit_token_transaction_uses_token_decimals(self, session, chain):
        result = await session.submit_transaction(RECIPIENT, "2.5", is_token_transfer=True, token_address=USDC)
        assert result.snapshot.get(0).value == 2_500_000

    async def test_unregistered_token_is_refused(self, session, chain):
        with pytest.raises(InvalidInputError, match="not registered"):
            await session.submit_transaction(RECIPIENT, "1", is_token_transfer=True, token_address=UNLISTED_TOKEN)
        assert chain.writes == []
        assert chain.proposals == {}

    async def test_propose_add_owner_is_decoded(self, session, chain):
        result = await session.propose_add_owner(STRANGER, "Erin", 10)
        [view] = session.views()
        assert isinstance(view.description, GovernanceProposal)
        assert view.description.action == GovernanceAction.ADD_OWNER
        assert view.description.owner == to_checksum_address(STRANGER)
        assert result.snapshot.get(0).target == CONTROLLER

    async def test_propose_remove_owner_and_quorum(self, session, chain):
        await session.propose_remove_owner(CAROL)
        await session.propose_change_quorum(75)
        actions = {v.description.action for v in session.views()}
        assert actions == {GovernanceAction.REMOVE_OWNER, GovernanceAction.CHANGE_QUORUM}

    async def test_pause_and_unpause(self, session, chain):
        await session.pause()
        assert chain.paused
        await session.unpause()
        assert not chain.paused

    async def test_call_test(self, session, chain):
        result = await session.call_test()
        assert chain.test_calls == 1
        assert result.receipt.action == "call test function"


@pytest.mark.asyncio
class TestRejections:

    async def test_rejection_propagates_after_refresh(self, session, chain):
        chain.add_proposal()
        chain.reject_reason = "Transaction already executed"
        reads = chain.read_count

        with pytest.raises(WriteRejectedError) as exc:
            await session.confirm(0)

        assert exc.value.reason == "Transaction already executed"
        assert "Failed to confirm transaction" in str(exc.value)
        assert chain.read_count > reads
        assert session.ledger.snapshot is not None

    async def test_revert_on_settlement_also_refreshes(self, session, chain):
        chain.add_proposal()
        chain.revert_on_settle = "quorum not reached"
        with pytest.raises(WriteRejectedError):
            await session.execute(0)
        assert session.ledger.get(0).executed is False
        assert not session.ledger.is_stale

    async def test_refresh_failure_after_write_does_not_mask_receipt(self, session, chain):
        chain.add_proposal()

        failing = AsyncMock(side_effect=LedgerRefreshError("node down"))
        with patch.object(session.ledger, "refresh", failing):
            result = await session.confirm(0)
        failing.assert_awaited_once()
        assert result.snapshot is None
        assert result.receipt.action == "confirm transaction"


@pytest.mark.asyncio
class TestValidation:

    @pytest.mark.parametrize("call", [
        lambda s: s.confirm(-1),
        lambda s: s.confirm("1"),
        lambda s: s.confirm_batch([]),
        lambda s: s.confirm_batch([1, 1]),
        lambda s: s.submit_transaction("0x1234", "1"),
        lambda s: s.submit_transaction(RECIPIENT, "-1"),
        lambda s: s.submit_transaction(RECIPIENT, "abc"),
        lambda s: s.submit_transaction(RECIPIENT, "0.0000001", is_token_transfer=True, token_address=USDC),
        lambda s: s.submit_transaction(RECIPIENT, "1", is_token_transfer=True, token_address=None),
        lambda s: s.submit_transaction(RECIPIENT, "1", data="0xzz"),
        lambda s: s.propose_add_owner(STRANGER, "", 10),
        lambda s: s.propose_add_owner(STRANGER, "Erin", 101),
        lambda s: s.propose_add_owner(STRANGER, "Erin", 10.5),
        lambda s: s.propose_remove_owner("not-an-address"),
        lambda s: s.propose_change_quorum(-1),
        lambda s: s.propose_change_quorum(True),
    ])
    async def test_invalid_input_rejected_before_sending(self, session, chain, call):
        with pytest.raises(InvalidInputError):
            await call(session)
        assert chain.writes == []


@pytest.mark.asyncio
class TestViews:

    async def test_views_empty_before_refresh(self, session):
        assert session.views() == []

    async def test_view_composition(self, session, chain):
        chain.add_proposal(value=1_000_000, is_token_transfer=True, token_address=USDC, confirmed_by=[BOB])
        await session.ledger.refresh()
        [view] = session.views()
        assert view.label == "Pending"
        assert isinstance(view.description, TokenTransfer)
        assert str(view.amount) == "1.0 USDC"
        assert view.actions == {Action.CONFIRM, Action.IGNORE}

    async def test_ignore_is_local_and_reversible(self, session, chain):
        chain.add_proposal(confirmed_by=[BOB])
        await session.ledger.refresh()
        before = chain.proposals[0]

        session.ignore(0)
        [view] = session.views()
        assert view.ignored and view.label == "Ignored"
        assert view.actions == {Action.UNIGNORE}
        assert session.views(view_filter=ViewFilter.PENDING) == []
        assert len(session.views(view_filter=ViewFilter.IGNORED)) == 1

        session.unignore(0)
        [view] = session.views()
        assert not view.ignored
        assert chain.proposals[0] == before
        assert chain.writes == []

    async def test_ready_label_outranks_ignore(self, session, chain):
        chain.add_proposal(confirmed_by=[ALICE, BOB])
        await session.ledger.refresh()
        session.ignore(0)
        [view] = session.views()
        assert view.label == "Ready to Execute"
        assert view.can(Action.EXECUTE)

    async def test_timelock_countdown(self, session, chain):
        chain.params = GovernanceParameters(51, 3600, 0)
        chain.add_proposal(confirmed_by=[ALICE, BOB])
        await session.ledger.refresh()
        [view] = session.views(now=chain.now + 600)
        assert view.label == "Timelocked"
        assert view.countdown.remaining == 3000
        assert not view.can(Action.EXECUTE)

    async def test_expiry_countdown_and_expired(self, session, chain):
        chain.params = GovernanceParameters(51, 0, 7200)
        chain.add_proposal()
        await session.ledger.refresh()
        [view] = session.views(now=chain.now + 200)
        assert view.countdown.remaining == 7000
        [view] = session.views(now=chain.now + 7201)
        assert view.label == "Expired"
        assert view.actions == frozenset()
        assert view.countdown is None

    async def test_filters(self, session, chain):
        chain.add_proposal()
        chain.add_proposal(executed=True)
        chain.add_proposal()
        await session.ledger.refresh()
        session.ignore(2)
        assert [v.id for v in session.views(view_filter=ViewFilter.ALL)] == [2, 1, 0]
        assert [v.id for v in session.views(view_filter=ViewFilter.PENDING)] == [0]
        assert [v.id for v in session.views(view_filter=ViewFilter.EXECUTED)] == [1]
        assert [v.id for v in session.views(view_filter="ignored")] == [2]

    async def test_countdown_timer_follows_view(self, session, chain):
        chain.params = GovernanceParameters(51, 3600, 0)
        chain.add_proposal(confirmed_by=[ALICE, BOB])
        chain.add_proposal(executed=True)
        await session.ledger.refresh()
        timelocked, executed = sorted(session.views(), key=lambda v: v.id)

        elapsed = []
        timer = session.countdown_timer(timelocked, on_elapsed=elapsed.append)
        assert timer.target == chain.now + 3600
        assert timer.interval == session.tick_interval
        assert (await timer.tick()).remaining == 3600
        chain.now += 3600
        await timer.tick()
        assert len(elapsed) == 1

        assert session.countdown_timer(executed) is None


@pytest.mark.asyncio
class TestConfirmationBreakdown:

    async def test_split_by_confirmation(self, session, chain):
        chain.add_proposal(initiator=BOB, confirmed_by=[ALICE, CAROL])
        breakdown = await session.confirmation_breakdown(0)
        assert breakdown.initiator_name == "Bob"
        assert [o.name for o in breakdown.confirmed_by] == ["Alice", "Carol"]
        assert [o.name for o in breakdown.pending_from] == ["Bob"]
        assert breakdown.confirmed_weight == 65
        assert breakdown.pending_weight == 35

    async def test_unknown_initiator_falls_back_to_truncated_address(self, session, chain):
        chain.add_proposal(initiator=STRANGER)
        breakdown = await session.confirmation_breakdown(0)
        assert breakdown.initiator_name == STRANGER[:6] + "..." + STRANGER[-4:]

    async def test_unknown_proposal(self, session):
        with pytest.raises(ProposalNotFoundError):
            await session.confirmation_breakdown(42)


@pytest.mark.asyncio
class TestReads:

    async def test_balances_use_each_token_decimals(self, session, chain):
        chain.vault_balance = 2 * 10 ** 18
        chain.token_balances[USDC.lower()] = 1_500_000
        balances = await session.balances()
        assert str(balances[ZERO_ADDRESS]) == "2.0 ETH"
        assert str(balances[to_checksum_address(USDC)]) == "1.5 USDC"
        assert balances[to_checksum_address(USDC)].decimals == 6

    async def test_controller_info(self, session, chain):
        chain.pool_percentage = 80
        info = await session.controller_info()
        assert info.deployer == ALICE
        assert info.owner_count == 3
        assert info.min_owners == 2
        assert info.pool_percentage == 80

    async def test_owner_details(self, session):
        record = await session.owner_details(BOB)
        assert record.exists and record.removable
        assert (record.voting_weight, record.index) == (35, 1)
        assert not (await session.owner_details(STRANGER)).exists

    async def test_owner_details_validates_address(self, session):
        with pytest.raises(InvalidInputError):
            await session.owner_details("bob")
