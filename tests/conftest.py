"""
Shared fixtures: an in-memory controller that implements both the reader
and writer interfaces, plus the registry, contracts and stores wired to it.
"""

import os
import sys
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Sequence, Set

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from quorumvault.chain.interfaces import ChainReader, ChainWriter, WriteHandle, WriteReceipt
from quorumvault.constants import (
    DEFAULT_CONTROLLER_ADDRESS,
    DEFAULT_TOKENS,
    DEFAULT_VAULT_ADDRESS,
    ZERO_ADDRESS,
)
from quorumvault.decoding import ContractDirectory
from quorumvault.decoding import abi
from quorumvault.exceptions import ChainReadError, ProposalNotFoundError, WriteRejectedError
from quorumvault.governance.annotations import IgnoreList, MemoryStore
from quorumvault.governance.ledger import LedgerCache
from quorumvault.governance.models import GovernanceParameters, Owner, OwnerRecord, OwnerSet, Proposal
from quorumvault.governance.session import GovernanceSession
from quorumvault.tokens.registry import TokenInfo, TokenRegistry


# ══════════════════════════════════════════════════════════════════════
#  ADDRESSES
# ══════════════════════════════════════════════════════════════════════

CONTROLLER = DEFAULT_CONTROLLER_ADDRESS
VAULT = DEFAULT_VAULT_ADDRESS
USDC = "0x036CbD53842c5426634e7929541eC2318f3dCF7e"

ALICE = "0x" + "a1" * 20
BOB = "0x" + "b2" * 20
CAROL = "0x" + "c3" * 20
RECIPIENT = "0x" + "d4" * 20
STRANGER = "0x" + "e5" * 20

NOW = 1_700_000_000


# ══════════════════════════════════════════════════════════════════════
#  FAKE CHAIN
# ══════════════════════════════════════════════════════════════════════

class FakeWriteHandle(WriteHandle):

    def __init__(self, action: str, tx_hash: str, chain: "FakeChain", apply: Callable[[], Optional[int]]):
        super().__init__(action, tx_hash)
        self._chain = chain
        self._apply = apply

    async def wait(self) -> WriteReceipt:
        if self._chain.revert_on_settle:
            raise WriteRejectedError(self.action, self._chain.revert_on_settle, tx_hash=self.tx_hash)
        proposal_id = self._apply()
        self._chain.block_number += 1
        return WriteReceipt(
            action=self.action,
            tx_hash=self.tx_hash,
            block_number=self._chain.block_number,
            proposal_id=proposal_id,
        )


class FakeChain(ChainReader, ChainWriter):
    """
    Controller state held in memory. Writes apply only when their handle
    is awaited, the way a mined transaction would.
    """

    def __init__(
        self,
        owners: Sequence[Owner] = (),
        required_percentage: int = 51,
        timelock_period: int = 0,
        expiry_period: int = 0,
        sender: Optional[str] = ALICE,
        now: int = NOW,
    ):
        self.owners = list(owners) or [
            Owner(ALICE, "Alice", 40, removable=False),
            Owner(BOB, "Bob", 35),
            Owner(CAROL, "Carol", 25),
        ]
        self.params = GovernanceParameters(required_percentage, timelock_period, expiry_period)
        self.proposals: Dict[int, Proposal] = {}
        self.confirmations: Dict[int, Set[str]] = {}
        self.sender = sender
        self.now = now
        self.paused = False
        self.block_number = 100
        self.deployer = ALICE
        self.min_owners = 2
        self.pool_percentage = 100
        self.vault_balance = 0
        self.token_balances: Dict[str, int] = {}
        self.test_calls = 0

        self.failing_ids: Set[int] = set()
        self.fail_reads = False
        self.reject_reason: Optional[str] = None
        self.revert_on_settle: Optional[str] = None
        self.writes: List[tuple] = []
        self.read_count = 0

    # ── Helpers ───────────────────────────────────────────────────────

    def _weight(self, proposal_id: int) -> int:
        confirmed = self.confirmations.get(proposal_id, set())
        return sum(o.voting_weight for o in self.owners if o.address.lower() in confirmed)

    def _sync(self, proposal_id: int) -> None:
        self.proposals[proposal_id] = replace(
            self.proposals[proposal_id], confirmation_weight_sum=self._weight(proposal_id)
        )

    def add_proposal(
        self,
        target: str = RECIPIENT,
        value: int = 0,
        call_data: bytes = b"",
        is_token_transfer: bool = False,
        token_address: Optional[str] = None,
        initiator: str = ALICE,
        submitted_at: Optional[int] = None,
        confirmed_by: Sequence[str] = (),
        executed: bool = False,
    ) -> Proposal:
        proposal_id = len(self.proposals)
        self.proposals[proposal_id] = Proposal(
            id=proposal_id,
            initiator=initiator,
            target=target,
            value=value,
            call_data=call_data,
            is_token_transfer=is_token_transfer,
            token_address=token_address,
            executed=executed,
            submitted_at=self.now if submitted_at is None else submitted_at,
        )
        self.confirmations[proposal_id] = {a.lower() for a in confirmed_by}
        self._sync(proposal_id)
        return self.proposals[proposal_id]

    def _check_reads(self) -> None:
        self.read_count += 1
        if self.fail_reads:
            raise ChainReadError("node unavailable")

    # ── Reader ────────────────────────────────────────────────────────

    async def get_owners(self) -> OwnerSet:
        self._check_reads()
        return OwnerSet(tuple(self.owners))

    async def get_required_percentage(self) -> int:
        self._check_reads()
        return self.params.required_percentage

    async def get_timelock_period(self) -> int:
        self._check_reads()
        return self.params.timelock_period

    async def get_expiry_period(self) -> int:
        self._check_reads()
        return self.params.expiry_period

    async def get_transaction_count(self) -> int:
        self._check_reads()
        return len(self.proposals)

    async def get_transaction(self, proposal_id: int) -> Proposal:
        self._check_reads()
        if proposal_id in self.failing_ids:
            raise ChainReadError(f"timeout reading #{proposal_id}")
        if proposal_id not in self.proposals:
            raise ProposalNotFoundError(proposal_id)
        return self.proposals[proposal_id]

    async def has_confirmed(self, proposal_id: int, owner: str) -> bool:
        self._check_reads()
        return owner.lower() in self.confirmations.get(proposal_id, set())

    async def is_paused(self) -> bool:
        self._check_reads()
        return self.paused

    async def get_owner_details(self, owner: str) -> OwnerRecord:
        self._check_reads()
        for index, o in enumerate(self.owners):
            if o.address.lower() == owner.lower():
                return OwnerRecord(o.address, o.voting_weight, True, o.removable, index)
        return OwnerRecord(ZERO_ADDRESS, 0, False, False, 0)

    async def get_owner_count(self) -> int:
        self._check_reads()
        return len(self.owners)

    async def get_min_owners(self) -> int:
        self._check_reads()
        return self.min_owners

    async def get_deployer(self) -> str:
        self._check_reads()
        return self.deployer

    async def get_pool_percentage(self) -> int:
        self._check_reads()
        return self.pool_percentage

    async def get_vault_balance(self) -> int:
        self._check_reads()
        return self.vault_balance

    async def get_vault_token_balance(self, token_address: str) -> int:
        self._check_reads()
        return self.token_balances.get(token_address.lower(), 0)

    # ── Writer ────────────────────────────────────────────────────────

    def _write(self, action: str, apply: Callable[[], Optional[int]], *args) -> FakeWriteHandle:
        self.writes.append((action, *args))
        if self.reject_reason:
            raise WriteRejectedError(action, self.reject_reason)
        tx_hash = "0x" + f"{len(self.writes):064x}"
        return FakeWriteHandle(action, tx_hash, self, apply)

    def _require(self, proposal_id: int) -> Proposal:
        if proposal_id not in self.proposals:
            raise WriteRejectedError("write", "Transaction does not exist")
        return self.proposals[proposal_id]

    async def submit_transaction(self, target, value, is_token_transfer, token_address, data) -> WriteHandle:
        def apply():
            return self.add_proposal(
                target=target, value=value, call_data=data,
                is_token_transfer=is_token_transfer, token_address=token_address,
                initiator=self.sender,
            ).id
        return self._write("submit transaction", apply, target, value, is_token_transfer, token_address, data)

    async def confirm_transaction(self, proposal_id: int) -> WriteHandle:
        def apply():
            self._require(proposal_id)
            self.confirmations[proposal_id].add(self.sender.lower())
            self._sync(proposal_id)
        return self._write("confirm transaction", apply, proposal_id)

    async def confirm_transactions_batch(self, proposal_ids: Sequence[int]) -> WriteHandle:
        def apply():
            for proposal_id in proposal_ids:
                self._require(proposal_id)
                self.confirmations[proposal_id].add(self.sender.lower())
                self._sync(proposal_id)
        return self._write("confirm transactions", apply, list(proposal_ids))

    async def revoke_confirmation(self, proposal_id: int) -> WriteHandle:
        def apply():
            self._require(proposal_id)
            self.confirmations[proposal_id].discard(self.sender.lower())
            self._sync(proposal_id)
        return self._write("revoke confirmation", apply, proposal_id)

    async def execute_transaction(self, proposal_id: int) -> WriteHandle:
        def apply():
            proposal = self._require(proposal_id)
            self.proposals[proposal_id] = replace(proposal, executed=True)
        return self._write("execute transaction", apply, proposal_id)

    def _governance_proposal(self, call_data: bytes) -> int:
        return self.add_proposal(target=CONTROLLER, call_data=call_data, initiator=self.sender).id

    async def submit_add_owner(self, owner: str, name: str, weight: int) -> WriteHandle:
        data = abi.SUBMIT_ADD_OWNER.encode_call(owner, name, weight)
        return self._write("propose adding owner", lambda: self._governance_proposal(data), owner, name, weight)

    async def submit_remove_owner(self, owner: str) -> WriteHandle:
        data = abi.SUBMIT_REMOVE_OWNER.encode_call(owner)
        return self._write("propose removing owner", lambda: self._governance_proposal(data), owner)

    async def submit_change_required_percentage(self, percentage: int) -> WriteHandle:
        data = abi.SUBMIT_CHANGE_REQUIRED_PERCENTAGE.encode_call(percentage)
        return self._write("propose quorum change", lambda: self._governance_proposal(data), percentage)

    async def pause(self) -> WriteHandle:
        def apply():
            self.paused = True
        return self._write("pause", apply)

    async def unpause(self) -> WriteHandle:
        def apply():
            self.paused = False
        return self._write("unpause", apply)

    async def call_test(self) -> WriteHandle:
        def apply():
            self.test_calls += 1
        return self._write("call test function", apply)


# ══════════════════════════════════════════════════════════════════════
#  FIXTURES
# ══════════════════════════════════════════════════════════════════════

@pytest.fixture
def chain() -> FakeChain:
    return FakeChain()


@pytest.fixture
def tokens() -> TokenRegistry:
    return TokenRegistry(TokenInfo.from_dict(t) for t in DEFAULT_TOKENS)


@pytest.fixture
def contracts() -> ContractDirectory:
    return ContractDirectory(controller=CONTROLLER, vault=VAULT)


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def ignore_list(store) -> IgnoreList:
    return IgnoreList(store)


@pytest.fixture
def ledger(chain) -> LedgerCache:
    return LedgerCache(chain, account=ALICE)


@pytest.fixture
def session(chain, ledger, ignore_list, contracts, tokens) -> GovernanceSession:
    return GovernanceSession(
        reader=chain,
        writer=chain,
        ledger=ledger,
        ignore_list=ignore_list,
        contracts=contracts,
        tokens=tokens,
        account=ALICE,
        clock=lambda: chain.now,
    )
