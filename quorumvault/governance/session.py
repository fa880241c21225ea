"""
Governance Session

The owner-facing entry point. Write actions validate their input, send the
call, wait for settlement, then invalidate and refresh the ledger; the
ledger is refreshed the same way when the chain rejects the write, before
the error propagates. Nothing is applied to cached proposals locally.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Sequence

from eth_utils import to_bytes

from ..addresses import checksum, is_valid_address, is_zero_address
from ..chain.interfaces import ChainReader, ChainWriter, WriteHandle, WriteReceipt
from ..chain.rpc import JsonRpcClient, connect
from ..config.loader import QuorumVaultConfig
from ..constants import COUNTDOWN_TICK_SECONDS, MAX_OWNER_NAME_LENGTH, MAX_PERCENTAGE
from ..decoding import ContractDirectory
from ..exceptions import InvalidInputError, LedgerRefreshError, WriteRejectedError
from ..formatting import parse_units, truncate_address
from ..logger import get_logger
from ..tokens.registry import Amount, TokenRegistry
from .annotations import IgnoreList, JsonFileStore
from .countdown import Callback, CountdownTimer
from .ledger import LedgerCache, LedgerSnapshot
from .models import ConfirmationBreakdown, ControllerInfo, OwnerRecord, Proposal
from .views import ProposalView, ViewFilter, build_views, filter_views

logger = get_logger(__name__)


@dataclass(frozen=True)
class ActionResult:
    """Settled write plus the ledger snapshot pulled after it."""
    receipt: WriteReceipt
    snapshot: Optional[LedgerSnapshot]

    @property
    def proposal_id(self) -> Optional[int]:
        return self.receipt.proposal_id


# ══════════════════════════════════════════════════════════════════════
#  INPUT VALIDATION
# ══════════════════════════════════════════════════════════════════════

def require_address(value, field_name: str = "address") -> str:
    if not is_valid_address(value):
        raise InvalidInputError(f"Invalid {field_name}: {value!r}")
    return checksum(value)


def require_percentage(value, field_name: str = "percentage") -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInputError(f"{field_name} must be an integer, got {value!r}")
    if not 0 <= value <= MAX_PERCENTAGE:
        raise InvalidInputError(f"{field_name} must be 0-{MAX_PERCENTAGE}, got {value}")
    return value


def require_proposal_id(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidInputError(f"Invalid proposal id: {value!r}")
    return value


def require_call_data(data) -> bytes:
    if data is None or data == "":
        return b""
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    if not isinstance(data, str):
        raise InvalidInputError(f"Call data must be hex or bytes, got {type(data).__name__}")
    try:
        return to_bytes(hexstr=data)
    except ValueError:
        raise InvalidInputError(f"Call data is not valid hex: {data!r}") from None


# ══════════════════════════════════════════════════════════════════════
#  SESSION
# ══════════════════════════════════════════════════════════════════════

class GovernanceSession:
    """
    Args:
        reader:       Chain reads
        writer:       Chain writes
        ledger:       Cache refreshed after every write
        ignore_list:  Local ignore annotations
        contracts:    Controller and vault addresses for decoding
        tokens:       Asset registry for decoding and amount parsing
        account:      Current owner; drives confirm/revoke gating
        clock:        Current time in seconds, for views and countdowns
        tick_interval: Countdown timer period in seconds
    """

    def __init__(
        self,
        reader: ChainReader,
        writer: ChainWriter,
        ledger: LedgerCache,
        ignore_list: IgnoreList,
        contracts: ContractDirectory,
        tokens: TokenRegistry,
        account: Optional[str] = None,
        clock: Callable[[], float] = time.time,
        tick_interval: float = COUNTDOWN_TICK_SECONDS,
    ):
        self.reader = reader
        self.writer = writer
        self.ledger = ledger
        self.ignore_list = ignore_list
        self.contracts = contracts
        self.tokens = tokens
        self.account = checksum(account) if account else None
        self._clock = clock
        self.tick_interval = tick_interval
        self._rpc: Optional[JsonRpcClient] = None

    @classmethod
    def from_config(cls, config: QuorumVaultConfig, client=None) -> "GovernanceSession":
        """
        Wire a session to the JSON-RPC node, contracts, token list and
        annotation file named in *config*. Close it with `aclose()`.
        """
        account = config.writes.account or None
        rpc, reader, writer = connect(
            config.network.rpc_url,
            config.contracts.controller,
            config.contracts.vault,
            account=account,
            client=client,
            poll_interval=config.writes.poll_interval,
            settle_timeout=config.writes.settle_timeout,
        )
        session = cls(
            reader=reader,
            writer=writer,
            ledger=LedgerCache(reader, window=config.ledger.window, account=account),
            ignore_list=IgnoreList(JsonFileStore(config.annotations.resolved_path)),
            contracts=config.contracts.directory(),
            tokens=config.token_registry(),
            account=account,
            tick_interval=config.countdown.tick_interval,
        )
        session._rpc = rpc
        logger.info(
            f"Session on {config.network.display_name} (chain {config.network.chain_id}), "
            f"controller {config.contracts.controller}"
        )
        return session

    async def aclose(self) -> None:
        if self._rpc is not None:
            await self._rpc.aclose()
            self._rpc = None

    async def __aenter__(self) -> "GovernanceSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # ── Write plumbing ────────────────────────────────────────────────

    async def _reload(self) -> Optional[LedgerSnapshot]:
        self.ledger.invalidate()
        try:
            return await self.ledger.refresh()
        except LedgerRefreshError as e:
            logger.warning(f"Ledger refresh after write failed: {e}")
            return None

    async def _run(self, send: Callable[[], Awaitable[WriteHandle]]) -> ActionResult:
        try:
            handle = await send()
            receipt = await handle.wait()
        except WriteRejectedError as e:
            logger.error(str(e))
            await self._reload()
            raise
        snapshot = await self._reload()
        return ActionResult(receipt=receipt, snapshot=snapshot)

    # ── Proposal actions ──────────────────────────────────────────────

    async def confirm(self, proposal_id: int) -> ActionResult:
        proposal_id = require_proposal_id(proposal_id)
        return await self._run(lambda: self.writer.confirm_transaction(proposal_id))

    async def revoke(self, proposal_id: int) -> ActionResult:
        proposal_id = require_proposal_id(proposal_id)
        return await self._run(lambda: self.writer.revoke_confirmation(proposal_id))

    async def execute(self, proposal_id: int) -> ActionResult:
        proposal_id = require_proposal_id(proposal_id)
        return await self._run(lambda: self.writer.execute_transaction(proposal_id))

    async def confirm_batch(self, proposal_ids: Iterable[int]) -> ActionResult:
        ids = [require_proposal_id(i) for i in proposal_ids]
        if not ids:
            raise InvalidInputError("No proposals selected")
        if len(set(ids)) != len(ids):
            raise InvalidInputError("Duplicate proposal ids in batch")
        return await self._run(lambda: self.writer.confirm_transactions_batch(ids))

    async def submit_transaction(
        self,
        target: str,
        amount: str,
        is_token_transfer: bool = False,
        token_address: Optional[str] = None,
        data="",
    ) -> ActionResult:
        """
        Propose a vault transaction.

        *amount* is a human decimal string ("1.5"), converted with the
        decimals of the native currency or of *token_address*, which must be
        registered.
        """
        target = require_address(target, "recipient address")
        if is_token_transfer:
            token_address = require_address(token_address, "token address")
            if is_zero_address(token_address):
                raise InvalidInputError("Token transfers need a token contract address")
            asset = self.tokens.get(token_address)
            if asset is None:
                raise InvalidInputError(
                    f"Token {token_address} is not registered; its decimals are needed to size the amount"
                )
        else:
            token_address = None
            asset = self.tokens.native
        try:
            value = parse_units(amount, asset.decimals)
        except ValueError as e:
            raise InvalidInputError(f"Invalid amount: {e}") from None
        call_data = require_call_data(data)

        return await self._run(lambda: self.writer.submit_transaction(
            target, value, is_token_transfer, token_address, call_data
        ))

    async def propose_add_owner(self, address: str, name: str, weight: int) -> ActionResult:
        address = require_address(address, "owner address")
        name = (name or "").strip()
        if not name:
            raise InvalidInputError("Owner name is required")
        if len(name) > MAX_OWNER_NAME_LENGTH:
            raise InvalidInputError(f"Owner name longer than {MAX_OWNER_NAME_LENGTH} characters")
        weight = require_percentage(weight, "voting weight")
        return await self._run(lambda: self.writer.submit_add_owner(address, name, weight))

    async def propose_remove_owner(self, address: str) -> ActionResult:
        address = require_address(address, "owner address")
        return await self._run(lambda: self.writer.submit_remove_owner(address))

    async def propose_change_quorum(self, percentage: int) -> ActionResult:
        percentage = require_percentage(percentage, "required percentage")
        return await self._run(lambda: self.writer.submit_change_required_percentage(percentage))

    async def pause(self) -> ActionResult:
        return await self._run(self.writer.pause)

    async def unpause(self) -> ActionResult:
        return await self._run(self.writer.unpause)

    async def call_test(self) -> ActionResult:
        return await self._run(self.writer.call_test)

    # ── Reads ─────────────────────────────────────────────────────────

    async def balances(self) -> Dict[str, Amount]:
        """Vault holdings per registered asset, each in its own decimals."""
        return await self.reader.get_vault_balances(self.tokens)

    async def controller_info(self) -> ControllerInfo:
        return await self.reader.get_controller_info()

    async def owner_details(self, address: str) -> OwnerRecord:
        return await self.reader.get_owner_details(require_address(address, "owner address"))

    # ── Local annotations ─────────────────────────────────────────────

    def ignore(self, proposal_id: int) -> None:
        self.ignore_list.ignore(require_proposal_id(proposal_id))

    def unignore(self, proposal_id: int) -> None:
        self.ignore_list.unignore(require_proposal_id(proposal_id))

    # ── Views ─────────────────────────────────────────────────────────

    def views(
        self,
        now: Optional[int] = None,
        view_filter: ViewFilter = ViewFilter.ALL,
    ) -> List[ProposalView]:
        """View models for the current snapshot; empty before the first refresh."""
        snapshot = self.ledger.snapshot
        if snapshot is None:
            return []
        now = int(self._clock()) if now is None else int(now)
        confirmations = snapshot.user_confirmations
        if self.account is None or (snapshot.account or "").lower() != self.account.lower():
            confirmations = {}
        views = build_views(
            snapshot.proposals,
            snapshot.params,
            now,
            self.contracts,
            self.tokens,
            ignored_ids=self.ignore_list.ids(),
            user_confirmations=confirmations,
        )
        return filter_views(views, view_filter)

    async def _proposal(self, proposal_id: int) -> Proposal:
        proposal = self.ledger.get(proposal_id)
        if proposal is not None:
            return proposal
        return await self.reader.get_transaction(proposal_id)

    async def confirmation_breakdown(self, proposal_id: int) -> ConfirmationBreakdown:
        """
        Split the current owners by whether they confirmed *proposal_id*.

        Raises:
            ProposalNotFoundError: unknown id
            ChainReadError:        an owner or confirmation read failed
        """
        proposal_id = require_proposal_id(proposal_id)
        proposal, owners = await asyncio.gather(
            self._proposal(proposal_id),
            self.reader.get_owners(),
        )
        flags: Sequence[bool] = await asyncio.gather(
            *(self.reader.has_confirmed(proposal_id, o.address) for o in owners)
        )
        initiator = owners.get(proposal.initiator)
        return ConfirmationBreakdown(
            proposal_id=proposal_id,
            initiator_name=initiator.name if initiator else truncate_address(proposal.initiator),
            confirmed_by=tuple(o for o, f in zip(owners, flags) if f),
            pending_from=tuple(o for o, f in zip(owners, flags) if not f),
        )

    def countdown_timer(
        self,
        view: ProposalView,
        on_tick: Optional[Callback] = None,
        on_elapsed: Optional[Callback] = None,
    ) -> Optional[CountdownTimer]:
        """
        Unstarted timer for the view's countdown, or None when the proposal
        has nothing to count down to.
        """
        if view.countdown is None:
            return None
        return CountdownTimer(
            view.countdown.target,
            on_tick=on_tick,
            on_elapsed=on_elapsed,
            clock=self._clock,
            interval=self.tick_interval,
        )
