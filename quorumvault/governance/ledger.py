"""
Ledger Cache

Read-through cache of the most recent proposals and the governance
parameters. The cache never mutates a proposal; after a write settles it is
invalidated and pulled again.

Refresh semantics:
  - the count, parameter and owner reads are required; if any fails the
    refresh raises `LedgerRefreshError` and the previous snapshot stays
  - per-proposal reads run concurrently; a failing item is logged and
    recorded in ``snapshot.failures`` without aborting the others
  - the last refresh (or invalidation) wins; a refresh that finishes after
    a newer one started is returned to its caller but not installed
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..addresses import checksum
from ..chain.interfaces import ChainReader
from ..constants import LEDGER_WINDOW, MAX_LEDGER_WINDOW
from ..exceptions import LedgerRefreshError, QuorumVaultError
from ..logger import get_logger
from .models import GovernanceParameters, OwnerSet, Proposal

logger = get_logger(__name__)


@dataclass(frozen=True)
class FetchFailure:
    proposal_id: int
    error: str


@dataclass(frozen=True)
class LedgerSnapshot:
    """
    One consistent pull of the ledger.

    ``proposals`` are newest first. ``user_confirmations`` maps proposal id
    to whether ``account`` has confirmed it; empty when no account is set.
    """
    proposals: Tuple[Proposal, ...]
    params: GovernanceParameters
    owners: OwnerSet
    transaction_count: int
    failures: Tuple[FetchFailure, ...] = ()
    user_confirmations: Dict[int, bool] = field(default_factory=dict)
    account: Optional[str] = None
    fetched_at: float = 0.0
    generation: int = 0

    def get(self, proposal_id: int) -> Optional[Proposal]:
        for proposal in self.proposals:
            if proposal.id == proposal_id:
                return proposal
        return None

    @property
    def ids(self) -> List[int]:
        return [p.id for p in self.proposals]

    def user_confirmed(self, proposal_id: int) -> bool:
        return self.user_confirmations.get(proposal_id, False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposals": [p.to_dict() for p in self.proposals],
            "params": self.params.to_dict(),
            "owners": self.owners.to_dict(),
            "transactionCount": self.transaction_count,
            "failures": [{"proposalId": f.proposal_id, "error": f.error} for f in self.failures],
            "userConfirmations": {str(k): v for k, v in self.user_confirmations.items()},
            "account": self.account,
            "fetchedAt": self.fetched_at,
        }


class LedgerCache:
    """
    Args:
        reader:   Chain access
        window:   How many of the most recent proposal ids to load
        account:  Owner whose confirmation flags are fetched with each proposal
    """

    def __init__(
        self,
        reader: ChainReader,
        window: int = LEDGER_WINDOW,
        account: Optional[str] = None,
    ):
        if not 1 <= window <= MAX_LEDGER_WINDOW:
            raise ValueError(f"window must be 1-{MAX_LEDGER_WINDOW}, got {window}")
        self.reader = reader
        self.window = window
        self.account = checksum(account) if account else None
        self._snapshot: Optional[LedgerSnapshot] = None
        self._stale = True
        self._generation = 0

    # ── State ─────────────────────────────────────────────────────────

    @property
    def snapshot(self) -> Optional[LedgerSnapshot]:
        return self._snapshot

    @property
    def is_stale(self) -> bool:
        return self._snapshot is None or self._stale

    def invalidate(self) -> None:
        """Mark the snapshot stale; in-flight refreshes will not install."""
        self._generation += 1
        self._stale = True
        logger.debug("Ledger invalidated")

    def get(self, proposal_id: int) -> Optional[Proposal]:
        return self._snapshot.get(proposal_id) if self._snapshot else None

    def window_ids(self, count: int) -> List[int]:
        """Ids to load for *count* proposals, newest first."""
        lowest = max(count - self.window, 0)
        return list(range(count - 1, lowest - 1, -1))

    # ── Refresh ───────────────────────────────────────────────────────

    async def _fetch_one(self, proposal_id: int) -> Tuple[Proposal, Optional[bool]]:
        if self.account is None:
            return await self.reader.get_transaction(proposal_id), None
        proposal, confirmed = await asyncio.gather(
            self.reader.get_transaction(proposal_id),
            self.reader.has_confirmed(proposal_id, self.account),
        )
        return proposal, confirmed

    async def refresh(self) -> LedgerSnapshot:
        """
        Pull the window from the chain.

        Raises:
            LedgerRefreshError: the count, parameter or owner read failed
        """
        self._generation += 1
        generation = self._generation

        try:
            count, params, owners = await asyncio.gather(
                self.reader.get_transaction_count(),
                self.reader.get_parameters(),
                self.reader.get_owners(),
            )
        except (QuorumVaultError, ValueError) as e:
            logger.warning(f"Ledger refresh failed: {e}")
            raise LedgerRefreshError(f"Failed to refresh ledger: {e}") from e

        ids = self.window_ids(int(count))
        results = await asyncio.gather(
            *(self._fetch_one(i) for i in ids),
            return_exceptions=True,
        )

        proposals: List[Proposal] = []
        failures: List[FetchFailure] = []
        confirmations: Dict[int, bool] = {}
        for proposal_id, result in zip(ids, results):
            if isinstance(result, Exception):
                logger.warning(f"Failed to fetch proposal #{proposal_id}: {result}")
                failures.append(FetchFailure(proposal_id, str(result)))
                continue
            if isinstance(result, BaseException):
                raise result
            proposal, confirmed = result
            proposals.append(proposal)
            if confirmed is not None:
                confirmations[proposal.id] = bool(confirmed)

        proposals.sort(key=lambda p: p.id, reverse=True)
        snapshot = LedgerSnapshot(
            proposals=tuple(proposals),
            params=params,
            owners=owners,
            transaction_count=int(count),
            failures=tuple(failures),
            user_confirmations=confirmations,
            account=self.account,
            fetched_at=time.time(),
            generation=generation,
        )

        if generation != self._generation:
            logger.debug(f"Discarding superseded ledger refresh (generation {generation})")
            return snapshot

        self._snapshot = snapshot
        self._stale = False
        logger.debug(
            f"Ledger refreshed: {len(proposals)} of {count} proposals loaded, {len(failures)} failed"
        )
        return snapshot

    async def ensure_fresh(self) -> LedgerSnapshot:
        """Current snapshot, refreshing first when stale."""
        if self.is_stale:
            return await self.refresh()
        return self._snapshot
