"""
Chain access interfaces.

`ChainReader` is the read side of the controller contract; `ChainWriter`
sends state-changing calls. Writes are two-phase: the awaited call returns a
`WriteHandle` once the transaction is accepted by the node ("submitted"),
and ``await handle.wait()`` returns a `WriteReceipt` once it is mined
("settled"). Rejections at either phase raise `WriteRejectedError`.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from ..governance.models import ControllerInfo, GovernanceParameters, OwnerRecord, OwnerSet, Proposal
from ..tokens.registry import Amount, TokenRegistry


@dataclass(frozen=True)
class WriteReceipt:
    """
    A settled write.

    ``proposal_id`` is set when the receipt carries a ``TransactionSubmitted``
    log from the controller.
    """
    action: str
    tx_hash: str
    block_number: Optional[int] = None
    proposal_id: Optional[int] = None
    gas_used: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "txHash": self.tx_hash,
            "blockNumber": self.block_number,
            "proposalId": self.proposal_id,
            "gasUsed": self.gas_used,
        }


class WriteHandle(ABC):
    """A submitted, not yet settled write."""

    def __init__(self, action: str, tx_hash: str):
        self.action = action
        self.tx_hash = tx_hash

    @abstractmethod
    async def wait(self) -> WriteReceipt:
        """Block until settlement. Raises `WriteRejectedError` on revert."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.action} {self.tx_hash}>"


class ChainReader(ABC):

    @abstractmethod
    async def get_owners(self) -> OwnerSet:
        ...

    @abstractmethod
    async def get_required_percentage(self) -> int:
        ...

    @abstractmethod
    async def get_timelock_period(self) -> int:
        ...

    @abstractmethod
    async def get_expiry_period(self) -> int:
        ...

    @abstractmethod
    async def get_transaction_count(self) -> int:
        ...

    @abstractmethod
    async def get_transaction(self, proposal_id: int) -> Proposal:
        """Raises `ProposalNotFoundError` for ids the chain does not know."""

    @abstractmethod
    async def has_confirmed(self, proposal_id: int, owner: str) -> bool:
        ...

    @abstractmethod
    async def is_paused(self) -> bool:
        ...

    @abstractmethod
    async def get_owner_details(self, owner: str) -> OwnerRecord:
        ...

    @abstractmethod
    async def get_owner_count(self) -> int:
        ...

    @abstractmethod
    async def get_min_owners(self) -> int:
        ...

    @abstractmethod
    async def get_deployer(self) -> str:
        ...

    @abstractmethod
    async def get_pool_percentage(self) -> int:
        ...

    @abstractmethod
    async def get_vault_balance(self) -> int:
        """Native balance held by the vault, in smallest units."""

    @abstractmethod
    async def get_vault_token_balance(self, token_address: str) -> int:
        """Vault balance of one ERC-20, in that token's smallest units."""

    async def get_parameters(self) -> GovernanceParameters:
        required, timelock, expiry = await asyncio.gather(
            self.get_required_percentage(),
            self.get_timelock_period(),
            self.get_expiry_period(),
        )
        return GovernanceParameters(
            required_percentage=int(required),
            timelock_period=int(timelock),
            expiry_period=int(expiry),
        )

    async def get_controller_info(self) -> ControllerInfo:
        deployer, owner_count, min_owners, pool = await asyncio.gather(
            self.get_deployer(),
            self.get_owner_count(),
            self.get_min_owners(),
            self.get_pool_percentage(),
        )
        return ControllerInfo(
            deployer=deployer,
            owner_count=int(owner_count),
            min_owners=int(min_owners),
            pool_percentage=int(pool),
        )

    async def get_vault_balances(self, tokens: TokenRegistry) -> Dict[str, Amount]:
        """
        Vault holdings of the native currency and every registered token,
        keyed by asset address (zero address for native). Each amount is
        scaled by its own token's decimals.
        """
        assets = tokens.all_tokens()
        raws = await asyncio.gather(*(
            self.get_vault_balance() if token.native else self.get_vault_token_balance(token.address)
            for token in assets
        ))
        return {token.address: token.amount(raw) for token, raw in zip(assets, raws)}


class ChainWriter(ABC):

    @abstractmethod
    async def submit_transaction(
        self,
        target: str,
        value: int,
        is_token_transfer: bool,
        token_address: Optional[str],
        data: bytes,
    ) -> WriteHandle:
        ...

    @abstractmethod
    async def confirm_transaction(self, proposal_id: int) -> WriteHandle:
        ...

    @abstractmethod
    async def confirm_transactions_batch(self, proposal_ids: Sequence[int]) -> WriteHandle:
        ...

    @abstractmethod
    async def revoke_confirmation(self, proposal_id: int) -> WriteHandle:
        ...

    @abstractmethod
    async def execute_transaction(self, proposal_id: int) -> WriteHandle:
        ...

    @abstractmethod
    async def submit_add_owner(self, owner: str, name: str, weight: int) -> WriteHandle:
        ...

    @abstractmethod
    async def submit_remove_owner(self, owner: str) -> WriteHandle:
        ...

    @abstractmethod
    async def submit_change_required_percentage(self, percentage: int) -> WriteHandle:
        ...

    @abstractmethod
    async def pause(self) -> WriteHandle:
        ...

    @abstractmethod
    async def unpause(self) -> WriteHandle:
        ...

    @abstractmethod
    async def call_test(self) -> WriteHandle:
        """The controller's no-op ``test()`` entry point."""


__all__: List[str] = ["ChainReader", "ChainWriter", "WriteHandle", "WriteReceipt"]
