"""
Ethereum JSON-RPC binding for the controller contract.

Calls are ABI-encoded with eth_abi, posted over an `httpx.AsyncClient` and
the results decoded back into governance records. Writes are sent with
``eth_sendTransaction`` from an account the node manages; nothing is signed
here.
"""

import asyncio
import json
import time
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx
from eth_abi import decode
from eth_abi.exceptions import DecodingError
from eth_utils import keccak, to_bytes, to_checksum_address

from ..addresses import checksum, is_zero_address, same_address
from ..constants import CONNECTION_TIMEOUT, WRITE_POLL_INTERVAL, WRITE_SETTLE_TIMEOUT, ZERO_ADDRESS
from ..decoding import abi
from ..decoding.abi import FunctionShape
from ..exceptions import (
    ChainReadError,
    ConfigurationError,
    ProposalNotFoundError,
    SettlementTimeoutError,
    WriteRejectedError,
)
from ..governance.models import OwnerRecord, OwnerSet, Proposal
from ..logger import get_logger
from .interfaces import ChainReader, ChainWriter, WriteHandle, WriteReceipt

logger = get_logger(__name__)


# Controller view functions and their return types
GET_OWNERS = FunctionShape.of("getOwners()")
REQUIRED_PERCENTAGE = FunctionShape.of("requiredPercentage()")
TIMELOCK_PERIOD = FunctionShape.of("timelockPeriod()")
EXPIRY_PERIOD = FunctionShape.of("expiryPeriod()")
GET_TRANSACTION_COUNT = FunctionShape.of("getTransactionCount()")
GET_TRANSACTION = FunctionShape.of("getTransaction(uint256)")
HAS_CONFIRMED = FunctionShape.of("hasConfirmed(uint256,address)")
PAUSED = FunctionShape.of("paused()")
OWNER_DETAILS = FunctionShape.of("owners(address)")
GET_OWNER_COUNT = FunctionShape.of("getOwnerCount()")
MIN_OWNERS = FunctionShape.of("minOwners()")
DEPLOYER = FunctionShape.of("deployer()")
GET_POOL_PERCENTAGE = FunctionShape.of("getPoolPercentage()")

# Vault view functions
VAULT_BALANCE = FunctionShape.of("getBalance()")
VAULT_TOKEN_BALANCE = FunctionShape.of("getTokenBalance(address)")

OWNERS_OUTPUT = ("address[]", "string[]", "uint256[]", "bool[]")
# initiator, to, value, data, isTokenTransfer, tokenAddress, executed,
# confirmationCount, timestamp, timelockEnd
TRANSACTION_OUTPUT = ("(address,address,uint256,bytes,bool,address,bool,uint256,uint256,uint256)",)
# ownerAddress, percentage, exists, isRemovable, index
OWNER_DETAILS_OUTPUT = ("address", "uint256", "bool", "bool", "uint256")

# Controller state-changing functions
SUBMIT_TRANSACTION = FunctionShape.of("submitTransaction(address,uint256,bool,address,bytes)")
CONFIRM_TRANSACTION = FunctionShape.of("confirmTransaction(uint256)")
CONFIRM_TRANSACTIONS_BATCH = FunctionShape.of("confirmTransactionsBatch(uint256[])")
REVOKE_CONFIRMATION = FunctionShape.of("revokeConfirmation(uint256)")
EXECUTE_TRANSACTION = FunctionShape.of("executeTransactionManual(uint256)")

TRANSACTION_SUBMITTED_EVENT = "TransactionSubmitted(uint256,address,address,uint256)"
TRANSACTION_SUBMITTED_TOPIC = "0x" + keccak(text=TRANSACTION_SUBMITTED_EVENT).hex()

# Node error codes / messages that mean the EVM reverted
REVERT_CODES = (3, -32015)


class JsonRpcError(ChainReadError):
    """The node answered with a JSON-RPC error object."""

    def __init__(self, method: str, code: Optional[int], message: str, data: Any = None):
        self.method = method
        self.code = code
        self.message = message
        self.data = data
        super().__init__(f"{method}: {message}")

    @property
    def is_revert(self) -> bool:
        return self.code in REVERT_CODES or "revert" in self.message.lower()


# ══════════════════════════════════════════════════════════════════════
#  TRANSPORT
# ══════════════════════════════════════════════════════════════════════

class JsonRpcClient:
    """
    Minimal JSON-RPC 2.0 client.

    Pass an existing ``httpx.AsyncClient`` to share a connection pool (or a
    ``MockTransport`` in tests); otherwise one is created and closed by
    `aclose()`.
    """

    _rpc_id_counter = 0

    def __init__(
        self,
        url: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = CONNECTION_TIMEOUT,
    ):
        self.url = url
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def _next_id(cls) -> int:
        cls._rpc_id_counter += 1
        return cls._rpc_id_counter

    async def request(self, method: str, params: Optional[list] = None) -> Any:
        """
        Send one call and return its ``result``.

        Raises:
            JsonRpcError:   the node returned an error object
            ChainReadError: network failure, HTTP error or unparseable body
        """
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params if params is not None else [],
            "id": self._next_id(),
        }
        start_time = time.time()
        try:
            response = await self.client.post(
                self.url,
                json=payload,
                headers={"Content-Type": "application/json"},
            )
            elapsed = time.time() - start_time
            logger.debug(f"RPC {method} → {self.url} [{response.status_code}] ({elapsed:.3f}s)")
            response.raise_for_status()
            body = response.json()
        except httpx.RequestError as exc:
            logger.warning(f"RPC {method} → {self.url} NETWORK_ERROR: {exc}")
            raise ChainReadError(f"{method}: network error: {exc}") from exc
        except (json.JSONDecodeError, httpx.HTTPStatusError) as exc:
            logger.warning(f"RPC {method} → {self.url} ERROR: {exc}")
            raise ChainReadError(f"{method}: {exc}") from exc

        if not isinstance(body, dict):
            raise ChainReadError(f"{method}: malformed response {body!r}")
        error = body.get("error")
        if error is not None:
            if isinstance(error, dict):
                raise JsonRpcError(method, error.get("code"), str(error.get("message", error)), error.get("data"))
            raise JsonRpcError(method, None, str(error))
        return body.get("result")

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "JsonRpcClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


def _hex(data: bytes) -> str:
    return "0x" + data.hex()


def _to_int(value) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, int):
        return value
    return int(value, 16)


# ══════════════════════════════════════════════════════════════════════
#  READER
# ══════════════════════════════════════════════════════════════════════

class ControllerReader(ChainReader):
    """`ChainReader` backed by ``eth_call`` against the controller."""

    def __init__(
        self,
        rpc: JsonRpcClient,
        controller_address: str,
        vault_address: Optional[str] = None,
        block: str = "latest",
    ):
        self.rpc = rpc
        self.controller_address = checksum(controller_address)
        self.vault_address = checksum(vault_address) if vault_address else None
        self.block = block

    async def _call(
        self,
        shape: FunctionShape,
        output_types: Sequence[str],
        *args,
        to: Optional[str] = None,
    ) -> tuple:
        call = {"to": to or self.controller_address, "data": _hex(shape.encode_call(*args))}
        result = await self.rpc.request("eth_call", [call, self.block])
        try:
            return decode(list(output_types), to_bytes(hexstr=result or "0x"))
        except (DecodingError, ValueError, TypeError) as e:
            raise ChainReadError(f"{shape.name}: undecodable result {result!r}") from e

    async def get_owners(self) -> OwnerSet:
        addresses, names, weights, removables = await self._call(GET_OWNERS, OWNERS_OUTPUT)
        return OwnerSet.from_columns(
            [to_checksum_address(a) for a in addresses], list(names), list(weights), list(removables)
        )

    async def get_required_percentage(self) -> int:
        (value,) = await self._call(REQUIRED_PERCENTAGE, ("uint256",))
        return int(value)

    async def get_timelock_period(self) -> int:
        (value,) = await self._call(TIMELOCK_PERIOD, ("uint256",))
        return int(value)

    async def get_expiry_period(self) -> int:
        (value,) = await self._call(EXPIRY_PERIOD, ("uint256",))
        return int(value)

    async def get_transaction_count(self) -> int:
        (value,) = await self._call(GET_TRANSACTION_COUNT, ("uint256",))
        return int(value)

    async def get_transaction(self, proposal_id: int) -> Proposal:
        try:
            (record,) = await self._call(GET_TRANSACTION, TRANSACTION_OUTPUT, int(proposal_id))
        except JsonRpcError as e:
            if e.is_revert:
                raise ProposalNotFoundError(proposal_id, f"Proposal #{proposal_id} not found: {e.message}") from e
            raise
        (initiator, to, value, data, is_token, token_address,
         executed, weight_sum, timestamp, _timelock_end) = record
        return Proposal(
            id=int(proposal_id),
            initiator=to_checksum_address(initiator),
            target=to_checksum_address(to),
            value=int(value),
            call_data=bytes(data),
            is_token_transfer=bool(is_token),
            token_address=None if is_zero_address(token_address) else to_checksum_address(token_address),
            executed=bool(executed),
            confirmation_weight_sum=int(weight_sum),
            submitted_at=int(timestamp),
        )

    async def has_confirmed(self, proposal_id: int, owner: str) -> bool:
        (value,) = await self._call(HAS_CONFIRMED, ("bool",), int(proposal_id), checksum(owner))
        return bool(value)

    async def is_paused(self) -> bool:
        (value,) = await self._call(PAUSED, ("bool",))
        return bool(value)

    async def get_owner_details(self, owner: str) -> OwnerRecord:
        address, weight, exists, removable, index = await self._call(
            OWNER_DETAILS, OWNER_DETAILS_OUTPUT, checksum(owner)
        )
        return OwnerRecord(
            address=to_checksum_address(address),
            voting_weight=int(weight),
            exists=bool(exists),
            removable=bool(removable),
            index=int(index),
        )

    async def get_owner_count(self) -> int:
        (value,) = await self._call(GET_OWNER_COUNT, ("uint256",))
        return int(value)

    async def get_min_owners(self) -> int:
        (value,) = await self._call(MIN_OWNERS, ("uint256",))
        return int(value)

    async def get_deployer(self) -> str:
        (value,) = await self._call(DEPLOYER, ("address",))
        return to_checksum_address(value)

    async def get_pool_percentage(self) -> int:
        (value,) = await self._call(GET_POOL_PERCENTAGE, ("uint256",))
        return int(value)

    def _vault(self) -> str:
        if self.vault_address is None:
            raise ConfigurationError("No vault address configured for balance reads")
        return self.vault_address

    async def get_vault_balance(self) -> int:
        (value,) = await self._call(VAULT_BALANCE, ("uint256",), to=self._vault())
        return int(value)

    async def get_vault_token_balance(self, token_address: str) -> int:
        (value,) = await self._call(
            VAULT_TOKEN_BALANCE, ("uint256",), checksum(token_address), to=self._vault()
        )
        return int(value)

    async def has_code(self, address: str) -> bool:
        code = await self.rpc.request("eth_getCode", [checksum(address), self.block])
        return bool(code) and code not in ("0x", "0x0")

    async def validate_contracts(self) -> Dict[str, bool]:
        """Whether contract code is deployed at the controller and vault addresses."""
        targets = {"controller": self.controller_address}
        if self.vault_address:
            targets["vault"] = self.vault_address
        results = await asyncio.gather(
            *(self.has_code(address) for address in targets.values()),
            return_exceptions=True,
        )
        report = {}
        for name, result in zip(targets, results):
            if isinstance(result, Exception):
                logger.warning(f"Could not probe {name} contract: {result}")
                report[name] = False
            else:
                report[name] = result
        return report


# ══════════════════════════════════════════════════════════════════════
#  WRITER
# ══════════════════════════════════════════════════════════════════════

def proposal_id_from_logs(logs: List[Dict[str, Any]], controller_address: str) -> Optional[int]:
    """Id from the first controller ``TransactionSubmitted`` log, if any."""
    for log in logs or []:
        topics = log.get("topics") or []
        if not topics or topics[0].lower() != TRANSACTION_SUBMITTED_TOPIC:
            continue
        if not same_address(log.get("address"), controller_address):
            continue
        if len(topics) > 1:
            return int(topics[1], 16)
        data = log.get("data") or "0x"
        if len(data) >= 66:
            return int(data[2:66], 16)
    return None


class RpcWriteHandle(WriteHandle):
    """Polls ``eth_getTransactionReceipt`` until the write is mined."""

    def __init__(self, action: str, tx_hash: str, writer: "ControllerWriter"):
        super().__init__(action, tx_hash)
        self._writer = writer
        self._receipt: Optional[WriteReceipt] = None

    async def wait(self) -> WriteReceipt:
        if self._receipt is not None:
            return self._receipt
        writer = self._writer
        loop = asyncio.get_running_loop()
        deadline = loop.time() + writer.settle_timeout
        while True:
            try:
                raw = await writer.rpc.request("eth_getTransactionReceipt", [self.tx_hash])
            except ChainReadError as e:
                logger.warning(f"Receipt poll for {self.tx_hash} failed: {e}")
                raw = None
            if raw:
                break
            if loop.time() >= deadline:
                logger.error(f"{self.action} {self.tx_hash} not settled after {writer.settle_timeout:.0f}s")
                raise SettlementTimeoutError(self.action, self.tx_hash, writer.settle_timeout)
            await asyncio.sleep(writer.poll_interval)

        if _to_int(raw.get("status")) == 0:
            logger.error(f"{self.action} reverted: {self.tx_hash}")
            raise WriteRejectedError(self.action, "transaction reverted", tx_hash=self.tx_hash)

        self._receipt = WriteReceipt(
            action=self.action,
            tx_hash=self.tx_hash,
            block_number=_to_int(raw.get("blockNumber")),
            proposal_id=proposal_id_from_logs(raw.get("logs"), writer.controller_address),
            gas_used=_to_int(raw.get("gasUsed")),
        )
        logger.info(f"{self.action} settled in block {self._receipt.block_number}: {self.tx_hash}")
        return self._receipt


class ControllerWriter(ChainWriter):
    """
    `ChainWriter` that sends controller calls from *account* via
    ``eth_sendTransaction``.
    """

    def __init__(
        self,
        rpc: JsonRpcClient,
        controller_address: str,
        account: Optional[str],
        poll_interval: float = WRITE_POLL_INTERVAL,
        settle_timeout: float = WRITE_SETTLE_TIMEOUT,
    ):
        self.rpc = rpc
        self.controller_address = checksum(controller_address)
        self.account = checksum(account) if account else None
        self.poll_interval = poll_interval
        self.settle_timeout = settle_timeout

    async def _send(self, action: str, shape: FunctionShape, *args) -> RpcWriteHandle:
        if self.account is None:
            raise ConfigurationError("No sending account configured for writes")
        tx = {
            "from": self.account,
            "to": self.controller_address,
            "data": _hex(shape.encode_call(*args)),
        }
        try:
            tx_hash = await self.rpc.request("eth_sendTransaction", [tx])
        except JsonRpcError as e:
            logger.error(f"{action} rejected: {e.message}")
            raise WriteRejectedError(action, e.message) from e
        except ChainReadError as e:
            logger.error(f"{action} could not be sent: {e}")
            raise WriteRejectedError(action, str(e)) from e
        if not isinstance(tx_hash, str):
            raise WriteRejectedError(action, f"node returned no transaction hash ({tx_hash!r})")
        logger.info(f"{action} submitted: {tx_hash}")
        return RpcWriteHandle(action, tx_hash, self)

    async def submit_transaction(
        self,
        target: str,
        value: int,
        is_token_transfer: bool,
        token_address: Optional[str],
        data: bytes,
    ) -> RpcWriteHandle:
        return await self._send(
            "submit transaction", SUBMIT_TRANSACTION,
            checksum(target), int(value), bool(is_token_transfer),
            checksum(token_address) if token_address else ZERO_ADDRESS,
            bytes(data),
        )

    async def confirm_transaction(self, proposal_id: int) -> RpcWriteHandle:
        return await self._send("confirm transaction", CONFIRM_TRANSACTION, int(proposal_id))

    async def confirm_transactions_batch(self, proposal_ids: Sequence[int]) -> RpcWriteHandle:
        return await self._send(
            "confirm transactions", CONFIRM_TRANSACTIONS_BATCH, [int(i) for i in proposal_ids]
        )

    async def revoke_confirmation(self, proposal_id: int) -> RpcWriteHandle:
        return await self._send("revoke confirmation", REVOKE_CONFIRMATION, int(proposal_id))

    async def execute_transaction(self, proposal_id: int) -> RpcWriteHandle:
        return await self._send("execute transaction", EXECUTE_TRANSACTION, int(proposal_id))

    async def submit_add_owner(self, owner: str, name: str, weight: int) -> RpcWriteHandle:
        return await self._send("propose adding owner", abi.SUBMIT_ADD_OWNER, checksum(owner), name, int(weight))

    async def submit_remove_owner(self, owner: str) -> RpcWriteHandle:
        return await self._send("propose removing owner", abi.SUBMIT_REMOVE_OWNER, checksum(owner))

    async def submit_change_required_percentage(self, percentage: int) -> RpcWriteHandle:
        return await self._send(
            "propose quorum change", abi.SUBMIT_CHANGE_REQUIRED_PERCENTAGE, int(percentage)
        )

    async def pause(self) -> RpcWriteHandle:
        return await self._send("pause", abi.PAUSE)

    async def unpause(self) -> RpcWriteHandle:
        return await self._send("unpause", abi.UNPAUSE)

    async def call_test(self) -> RpcWriteHandle:
        return await self._send("call test function", abi.TEST)


def connect(
    rpc_url: str,
    controller_address: str,
    vault_address: Optional[str] = None,
    account: Optional[str] = None,
    client: Optional[httpx.AsyncClient] = None,
    poll_interval: float = WRITE_POLL_INTERVAL,
    settle_timeout: float = WRITE_SETTLE_TIMEOUT,
) -> Tuple[JsonRpcClient, ControllerReader, ControllerWriter]:
    """Build a client plus reader and writer sharing it."""
    rpc = JsonRpcClient(rpc_url, client=client)
    reader = ControllerReader(rpc, controller_address, vault_address)
    writer = ControllerWriter(
        rpc, controller_address, account,
        poll_interval=poll_interval, settle_timeout=settle_timeout,
    )
    return rpc, reader, writer
