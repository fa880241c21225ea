"""
Call Decoder

`describe` classifies a proposal's raw call into a `Description`. Strategies
are tried in a fixed order and the first one returning a description wins:

  1. controller shape       target is the controller
  2. vault-execution shape  target is the vault (approve vs forwarded send)
  3. token-transfer shape   token flag set; transfer / approve refinement
  4. native transfer        empty call data, value > 0
  5. unknown call           non-empty call data, raw 4-byte selector kept
  6. no-op                  nothing else applies

A strategy returns None when its precondition does not hold and raises
`ShapeMismatch` when the payload does not fit; both fall through. `describe`
never raises.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Union

from eth_utils import to_bytes

from ..addresses import same_address
from ..logger import get_logger
from ..tokens.registry import TokenRegistry
from . import abi
from .abi import ShapeMismatch
from .descriptions import (
    Description,
    GovernanceAction,
    GovernanceProposal,
    NativeTransfer,
    NoOp,
    TokenOperation,
    TokenTransfer,
    UnknownCall,
    VaultApproval,
    VaultSend,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class ContractDirectory:
    """Addresses of the governance contracts the decoder recognises."""
    controller: str
    vault: str

    def to_dict(self):
        return {"controller": self.controller, "vault": self.vault}


@dataclass(frozen=True)
class CallContext:
    target: str
    value: int
    call_data: bytes
    is_token_transfer: bool
    token_address: Optional[str]
    contracts: ContractDirectory
    tokens: TokenRegistry


Strategy = Callable[[CallContext], Optional[Description]]


def normalize_call_data(call_data: Union[bytes, bytearray, str, None]) -> Optional[bytes]:
    """
    Bytes for *call_data*; None when a hex string is malformed.

        >>> normalize_call_data("0x")
        b''
    """
    if call_data is None:
        return b""
    if isinstance(call_data, (bytes, bytearray)):
        return bytes(call_data)
    try:
        return to_bytes(hexstr=call_data)
    except (ValueError, TypeError):
        return None


# ══════════════════════════════════════════════════════════════════════
#  STRATEGIES
# ══════════════════════════════════════════════════════════════════════

def decode_controller_call(ctx: CallContext) -> Optional[Description]:
    if not same_address(ctx.target, ctx.contracts.controller):
        return None
    shape, args = abi.match(abi.CONTROLLER_SHAPES, ctx.call_data)

    if shape in (abi.SUBMIT_ADD_OWNER, abi.ADD_OWNER):
        owner, name, weight = args
        return GovernanceProposal(
            action=GovernanceAction.ADD_OWNER,
            owner=owner, name=name, weight=int(weight),
            scheduled=shape is abi.ADD_OWNER,
        )
    if shape in (abi.SUBMIT_REMOVE_OWNER, abi.REMOVE_OWNER):
        return GovernanceProposal(
            action=GovernanceAction.REMOVE_OWNER,
            owner=args[0],
            scheduled=shape is abi.REMOVE_OWNER,
        )
    if shape in (abi.SUBMIT_CHANGE_REQUIRED_PERCENTAGE, abi.CHANGE_REQUIRED_PERCENTAGE):
        return GovernanceProposal(
            action=GovernanceAction.CHANGE_QUORUM,
            percentage=int(args[0]),
            scheduled=shape is abi.CHANGE_REQUIRED_PERCENTAGE,
        )
    return GovernanceProposal(action={
        abi.PAUSE.selector: GovernanceAction.PAUSE,
        abi.UNPAUSE.selector: GovernanceAction.UNPAUSE,
        abi.TEST.selector: GovernanceAction.TEST,
    }[shape.selector])


def decode_vault_call(ctx: CallContext) -> Optional[Description]:
    if not same_address(ctx.target, ctx.contracts.vault):
        return None
    inner_to, inner_value, inner_is_token, inner_token, inner_data = abi.VAULT_EXECUTE.decode_args(
        ctx.call_data
    )

    try:
        spender, allowance = abi.ERC20_APPROVE.decode_args(inner_data)
    except ShapeMismatch:
        pass
    else:
        # approve() is called on the token contract itself
        token = ctx.tokens.resolve(inner_to)
        return VaultApproval(token=inner_to, spender=spender, amount=token.amount(allowance))

    asset = ctx.tokens.resolve_token(inner_token) if inner_is_token else ctx.tokens.native
    return VaultSend(
        recipient=inner_to,
        amount=asset.amount(inner_value),
        is_token_transfer=bool(inner_is_token),
        token=inner_token if inner_is_token else None,
        inner_call_data=bytes(inner_data),
    )


def decode_token_transfer(ctx: CallContext) -> Optional[Description]:
    if not ctx.is_token_transfer:
        return None
    token = ctx.tokens.resolve_token(ctx.token_address)
    token_address = ctx.token_address or token.address

    if not ctx.call_data:
        return TokenTransfer(
            operation=TokenOperation.TRANSFER,
            token=token_address,
            amount=token.amount(ctx.value),
            counterparty=ctx.target,
        )

    try:
        shape, args = abi.match(abi.ERC20_SHAPES, ctx.call_data)
    except ShapeMismatch:
        logger.debug(f"Token call data to {ctx.target} not a known ERC-20 shape")
        return TokenTransfer(
            operation=TokenOperation.INTERACTION,
            token=token_address,
            amount=token.amount(ctx.value),
            counterparty=ctx.target,
        )

    if shape is abi.ERC20_TRANSFER_FROM:
        source, recipient, amount = args
        return TokenTransfer(
            operation=TokenOperation.TRANSFER_FROM,
            token=token_address,
            amount=token.amount(amount),
            counterparty=recipient,
            source=source,
        )
    counterparty, amount = args
    return TokenTransfer(
        operation=TokenOperation.APPROVE if shape is abi.ERC20_APPROVE else TokenOperation.TRANSFER,
        token=token_address,
        amount=token.amount(amount),
        counterparty=counterparty,
    )


def decode_native_transfer(ctx: CallContext) -> Optional[Description]:
    if ctx.call_data or ctx.value <= 0:
        return None
    return NativeTransfer(recipient=ctx.target, amount=ctx.tokens.native.amount(ctx.value))


def decode_unknown_call(ctx: CallContext) -> Optional[Description]:
    if not ctx.call_data:
        return None
    value = ctx.tokens.native.amount(ctx.value) if ctx.value > 0 else None
    return UnknownCall(target=ctx.target, selector=abi.split_selector(ctx.call_data), value=value)


STRATEGIES: List[Strategy] = [
    decode_controller_call,
    decode_vault_call,
    decode_token_transfer,
    decode_native_transfer,
    decode_unknown_call,
]


# ══════════════════════════════════════════════════════════════════════
#  ENTRY POINT
# ══════════════════════════════════════════════════════════════════════

def describe(
    target: str,
    value: int,
    call_data: Union[bytes, str, None],
    is_token_transfer: bool,
    token_address: Optional[str],
    known_contracts: ContractDirectory,
    known_tokens: TokenRegistry,
) -> Description:
    """
    Classify a proposed call.

    Args:
        target:             Destination of the call
        value:              Native or token smallest units
        call_data:          Raw payload as bytes or ``0x`` hex
        is_token_transfer:  Value is denominated in ``token_address``
        token_address:      ERC-20 contract for token transfers
        known_contracts:    Controller and vault addresses
        known_tokens:       Registry for symbols and decimals

    Returns:
        The first matching description; `NoOp` when nothing applies.
    """
    data = normalize_call_data(call_data)
    if data is None:
        logger.debug(f"Call data to {target} is not valid hex")
        return UnknownCall(target=target, selector=None)

    ctx = CallContext(
        target=target,
        value=int(value or 0),
        call_data=data,
        is_token_transfer=bool(is_token_transfer),
        token_address=token_address,
        contracts=known_contracts,
        tokens=known_tokens,
    )
    for strategy in STRATEGIES:
        try:
            description = strategy(ctx)
        except ShapeMismatch as e:
            logger.debug(f"{strategy.__name__} fell through: {e}")
            continue
        if description is not None:
            return description
    return NoOp(target=target)
