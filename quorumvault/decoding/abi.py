"""
ABI helpers for the controller, vault and ERC-20 call shapes.

Function signatures are kept as plain strings; selectors and argument types
are derived from them once at import.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import keccak, to_checksum_address


class ShapeMismatch(Exception):
    """Call data does not fit the shape being tried."""
    pass


def compute_function_selector(function_signature: str) -> bytes:
    """First 4 bytes of keccak256(signature)."""
    return keccak(text=function_signature)[:4]


def argument_types(function_signature: str) -> Tuple[str, ...]:
    """
    >>> argument_types("transfer(address,uint256)")
    ('address', 'uint256')
    """
    inner = function_signature[function_signature.index("(") + 1:-1]
    return tuple(t for t in inner.split(",") if t)


@dataclass(frozen=True)
class FunctionShape:
    name: str
    signature: str
    selector: bytes
    types: Tuple[str, ...]

    @classmethod
    def of(cls, signature: str) -> "FunctionShape":
        return cls(
            name=signature[:signature.index("(")],
            signature=signature,
            selector=compute_function_selector(signature),
            types=argument_types(signature),
        )

    def encode_call(self, *args) -> bytes:
        return self.selector + encode(list(self.types), list(args))

    def decode_args(self, call_data: bytes) -> tuple:
        """
        Decode the arguments of *call_data* against this shape.

        Raises:
            ShapeMismatch: selector differs or the payload is malformed.
        """
        if call_data[:4] != self.selector:
            raise ShapeMismatch(f"selector {call_data[:4].hex()} is not {self.name}")
        if not self.types:
            return ()
        try:
            values = decode(list(self.types), call_data[4:])
        except (DecodingError, ValueError, UnicodeDecodeError, OverflowError) as e:
            raise ShapeMismatch(f"{self.name}: {e}") from e
        return tuple(
            to_checksum_address(v) if t == "address" else v
            for t, v in zip(self.types, values)
        )


def shape_table(*signatures: str) -> Dict[bytes, FunctionShape]:
    shapes = [FunctionShape.of(s) for s in signatures]
    return {s.selector: s for s in shapes}


def match(table: Dict[bytes, FunctionShape], call_data: bytes) -> Tuple[FunctionShape, tuple]:
    """
    Find the shape for *call_data*'s selector and decode its arguments.

    Raises:
        ShapeMismatch: no shape in *table* fits.
    """
    if len(call_data) < 4:
        raise ShapeMismatch("call data shorter than a selector")
    shape = table.get(bytes(call_data[:4]))
    if shape is None:
        raise ShapeMismatch(f"unknown selector 0x{call_data[:4].hex()}")
    return shape, shape.decode_args(call_data)


def split_selector(call_data: bytes) -> Optional[str]:
    """``0x``-prefixed 4-byte selector, or None when the payload is shorter."""
    if len(call_data) < 4:
        return None
    return "0x" + call_data[:4].hex()


# ══════════════════════════════════════════════════════════════════════
#  KNOWN SHAPES
# ══════════════════════════════════════════════════════════════════════

# Controller proposal entry points and the self-calls they schedule.
SUBMIT_ADD_OWNER = FunctionShape.of("submitAddOwner(address,string,uint256)")
SUBMIT_REMOVE_OWNER = FunctionShape.of("submitRemoveOwner(address)")
SUBMIT_CHANGE_REQUIRED_PERCENTAGE = FunctionShape.of("submitChangeRequiredPercentage(uint256)")
ADD_OWNER = FunctionShape.of("addOwner(address,string,uint256)")
REMOVE_OWNER = FunctionShape.of("removeOwner(address)")
CHANGE_REQUIRED_PERCENTAGE = FunctionShape.of("changeRequiredPercentage(uint256)")
PAUSE = FunctionShape.of("pause()")
UNPAUSE = FunctionShape.of("unpause()")
TEST = FunctionShape.of("test()")

CONTROLLER_SHAPES = {
    s.selector: s for s in (
        SUBMIT_ADD_OWNER, SUBMIT_REMOVE_OWNER, SUBMIT_CHANGE_REQUIRED_PERCENTAGE,
        ADD_OWNER, REMOVE_OWNER, CHANGE_REQUIRED_PERCENTAGE,
        PAUSE, UNPAUSE, TEST,
    )
}

VAULT_EXECUTE = FunctionShape.of("executeTransaction(address,uint256,bool,address,bytes)")
VAULT_SHAPES = {VAULT_EXECUTE.selector: VAULT_EXECUTE}

ERC20_TRANSFER = FunctionShape.of("transfer(address,uint256)")
ERC20_APPROVE = FunctionShape.of("approve(address,uint256)")
ERC20_TRANSFER_FROM = FunctionShape.of("transferFrom(address,address,uint256)")
ERC20_SHAPES = {
    s.selector: s for s in (ERC20_TRANSFER, ERC20_APPROVE, ERC20_TRANSFER_FROM)
}
