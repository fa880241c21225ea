"""
Call-data decoding for governance proposals.
"""

from .abi import ShapeMismatch, compute_function_selector
from .decoder import ContractDirectory, describe
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

__all__ = [
    "ContractDirectory",
    "Description",
    "GovernanceAction",
    "GovernanceProposal",
    "NativeTransfer",
    "NoOp",
    "ShapeMismatch",
    "TokenOperation",
    "TokenTransfer",
    "UnknownCall",
    "VaultApproval",
    "VaultSend",
    "compute_function_selector",
    "describe",
]
