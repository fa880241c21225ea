"""
Chain access: abstract reader/writer and the JSON-RPC binding.
"""

from .interfaces import ChainReader, ChainWriter, WriteHandle, WriteReceipt
from .rpc import (
    ControllerReader,
    ControllerWriter,
    JsonRpcClient,
    JsonRpcError,
    RpcWriteHandle,
    connect,
    proposal_id_from_logs,
)

__all__ = [
    "ChainReader",
    "ChainWriter",
    "ControllerReader",
    "ControllerWriter",
    "JsonRpcClient",
    "JsonRpcError",
    "RpcWriteHandle",
    "WriteHandle",
    "WriteReceipt",
    "connect",
    "proposal_id_from_logs",
]
