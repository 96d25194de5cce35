"""Providers: on-chain reads and the JSON-RPC implementation."""

from tx_assist.provider.base import Provider
from tx_assist.provider.jsonrpc import JsonRpcProvider

__all__ = ["JsonRpcProvider", "Provider"]
