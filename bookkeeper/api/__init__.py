"""RPC API package."""

from bookkeeper.api.router import RpcError, RpcRouter, to_wire

__all__ = ["RpcError", "RpcRouter", "to_wire"]
