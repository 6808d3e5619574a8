"""
Chain JSON-RPC provider.

Read-only calls the session needs against the target chain: account code,
EntryPoint nonce and native balance.
"""

from __future__ import annotations

from typing import Optional

import httpx

from .base import JsonRpcProvider
from ..core.execution.userop_builder import build_entrypoint_get_nonce_call


class RpcError(Exception):
    """Chain RPC error."""
    pass


def _parse_quantity(value: object, method: str) -> int:
    if not isinstance(value, str):
        raise RpcError(f"Invalid hex quantity from {method}: {value!r}")
    if value in ("0x", ""):
        return 0
    try:
        return int(value, 16)
    except ValueError as exc:
        raise RpcError(f"Invalid hex quantity from {method}: {value!r}") from exc


class ChainRpcProvider(JsonRpcProvider):
    name = "rpc"
    error_cls = RpcError

    def __init__(self, rpc_url: str, client: Optional[httpx.AsyncClient] = None) -> None:
        super().__init__(rpc_url, client=client)

    async def chain_id(self) -> int:
        return _parse_quantity(await self._rpc_call("eth_chainId", []), "eth_chainId")

    async def get_code(self, address: str) -> str:
        result = await self._rpc_call("eth_getCode", [address, "latest"])
        if not isinstance(result, str):
            raise RpcError("Invalid response for eth_getCode")
        return result

    async def is_contract(self, address: str) -> bool:
        code = await self.get_code(address)
        return code not in ("0x", "0x0", "")

    async def get_balance(self, address: str) -> int:
        result = await self._rpc_call("eth_getBalance", [address, "latest"])
        return _parse_quantity(result, "eth_getBalance")

    async def get_entry_point_nonce(self, entry_point: str, sender: str, key: int = 0) -> int:
        result = await self._rpc_call(
            "eth_call",
            [{"to": entry_point, "data": build_entrypoint_get_nonce_call(sender, key)}, "latest"],
        )
        return _parse_quantity(result, "eth_call getNonce")
