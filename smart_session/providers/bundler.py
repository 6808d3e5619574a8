"""
ERC-4337 Bundler Provider.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

import httpx

from .base import JsonRpcProvider
from ..core.execution.userop import UserOperation, UserOpReceipt


class BundlerError(Exception):
    """Bundler provider error."""
    pass


@dataclass
class BundlerConfig:
    rpc_url: str
    entry_point: str
    api_key: str = ""


class BundlerProvider(JsonRpcProvider):
    name = "bundler"
    error_cls = BundlerError

    def __init__(self, config: BundlerConfig, client: Optional[httpx.AsyncClient] = None) -> None:
        headers: Dict[str, str] = {"x-api-key": config.api_key} if config.api_key else {}
        super().__init__(config.rpc_url, client=client, headers=headers)
        self._config = config

    @property
    def entry_point(self) -> str:
        return self._config.entry_point

    async def send_user_operation(self, user_op: UserOperation) -> str:
        """Submit a signed operation; returns the user operation hash."""
        result = await self._rpc_call(
            "eth_sendUserOperation",
            [user_op.to_rpc_dict(), self._config.entry_point],
        )
        if not isinstance(result, str):
            raise BundlerError("Invalid bundler response for eth_sendUserOperation")
        return result

    async def get_user_operation_receipt(self, user_op_hash: str) -> Optional[UserOpReceipt]:
        result = await self._rpc_call(
            "eth_getUserOperationReceipt",
            [user_op_hash],
        )
        if not result:
            return None
        if not isinstance(result, dict):
            raise BundlerError("Invalid bundler response for eth_getUserOperationReceipt")
        return UserOpReceipt.from_rpc(user_op_hash, result)
