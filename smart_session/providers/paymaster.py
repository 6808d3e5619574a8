"""
ERC-4337 Paymaster Provider.

The sponsorship channel: one round trip per draft, no retry here. A failure
aborts the send and the caller decides whether to build a new operation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .base import JsonRpcProvider
from ..core.execution.userop import UserOperation, check_uint
from ..core.recovery.errors import SponsorshipError

logger = logging.getLogger(__name__)


class SponsorshipFields(BaseModel):
    """Paymaster fields (and the gas limits it priced) for a v0.7 operation."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    paymaster: str
    paymaster_data: str = Field(default="0x", alias="paymasterData")
    paymaster_verification_gas_limit: int = Field(default=0, alias="paymasterVerificationGasLimit")
    paymaster_post_op_gas_limit: int = Field(default=0, alias="paymasterPostOpGasLimit")
    call_gas_limit: int = Field(default=0, alias="callGasLimit")
    verification_gas_limit: int = Field(default=0, alias="verificationGasLimit")
    pre_verification_gas: int = Field(default=0, alias="preVerificationGas")

    @field_validator(
        "paymaster_verification_gas_limit",
        "paymaster_post_op_gas_limit",
        "call_gas_limit",
        "verification_gas_limit",
        "pre_verification_gas",
        mode="before",
    )
    @classmethod
    def _parse_quantity(cls, value: Any) -> Any:
        if isinstance(value, str):
            return int(value, 16) if value.startswith("0x") else int(value)
        return value

    @field_validator(
        "paymaster_verification_gas_limit",
        "paymaster_post_op_gas_limit",
        "call_gas_limit",
        "verification_gas_limit",
    )
    @classmethod
    def _check_uint128(cls, value: int) -> int:
        # packed into half of a bytes32 slot
        check_uint("gas limit", value, 128)
        return value

    @field_validator("pre_verification_gas")
    @classmethod
    def _check_uint256(cls, value: int) -> int:
        check_uint("pre_verification_gas", value, 256)
        return value

    @field_validator("paymaster")
    @classmethod
    def _check_paymaster(cls, value: str) -> str:
        if not value.startswith("0x") or len(value) != 42:
            raise ValueError(f"Invalid paymaster address: {value}")
        return value


@dataclass
class PaymasterConfig:
    rpc_url: str
    chain_id: int
    entry_point: str
    api_key: str = ""
    rpc_method: str = "pm_sponsorUserOperation"


class PaymasterProvider(JsonRpcProvider):
    name = "paymaster"
    error_cls = SponsorshipError

    def __init__(self, config: PaymasterConfig, client: Optional[httpx.AsyncClient] = None) -> None:
        headers: Dict[str, str] = {"x-api-key": config.api_key} if config.api_key else {}
        super().__init__(config.rpc_url, client=client, headers=headers)
        self._config = config

    async def sponsor(self, draft: UserOperation) -> SponsorshipFields:
        params = [
            draft.to_rpc_dict(),
            self._config.entry_point,
            {"chainId": self._config.chain_id},
        ]
        result = await self._rpc_call(self._config.rpc_method, params)
        if not isinstance(result, dict):
            raise SponsorshipError("Invalid paymaster response", provider=self.name)

        try:
            fields = SponsorshipFields.model_validate(result)
        except ValidationError as exc:
            raise SponsorshipError(f"Malformed sponsorship payload: {exc}", provider=self.name) from exc

        logger.info(f"Operation for {draft.sender} sponsored by {fields.paymaster}")
        return fields
