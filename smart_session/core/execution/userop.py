"""
ERC-4337 v0.7 UserOperation models and helpers.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

from eth_abi import encode
from eth_utils import keccak, to_checksum_address

from .userop_builder import hex_to_bytes, strip_0x


# SimpleAccount placeholder signature used while the real one cannot exist yet
DUMMY_SIGNATURE = "0x" + "f" * 31 + "0" * 33 + "7" + "a" * 63 + "1c"


def _to_hex(value: int) -> str:
    return hex(value)


def _pack_uints(high: int, low: int) -> bytes:
    """Two uint128 values packed into one bytes32 (high first)."""
    return high.to_bytes(16, "big") + low.to_bytes(16, "big")


def check_uint(name: str, value: int, bits: int) -> None:
    if not isinstance(value, int) or value < 0 or value >= 2**bits:
        raise ValueError(f"{name} out of uint{bits} range: {value!r}")


@dataclass(frozen=True)
class FeeParams:
    """Caller supplied fee fields, in wei."""
    max_fee_per_gas: int
    max_priority_fee_per_gas: int

    def __post_init__(self) -> None:
        check_uint("max_fee_per_gas", self.max_fee_per_gas, 128)
        check_uint("max_priority_fee_per_gas", self.max_priority_fee_per_gas, 128)


@dataclass(frozen=True)
class UserOperation:
    """
    ERC-4337 v0.7 UserOperation payload.

    Values should be supplied in raw units (wei / gas units) and are encoded
    as hex for RPC calls. Instances are immutable; sponsorship and signature
    produce new operations.
    """
    sender: str
    nonce: int
    call_data: str
    max_fee_per_gas: int
    max_priority_fee_per_gas: int
    factory: Optional[str] = None
    factory_data: str = "0x"
    call_gas_limit: int = 0
    verification_gas_limit: int = 0
    pre_verification_gas: int = 0
    paymaster: Optional[str] = None
    paymaster_verification_gas_limit: int = 0
    paymaster_post_op_gas_limit: int = 0
    paymaster_data: str = "0x"
    signature: str = "0x"

    @property
    def init_code(self) -> str:
        if not self.factory:
            return "0x"
        return self.factory + strip_0x(self.factory_data)

    @property
    def paymaster_and_data(self) -> str:
        if not self.paymaster:
            return "0x"
        return (
            self.paymaster
            + self.paymaster_verification_gas_limit.to_bytes(16, "big").hex()
            + self.paymaster_post_op_gas_limit.to_bytes(16, "big").hex()
            + strip_0x(self.paymaster_data)
        )

    @property
    def is_signed(self) -> bool:
        return len(strip_0x(self.signature)) > 0 and self.signature != DUMMY_SIGNATURE

    def with_sponsorship(self, fields: Any) -> "UserOperation":
        """Merge paymaster fields (and the gas limits the paymaster priced)."""
        return replace(
            self,
            paymaster=fields.paymaster,
            paymaster_data=fields.paymaster_data,
            paymaster_verification_gas_limit=fields.paymaster_verification_gas_limit,
            paymaster_post_op_gas_limit=fields.paymaster_post_op_gas_limit,
            call_gas_limit=fields.call_gas_limit or self.call_gas_limit,
            verification_gas_limit=fields.verification_gas_limit or self.verification_gas_limit,
            pre_verification_gas=fields.pre_verification_gas or self.pre_verification_gas,
        )

    def with_signature(self, signature: str) -> "UserOperation":
        return replace(self, signature=signature)

    def check_ranges(self) -> None:
        """Raise ValueError when a field does not fit its packed slot."""
        check_uint("nonce", self.nonce, 256)
        check_uint("pre_verification_gas", self.pre_verification_gas, 256)
        for name in (
            "max_fee_per_gas",
            "max_priority_fee_per_gas",
            "call_gas_limit",
            "verification_gas_limit",
            "paymaster_verification_gas_limit",
            "paymaster_post_op_gas_limit",
        ):
            check_uint(name, getattr(self, name), 128)

    def pack(self) -> bytes:
        """ABI encoding of the packed operation, signature excluded."""
        return encode(
            ["address", "uint256", "bytes32", "bytes32", "bytes32", "uint256", "bytes32", "bytes32"],
            [
                to_checksum_address(self.sender),
                self.nonce,
                keccak(hex_to_bytes(self.init_code)),
                keccak(hex_to_bytes(self.call_data)),
                _pack_uints(self.verification_gas_limit, self.call_gas_limit),
                self.pre_verification_gas,
                _pack_uints(self.max_priority_fee_per_gas, self.max_fee_per_gas),
                keccak(hex_to_bytes(self.paymaster_and_data)),
            ],
        )

    def hash(self, entry_point: str, chain_id: int) -> bytes:
        """userOpHash as computed by EntryPoint v0.7."""
        return keccak(
            encode(
                ["bytes32", "address", "uint256"],
                [keccak(self.pack()), to_checksum_address(entry_point), chain_id],
            )
        )

    def to_rpc_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "sender": self.sender,
            "nonce": _to_hex(self.nonce),
            "callData": self.call_data,
            "callGasLimit": _to_hex(self.call_gas_limit),
            "verificationGasLimit": _to_hex(self.verification_gas_limit),
            "preVerificationGas": _to_hex(self.pre_verification_gas),
            "maxFeePerGas": _to_hex(self.max_fee_per_gas),
            "maxPriorityFeePerGas": _to_hex(self.max_priority_fee_per_gas),
            "signature": self.signature,
        }
        # v0.7 bundlers expect the factory pair only for undeployed accounts
        if self.factory:
            payload["factory"] = self.factory
            payload["factoryData"] = self.factory_data
        if self.paymaster:
            payload["paymaster"] = self.paymaster
            payload["paymasterVerificationGasLimit"] = _to_hex(self.paymaster_verification_gas_limit)
            payload["paymasterPostOpGasLimit"] = _to_hex(self.paymaster_post_op_gas_limit)
            payload["paymasterData"] = self.paymaster_data
        return payload


@dataclass
class UserOpReceipt:
    user_op_hash: str
    success: bool
    transaction_hash: Optional[str] = None
    block_number: Optional[int] = None
    gas_used: Optional[int] = None

    @classmethod
    def from_rpc(cls, user_op_hash: str, data: Dict[str, Any]) -> "UserOpReceipt":
        receipt = data.get("receipt") or {}
        success = data.get("success")
        if success is None:
            success = receipt.get("status") == "0x1"
        return cls(
            user_op_hash=user_op_hash,
            success=bool(success),
            transaction_hash=receipt.get("transactionHash"),
            block_number=int(receipt["blockNumber"], 16) if receipt.get("blockNumber") else None,
            gas_used=int(receipt["gasUsed"], 16) if receipt.get("gasUsed") else None,
        )


@dataclass(frozen=True)
class TransactionHandle:
    """
    What the relay gave back for one accepted operation.

    ``transaction_hash`` is the bundle transaction and the key used to look
    the operation up in the index.
    """
    transaction_hash: str
    user_operation_hash: str

    def __str__(self) -> str:
        return self.transaction_hash
