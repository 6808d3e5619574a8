"""
UserOperation calldata builders.
"""

from __future__ import annotations

from typing import Any, Dict, List, Sequence

from eth_abi import encode
from eth_utils import is_address, keccak, to_checksum_address


EXECUTE_SIGNATURE = "execute(address,uint256,bytes)"
CREATE_ACCOUNT_SIGNATURE = "createAccount(address,uint256)"
INITIALIZE_SIGNATURE = "initialize(address)"
GET_NONCE_SIGNATURE = "getNonce(address,uint192)"


def strip_0x(value: str) -> str:
    return value[2:] if value.startswith(("0x", "0X")) else value


def hex_to_bytes(value: str) -> bytes:
    hex_data = strip_0x(value)
    if len(hex_data) % 2 != 0:
        raise ValueError("Byte data must have an even-length hex string")
    return bytes.fromhex(hex_data)


def _encode_uint(value: int) -> str:
    if value < 0 or value >= 2**256:
        raise ValueError(f"Value out of uint256 range: {value}")
    return hex(value)[2:].rjust(64, "0")


def _encode_address(address: str) -> str:
    addr = strip_0x(address).lower()
    if len(addr) != 40:
        raise ValueError(f"Invalid address length: {address}")
    return addr.rjust(64, "0")


def _encode_bytes(data: str) -> str:
    hex_data = hex_to_bytes(data).hex()
    data_len = len(hex_data) // 2
    padded_len = ((data_len + 31) // 32) * 32
    padding = "0" * ((padded_len - data_len) * 2)
    return _encode_uint(data_len) + hex_data + padding


def selector_from_signature(signature: str) -> str:
    selector = keccak(text=signature)[:4].hex()
    return f"0x{selector}"


def build_execute_call_data(to_address: str, value_wei: int, data: str) -> str:
    """
    Build SimpleAccount calldata for execute(address,uint256,bytes).
    """
    if not is_address(to_address):
        raise ValueError(f"Invalid target address: {to_address}")
    selector = selector_from_signature(EXECUTE_SIGNATURE)
    head = (
        _encode_address(to_address)
        + _encode_uint(value_wei)
        + _encode_uint(96)  # offset to bytes data
    )
    tail = _encode_bytes(data)
    return selector + head + tail


def build_create_account_call(owner: str, salt: int = 0) -> str:
    """
    Build SimpleAccountFactory calldata for createAccount(address,uint256).
    """
    selector = selector_from_signature(CREATE_ACCOUNT_SIGNATURE)
    return selector + _encode_address(owner) + _encode_uint(salt)


def build_initialize_call(owner: str) -> str:
    """
    Build SimpleAccount calldata for initialize(address).
    """
    return selector_from_signature(INITIALIZE_SIGNATURE) + _encode_address(owner)


def build_entrypoint_get_nonce_call(sender: str, key: int = 0) -> str:
    """
    Build calldata for EntryPoint.getNonce(address,uint192).
    """
    selector = selector_from_signature(GET_NONCE_SIGNATURE)
    head = _encode_address(sender) + _encode_uint(key)
    return selector + head


def _function_signature(abi_entry: Dict[str, Any]) -> str:
    input_types = ",".join(item["type"] for item in abi_entry.get("inputs", []))
    return f"{abi_entry['name']}({input_types})"


def encode_function_data(abi: List[Dict[str, Any]], function_name: str, args: Sequence[Any]) -> str:
    """
    Encode a contract call from an ABI fragment, e.g. a token mint.
    """
    candidates = [
        entry for entry in abi
        if entry.get("type", "function") == "function"
        and entry.get("name") == function_name
        and len(entry.get("inputs", [])) == len(args)
    ]
    if not candidates:
        raise ValueError(f"Function {function_name} with {len(args)} argument(s) not found in ABI")

    entry = candidates[0]
    types = [item["type"] for item in entry.get("inputs", [])]
    values = [
        to_checksum_address(value) if type_ == "address" else value
        for type_, value in zip(types, args)
    ]
    selector = selector_from_signature(_function_signature(entry))
    return selector + encode(types, values).hex()
