"""
Signer adapter.

Wraps a provider credential into the signing interface used by the account
deriver and the operation submitter.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Union

from eth_account import Account
from eth_account.messages import encode_defunct, encode_typed_data
from eth_utils import to_hex

from ..core.recovery.errors import AdapterError
from .models import Credential


class Signer:
    """
    EOA signer derived from exactly one credential.

    Immutable once created; the same credential always yields the same
    address.
    """

    __slots__ = ("_account", "_verifier_id")

    def __init__(self, account: Any, verifier_id: str = "") -> None:
        object.__setattr__(self, "_account", account)
        object.__setattr__(self, "_verifier_id", verifier_id)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("Signer is immutable")

    def __repr__(self) -> str:
        return f"Signer(address={self.address})"

    @classmethod
    def from_credential(cls, credential: Optional[Credential]) -> "Signer":
        if credential is None:
            raise AdapterError("No credential available to build a signer")
        if credential.is_expired():
            raise AdapterError(
                "Credential has expired",
                provider=credential.provider,
                verifier_id=credential.verifier_id,
            )

        try:
            account = Account.from_key(credential.private_key.get_secret_value())
        except Exception as exc:
            # message deliberately omits the key
            raise AdapterError(
                "Credential does not hold a usable signing key",
                provider=credential.provider,
            ) from exc
        return cls(account, verifier_id=credential.verifier_id)

    @property
    def address(self) -> str:
        return self._account.address

    @property
    def verifier_id(self) -> str:
        return self._verifier_id

    def sign_message(self, message: Union[str, bytes]) -> str:
        """EIP-191 personal_sign. Bytes are signed raw (e.g. a 32-byte hash)."""
        if isinstance(message, bytes):
            signable = encode_defunct(primitive=message)
        else:
            signable = encode_defunct(text=message)
        return to_hex(self._account.sign_message(signable).signature)

    def sign_typed_data(self, payload: Dict[str, Any]) -> str:
        """EIP-712 signature over a full typed-data message."""
        signable = encode_typed_data(full_message=payload)
        return to_hex(self._account.sign_message(signable).signature)
