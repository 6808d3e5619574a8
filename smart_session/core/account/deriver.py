"""
Counterfactual SimpleAccount derivation.

The account address is the CREATE2 address the SimpleAccountFactory would
deploy the owner's proxy to. It is computed locally, so the account can be
used (and funded) before it exists on-chain; deployment happens with the
first operation through the EntryPoint.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Optional, Tuple

from eth_abi import encode
from eth_utils import is_address, keccak, to_checksum_address

from ..execution.userop_builder import build_create_account_call, build_initialize_call, hex_to_bytes, strip_0x
from ..recovery.errors import DerivationError
from ...auth.signer import Signer

if TYPE_CHECKING:
    from ...providers.rpc import ChainRpcProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccountBlueprint:
    """
    What the factory deploys: an ERC-1967 proxy pointing at the account
    implementation, initialised with the owner.
    """
    implementation: str
    proxy_creation_code: str

    def init_code_hash(self, owner: str) -> bytes:
        constructor_args = encode(
            ["address", "bytes"],
            [
                to_checksum_address(self.implementation),
                hex_to_bytes(build_initialize_call(owner)),
            ],
        )
        return keccak(hex_to_bytes(self.proxy_creation_code) + constructor_args)


@dataclass(frozen=True)
class AccountDescriptor:
    owner: Signer
    factory_address: str
    entry_point: str
    computed_address: str
    init_code: str
    salt: int = 0

    @property
    def factory_data(self) -> str:
        # init_code = factory (20 bytes) ++ factory calldata
        return "0x" + strip_0x(self.init_code)[40:]


def compute_create2_address(deployer: str, salt: int, init_code_hash: bytes) -> str:
    digest = keccak(
        b"\xff"
        + hex_to_bytes(deployer)
        + salt.to_bytes(32, "big")
        + init_code_hash
    )
    return to_checksum_address(digest[-20:])


class AccountDeriver:
    """
    Derives the account descriptor for a signer.

    Results are cached per (owner, factory, entry point, salt); recomputing
    always yields the same address.
    """

    def __init__(self, blueprint: Optional[AccountBlueprint], salt: int = 0) -> None:
        self._blueprint = blueprint
        self._salt = salt
        self._cache: Dict[Tuple[str, str, str, int], AccountDescriptor] = {}

    def derive(self, signer: Optional[Signer], factory_address: str, entry_point: str) -> AccountDescriptor:
        owner = getattr(signer, "address", None)
        if signer is None or not owner or not is_address(owner):
            raise DerivationError("Signer is missing or has no valid address")
        if not factory_address or not is_address(factory_address):
            raise DerivationError(f"Malformed factory address: {factory_address!r}")
        if not entry_point or not is_address(entry_point):
            raise DerivationError(f"Malformed entry point address: {entry_point!r}")
        if self._salt < 0 or self._salt >= 2**256:
            raise DerivationError(f"Salt out of range: {self._salt}")

        factory = to_checksum_address(factory_address)
        entry = to_checksum_address(entry_point)
        key = (to_checksum_address(owner), factory, entry, self._salt)
        cached = self._cache.get(key)
        if cached is not None and cached.owner is signer:
            return cached

        blueprint = self._require_blueprint()
        try:
            init_code_hash = blueprint.init_code_hash(owner)
        except ValueError as exc:
            raise DerivationError(f"Account blueprint is malformed: {exc}") from exc

        computed = compute_create2_address(factory, self._salt, init_code_hash)
        descriptor = AccountDescriptor(
            owner=signer,
            factory_address=factory,
            entry_point=entry,
            computed_address=computed,
            init_code=factory + strip_0x(build_create_account_call(owner, self._salt)),
            salt=self._salt,
        )
        self._cache[key] = descriptor
        logger.info(f"Derived smart account {computed} for owner {owner}")
        return descriptor

    def _require_blueprint(self) -> AccountBlueprint:
        blueprint = self._blueprint
        if blueprint is None:
            raise DerivationError(
                "Account implementation and proxy creation code are not configured "
                "(set ACCOUNT_IMPLEMENTATION and PROXY_CREATION_CODE)"
            )
        if not is_address(blueprint.implementation):
            raise DerivationError(f"Malformed account implementation: {blueprint.implementation!r}")
        if not strip_0x(blueprint.proxy_creation_code):
            raise DerivationError("Proxy creation code is empty")
        return blueprint


async def verify_deployment(descriptor: AccountDescriptor, rpc: ChainRpcProvider) -> bool:
    """Whether the factory has already deployed the account."""
    return await rpc.is_contract(descriptor.computed_address)
