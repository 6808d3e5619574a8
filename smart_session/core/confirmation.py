"""
Confirmation resolution.

Maps a bundle transaction hash to the user operation the index recorded
for it. The index lags the chain by a roughly constant amount, so the
resolver polls at a fixed interval with one attempt budget and never
backs off.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel

from .execution.userop import TransactionHandle
from .recovery.errors import ResolutionExhausted
from .recovery.polling import PollPolicy, SleepFn, poll_until
from ..networks import NetworkConfig
from ..providers.jiffyscan import BundleActivity, JiffyscanProvider

logger = logging.getLogger(__name__)


class ConfirmationRecord(BaseModel):
    """Index record for a resolved operation."""
    user_operation_hash: str
    transaction_hash: str
    network: str
    bundle_activity: Dict[str, Any]


class NotFound:
    """The index had no record for the handle within the budget."""

    _instance: Optional["NotFound"] = None

    def __new__(cls) -> "NotFound":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NOT_FOUND"


NOT_FOUND = NotFound()

ResolveResult = Union[ConfirmationRecord, NotFound]


class ConfirmationResolver:
    def __init__(
        self,
        index: JiffyscanProvider,
        policy: Optional[PollPolicy] = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.index = index
        self.policy = policy or PollPolicy(max_attempts=20, interval_seconds=3.0)
        self._sleep = sleep

    async def resolve(
        self,
        handle: Union[TransactionHandle, str],
        network: Union[NetworkConfig, str],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ResolveResult:
        """
        Poll the index until it lists the bundle's first user operation.

        Returns NOT_FOUND once the attempt budget is spent. Malformed index
        payloads raise IndexResponseError instead of counting as a miss.
        """
        tx_hash = handle.transaction_hash if isinstance(handle, TransactionHandle) else handle
        network_slug = network.slug if isinstance(network, NetworkConfig) else network

        async def fetch() -> Optional[BundleActivity]:
            return await self.index.get_bundle_activity(tx_hash, network_slug)

        result = await poll_until(
            fetch,
            self.policy,
            sleep=self._sleep,
            cancel_event=cancel_event,
            label=f"bundle {tx_hash}",
        )
        if not result.found:
            logger.warning(
                f"No indexed user operation for bundle {tx_hash} on {network_slug} "
                f"after {result.attempts} attempts"
            )
            return NOT_FOUND

        bundle = result.value
        record = ConfirmationRecord(
            user_operation_hash=bundle.user_ops[0].user_op_hash,
            transaction_hash=tx_hash,
            network=network_slug,
            bundle_activity=bundle.model_dump(by_alias=True),
        )
        logger.info(f"Bundle {tx_hash} resolved to user operation {record.user_operation_hash}")
        return record

    async def resolve_or_raise(
        self,
        handle: Union[TransactionHandle, str],
        network: Union[NetworkConfig, str],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ConfirmationRecord:
        result = await self.resolve(handle, network, cancel_event=cancel_event)
        if isinstance(result, NotFound):
            raise ResolutionExhausted(
                f"No index record after {self.policy.max_attempts} attempts",
                tx_hash=str(handle),
            )
        return result
