"""
Sponsored UserOperation submission.

Builds the operation for a smart account, has the paymaster sponsor it,
signs it with the account owner and hands it to the bundler exactly once.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Set

from eth_utils import to_hex

from .userop import DUMMY_SIGNATURE, FeeParams, TransactionHandle, UserOperation, UserOpReceipt, check_uint
from .userop_builder import build_execute_call_data
from ..account.deriver import AccountDescriptor, verify_deployment
from ..recovery.errors import InclusionPending, SponsorshipError, SubmissionError
from ..recovery.polling import PollPolicy, SleepFn, poll_until
from ...providers.bundler import BundlerError, BundlerProvider
from ...providers.paymaster import PaymasterProvider
from ...providers.rpc import ChainRpcProvider, RpcError

logger = logging.getLogger(__name__)


class OperationSubmitter:
    """
    Submits sponsored operations for one smart account session.

    There is no retry around the bundler call: nonces move on, so a caller
    that wants to resubmit has to build a new operation.
    """

    def __init__(
        self,
        bundler: BundlerProvider,
        paymaster: PaymasterProvider,
        rpc: ChainRpcProvider,
        chain_id: int,
        receipt_policy: Optional[PollPolicy] = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.bundler = bundler
        self.paymaster = paymaster
        self.rpc = rpc
        self.chain_id = chain_id
        self.receipt_policy = receipt_policy or PollPolicy(max_attempts=30, interval_seconds=2.0)
        self._sleep = sleep
        self._deployed: Set[str] = set()

    async def build_draft(
        self,
        account: AccountDescriptor,
        target: str,
        value: int,
        calldata: str,
        fee_params: FeeParams,
    ) -> UserOperation:
        try:
            call_data = build_execute_call_data(target, value, calldata or "0x")
        except ValueError as exc:
            raise SubmissionError(f"Malformed call: {exc}", target=target) from exc

        try:
            check_uint("max_fee_per_gas", fee_params.max_fee_per_gas, 128)
            check_uint("max_priority_fee_per_gas", fee_params.max_priority_fee_per_gas, 128)
        except ValueError as exc:
            raise SubmissionError(f"Malformed fee parameters: {exc}", target=target) from exc

        try:
            nonce = await self.rpc.get_entry_point_nonce(account.entry_point, account.computed_address)
            deployed = await self._is_deployed(account)
        except RpcError as exc:
            raise SubmissionError(f"Could not read account state: {exc}") from exc

        draft = UserOperation(
            sender=account.computed_address,
            nonce=nonce,
            call_data=call_data,
            max_fee_per_gas=fee_params.max_fee_per_gas,
            max_priority_fee_per_gas=fee_params.max_priority_fee_per_gas,
            factory=None if deployed else account.factory_address,
            factory_data="0x" if deployed else account.factory_data,
            signature=DUMMY_SIGNATURE,
        )
        try:
            draft.check_ranges()
        except ValueError as exc:
            raise SubmissionError(f"Malformed operation: {exc}", sender=draft.sender) from exc
        return draft

    async def send(
        self,
        account: AccountDescriptor,
        target: str,
        value: int,
        calldata: str,
        fee_params: FeeParams,
    ) -> TransactionHandle:
        draft = await self.build_draft(account, target, value, calldata, fee_params)

        try:
            sponsorship = await self.paymaster.sponsor(draft)
        except SponsorshipError as exc:
            raise SubmissionError(f"Sponsorship failed: {exc}", sender=draft.sender) from exc

        signed = self.sign(draft.with_sponsorship(sponsorship), account)

        try:
            user_op_hash = await self.bundler.send_user_operation(signed)
        except BundlerError as exc:
            raise SubmissionError(f"Bundler rejected operation: {exc}", sender=signed.sender) from exc

        local_hash = to_hex(signed.hash(account.entry_point, self.chain_id))
        if user_op_hash.lower() != local_hash.lower():
            logger.warning(f"Bundler returned hash {user_op_hash}, expected {local_hash}")

        logger.info(f"UserOperation {user_op_hash} accepted for {signed.sender}")
        receipt = await self.wait_for_receipt(user_op_hash)
        if not receipt.success:
            logger.warning(f"UserOperation {user_op_hash} was included but execution reverted")
        self._deployed.add(account.computed_address)

        return TransactionHandle(
            transaction_hash=receipt.transaction_hash,
            user_operation_hash=user_op_hash,
        )

    def sign(self, user_op: UserOperation, account: AccountDescriptor) -> UserOperation:
        try:
            user_op.check_ranges()
            user_op_hash = user_op.hash(account.entry_point, self.chain_id)
        except (ValueError, OverflowError) as exc:
            raise SubmissionError(f"Malformed operation: {exc}", sender=user_op.sender) from exc

        try:
            signature = account.owner.sign_message(user_op_hash)
        except Exception as exc:
            raise SubmissionError(f"Signing failed: {exc}", sender=user_op.sender) from exc

        signed = user_op.with_signature(signature)
        if not signed.is_signed:
            raise SubmissionError("Refusing to submit an unsigned operation", sender=user_op.sender)
        return signed

    async def wait_for_receipt(self, user_op_hash: str) -> UserOpReceipt:
        async def fetch() -> Optional[UserOpReceipt]:
            return await self.bundler.get_user_operation_receipt(user_op_hash)

        try:
            result = await poll_until(
                fetch,
                self.receipt_policy,
                predicate=lambda receipt: receipt is not None and bool(receipt.transaction_hash),
                sleep=self._sleep,
                label=f"receipt {user_op_hash}",
            )
        except BundlerError as exc:
            raise InclusionPending(
                f"UserOperation {user_op_hash} was accepted but its receipt could not be read: {exc}",
                user_operation_hash=user_op_hash,
            ) from exc

        if not result.found:
            raise InclusionPending(
                f"UserOperation {user_op_hash} not included after {result.attempts} receipt checks",
                user_operation_hash=user_op_hash,
            )
        return result.value

    async def _is_deployed(self, account: AccountDescriptor) -> bool:
        if account.computed_address in self._deployed:
            return True
        if await verify_deployment(account, self.rpc):
            self._deployed.add(account.computed_address)
            return True
        return False
