"""
Smart account session controller.

Owns the login lifecycle:

    LOGGED_OUT -> AUTHENTICATING -> SIGNING_READY -> ACCOUNT_READY -> LOGGED_OUT

Every collaborator (signer, account descriptor, HTTP providers) is created
by the controller for one session and discarded on logout. A failed
transition leaves nothing behind: the session goes back to LOGGED_OUT and
the typed error is re-raised.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional, Set, Union

import httpx

from .models import SessionResources, SessionState
from ..account.deriver import AccountBlueprint, AccountDescriptor, AccountDeriver
from ..confirmation import ConfirmationRecord, ConfirmationResolver, ResolveResult
from ..execution.submitter import OperationSubmitter
from ..execution.userop import FeeParams, TransactionHandle
from ..recovery.errors import (
    AdapterError,
    DerivationError,
    NoActiveSessionError,
    SessionBusyError,
    SubmissionError,
)
from ..recovery.polling import PollPolicy, SleepFn
from ...auth.models import Credential
from ...auth.provider import AuthProvider
from ...auth.signer import Signer
from ...config import Settings, settings as default_settings
from ...logging_config import bind_session_context, clear_session_context
from ...networks import NetworkConfig
from ...providers.bundler import BundlerConfig, BundlerProvider
from ...providers.jiffyscan import JiffyscanProvider
from ...providers.paymaster import PaymasterConfig, PaymasterProvider
from ...providers.rpc import ChainRpcProvider

logger = logging.getLogger(__name__)

ClientFactory = Callable[[], httpx.AsyncClient]


def blueprint_for(network: NetworkConfig) -> Optional[AccountBlueprint]:
    if not network.account_implementation or not network.proxy_creation_code:
        return None
    return AccountBlueprint(
        implementation=network.account_implementation,
        proxy_creation_code=network.proxy_creation_code,
    )


class SessionController:
    """
    Public entry point for the presentation layer.

    Usage:
        controller = SessionController(PrivateKeyAuthProvider())
        async with controller:
            address = await controller.login()
            handle = await controller.send_transaction("0x...", 0, "0x")
            record = await controller.resolve_confirmation(handle)
    """

    def __init__(
        self,
        auth_provider: AuthProvider,
        network: Optional[NetworkConfig] = None,
        config: Optional[Settings] = None,
        deriver: Optional[AccountDeriver] = None,
        client_factory: Optional[ClientFactory] = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._settings = config or default_settings
        self.auth_provider = auth_provider
        self.network = network or self._settings.resolve_network()
        self._deriver = deriver or AccountDeriver(blueprint_for(self.network))
        self._client_factory = client_factory or (
            lambda: httpx.AsyncClient(timeout=self._settings.request_timeout_seconds)
        )
        self._sleep = sleep

        self._state = SessionState.LOGGED_OUT
        self._credential: Optional[Credential] = None
        self._signer: Optional[Signer] = None
        self._account: Optional[AccountDescriptor] = None
        self._resources: Optional[SessionResources] = None
        self._issued_handles: Set[str] = set()

        auth_provider.on_provider_change(self._handle_provider_change)

    async def __aenter__(self) -> "SessionController":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._state is SessionState.ACCOUNT_READY:
            await self.logout()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def account(self) -> AccountDescriptor:
        self._require_ready()
        return self._account

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def login(self) -> str:
        """Authenticate and bring the account up. Returns the account address."""
        if self._state.in_transition:
            raise SessionBusyError(f"Session transition already in progress ({self._state.value})")
        if self._state is SessionState.ACCOUNT_READY:
            return await self._refresh_login()

        self._state = SessionState.AUTHENTICATING
        resources: Optional[SessionResources] = None
        completed = False
        try:
            credential = await self._connect()
            signer = Signer.from_credential(credential)
            self._state = SessionState.SIGNING_READY

            account = self._deriver.derive(signer, self.network.factory_address, self.network.entry_point)
            resources = await self._build_resources()

            self._credential = credential
            self._signer = signer
            self._account = account
            self._resources = resources
            self._state = SessionState.ACCOUNT_READY
            completed = True
        finally:
            if not completed:
                try:
                    await self._discard(resources)
                except Exception as exc:
                    logger.warning(f"Releasing resources after failed login raised: {exc}")

        bind_session_context(account=account.computed_address, network=self.network.slug)
        logger.info(f"Session ready for smart account {account.computed_address}")
        return account.computed_address

    async def _refresh_login(self) -> str:
        """Re-authenticate an active session; the account must not move."""
        current = self._account.computed_address
        self._state = SessionState.AUTHENTICATING
        completed = False
        try:
            credential = await self._connect()
            signer = Signer.from_credential(credential)
            self._state = SessionState.SIGNING_READY

            account = self._deriver.derive(signer, self.network.factory_address, self.network.entry_point)
            if account.computed_address != current:
                raise DerivationError(
                    f"Re-derived account {account.computed_address} does not match {current}"
                )

            self._credential = credential
            self._signer = signer
            self._account = account
            self._state = SessionState.ACCOUNT_READY
            completed = True
        finally:
            if not completed:
                await self._discard(self._resources)

        return current

    async def logout(self, notify_provider: bool = True) -> None:
        """Drop every piece of session state. Safe to call when logged out."""
        if self._state.in_transition:
            raise SessionBusyError(f"Cannot log out during {self._state.value}")

        was_active = self._state is SessionState.ACCOUNT_READY
        await self._discard(self._resources)

        if notify_provider:
            try:
                await self.auth_provider.logout()
            except AdapterError:
                raise
            except Exception as exc:
                raise AdapterError(f"Auth provider logout failed: {exc}") from exc

        if was_active:
            logger.info("Session logged out")

    async def _connect(self) -> Credential:
        try:
            return await self.auth_provider.connect()
        except AdapterError:
            raise
        except Exception as exc:
            raise AdapterError(f"Auth provider {self.auth_provider.name} failed: {exc}") from exc

    async def _discard(self, resources: Optional[SessionResources]) -> None:
        self._state = SessionState.LOGGED_OUT
        self._credential = None
        self._signer = None
        self._account = None
        self._resources = None
        self._issued_handles.clear()
        clear_session_context()
        if resources is not None:
            await resources.close()

    async def _handle_provider_change(self, credential: Optional[Credential]) -> None:
        if self._state is not SessionState.ACCOUNT_READY:
            return

        if credential is None:
            logger.info("Auth provider disconnected; ending session")
            await self.logout(notify_provider=False)
            return

        try:
            owner = Signer.from_credential(credential).address
        except AdapterError:
            logger.warning("Auth provider switched to an unusable credential; ending session")
            await self.logout(notify_provider=False)
            return

        if owner != self._signer.address:
            logger.info("Auth provider switched identity; ending session")
            await self.logout(notify_provider=False)

    async def _build_resources(self) -> SessionResources:
        """Wire the providers; clients opened before a failure are closed again."""
        created: List[httpx.AsyncClient] = []

        def new_client() -> httpx.AsyncClient:
            client = self._client_factory()
            created.append(client)
            return client

        try:
            return self._wire_resources(new_client)
        except BaseException:
            for client in created:
                try:
                    await client.aclose()
                except Exception as exc:
                    logger.warning(f"Closing HTTP client failed: {exc}")
            raise

    def _wire_resources(self, new_client: Callable[[], httpx.AsyncClient]) -> SessionResources:
        network = self.network
        config = self._settings

        rpc = ChainRpcProvider(network.rpc_url, client=new_client())
        bundler = BundlerProvider(
            BundlerConfig(
                rpc_url=network.bundler_url,
                entry_point=network.entry_point,
                api_key=config.jiffyscan_api_key,
            ),
            client=new_client(),
        )
        paymaster = PaymasterProvider(
            PaymasterConfig(
                rpc_url=network.paymaster_url,
                chain_id=network.chain_id,
                entry_point=network.entry_point,
                api_key=config.jiffyscan_api_key,
                rpc_method=config.paymaster_rpc_method,
            ),
            client=new_client(),
        )
        index = JiffyscanProvider(
            network.index_api_url,
            api_key=config.jiffyscan_api_key,
            client=new_client(),
        )
        submitter = OperationSubmitter(
            bundler,
            paymaster,
            rpc,
            chain_id=network.chain_id,
            receipt_policy=PollPolicy(
                max_attempts=config.receipt_max_attempts,
                interval_seconds=config.receipt_poll_interval_seconds,
            ),
            sleep=self._sleep,
        )
        resolver = ConfirmationResolver(
            index,
            policy=PollPolicy(
                max_attempts=config.confirmation_max_attempts,
                interval_seconds=config.confirmation_poll_interval_seconds,
            ),
            sleep=self._sleep,
        )
        return SessionResources(
            rpc=rpc,
            bundler=bundler,
            paymaster=paymaster,
            index=index,
            submitter=submitter,
            resolver=resolver,
        )

    def _require_ready(self) -> SessionResources:
        if self._state is not SessionState.ACCOUNT_READY or self._resources is None:
            raise NoActiveSessionError("No active session")
        return self._resources

    # ------------------------------------------------------------------
    # Public contract
    # ------------------------------------------------------------------

    def get_address(self) -> str:
        self._require_ready()
        return self._account.computed_address

    async def send_transaction(
        self,
        to: str,
        value: int = 0,
        data: str = "0x",
        fee_params: Optional[FeeParams] = None,
    ) -> TransactionHandle:
        resources = self._require_ready()
        fees = fee_params or FeeParams(
            max_fee_per_gas=self._settings.default_max_fee_per_gas,
            max_priority_fee_per_gas=self._settings.default_max_priority_fee_per_gas,
        )

        handle = await resources.submitter.send(self._account, to, value, data, fees)

        keys = {handle.transaction_hash.lower(), handle.user_operation_hash.lower()}
        if keys & self._issued_handles:
            raise SubmissionError(
                f"Relay returned an already issued handle {handle.transaction_hash}",
                tx_hash=handle.transaction_hash,
            )
        self._issued_handles.update(keys)
        return handle

    async def resolve_confirmation(
        self,
        handle: Union[TransactionHandle, str],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ResolveResult:
        resources = self._require_ready()
        return await resources.resolver.resolve(handle, self.network, cancel_event=cancel_event)

    # ------------------------------------------------------------------
    # Account helpers
    # ------------------------------------------------------------------

    async def get_balance(self) -> int:
        """Native balance of the smart account, in wei."""
        resources = self._require_ready()
        return await resources.rpc.get_balance(self._account.computed_address)

    def sign_message(self, message: Union[str, bytes]) -> str:
        """Signature by the account owner."""
        self._require_ready()
        return self._signer.sign_message(message)

    def explorer_url(self, handle: Union[TransactionHandle, str]) -> str:
        return self.network.transaction_url(str(handle))

    def index_url(self, record: ConfirmationRecord) -> str:
        return self.network.user_operation_url(record.user_operation_hash)
