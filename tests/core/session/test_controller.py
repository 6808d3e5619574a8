"""
Tests for the session controller lifecycle and public contract.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import List
from unittest.mock import AsyncMock

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct

from smart_session.auth.models import Credential
from smart_session.auth.provider import AuthProvider, PrivateKeyAuthProvider
from smart_session.core.confirmation import NOT_FOUND
from smart_session.core.recovery import (
    AdapterError,
    DerivationError,
    NoActiveSessionError,
    SessionBusyError,
    SubmissionError,
)
from smart_session.core.session import SessionController, SessionResources, SessionState
from smart_session.networks import VANAR_MAINNET


class ScriptedProvider(AuthProvider):
    """Hands out the queued credentials in order; optionally blocks in connect."""

    name = "scripted"

    def __init__(self, credentials: List[Credential]):
        super().__init__()
        self.credentials = list(credentials)
        self.gate = None
        self.connects = 0
        self.logouts = 0

    async def connect(self) -> Credential:
        self.connects += 1
        if self.gate is not None:
            await self.gate.wait()
        if len(self.credentials) > 1:
            return self.credentials.pop(0)
        return self.credentials[0]

    async def logout(self) -> None:
        self.logouts += 1


class FailingProvider(AuthProvider):
    name = "failing"

    async def connect(self) -> Credential:
        raise RuntimeError("popup closed")

    async def logout(self) -> None:
        pass


@pytest.fixture
def auth_provider(owner_key):
    return PrivateKeyAuthProvider(private_key=owner_key, verifier_id="alice@example.com")


@pytest.fixture
def make_controller(network, test_settings, fake_chain, fake_sleep):
    def factory(provider, **overrides):
        kwargs = dict(
            network=network,
            config=test_settings,
            client_factory=fake_chain.client_factory,
            sleep=fake_sleep,
        )
        kwargs.update(overrides)
        return SessionController(provider, **kwargs)

    return factory


@pytest.fixture
def controller(make_controller, auth_provider):
    return make_controller(auth_provider)


def _credential(key: str, verifier_id: str = "alice@example.com") -> Credential:
    return Credential(provider="scripted", verifier_id=verifier_id, private_key=key)


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_login_reaches_account_ready(self, controller, account):
        address = await controller.login()

        assert controller.state is SessionState.ACCOUNT_READY
        assert address == account.computed_address
        assert controller.get_address() == address
        assert controller.account.owner.address == account.owner.address

    @pytest.mark.asyncio
    async def test_get_address_when_logged_out(self, controller):
        assert controller.state is SessionState.LOGGED_OUT

        with pytest.raises(NoActiveSessionError):
            controller.get_address()

    @pytest.mark.asyncio
    async def test_login_is_idempotent(self, controller, auth_provider):
        first = await controller.login()
        second = await controller.login()

        assert first == second
        assert controller.state is SessionState.ACCOUNT_READY

    @pytest.mark.asyncio
    async def test_new_controller_same_credential_same_address(self, make_controller, owner_key):
        first = await make_controller(PrivateKeyAuthProvider(private_key=owner_key)).login()
        second = await make_controller(PrivateKeyAuthProvider(private_key=owner_key)).login()

        assert first == second

    @pytest.mark.asyncio
    async def test_login_after_logout_same_address(self, controller):
        first = await controller.login()
        await controller.logout()
        second = await controller.login()

        assert first == second

    @pytest.mark.asyncio
    async def test_logout_clears_everything(self, controller, auth_provider):
        await controller.login()

        await controller.logout()

        assert controller.state is SessionState.LOGGED_OUT
        assert auth_provider.connected is False
        with pytest.raises(NoActiveSessionError):
            controller.get_address()
        with pytest.raises(NoActiveSessionError):
            await controller.send_transaction("0x" + "00" * 20)
        with pytest.raises(NoActiveSessionError):
            await controller.resolve_confirmation("0xdeadbeef")

    @pytest.mark.asyncio
    async def test_logout_when_logged_out_is_safe(self, controller):
        await controller.logout()

        assert controller.state is SessionState.LOGGED_OUT

    @pytest.mark.asyncio
    async def test_context_manager_logs_out(self, controller):
        async with controller as session:
            await session.login()
            assert session.state is SessionState.ACCOUNT_READY

        assert controller.state is SessionState.LOGGED_OUT

    @pytest.mark.asyncio
    async def test_concurrent_login_is_rejected(self, make_controller, owner_key):
        provider = ScriptedProvider([_credential(owner_key)])
        provider.gate = asyncio.Event()
        controller = make_controller(provider)

        first = asyncio.create_task(controller.login())
        await asyncio.sleep(0)
        assert controller.state is SessionState.AUTHENTICATING

        with pytest.raises(SessionBusyError):
            await controller.login()
        with pytest.raises(SessionBusyError):
            await controller.logout()

        provider.gate.set()
        await first
        assert controller.state is SessionState.ACCOUNT_READY
        assert provider.connects == 1


class TestFailedTransitions:
    @pytest.mark.asyncio
    async def test_provider_failure_reverts_to_logged_out(self, make_controller):
        controller = make_controller(FailingProvider())

        with pytest.raises(AdapterError, match="popup closed"):
            await controller.login()

        assert controller.state is SessionState.LOGGED_OUT

    @pytest.mark.asyncio
    async def test_missing_key_reverts_to_logged_out(self, make_controller):
        controller = make_controller(PrivateKeyAuthProvider(private_key=""))

        with pytest.raises(AdapterError):
            await controller.login()

        assert controller.state is SessionState.LOGGED_OUT

    @pytest.mark.asyncio
    async def test_naive_unexpired_expiry_logs_in(self, make_controller, owner_key, account):
        naive_expiry = datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(hours=1)
        credential = Credential(
            provider="scripted", verifier_id="alice@example.com", private_key=owner_key, expires_at=naive_expiry
        )
        controller = make_controller(ScriptedProvider([credential]))

        assert await controller.login() == account.computed_address
        assert controller.state is SessionState.ACCOUNT_READY

    @pytest.mark.asyncio
    async def test_naive_expired_expiry_is_adapter_error(self, make_controller, owner_key):
        naive_expiry = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(minutes=5)
        credential = Credential(
            provider="scripted", verifier_id="alice@example.com", private_key=owner_key, expires_at=naive_expiry
        )
        controller = make_controller(ScriptedProvider([credential]))

        with pytest.raises(AdapterError, match="expired"):
            await controller.login()

        assert controller.state is SessionState.LOGGED_OUT

    @pytest.mark.asyncio
    async def test_derivation_failure_reverts_to_logged_out(self, make_controller, auth_provider, fake_chain):
        controller = make_controller(auth_provider, network=VANAR_MAINNET)

        with pytest.raises(DerivationError):
            await controller.login()

        assert controller.state is SessionState.LOGGED_OUT
        with pytest.raises(NoActiveSessionError):
            controller.get_address()
        assert fake_chain.rpc_methods == []

    @pytest.mark.asyncio
    async def test_wiring_failure_closes_opened_clients(self, make_controller, auth_provider, fake_chain, monkeypatch):
        opened = []

        def client_factory():
            client = fake_chain.client_factory()
            opened.append(client)
            return client

        def broken_paymaster(*args, **kwargs):
            raise RuntimeError("bad paymaster config")

        monkeypatch.setattr("smart_session.core.session.controller.PaymasterProvider", broken_paymaster)
        controller = make_controller(auth_provider, client_factory=client_factory)

        with pytest.raises(RuntimeError, match="bad paymaster config"):
            await controller.login()

        assert controller.state is SessionState.LOGGED_OUT
        assert len(opened) == 3
        assert all(client.is_closed for client in opened)

    @pytest.mark.asyncio
    async def test_logout_closes_every_provider(self, controller):
        await controller.login()
        resources = controller._resources

        await controller.logout()

        for provider in (resources.rpc, resources.bundler, resources.paymaster, resources.index):
            assert provider._closed
            assert provider._client is None

    @pytest.mark.asyncio
    async def test_relogin_with_different_owner_ends_session(self, make_controller, owner_key, other_key):
        provider = ScriptedProvider([_credential(owner_key), _credential(other_key)])
        controller = make_controller(provider)
        await controller.login()

        with pytest.raises(DerivationError, match="does not match"):
            await controller.login()

        assert controller.state is SessionState.LOGGED_OUT


class TestProviderChanges:
    @pytest.mark.asyncio
    async def test_disconnect_logs_out(self, controller, auth_provider):
        await controller.login()

        await auth_provider.disconnect()

        assert controller.state is SessionState.LOGGED_OUT

    @pytest.mark.asyncio
    async def test_identity_switch_logs_out(self, controller, auth_provider, other_key):
        await controller.login()

        await auth_provider.switch_key(other_key, verifier_id="bob")

        assert controller.state is SessionState.LOGGED_OUT

    @pytest.mark.asyncio
    async def test_same_identity_keeps_session(self, controller, auth_provider, owner_key):
        address = await controller.login()

        await auth_provider.switch_key(owner_key)

        assert controller.state is SessionState.ACCOUNT_READY
        assert controller.get_address() == address

    @pytest.mark.asyncio
    async def test_change_while_logged_out_is_ignored(self, controller, auth_provider):
        await auth_provider.disconnect()

        assert controller.state is SessionState.LOGGED_OUT


class TestSendAndResolve:
    @pytest.mark.asyncio
    async def test_login_send_resolve(self, controller, fake_chain, fake_sleep, target_address,
                                      make_bundle_activity, indexed_user_op_hash):
        fake_chain.index_payloads = [{}, make_bundle_activity()]
        await controller.login()

        handle = await controller.send_transaction(target_address, 0, "0x")

        assert handle.transaction_hash.startswith("0xdeadbeef")
        assert str(handle) == handle.transaction_hash
        assert fake_chain.count("eth_sendUserOperation") == 1

        record = await controller.resolve_confirmation(handle)

        assert record.user_operation_hash == indexed_user_op_hash
        assert len(fake_chain.index_requests) == 2
        assert fake_sleep.delays == [3.0]
        assert controller.index_url(record) == (
            f"https://jiffyscan.xyz/userOpHash/{indexed_user_op_hash}?network=vanar-mainnet"
        )

    @pytest.mark.asyncio
    async def test_resolve_exhaustion_returns_not_found(self, controller, fake_chain, fake_sleep):
        await controller.login()

        result = await controller.resolve_confirmation("0xdeadbeef")

        assert result is NOT_FOUND
        assert len(fake_chain.index_requests) == 20
        assert fake_sleep.delays == [3.0] * 19

    @pytest.mark.asyncio
    async def test_sponsorship_failure_submits_nothing(self, controller, fake_chain, target_address):
        fake_chain.sponsor_error = {"code": -32500, "message": "rejected"}
        await controller.login()

        with pytest.raises(SubmissionError):
            await controller.send_transaction(target_address)

        assert fake_chain.count("eth_sendUserOperation") == 0
        assert controller.state is SessionState.ACCOUNT_READY

    @pytest.mark.asyncio
    async def test_reused_handle_is_rejected(self, controller, fake_chain, target_address):
        await controller.login()
        await controller.send_transaction(target_address)

        with pytest.raises(SubmissionError, match="already issued"):
            await controller.send_transaction(target_address)

    @pytest.mark.asyncio
    async def test_distinct_handles_per_send(self, controller, fake_chain, target_address):
        await controller.login()
        first = await controller.send_transaction(target_address)

        fake_chain.user_op_hash = "0x" + "cd" * 32
        fake_chain.tx_hash = "0x" + "ef" * 32
        second = await controller.send_transaction(target_address)

        assert first != second
        assert fake_chain.count("eth_sendUserOperation") == 2


class TestAccountHelpers:
    @pytest.mark.asyncio
    async def test_get_balance(self, controller, fake_chain):
        fake_chain.balance = 42
        await controller.login()

        assert await controller.get_balance() == 42

    @pytest.mark.asyncio
    async def test_sign_message_by_owner(self, controller, owner_address):
        await controller.login()

        signature = controller.sign_message("hello")

        assert Account.recover_message(encode_defunct(text="hello"), signature=signature) == owner_address

    @pytest.mark.asyncio
    async def test_sign_message_requires_session(self, controller):
        with pytest.raises(NoActiveSessionError):
            controller.sign_message("hello")

    def test_explorer_url(self, controller):
        assert controller.explorer_url("0xabc") == "https://explorer.vanarchain.com/tx/0xabc"


@pytest.mark.asyncio
async def test_resources_close_tries_every_provider():
    providers = {}
    for name in ("rpc", "bundler", "paymaster", "index"):
        providers[name] = AsyncMock()
        providers[name].name = name
    providers["rpc"].close.side_effect = RuntimeError("socket already gone")
    resources = SessionResources(submitter=None, resolver=None, **providers)

    with pytest.raises(RuntimeError, match="socket already gone"):
        await resources.close()

    for provider in providers.values():
        provider.close.assert_awaited_once()
