"""
Shared fixtures: a local owner key, a configured network and an in-memory
chain that answers the RPC, bundler, paymaster and index endpoints.
"""

import json
from dataclasses import replace
from typing import Any, Dict, List, Optional

import httpx
import pytest

from smart_session.auth.models import Credential
from smart_session.auth.provider import PrivateKeyAuthProvider
from smart_session.auth.signer import Signer
from smart_session.config import Settings
from smart_session.core.account import AccountBlueprint, AccountDeriver
from smart_session.networks import VANAR_MAINNET


OWNER_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
OWNER_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
OTHER_KEY = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"

ACCOUNT_IMPLEMENTATION = "0x" + "11" * 20
PROXY_CREATION_CODE = "0x60806040523480156100105760008080fd5b50"

PAYMASTER_ADDRESS = "0x" + "22" * 20
TARGET_ADDRESS = "0x0B3074cd5891526420d493B13439f3D4b8be6144"
USER_OP_HASH = "0x" + "ab" * 32
BUNDLE_TX_HASH = "0xdeadbeef" + "00" * 28
INDEXED_USER_OP_HASH = "0x0123" + "00" * 30

SPONSORSHIP_RESULT = {
    "paymaster": PAYMASTER_ADDRESS,
    "paymasterData": "0x1234",
    "paymasterVerificationGasLimit": "0x186a0",
    "paymasterPostOpGasLimit": "0x3a98",
    "callGasLimit": "0x9c40",
    "verificationGasLimit": "0x30d40",
    "preVerificationGas": "0xc350",
}


def bundle_activity(user_op_hash: str = INDEXED_USER_OP_HASH) -> Dict[str, Any]:
    return {
        "bundleDetails": {
            "transactionHash": BUNDLE_TX_HASH,
            "network": "vanar-mainnet",
            "userOps": [{"userOpHash": user_op_hash, "sender": "0x" + "33" * 20, "success": True}],
        }
    }


class FakeSleep:
    """Records requested delays instead of waiting."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeChain:
    """
    httpx transport handler standing in for every remote endpoint.

    JSON-RPC posts are answered by method name; GET requests are the index.
    """

    def __init__(self) -> None:
        self.nonce = 0
        self.code = "0x"
        self.balance = 10 ** 18
        self.sponsor_result: Any = dict(SPONSORSHIP_RESULT)
        self.sponsor_error: Optional[Dict[str, Any]] = None
        self.send_error: Optional[Dict[str, Any]] = None
        self.user_op_hash = USER_OP_HASH
        self.tx_hash = BUNDLE_TX_HASH
        self.receipt_pending_polls = 0
        self.receipt_error: Optional[Dict[str, Any]] = None
        self.index_payloads: List[Any] = [{}]
        self.rpc_methods: List[str] = []
        self.rpc_requests: List[httpx.Request] = []
        self.index_requests: List[httpx.Request] = []
        self.sent_user_ops: List[Dict[str, Any]] = []

    def client_factory(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            index = min(len(self.index_requests), len(self.index_payloads) - 1)
            self.index_requests.append(request)
            return httpx.Response(200, json=self.index_payloads[index])

        body = json.loads(request.content)
        method = body["method"]
        self.rpc_methods.append(method)
        self.rpc_requests.append(request)

        error = None
        result: Any = None
        if method == "eth_chainId":
            result = hex(2040)
        elif method == "eth_call":
            result = "0x" + hex(self.nonce)[2:].rjust(64, "0")
        elif method == "eth_getCode":
            result = self.code
        elif method == "eth_getBalance":
            result = hex(self.balance)
        elif method == "pm_sponsorUserOperation":
            error = self.sponsor_error
            result = self.sponsor_result
        elif method == "eth_sendUserOperation":
            error = self.send_error
            self.sent_user_ops.append(body["params"][0])
            result = self.user_op_hash
        elif method == "eth_getUserOperationReceipt" and self.receipt_error:
            error = self.receipt_error
        elif method == "eth_getUserOperationReceipt" and self.receipt_pending_polls > 0:
            self.receipt_pending_polls -= 1
            result = None
        elif method == "eth_getUserOperationReceipt":
            result = {
                "userOpHash": body["params"][0],
                "success": True,
                "receipt": {
                    "transactionHash": self.tx_hash,
                    "blockNumber": "0x10",
                    "gasUsed": "0x5208",
                    "status": "0x1",
                },
            }
        else:
            error = {"code": -32601, "message": f"method {method} not found"}

        if error:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "error": error})
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

    def count(self, method: str) -> int:
        return self.rpc_methods.count(method)


@pytest.fixture
def blueprint() -> AccountBlueprint:
    return AccountBlueprint(
        implementation=ACCOUNT_IMPLEMENTATION,
        proxy_creation_code=PROXY_CREATION_CODE,
    )


@pytest.fixture
def network():
    return replace(
        VANAR_MAINNET,
        account_implementation=ACCOUNT_IMPLEMENTATION,
        proxy_creation_code=PROXY_CREATION_CODE,
    )


@pytest.fixture
def test_settings() -> Settings:
    return Settings(_env_file=None, jiffyscan_api_key="test-key", auth_private_key="")


@pytest.fixture
def credential() -> Credential:
    return Credential(provider=PrivateKeyAuthProvider.name, verifier_id="alice@example.com", private_key=OWNER_KEY)


@pytest.fixture
def signer(credential) -> Signer:
    return Signer.from_credential(credential)


@pytest.fixture
def deriver(blueprint) -> AccountDeriver:
    return AccountDeriver(blueprint)


@pytest.fixture
def account(deriver, signer, network):
    return deriver.derive(signer, network.factory_address, network.entry_point)


@pytest.fixture
def fake_chain() -> FakeChain:
    return FakeChain()


@pytest.fixture
def fake_sleep() -> FakeSleep:
    return FakeSleep()


@pytest.fixture
def owner_key() -> str:
    return OWNER_KEY


@pytest.fixture
def other_key() -> str:
    return OTHER_KEY


@pytest.fixture
def target_address() -> str:
    return TARGET_ADDRESS


@pytest.fixture
def make_bundle_activity():
    return bundle_activity


@pytest.fixture
def owner_address() -> str:
    return OWNER_ADDRESS


@pytest.fixture
def indexed_user_op_hash() -> str:
    return INDEXED_USER_OP_HASH
