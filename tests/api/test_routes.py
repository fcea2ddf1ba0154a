"""
Route tests against the FastAPI app with providers replaced.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from app.api.chat import CHAT_FAILURE_DETAIL
from app.api.permissions import get_permission_allocator
from app.auth import get_auth_service
from app.core.agent import AgentReply, get_agent_loop
from app.core.funds.executor import FundMovementExecutor, get_fund_movement_executor
from app.core.funds.journal import OperationJournal
from app.core.recovery import SwapFailedError
from app.main import app
from app.providers.relay import OperationReceipt, RelayError, SmartAccount
from app.providers.spend_permissions import SpendPermissionError
from app.services.server_wallet import ServerWallet, ServerWalletService, get_server_wallet_service

USER = "0x1111111111111111111111111111111111111111"
SMART_ACCOUNT = "0x2222222222222222222222222222222222222222"
RECIPIENT = "0x3333333333333333333333333333333333333333"
TOKEN = "0x4200000000000000000000000000000000000006"
MANAGER = "0xf85210B21cC50302F477BA56686d2019dC9b67Ad"
SPEND_CALLS = [[{"to": MANAGER, "data": "0xspend", "value": "0x0"}]]

WALLET = ServerWallet(address="0x9999999999999999999999999999999999999999", smartAccountAddress=SMART_ACCOUNT)


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def signed_in(client):
    token = get_auth_service().issue_session_token(USER)
    client.cookies.set("session", token)
    return client


@pytest.fixture
def wallets():
    service = MagicMock()
    service.get = AsyncMock(return_value=WALLET)
    service.get_or_create = AsyncMock(return_value=WALLET)
    app.dependency_overrides[get_server_wallet_service] = lambda: service
    return service


def make_relay(swap_status="complete"):
    relay = MagicMock()
    counter = {"n": 0}

    async def submit(account, calls):
        counter["n"] += 1
        return f"0xop{counter['n']}"

    async def await_completion(account, operation_id):
        status = swap_status if operation_id == "0xswap" else "complete"
        return OperationReceipt(operation_id=operation_id, status=status, tx_hash=f"0xtx-{operation_id}")

    relay.submit = AsyncMock(side_effect=submit)
    relay.await_completion = AsyncMock(side_effect=await_completion)
    relay.swap = AsyncMock(return_value="0xswap")
    return relay


@pytest.fixture
def executor(memory_store):
    chain = MagicMock()
    chain.erc20_balance_of = AsyncMock(return_value=10_000_000)
    fund_executor = FundMovementExecutor(
        relay=make_relay(),
        chain=chain,
        journal=OperationJournal(memory_store),
        sleep=AsyncMock(),
    )
    app.dependency_overrides[get_fund_movement_executor] = lambda: fund_executor
    return fund_executor


# =============================================================================
# Auth Routes
# =============================================================================

class TestAuthRoutes:
    """Tests for sign-in and session status."""

    def test_nonce(self, client):
        response = client.get("/auth/nonce")
        assert response.status_code == 200
        assert len(response.json()["nonce"]) == 32

    def test_full_sign_in(self, client):
        from app.client.signer import LocalKeySigner

        signer = LocalKeySigner("0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80")
        nonce = client.get("/auth/nonce").json()["nonce"]
        message = signer.build_sign_in_message("http://testserver", nonce, 8453)

        response = client.post(
            "/auth/verify",
            json={"address": signer.address, "message": message, "signature": signer.sign_message(message)},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert body["address"] == signer.address.lower()
        set_cookie = response.headers["set-cookie"].lower()
        assert "httponly" in set_cookie
        assert "samesite=strict" in set_cookie

        status = client.get("/auth-status").json()
        assert status == {"isAuthenticated": True, "address": signer.address.lower()}

    def test_bad_signature(self, client):
        response = client.post(
            "/auth/verify",
            json={"address": USER, "message": "garbage", "signature": "0x00"},
        )
        assert response.status_code == 401

    def test_status_without_session(self, client):
        assert client.get("/auth-status").json() == {"isAuthenticated": False, "error": "No session"}

    def test_status_with_invalid_session(self, client):
        client.cookies.set("session", "not-a-jwt")
        assert client.get("/auth-status").json() == {"isAuthenticated": False, "error": "Invalid session"}

    def test_signout(self, signed_in):
        response = signed_in.get("/auth/signout")
        assert response.json() == {"message": "Logged out successfully"}


# =============================================================================
# Chat Route
# =============================================================================

class TestChatRoute:
    """Tests for POST /chat."""

    def test_passes_session_address(self, signed_in):
        agent = MagicMock()
        agent.run = AsyncMock(return_value=AgentReply(response="Hi!"))
        app.dependency_overrides[get_agent_loop] = lambda: agent

        response = signed_in.post(
            "/chat",
            json={"message": "hello", "conversationHistory": [{"role": "user", "content": "before"}]},
        )

        assert response.status_code == 200
        assert response.json() == {"response": "Hi!"}
        message, history = agent.run.await_args.args
        assert message == "hello"
        assert history[0].content == "before"
        assert agent.run.await_args.kwargs["user_address"] == USER

    def test_anonymous_chat(self, client):
        agent = MagicMock()
        agent.run = AsyncMock(return_value=AgentReply(response="Hi!"))
        app.dependency_overrides[get_agent_loop] = lambda: agent

        client.post("/chat", json={"message": "hello"})

        assert agent.run.await_args.kwargs["user_address"] is None

    def test_empty_message_rejected(self, client):
        assert client.post("/chat", json={"message": ""}).status_code == 422

    def test_agent_failure(self, client):
        agent = MagicMock()
        agent.run = AsyncMock(side_effect=RuntimeError("boom"))
        app.dependency_overrides[get_agent_loop] = lambda: agent

        response = client.post("/chat", json={"message": "hello"})

        assert response.status_code == 500
        assert "boom" not in response.text

    def test_internal_error_not_returned(self, client):
        """Configuration errors are logged, the client gets a fixed message."""
        agent = MagicMock()
        agent.run = AsyncMock(side_effect=ValueError("No API key configured for provider: gemini"))
        app.dependency_overrides[get_agent_loop] = lambda: agent

        response = client.post("/chat", json={"message": "hello"})

        assert response.status_code == 500
        assert response.json() == {"detail": CHAT_FAILURE_DETAIL}
        assert "API key" not in response.text


# =============================================================================
# Wallet and Permission Routes
# =============================================================================

class TestWalletRoutes:
    """Tests for /server-wallet and /permissions."""

    def test_requires_session(self, client):
        response = client.get("/server-wallet")
        assert response.status_code == 401
        assert response.json()["detail"] == "Not authenticated"

    def test_server_wallet(self, signed_in, wallets):
        response = signed_in.get("/server-wallet")

        assert response.json() == {
            "address": USER,
            "serverWalletAddress": WALLET.address,
            "smartAccountAddress": SMART_ACCOUNT,
            "message": "Server wallet retrieved successfully",
        }
        wallets.get_or_create.assert_awaited_once_with(USER)

    def test_server_wallet_is_created_once(self, signed_in, memory_store):
        relay = MagicMock()
        relay.create_account = AsyncMock(return_value=SmartAccount(owner_address=WALLET.address, address=SMART_ACCOUNT))
        service = ServerWalletService(relay=relay, store=memory_store)
        app.dependency_overrides[get_server_wallet_service] = lambda: service

        first = signed_in.get("/server-wallet").json()
        second = signed_in.get("/server-wallet").json()

        assert first == second
        relay.create_account.assert_awaited_once_with(f"user-{USER[2:]}")

    def test_relay_failure(self, signed_in, wallets):
        wallets.get_or_create.side_effect = RelayError("wallet service down")
        assert signed_in.get("/server-wallet").status_code == 502

    def test_permissions(self, signed_in, wallets):
        allocator = MagicMock()
        allocator.list_permissions = AsyncMock(return_value=[])
        app.dependency_overrides[get_permission_allocator] = lambda: allocator

        response = signed_in.get("/permissions")

        assert response.json() == {"account": USER, "spender": SMART_ACCOUNT, "permissions": []}
        allocator.list_permissions.assert_awaited_once_with(USER, SMART_ACCOUNT)

    def test_permissions_without_wallet(self, signed_in, wallets):
        wallets.get.return_value = None
        assert signed_in.get("/permissions").status_code == 400

    def test_permissions_registry_error(self, signed_in, wallets):
        allocator = MagicMock()
        allocator.list_permissions = AsyncMock(side_effect=SpendPermissionError("rpc down"))
        app.dependency_overrides[get_permission_allocator] = lambda: allocator

        assert signed_in.get("/permissions").status_code == 502


# =============================================================================
# Fund Movement Routes
# =============================================================================

class TestFundRoutes:
    """Tests for /transfer, /swap and /fund-movements."""

    def test_transfer(self, signed_in, wallets, executor):
        response = signed_in.post(
            "/transfer",
            json={"sender": USER, "recipient": RECIPIENT, "amount": "100000", "spendCalls": SPEND_CALLS},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "USDC transfer completed successfully"
        assert body["pullUserOpHash"] == "0xop1"
        assert body["transferUserOpHash"] == "0xop2"
        assert body["amount"] == "100000"
        assert body["explorerUrl"] == "https://account.base.app/activity"

        movement = signed_in.get(f"/fund-movements/{body['movementId']}").json()
        assert movement["state"] == "completed"
        assert [s["name"] for s in movement["steps"]] == ["pull", "transfer"]

    def test_transfer_requires_session(self, client, wallets, executor):
        response = client.post(
            "/transfer",
            json={"sender": USER, "recipient": RECIPIENT, "amount": "1", "spendCalls": SPEND_CALLS},
        )
        assert response.status_code == 401

    def test_sender_must_match_session(self, signed_in, wallets, executor):
        response = signed_in.post(
            "/transfer",
            json={"sender": RECIPIENT, "recipient": RECIPIENT, "amount": "1", "spendCalls": SPEND_CALLS},
        )
        assert response.status_code == 403

    def test_malformed_spend_calls(self, signed_in, wallets, executor):
        response = signed_in.post(
            "/transfer",
            json={"sender": USER, "recipient": RECIPIENT, "amount": "1", "spendCalls": [[{"data": "0x"}]]},
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Spend call at index 0 is missing 'to' field"
        executor.relay.submit.assert_not_awaited()

    def test_invalid_amount(self, signed_in, wallets, executor):
        response = signed_in.post(
            "/transfer",
            json={"sender": USER, "recipient": RECIPIENT, "amount": "-5", "spendCalls": SPEND_CALLS},
        )
        assert response.status_code == 400

    def test_transfer_failure_body(self, signed_in, wallets, executor):
        executor.chain.erc20_balance_of.return_value = 0

        response = signed_in.post(
            "/transfer",
            json={"sender": USER, "recipient": RECIPIENT, "amount": "100000", "spendCalls": SPEND_CALLS},
        )

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "Transfer failed"
        assert "Insufficient balance in server wallet" in body["details"]

    def test_swap(self, signed_in, wallets, executor):
        response = signed_in.post(
            "/swap",
            json={"sender": USER, "tokenAddress": TOKEN, "amount": "2500000", "spendCalls": SPEND_CALLS},
        )

        body = response.json()
        assert body["message"] == f"Swap successful! Exchanged $2.50 USDC for {TOKEN}"
        assert body["tradeTransactionHash"] == "0xtx-0xswap"
        assert body["forwardedAmount"] == "10000000"

    def test_swap_failure_body(self, signed_in, wallets, executor):
        executor._relay = make_relay(swap_status="failed")

        response = signed_in.post(
            "/swap",
            json={"sender": USER, "tokenAddress": TOKEN, "amount": "2500000", "spendCalls": SPEND_CALLS},
        )

        assert response.status_code == 500
        assert response.json() == {
            "error": "Swap + transfer failed",
            "details": str(SwapFailedError("failed")),
        }

    def test_movement_of_other_user_hidden(self, signed_in, wallets, executor):
        record = asyncio.run(executor.journal.start(
            "transfer", sender=RECIPIENT, account=SMART_ACCOUNT, amount=1, token=TOKEN,
        ))

        assert signed_in.get(f"/fund-movements/{record.id}").status_code == 404
        assert signed_in.get("/fund-movements/unknown").status_code == 404


def test_root(client):
    assert client.get("/").json()["name"] == "SpendChat API"


def test_health_degraded_without_llm(client, monkeypatch):
    healthy = MagicMock()
    healthy.health_check = AsyncMock(return_value={"status": "healthy"})
    weather = MagicMock()
    weather.health_check = AsyncMock(return_value={"status": "disabled"})

    def no_llm():
        raise ValueError("No API key configured for provider: gemini")

    monkeypatch.setattr("app.api.health.get_chain_rpc_provider", lambda: healthy)
    monkeypatch.setattr("app.api.health.get_relay_provider", lambda: healthy)
    monkeypatch.setattr("app.api.health.get_weather_provider", lambda: weather)
    monkeypatch.setattr("app.api.health.get_llm_provider", no_llm)

    body = client.get("/healthz").json()

    assert body["status"] == "degraded"
    assert body["providers"]["llm"]["status"] == "unavailable"
    assert body["available_providers"] == 2
    assert body["total_providers"] == 4


def test_health_ignores_missing_weather_key(client, monkeypatch):
    healthy = MagicMock()
    healthy.health_check = AsyncMock(return_value={"status": "healthy"})
    weather = MagicMock()
    weather.health_check = AsyncMock(return_value={"status": "disabled"})

    monkeypatch.setattr("app.api.health.get_chain_rpc_provider", lambda: healthy)
    monkeypatch.setattr("app.api.health.get_relay_provider", lambda: healthy)
    monkeypatch.setattr("app.api.health.get_weather_provider", lambda: weather)
    monkeypatch.setattr("app.api.health.get_llm_provider", lambda: healthy)

    assert client.get("/healthz").json()["status"] == "healthy"
