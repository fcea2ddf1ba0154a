"""Tests for the spend permission registry client."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from app.core.funds.calldata import encode_uint, selector
from app.core.permissions import PermissionStatus, SpendPermission
from app.providers.spend_permissions import (
    APPROVE_WITH_SIGNATURE_SIGNATURE,
    SPEND_SIGNATURE,
    SpendPermissionError,
    SpendPermissionProvider,
    build_approve_with_signature_data,
    build_spend_data,
)

USER = "0x1111111111111111111111111111111111111111"
SMART_ACCOUNT = "0x2222222222222222222222222222222222222222"
USDC = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
MANAGER = "0xf85210B21cC50302F477BA56686d2019dC9b67Ad"


def permission(signature="0x" + "ab" * 65):
    return SpendPermission(
        account=USER,
        spender=SMART_ACCOUNT,
        token=USDC,
        chainId=8453,
        allowance=5_000_000,
        period=86400,
        start=1,
        end=2,
        signature=signature,
        permissionHash="0xhash",
    )


def make_provider(chain=None):
    return SpendPermissionProvider("https://wallet-rpc.example", chain=chain or MagicMock(), manager_address=MANAGER)


def test_spend_data_layout():
    data = build_spend_data(permission(), 1_000_000)

    assert data.startswith(selector(SPEND_SIGNATURE))
    body = data[10:]
    # Offset to the permission tuple, then the amount
    assert body[:64] == encode_uint(64)
    assert body[64:128] == encode_uint(1_000_000)


def test_approve_requires_signature():
    with pytest.raises(SpendPermissionError):
        build_approve_with_signature_data(permission(signature=None))


@pytest.mark.asyncio
async def test_prepare_spend_call_approves_unseen_permission():
    provider = make_provider()
    status = PermissionStatus(remaining_spend=5_000_000, is_approved=False)

    spend_call = await provider.prepare_spend_call(permission(), 1_000_000, status)

    assert spend_call.spend_amount == 1_000_000
    assert spend_call.permission_hash == "0xhash"
    assert [c.to for c in spend_call.calls] == [MANAGER, MANAGER]
    assert spend_call.calls[0].data.startswith(selector(APPROVE_WITH_SIGNATURE_SIGNATURE))
    assert spend_call.calls[1].data.startswith(selector(SPEND_SIGNATURE))


@pytest.mark.asyncio
async def test_prepare_spend_call_skips_approval_when_known():
    provider = make_provider()
    status = PermissionStatus(remaining_spend=5_000_000, is_approved=True)

    spend_call = await provider.prepare_spend_call(permission(), 1_000_000, status)

    assert len(spend_call.calls) == 1


@pytest.mark.asyncio
async def test_prepare_spend_call_rejects_zero():
    with pytest.raises(ValueError):
        await make_provider().prepare_spend_call(permission(), 0, PermissionStatus(remaining_spend=1))


@pytest.mark.asyncio
async def test_status_reads_period_spend():
    chain = MagicMock()

    async def eth_call(to, data):
        if data.startswith(selector("getCurrentPeriod((address,address,address,uint160,uint48,uint48,uint48,uint256,bytes))")):
            return "0x" + encode_uint(100) + encode_uint(200) + encode_uint(1_500_000)
        if data.startswith(selector("isRevoked((address,address,address,uint160,uint48,uint48,uint48,uint256,bytes))")):
            return "0x" + encode_uint(0)
        return "0x" + encode_uint(1)

    chain.eth_call = AsyncMock(side_effect=eth_call)
    provider = make_provider(chain)

    status = await provider.status(permission())

    assert status.remaining_spend == 3_500_000
    assert status.is_revoked is False
    assert status.is_approved is True
    assert status.current_period_end == 200


@pytest.mark.asyncio
async def test_fetch_parses_registry_entries(monkeypatch):
    provider = make_provider()
    rpc = AsyncMock(return_value={
        "permissions": [
            {
                "permissionHash": "0xhash",
                "signature": "0xsig",
                "permission": {
                    "account": USER,
                    "spender": SMART_ACCOUNT,
                    "token": USDC,
                    "allowance": "1000000",
                    "period": 86400,
                    "start": 0,
                    "end": 999,
                    "salt": "1",
                    "extraData": "0x",
                },
            }
        ]
    })
    monkeypatch.setattr(provider, "_rpc_call", rpc)

    permissions = await provider.fetch(USER, SMART_ACCOUNT, 8453)

    assert len(permissions) == 1
    assert permissions[0].chain_id == 8453
    method, params = rpc.await_args.args
    assert method == "coinbase_fetchPermissions"
    assert params[0]["chainId"] == "0x2105"
