"""
Tests for granting and listing spend permissions.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from app.core.permissions import (
    PermissionAllocator,
    PermissionRequestError,
    PermissionState,
    SpendPermission,
)
from app.core.permissions.allocator import build_typed_data
from app.core.permissions.models import MAX_UINT48

USER = "0x1111111111111111111111111111111111111111"
SMART_ACCOUNT = "0x2222222222222222222222222222222222222222"

USDC = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
OTHER_TOKEN = "0x4200000000000000000000000000000000000006"
MANAGER = "0xf85210B21cC50302F477BA56686d2019dC9b67Ad"
NOW = 1_700_000_000


def make_registry(permissions=None):
    registry = MagicMock()
    registry.manager_address = MANAGER
    registry.fetch = AsyncMock(return_value=permissions or [])
    return registry


def permission(token=USDC, start=NOW, end=None, allowance=1_000_000):
    return SpendPermission(
        account=USER,
        spender=SMART_ACCOUNT,
        token=token,
        chainId=8453,
        allowance=allowance,
        period=86400,
        start=start,
        end=end,
    )


# =============================================================================
# Request Allowance Tests
# =============================================================================

class TestRequestAllowance:
    """Tests for PermissionAllocator.request_allowance."""

    @pytest.mark.asyncio
    async def test_signed_permission_returned(self):
        signer = MagicMock()
        signer.sign_typed_data = AsyncMock(return_value="0xsig")
        allocator = PermissionAllocator(make_registry(), clock=lambda: NOW)

        granted = await allocator.request_allowance(
            USER, SMART_ACCOUNT, USDC, 8453, 2_000_000, 7, signer
        )

        assert granted.signature == "0xsig"
        assert granted.allowance == 2_000_000
        assert granted.period == 7 * 86400
        assert granted.start == NOW
        assert granted.end == MAX_UINT48

        account, typed_data = signer.sign_typed_data.await_args.args
        assert account == USER
        assert typed_data["primaryType"] == "SpendPermission"
        assert typed_data["domain"]["verifyingContract"] == MANAGER
        assert typed_data["message"]["allowance"] == "2000000"

    @pytest.mark.asyncio
    async def test_rejected_signature(self):
        signer = MagicMock()
        signer.sign_typed_data = AsyncMock(side_effect=RuntimeError("User rejected"))
        allocator = PermissionAllocator(make_registry(), clock=lambda: NOW)

        with pytest.raises(PermissionRequestError, match="User rejected"):
            await allocator.request_allowance(USER, SMART_ACCOUNT, USDC, 8453, 1, 1, signer)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("allowance,days", [(0, 1), (1_000_000, 0)])
    async def test_invalid_parameters(self, allowance, days):
        signer = MagicMock()
        signer.sign_typed_data = AsyncMock(return_value="0xsig")
        allocator = PermissionAllocator(make_registry(), clock=lambda: NOW)

        with pytest.raises(PermissionRequestError):
            await allocator.request_allowance(USER, SMART_ACCOUNT, USDC, 8453, allowance, days, signer)
        signer.sign_typed_data.assert_not_awaited()


# =============================================================================
# List Permissions Tests
# =============================================================================

class TestListPermissions:
    """Tests for PermissionAllocator.list_permissions."""

    @pytest.mark.asyncio
    async def test_filters_by_token_and_orders_by_start(self):
        newer = permission(start=NOW)
        older = permission(start=NOW - 1000)
        other = permission(token=OTHER_TOKEN)
        registry = make_registry([newer, other, older])
        allocator = PermissionAllocator(registry, clock=lambda: NOW)

        listed = await allocator.list_permissions(USER, SMART_ACCOUNT, 8453, USDC.lower())

        assert [p.start for p in listed] == [NOW - 1000, NOW]
        registry.fetch.assert_awaited_once_with(USER, SMART_ACCOUNT, 8453)

    @pytest.mark.asyncio
    async def test_marks_expired(self):
        active = permission(end=NOW + 10)
        expired = permission(start=NOW - 10, end=NOW - 1)
        allocator = PermissionAllocator(make_registry([active, expired]), clock=lambda: NOW)

        listed = await allocator.list_permissions(USER, SMART_ACCOUNT, 8453, USDC)

        assert [p.status for p in listed] == [PermissionState.EXPIRED, PermissionState.ACTIVE]

    @pytest.mark.asyncio
    async def test_empty_registry(self):
        allocator = PermissionAllocator(make_registry([]), clock=lambda: NOW)
        assert await allocator.list_permissions(USER, SMART_ACCOUNT) == []


class TestPermissionModel:
    def test_from_registry_entry(self):
        entry = {
            "permissionHash": "0xhash",
            "signature": "0xsig",
            "chainId": 8453,
            "permission": {
                "account": USER,
                "spender": SMART_ACCOUNT,
                "token": USDC,
                "allowance": "1000000",
                "period": 86400,
                "start": "0x10",
                "end": 20,
                "salt": "7",
                "extraData": "0x",
            },
        }

        parsed = SpendPermission.from_registry(entry)

        assert parsed.allowance == 1_000_000
        assert parsed.start == 16
        assert parsed.salt == 7
        assert parsed.permission_hash == "0xhash"
        assert parsed.period_in_days == 1

    def test_negative_allowance_rejected(self):
        with pytest.raises(ValueError):
            permission(allowance=-1)

    def test_typed_data_message_uses_struct_order(self):
        typed = build_typed_data(permission(), MANAGER)
        assert list(typed["message"]) == [
            "account", "spender", "token", "allowance", "period", "start", "end", "salt", "extraData",
        ]
