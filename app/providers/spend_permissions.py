"""
Spend permission registry client.

Permissions are enumerated through the wallet RPC (``coinbase_fetchPermissions``)
and their live state is read from the SpendPermissionManager contract.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from .base import JsonRpcProvider, ProviderError
from .chain_rpc import ChainRpcProvider, get_chain_rpc_provider
from ..config import settings
from ..core.funds.calldata import (
    decode_words,
    encode_address,
    encode_bytes,
    encode_dynamic_args,
    encode_uint,
    selector,
)
from ..core.permissions.models import Call, PermissionStatus, SpendCall, SpendPermission

logger = logging.getLogger(__name__)

PERMISSION_TUPLE = "(address,address,address,uint160,uint48,uint48,uint48,uint256,bytes)"

SPEND_SIGNATURE = f"spend({PERMISSION_TUPLE},uint160)"
APPROVE_WITH_SIGNATURE_SIGNATURE = f"approveWithSignature({PERMISSION_TUPLE},bytes)"
GET_CURRENT_PERIOD_SIGNATURE = f"getCurrentPeriod({PERMISSION_TUPLE})"
IS_REVOKED_SIGNATURE = f"isRevoked({PERMISSION_TUPLE})"
IS_VALID_SIGNATURE = f"isValid({PERMISSION_TUPLE})"
IS_APPROVED_SIGNATURE = f"isApproved({PERMISSION_TUPLE})"


class SpendPermissionError(ProviderError):
    """Permission registry error."""
    pass


def encode_permission(permission: SpendPermission) -> str:
    struct = permission.to_struct()
    heads = [
        encode_address(struct["account"]),
        encode_address(struct["spender"]),
        encode_address(struct["token"]),
        encode_uint(struct["allowance"]),
        encode_uint(struct["period"]),
        encode_uint(struct["start"]),
        encode_uint(struct["end"]),
        encode_uint(struct["salt"]),
        None,
    ]
    return encode_dynamic_args(heads, [encode_bytes(struct["extraData"])])


def build_spend_data(permission: SpendPermission, amount: int) -> str:
    if amount >= 2 ** 160:
        raise ValueError("Spend amount does not fit in uint160")
    return selector(SPEND_SIGNATURE) + encode_dynamic_args(
        [None, encode_uint(amount)],
        [encode_permission(permission)],
    )


def build_approve_with_signature_data(permission: SpendPermission) -> str:
    if not permission.signature:
        raise SpendPermissionError("Permission has no signature to approve with")
    return selector(APPROVE_WITH_SIGNATURE_SIGNATURE) + encode_dynamic_args(
        [None, None],
        [encode_permission(permission), encode_bytes(permission.signature)],
    )


def _build_view_call(signature: str, permission: SpendPermission) -> str:
    return selector(signature) + encode_dynamic_args([None], [encode_permission(permission)])


class SpendPermissionProvider(JsonRpcProvider):
    name = "spend_permissions"
    timeout_s = 20
    error_class = SpendPermissionError

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        *,
        chain: Optional[ChainRpcProvider] = None,
        manager_address: Optional[str] = None,
    ) -> None:
        super().__init__(rpc_url or settings.wallet_rpc_url)
        self._chain = chain
        self.manager_address = manager_address or settings.spend_permission_manager_address

    @property
    def chain(self) -> ChainRpcProvider:
        if self._chain is None:
            self._chain = get_chain_rpc_provider()
        return self._chain

    async def health_check(self) -> Dict[str, Any]:
        return await self.chain.health_check()

    async def fetch(self, account: str, spender: str, chain_id: int) -> List[SpendPermission]:
        """All permissions ``account`` granted to ``spender`` on ``chain_id``."""
        result = await self._rpc_call(
            "coinbase_fetchPermissions",
            [
                {
                    "account": account,
                    "chainId": hex(chain_id),
                    "spender": spender,
                    "pageOptions": {"pageSize": 100},
                }
            ],
        )
        entries = (result or {}).get("permissions") or []
        permissions = []
        for entry in entries:
            entry.setdefault("chainId", chain_id)
            permissions.append(SpendPermission.from_registry(entry))
        logger.debug("Fetched %d permissions for %s -> %s", len(permissions), account, spender)
        return permissions

    async def status(self, permission: SpendPermission) -> PermissionStatus:
        """Live remaining spend for the current period plus revocation state."""
        period_raw, revoked_raw, valid_raw, approved_raw = await asyncio.gather(
            self._view(GET_CURRENT_PERIOD_SIGNATURE, permission),
            self._view(IS_REVOKED_SIGNATURE, permission),
            self._view(IS_VALID_SIGNATURE, permission),
            self._view(IS_APPROVED_SIGNATURE, permission),
        )

        period_start, period_end, spent = (decode_words(period_raw) + [0, 0, 0])[:3]
        return PermissionStatus(
            remaining_spend=max(permission.allowance - spent, 0),
            is_revoked=bool(decode_words(revoked_raw)[:1] == [1]),
            is_valid=bool(decode_words(valid_raw)[:1] == [1]),
            is_approved=bool(decode_words(approved_raw)[:1] == [1]),
            current_period_start=period_start,
            current_period_end=period_end,
        )

    async def prepare_spend_call(
        self,
        permission: SpendPermission,
        amount: int,
        status: Optional[PermissionStatus] = None,
    ) -> SpendCall:
        """Calls the spender runs to pull ``amount`` under ``permission``.

        Registers the signed permission first when the manager has not seen it.
        """
        if amount <= 0:
            raise ValueError("Spend amount must be positive")

        if status is None:
            status = await self.status(permission)

        calls: List[Call] = []
        if not status.is_approved:
            calls.append(Call(to=self.manager_address, data=build_approve_with_signature_data(permission)))
        calls.append(Call(to=self.manager_address, data=build_spend_data(permission, amount)))

        return SpendCall(
            permission_hash=permission.permission_hash,
            spend_amount=amount,
            calls=calls,
        )

    async def _view(self, signature: str, permission: SpendPermission) -> str:
        return await self.chain.eth_call(self.manager_address, _build_view_call(signature, permission))


_spend_permission_provider: Optional[SpendPermissionProvider] = None


def get_spend_permission_provider() -> SpendPermissionProvider:
    global _spend_permission_provider
    if _spend_permission_provider is None:
        _spend_permission_provider = SpendPermissionProvider()
    return _spend_permission_provider
