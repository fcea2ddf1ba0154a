"""
Permission Allocator

Requests new spend allowances through the user's wallet and enumerates the
ones already granted to a spender.
"""

from __future__ import annotations

import logging
import secrets
import time
from typing import Any, Callable, Dict, List, Optional, Protocol

from ...config import settings
# Module import: the registry client itself imports this package's models
from ...providers import spend_permissions
from ...services.address import addresses_equal
from .models import MAX_UINT48, SECONDS_PER_DAY, SpendPermission


class PermissionRequestError(Exception):
    """The user rejected the grant or the wallet failed to produce it."""
    pass


class PermissionSigner(Protocol):
    """The user's wallet: signs EIP-712 typed data on behalf of ``account``."""

    async def sign_typed_data(self, account: str, typed_data: Dict[str, Any]) -> str:
        ...


SPEND_PERMISSION_TYPES = {
    "SpendPermission": [
        {"name": "account", "type": "address"},
        {"name": "spender", "type": "address"},
        {"name": "token", "type": "address"},
        {"name": "allowance", "type": "uint160"},
        {"name": "period", "type": "uint48"},
        {"name": "start", "type": "uint48"},
        {"name": "end", "type": "uint48"},
        {"name": "salt", "type": "uint256"},
        {"name": "extraData", "type": "bytes"},
    ],
}


def build_typed_data(permission: SpendPermission, manager_address: str) -> Dict[str, Any]:
    struct = permission.to_struct()
    return {
        "domain": {
            "name": "Spend Permission Manager",
            "version": "1",
            "chainId": permission.chain_id,
            "verifyingContract": manager_address,
        },
        "types": SPEND_PERMISSION_TYPES,
        "primaryType": "SpendPermission",
        "message": {
            **struct,
            "allowance": str(struct["allowance"]),
            "salt": str(struct["salt"]),
        },
    }


class PermissionAllocator:
    """Grants and lists spend permissions for a (user, spender, token) triple.

    Nothing is cached: every listing reflects the registry at call time.
    """

    def __init__(
        self,
        registry: Optional[spend_permissions.SpendPermissionProvider] = None,
        *,
        clock: Callable[[], float] = time.time,
        logger: Optional[logging.Logger] = None,
    ):
        self._registry = registry
        self._clock = clock
        self.logger = logger or logging.getLogger(__name__)

    @property
    def registry(self) -> spend_permissions.SpendPermissionProvider:
        return self._registry or spend_permissions.get_spend_permission_provider()

    async def request_allowance(
        self,
        account: str,
        spender: str,
        token: str,
        chain_id: int,
        allowance: int,
        period_in_days: int,
        signer: PermissionSigner,
    ) -> SpendPermission:
        """Ask the user's wallet to sign a new spend permission."""
        if allowance <= 0:
            raise PermissionRequestError("Allowance must be greater than 0")
        if period_in_days <= 0:
            raise PermissionRequestError("Period must be at least one day")

        permission = SpendPermission(
            account=account,
            spender=spender,
            token=token,
            chainId=chain_id,
            allowance=allowance,
            period=period_in_days * SECONDS_PER_DAY,
            start=int(self._clock()),
            end=MAX_UINT48,
            salt=secrets.randbits(256),
            extraData="0x",
        )
        typed_data = build_typed_data(permission, self.registry.manager_address)

        try:
            signature = await signer.sign_typed_data(account, typed_data)
        except Exception as exc:
            self.logger.warning("Spend permission request failed for %s: %s", account, exc)
            raise PermissionRequestError(f"Spend permission request failed: {exc}") from exc

        if not signature:
            raise PermissionRequestError("Spend permission request was rejected")

        self.logger.info(
            "Granted spend permission: %s -> %s, allowance=%d every %d day(s)",
            account, spender, allowance, period_in_days,
        )
        return permission.model_copy(update={"signature": signature})

    async def list_permissions(
        self,
        account: str,
        spender: str,
        chain_id: Optional[int] = None,
        token: Optional[str] = None,
    ) -> List[SpendPermission]:
        """Permissions for ``token`` (USDC by default), oldest grant first."""
        chain_id = chain_id or settings.chain_id
        token = token or settings.usdc_address

        permissions = await self.registry.fetch(account, spender, chain_id)
        now_ms = int(self._clock() * 1000)

        matching = [p for p in permissions if addresses_equal(p.token, token)]
        matching.sort(key=lambda p: p.start or 0)
        return [p.with_status(now_ms) for p in matching]
