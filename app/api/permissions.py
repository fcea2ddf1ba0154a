"""
Spend permission listing for the signed-in user.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.auth import SessionPayload, require_session
from app.core.permissions import PermissionAllocator
from app.providers.spend_permissions import SpendPermissionError
from app.services.server_wallet import ServerWalletService, get_server_wallet_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/permissions", tags=["permissions"])


def get_permission_allocator() -> PermissionAllocator:
    return PermissionAllocator()


@router.get("")
async def list_permissions(
    session: SessionPayload = Depends(require_session),
    wallets: ServerWalletService = Depends(get_server_wallet_service),
    allocator: PermissionAllocator = Depends(get_permission_allocator),
):
    """USDC spend permissions the user granted to their server wallet."""
    wallet = await wallets.get(session.address)
    if wallet is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Server wallet not found",
        )

    try:
        permissions = await allocator.list_permissions(session.address, wallet.smart_account_address)
    except SpendPermissionError as e:
        logger.error("Permission lookup failed for %s: %s", session.address, e)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    return {
        "account": session.address,
        "spender": wallet.smart_account_address,
        "permissions": [p.model_dump(by_alias=True, mode="json") for p in permissions],
    }
