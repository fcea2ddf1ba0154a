"""
Server wallet endpoint.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from app.auth import SessionPayload, require_session
from app.providers.relay import RelayError
from app.services.server_wallet import ServerWalletService, get_server_wallet_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["wallet"])


@router.get("/server-wallet")
async def get_server_wallet(
    session: SessionPayload = Depends(require_session),
    wallets: ServerWalletService = Depends(get_server_wallet_service),
):
    """The caller's custodial smart account, created on first access."""
    try:
        wallet = await wallets.get_or_create(session.address)
    except RelayError as e:
        logger.error("Server wallet creation failed for %s: %s", session.address, e)
        raise HTTPException(status_code=502, detail=f"Server wallet creation failed: {e}")
    return {
        "address": session.address,
        "serverWalletAddress": wallet.address,
        "smartAccountAddress": wallet.smart_account_address,
        "message": "Server wallet retrieved successfully",
    }
