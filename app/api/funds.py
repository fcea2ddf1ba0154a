"""
Fund movement endpoints.

Both routes pull USDC from the signed-in user through the spend calls the
client prepared, then act from the user's server wallet:
- POST /transfer forwards the pulled USDC to a recipient
- POST /swap trades it for another token and forwards the proceeds back
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from app.auth import SessionPayload, require_session
from app.config import settings
from app.core.funds.executor import FundMovementExecutor, get_fund_movement_executor
from app.core.funds.journal import OperationJournal
from app.core.recovery import InputValidationError
from app.services.address import addresses_equal, require_address, require_positive_units
from app.services.server_wallet import ServerWallet, ServerWalletService, get_server_wallet_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["funds"])


class TransferRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sender: str
    recipient: str
    amount: Any
    spend_calls: List[Any] = Field(alias="spendCalls")
    token_address: Optional[str] = Field(default=None, alias="tokenAddress")


class SwapRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sender: str
    token_address: str = Field(alias="tokenAddress")
    amount: Any
    spend_calls: List[Any] = Field(alias="spendCalls")


def get_operation_journal(
    executor: FundMovementExecutor = Depends(get_fund_movement_executor),
) -> OperationJournal:
    return executor.journal


async def _resolve_wallet(
    session: SessionPayload,
    sender: str,
    wallets: ServerWalletService,
) -> ServerWallet:
    if not addresses_equal(session.address, sender):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Sender does not match the signed-in wallet",
        )
    wallet = await wallets.get(session.address)
    if wallet is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Server wallet not found",
        )
    return wallet


def _failure(error: str, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": error, "details": str(exc) or exc.__class__.__name__},
    )


@router.post("/transfer")
async def transfer(
    body: TransferRequest,
    session: SessionPayload = Depends(require_session),
    wallets: ServerWalletService = Depends(get_server_wallet_service),
    executor: FundMovementExecutor = Depends(get_fund_movement_executor),
):
    wallet = await _resolve_wallet(session, body.sender, wallets)
    try:
        recipient = require_address(body.recipient, "recipient")
        amount = require_positive_units(body.amount, "amount")
        token = require_address(body.token_address, "token") if body.token_address else settings.usdc_address
        result = await executor.transfer(
            account=wallet.smart_account_address,
            sender=session.address,
            recipient=recipient,
            amount=amount,
            spend_calls=body.spend_calls,
            token=token,
        )
    except InputValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error("Transfer failed for %s: %s", session.address, e)
        return _failure("Transfer failed", e)

    return {
        "success": True,
        "message": "USDC transfer completed successfully",
        "movementId": result.movement_id,
        "pullUserOpHash": result.pull_operation_id,
        "transferUserOpHash": result.transfer_operation_id,
        "transactionHash": result.transfer_tx_hash,
        "amount": str(result.amount),
        "recipient": result.recipient,
        "tokenAddress": token,
        "explorerUrl": settings.explorer_url,
    }


@router.post("/swap")
async def swap(
    body: SwapRequest,
    session: SessionPayload = Depends(require_session),
    wallets: ServerWalletService = Depends(get_server_wallet_service),
    executor: FundMovementExecutor = Depends(get_fund_movement_executor),
):
    wallet = await _resolve_wallet(session, body.sender, wallets)
    try:
        token_address = require_address(body.token_address, "token")
        amount = require_positive_units(body.amount, "amount")
        result = await executor.swap(
            account=wallet.smart_account_address,
            sender=session.address,
            token_address=token_address,
            amount=amount,
            spend_calls=body.spend_calls,
        )
    except InputValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error("Swap failed for %s: %s", session.address, e)
        return _failure("Swap + transfer failed", e)

    return {
        "success": True,
        "message": f"Swap successful! Exchanged ${amount / 10 ** settings.usdc_decimals:.2f} USDC for {token_address}",
        "movementId": result.movement_id,
        "pullUserOpHash": result.pull_operation_id,
        "tradeTransactionHash": result.trade_tx_hash,
        "amount": str(result.amount),
        "tokenAddress": result.token_address,
        "forwardedAmount": str(result.forwarded_amount),
        "explorerUrl": settings.explorer_url,
    }


@router.get("/fund-movements/{movement_id}")
async def get_fund_movement(
    movement_id: str,
    session: SessionPayload = Depends(require_session),
    journal: OperationJournal = Depends(get_operation_journal),
):
    record = await journal.get(movement_id)
    if record is None or not addresses_equal(record.sender, session.address):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Fund movement not found")
    return record.model_dump(mode="json")
