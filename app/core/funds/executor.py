"""
Fund-Movement Executor

Pulls USDC from the user through spend calls into the custodial smart
account, then either transfers it on or swaps it and forwards the proceeds.
Every step is a sponsored user operation awaited before the next one starts.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Type

from pydantic import ValidationError

from ...config import settings
from ...providers.chain_rpc import ChainRpcProvider, get_chain_rpc_provider
from ...providers.relay import OperationReceipt, RelayProvider, get_relay_provider
from ..permissions.models import Call
from ..recovery.errors import (
    CustodyBalanceError,
    InputValidationError,
    MalformedSpendCallError,
    OperationFailedError,
    SwapFailedError,
)
from .calldata import MAX_UINT256, build_erc20_approve, build_erc20_transfer
from .journal import OperationJournal
from .models import (
    FundMovementRecord,
    MovementKind,
    MovementState,
    StepName,
    SwapResult,
    TransferResult,
)

logger = logging.getLogger(__name__)


def flatten_spend_calls(spend_calls: Sequence[Any]) -> List[Call]:
    """Validate and flatten spend calls as posted by the client.

    Each entry is either one call or the list of calls prepared for one
    permission. Every call must name its destination; nothing is submitted
    otherwise.
    """
    if not spend_calls:
        raise InputValidationError("spendCalls must be a non-empty array", field="spendCalls")

    calls: List[Call] = []
    for index, entry in enumerate(spend_calls):
        group = entry if isinstance(entry, (list, tuple)) else [entry]
        if not group:
            raise MalformedSpendCallError(index)
        for raw in group:
            if isinstance(raw, Call):
                call = raw
            elif isinstance(raw, dict):
                try:
                    call = Call.model_validate(raw)
                except ValidationError:
                    raise MalformedSpendCallError(index)
            else:
                raise MalformedSpendCallError(index)
            if not call.to:
                raise MalformedSpendCallError(index)
            calls.append(call)
    return calls


class FundMovementExecutor:
    def __init__(
        self,
        relay: Optional[RelayProvider] = None,
        chain: Optional[ChainRpcProvider] = None,
        journal: Optional[OperationJournal] = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._relay = relay
        self._chain = chain
        self.journal = journal or OperationJournal()
        self._sleep = sleep

    @property
    def relay(self) -> RelayProvider:
        return self._relay or get_relay_provider()

    @property
    def chain(self) -> ChainRpcProvider:
        return self._chain or get_chain_rpc_provider()

    async def transfer(
        self,
        *,
        account: str,
        sender: str,
        recipient: str,
        amount: int,
        spend_calls: Sequence[Any],
        token: Optional[str] = None,
    ) -> TransferResult:
        """Pull ``amount`` from ``sender`` into ``account`` and send it to ``recipient``."""
        token = token or settings.usdc_address
        if amount <= 0:
            raise InputValidationError("Amount must be greater than 0", field="amount")
        pull_calls = flatten_spend_calls(spend_calls)

        record = await self.journal.start(
            MovementKind.TRANSFER,
            sender=sender,
            account=account,
            amount=amount,
            token=token,
            recipient=recipient,
        )
        try:
            pull = await self._run_step(record, StepName.PULL, MovementState.PULLED, pull_calls)
            logger.info("Funds pulled into %s: %s", account, pull.operation_id)

            await self._sleep(settings.post_pull_settle_seconds)
            await self._require_balance(token, account, amount)

            transfer = await self._run_step(
                record,
                StepName.TRANSFER,
                MovementState.TRANSFERRED,
                [Call(to=token, data=build_erc20_transfer(recipient, amount))],
            )
            await self.journal.complete(record)
        except Exception as exc:
            await self.journal.fail(record, exc)
            raise

        return TransferResult(
            movement_id=record.id,
            pull_operation_id=pull.operation_id,
            transfer_operation_id=transfer.operation_id,
            transfer_tx_hash=transfer.tx_hash,
            amount=amount,
            recipient=recipient,
        )

    async def swap(
        self,
        *,
        account: str,
        sender: str,
        token_address: str,
        amount: int,
        spend_calls: Sequence[Any],
        from_token: Optional[str] = None,
    ) -> SwapResult:
        """Pull ``amount`` USDC, swap it for ``token_address`` and forward the proceeds to ``sender``."""
        from_token = from_token or settings.usdc_address
        if amount <= 0:
            raise InputValidationError("Amount must be greater than 0", field="amount")
        pull_calls = flatten_spend_calls(spend_calls)

        record = await self.journal.start(
            MovementKind.SWAP,
            sender=sender,
            account=account,
            amount=amount,
            token=from_token,
            recipient=sender,
        )
        try:
            pull = await self._run_step(record, StepName.PULL, MovementState.PULLED, pull_calls)

            # Repeating the max approval is harmless
            await self._run_step(
                record,
                StepName.APPROVE,
                MovementState.APPROVED,
                [Call(to=from_token, data=build_erc20_approve(settings.swap_router_address, MAX_UINT256))],
            )
            await self._sleep(settings.approve_settle_seconds)

            swap_operation_id = await self.relay.swap(
                account,
                from_token=from_token,
                to_token=token_address,
                amount=amount,
                slippage_bps=settings.swap_slippage_bps,
            )
            swap = await self._await_step(
                record, StepName.SWAP, MovementState.SWAPPED, swap_operation_id, SwapFailedError
            )

            balance = await self.chain.erc20_balance_of(token_address, account)
            forward_operation_id = None
            if balance > 0:
                forward = await self._run_step(
                    record,
                    StepName.FORWARD,
                    MovementState.FORWARDED,
                    [Call(to=token_address, data=build_erc20_transfer(sender, balance))],
                )
                forward_operation_id = forward.operation_id
            else:
                logger.warning("Swap %s left no %s balance to forward", swap.operation_id, token_address)

            await self.journal.complete(record)
        except Exception as exc:
            await self.journal.fail(record, exc)
            raise

        return SwapResult(
            movement_id=record.id,
            pull_operation_id=pull.operation_id,
            swap_operation_id=swap.operation_id,
            trade_tx_hash=swap.tx_hash,
            amount=amount,
            token_address=token_address,
            forwarded_amount=balance,
            forward_operation_id=forward_operation_id,
        )

    async def _require_balance(self, token: str, account: str, amount: int) -> None:
        balance = await self.chain.erc20_balance_of(token, account)
        if balance < amount:
            raise CustodyBalanceError(required=amount, available=balance, token=token)

    async def _run_step(
        self,
        record: FundMovementRecord,
        step: StepName,
        state: MovementState,
        calls: List[Call],
    ) -> OperationReceipt:
        operation_id = await self.relay.submit(record.account, calls)
        return await self._await_step(record, step, state, operation_id, OperationFailedError)

    async def _await_step(
        self,
        record: FundMovementRecord,
        step: StepName,
        state: MovementState,
        operation_id: str,
        failure: Type[OperationFailedError],
    ) -> OperationReceipt:
        receipt = await self.relay.await_completion(record.account, operation_id)
        if not receipt.succeeded:
            await self.journal.record_step(
                record, step, record.state,
                operation_id=operation_id, tx_hash=receipt.tx_hash, status=receipt.status,
            )
            raise failure(receipt.status, operation_id)
        await self.journal.record_step(
            record, step, state, operation_id=operation_id, tx_hash=receipt.tx_hash,
        )
        return receipt


_fund_movement_executor: Optional[FundMovementExecutor] = None


def get_fund_movement_executor() -> FundMovementExecutor:
    global _fund_movement_executor
    if _fund_movement_executor is None:
        _fund_movement_executor = FundMovementExecutor()
    return _fund_movement_executor
