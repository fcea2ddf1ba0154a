"""
Client-side retry executor for deferred fund movements.

Every attempt starts from scratch: permissions are re-read and a fresh spend
plan is built, because spend calls from a failed attempt may already be
partly consumed. Missing permissions and allowance shortfalls end the run at
once since waiting cannot fix them.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from ..config import settings
from ..core.agent.models import SwapParams, TransferParams
from ..core.permissions import PermissionAllocator, PermissionSpender
from ..core.recovery import InsufficientAllowanceError, NoPermissionsError, RetryConfig, classify_error
from .api import AgentApiClient
from .models import ExecutionResult

logger = logging.getLogger(__name__)

Submit = Callable[[list], Awaitable[Dict[str, Any]]]


def _short_address(address: str) -> str:
    return f"{address[:6]}...{address[-4:]}"


def _attempt_suffix(attempt: int) -> str:
    return f" (succeeded on attempt {attempt})" if attempt > 1 else ""


class RetryExecutor:
    def __init__(
        self,
        api: AgentApiClient,
        *,
        allocator: Optional[PermissionAllocator] = None,
        spender: Optional[PermissionSpender] = None,
        config: Optional[RetryConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.api = api
        self.allocator = allocator or PermissionAllocator()
        self.spender = spender or PermissionSpender()
        self.config = config or RetryConfig.from_settings()
        self._sleep = sleep

    async def execute_transfer(self, params: TransferParams) -> ExecutionResult:
        async def submit(spend_calls: list) -> Dict[str, Any]:
            return await self.api.transfer(
                {
                    "recipient": params.recipient,
                    "sender": params.user_address,
                    "amount": params.amount,
                    "spendCalls": spend_calls,
                }
            )

        def succeeded(data: Dict[str, Any], attempt: int) -> ExecutionResult:
            return ExecutionResult(
                success=True,
                message=f"Transaction successful!{_attempt_suffix(attempt)}",
                transaction_hash=data.get("transferUserOpHash"),
                explorer_url=data.get("explorerUrl") or settings.explorer_url,
                attempts=attempt,
                details=data,
            )

        return await self._execute("Transfer", params.user_address, params.smart_account_address,
                                   int(params.amount), submit, succeeded)

    async def execute_swap(self, params: SwapParams) -> ExecutionResult:
        token_name = params.token_symbol or f"token at {_short_address(params.token_address)}"

        async def submit(spend_calls: list) -> Dict[str, Any]:
            return await self.api.swap(
                {
                    "tokenAddress": params.token_address,
                    "sender": params.user_address,
                    "amount": params.amount,
                    "spendCalls": spend_calls,
                }
            )

        def succeeded(data: Dict[str, Any], attempt: int) -> ExecutionResult:
            return ExecutionResult(
                success=True,
                message=(
                    f"Swap successful! Exchanged ${params.amount_usd:g} USDC for {token_name}"
                    f"{_attempt_suffix(attempt)}"
                ),
                transaction_hash=data.get("tradeTransactionHash"),
                explorer_url=data.get("explorerUrl") or settings.explorer_url,
                attempts=attempt,
                details=data,
            )

        return await self._execute("Swap", params.user_address, params.smart_account_address,
                                   int(params.amount), submit, succeeded)

    async def _execute(
        self,
        label: str,
        user_address: str,
        spender_address: str,
        amount: int,
        submit: Submit,
        succeeded: Callable[[Dict[str, Any], int], ExecutionResult],
    ) -> ExecutionResult:
        max_attempts = self.config.max_attempts
        last_error: Optional[Exception] = None

        for attempt in range(1, max_attempts + 1):
            try:
                logger.info("%s attempt %d/%d for %s", label, attempt, max_attempts, user_address)

                permissions = await self.allocator.list_permissions(user_address, spender_address)
                if not permissions:
                    error = NoPermissionsError()
                    return ExecutionResult(
                        success=False, message=str(error), error="No permissions available", attempts=attempt,
                    )

                try:
                    plan = PermissionSpender.require_sufficient(
                        await self.spender.build_spend_calls(permissions, amount)
                    )
                except InsufficientAllowanceError as error:
                    return ExecutionResult(
                        success=False, message=str(error), error="Insufficient permissions", attempts=attempt,
                    )

                logger.info("Executing %d spend call(s) (attempt %d)", len(plan.spend_calls), attempt)
                data = await submit(plan.to_wire())
                if not data.get("success"):
                    raise RuntimeError(data.get("error") or f"{label} failed")
                return succeeded(data, attempt)

            except Exception as exc:
                last_error = exc
                logger.warning(
                    "%s attempt %d/%d failed (%s): %s",
                    label, attempt, max_attempts, classify_error(exc).category.value, exc,
                )
                if attempt == max_attempts:
                    break
                delay = self.config.get_delay(attempt)
                logger.info("Waiting %.1fs before retry", delay)
                await self._sleep(delay)

        message = str(last_error) if last_error else "Unknown error"
        return ExecutionResult(
            success=False,
            message=f"{label} failed after {max_attempts} attempts: {message}",
            error=message,
            attempts=max_attempts,
        )
