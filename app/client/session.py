"""
Chat session controller.

Keeps the visible conversation, sends each turn with the recent history and
runs any fund movement the server hands back for client-side execution.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..config import settings
from ..core.agent.models import SwapParams, TransferParams
from .api import AgentApiClient, ApiError
from .history import TransactionHistory
from .models import ChatMessage, ExecutionResult, TransactionRecord, TransactionStatus
from .retry import RetryExecutor

logger = logging.getLogger(__name__)

PROGRESS_NOTE = "Executing transfer (with retry logic)..."


class ChatSession:
    def __init__(
        self,
        api: AgentApiClient,
        executor: Optional[RetryExecutor] = None,
        history: Optional[TransactionHistory] = None,
        *,
        window: Optional[int] = None,
    ):
        self.api = api
        self.executor = executor or RetryExecutor(api)
        self.history = history or TransactionHistory()
        self.window = window if window is not None else settings.chat_history_window
        self.messages: List[ChatMessage] = []
        self.error: Optional[str] = None

    def clear(self) -> None:
        self.messages = []
        self.error = None

    async def send(self, text: str) -> List[ChatMessage]:
        """Send one user message; returns the messages this turn appended."""
        text = text.strip()
        if not text:
            return []

        start = len(self.messages)
        conversation = [m.to_turn() for m in self.messages[-self.window:]] if self.window > 0 else []
        self.messages.append(ChatMessage(role="user", content=text))
        self.error = None

        try:
            data = await self.api.chat(text, conversation)
        except ApiError as exc:
            logger.error("Chat request failed: %s", exc)
            self.error = str(exc)
            return self.messages[start:]

        if data.get("executeClientSide") and data.get("transactionParams"):
            await self._run_pending(data)
        else:
            self.messages.append(
                ChatMessage(role="assistant", content=data.get("response", ""), toolUsed=data.get("toolUsed"))
            )
        return self.messages[start:]

    async def _run_pending(self, data: Dict[str, Any]) -> None:
        self.messages.append(
            ChatMessage(
                role="assistant",
                content=f"{data.get('response', '')}\n\n{PROGRESS_NOTE}",
                toolUsed=data.get("toolUsed"),
            )
        )

        params = data["transactionParams"]
        if data.get("swapType") == "usdc_to_token":
            swap = SwapParams.model_validate(params)
            user_address = swap.user_address
            record = TransactionRecord(
                type="swap",
                amount=swap.amount,
                token="USDC",
                fromToken=settings.usdc_address,
                toToken=swap.token_address,
            )
            self.history.add(user_address, record)
            result = await self.executor.execute_swap(swap)
            tool_name = "swapUSDCForToken"
        else:
            transfer = TransferParams.model_validate(params)
            user_address = transfer.user_address
            record = TransactionRecord(
                type="transfer",
                amount=transfer.amount,
                token="USDC",
                recipient=transfer.recipient,
            )
            self.history.add(user_address, record)
            result = await self.executor.execute_transfer(transfer)
            tool_name = "sendUSDCTransaction"

        self.history.update(
            user_address,
            record.id,
            TransactionStatus.COMPLETED if result.success else TransactionStatus.FAILED,
            tx_hash=result.transaction_hash,
            explorer_url=result.explorer_url,
        )
        self.messages.append(
            ChatMessage(
                role="assistant",
                content=self._result_text(result),
                toolUsed={"name": tool_name, "result": result.model_dump(exclude_none=True)},
            )
        )

    @staticmethod
    def _result_text(result: ExecutionResult) -> str:
        if result.success and result.explorer_url:
            return f"{result.message}\n\nView transaction: {result.explorer_url}"
        return result.message
