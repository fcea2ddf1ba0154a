"""Client-side chat and transaction records."""

from __future__ import annotations

import secrets
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _record_id() -> str:
    return f"{int(time.time() * 1000)}-{secrets.token_hex(4)}"


class ChatMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime = Field(default_factory=_utcnow)
    tool_used: Optional[Dict[str, Any]] = Field(default=None, alias="toolUsed")

    def to_turn(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


class ExecutionResult(BaseModel):
    """Outcome of a client-executed fund movement."""

    success: bool
    message: str
    error: Optional[str] = None
    transaction_hash: Optional[str] = None
    explorer_url: Optional[str] = None
    attempts: int = 0
    details: Optional[Dict[str, Any]] = None


class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class TransactionRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=_record_id)
    type: Literal["transfer", "swap"]
    amount: str
    token: str
    recipient: Optional[str] = None
    from_token: Optional[str] = Field(default=None, alias="fromToken")
    to_token: Optional[str] = Field(default=None, alias="toToken")
    tx_hash: Optional[str] = Field(default=None, alias="txHash")
    timestamp: datetime = Field(default_factory=_utcnow)
    status: TransactionStatus = TransactionStatus.PENDING
    explorer_url: Optional[str] = Field(default=None, alias="explorerUrl")
