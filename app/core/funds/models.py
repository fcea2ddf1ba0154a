"""Fund movement records and results."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MovementKind(str, Enum):
    TRANSFER = "transfer"
    SWAP = "swap"


class StepName(str, Enum):
    PULL = "pull"
    APPROVE = "approve"
    TRANSFER = "transfer"
    SWAP = "swap"
    FORWARD = "forward"


class MovementState(str, Enum):
    STARTED = "started"
    PULLED = "pulled"
    APPROVED = "approved"
    TRANSFERRED = "transferred"
    SWAPPED = "swapped"
    FORWARDED = "forwarded"
    COMPLETED = "completed"
    FAILED = "failed"


class JournalStep(BaseModel):
    name: StepName
    operation_id: Optional[str] = None
    tx_hash: Optional[str] = None
    status: str
    at: datetime = Field(default_factory=_utcnow)


class FundMovementRecord(BaseModel):
    """Persisted step log of one fund movement.

    ``funds_in_custody`` is set when a failure happens after the pull
    succeeded: the pulled amount stays in the custodial account and is not
    returned automatically.
    """

    id: str
    kind: MovementKind
    sender: str
    account: str
    amount: int
    token: str
    recipient: Optional[str] = None
    state: MovementState = MovementState.STARTED
    steps: List[JournalStep] = Field(default_factory=list)
    error: Optional[str] = None
    failed_after: Optional[StepName] = None
    funds_in_custody: bool = False
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def last_step(self) -> Optional[JournalStep]:
        return self.steps[-1] if self.steps else None

    def completed(self, step: StepName) -> bool:
        return any(s.name == step and s.status == "complete" for s in self.steps)


class TransferResult(BaseModel):
    movement_id: str
    pull_operation_id: str
    transfer_operation_id: str
    transfer_tx_hash: Optional[str] = None
    amount: int
    recipient: str


class SwapResult(BaseModel):
    movement_id: str
    pull_operation_id: str
    swap_operation_id: str
    trade_tx_hash: Optional[str] = None
    amount: int
    token_address: str
    forwarded_amount: int = 0
    forward_operation_id: Optional[str] = None
