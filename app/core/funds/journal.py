"""
Saga-style step log for fund movements.

Each movement is written to the key-value store as it progresses so an
operator can see exactly which on-chain steps ran. Failed movements are
recorded, never compensated.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from ...config import settings
from ...services.store import KeyValueStore, get_store
from .models import (
    FundMovementRecord,
    JournalStep,
    MovementKind,
    MovementState,
    StepName,
)

logger = logging.getLogger(__name__)


class OperationJournal:
    def __init__(self, store: Optional[KeyValueStore] = None, ttl_seconds: Optional[int] = None):
        self._store = store
        self.ttl_seconds = ttl_seconds or settings.journal_ttl_seconds

    @property
    def store(self) -> KeyValueStore:
        return self._store or get_store()

    @staticmethod
    def _key(movement_id: str) -> str:
        return f"fund-movement:{movement_id}"

    async def _save(self, record: FundMovementRecord) -> FundMovementRecord:
        record.updated_at = datetime.now(timezone.utc)
        await self.store.set(self._key(record.id), record.model_dump(mode="json"), ttl=self.ttl_seconds)
        return record

    async def start(
        self,
        kind: MovementKind,
        *,
        sender: str,
        account: str,
        amount: int,
        token: str,
        recipient: Optional[str] = None,
    ) -> FundMovementRecord:
        record = FundMovementRecord(
            id=uuid.uuid4().hex,
            kind=kind,
            sender=sender,
            account=account,
            amount=amount,
            token=token,
            recipient=recipient,
        )
        return await self._save(record)

    async def record_step(
        self,
        record: FundMovementRecord,
        step: StepName,
        state: MovementState,
        *,
        operation_id: Optional[str] = None,
        tx_hash: Optional[str] = None,
        status: str = "complete",
    ) -> FundMovementRecord:
        record.steps.append(
            JournalStep(name=step, operation_id=operation_id, tx_hash=tx_hash, status=status)
        )
        record.state = state
        return await self._save(record)

    async def complete(self, record: FundMovementRecord) -> FundMovementRecord:
        record.state = MovementState.COMPLETED
        record.funds_in_custody = False
        return await self._save(record)

    async def fail(self, record: FundMovementRecord, error: Exception) -> FundMovementRecord:
        completed = [step for step in record.steps if step.status == "complete"]
        record.failed_after = completed[-1].name if completed else None
        record.error = str(error)
        record.funds_in_custody = record.completed(StepName.PULL) and not (
            record.completed(StepName.TRANSFER) or record.completed(StepName.FORWARD)
        )
        record.state = MovementState.FAILED

        if record.funds_in_custody:
            # No compensation path: pulled funds stay with the custodial account
            logger.error(
                "Fund movement %s failed after pull; %d units of %s remain in %s: %s",
                record.id, record.amount, record.token, record.account, error,
            )
        else:
            logger.warning("Fund movement %s failed: %s", record.id, error)
        return await self._save(record)

    async def get(self, movement_id: str) -> Optional[FundMovementRecord]:
        data = await self.store.get(self._key(movement_id))
        return FundMovementRecord.model_validate(data) if data else None
