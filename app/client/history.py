"""Per-user transaction history persisted as JSON files, newest first."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional, Union

from ..config import settings
from ..services.address import normalize_address
from .models import TransactionRecord, TransactionStatus

logger = logging.getLogger(__name__)


class TransactionHistory:
    def __init__(self, state_dir: Optional[Union[str, Path]] = None, limit: Optional[int] = None):
        self.state_dir = Path(state_dir) if state_dir is not None else Path(settings.client_state_dir)
        self.limit = limit if limit is not None else settings.transaction_history_limit

    def _path(self, user_address: str) -> Path:
        return self.state_dir / f"transactions_{normalize_address(user_address)}.json"

    def list(self, user_address: str) -> List[TransactionRecord]:
        path = self._path(user_address)
        if not path.exists():
            return []
        raw = json.loads(path.read_text(encoding="utf-8"))
        return [TransactionRecord.model_validate(item) for item in raw]

    def _write(self, user_address: str, records: List[TransactionRecord]) -> None:
        self.state_dir.mkdir(parents=True, exist_ok=True)
        payload = [r.model_dump(mode="json", by_alias=True) for r in records[: self.limit]]
        self._path(user_address).write_text(json.dumps(payload, indent=2), encoding="utf-8")

    def add(self, user_address: str, record: TransactionRecord) -> TransactionRecord:
        self._write(user_address, [record, *self.list(user_address)])
        return record

    def update(
        self,
        user_address: str,
        record_id: str,
        status: TransactionStatus,
        *,
        tx_hash: Optional[str] = None,
        explorer_url: Optional[str] = None,
    ) -> Optional[TransactionRecord]:
        records = self.list(user_address)
        updated = None
        for index, record in enumerate(records):
            if record.id != record_id:
                continue
            changes = {"status": status}
            if tx_hash:
                changes["tx_hash"] = tx_hash
            if explorer_url:
                changes["explorer_url"] = explorer_url
            updated = record.model_copy(update=changes)
            records[index] = updated
            break

        if updated is None:
            logger.warning("No transaction %s in history for %s", record_id, user_address)
            return None
        self._write(user_address, records)
        return updated
