"""Spend permission data model."""

from __future__ import annotations

import time
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

SECONDS_PER_DAY = 86_400
MAX_UINT48 = 2 ** 48 - 1


class PermissionState(str, Enum):
    ACTIVE = "Active"
    EXPIRED = "Expired"


class SpendPermission(BaseModel):
    """A delegated, time-bounded allowance granted by ``account`` to ``spender``.

    Never mutated locally: what is left to spend is tracked by the registry
    and observed through :class:`PermissionStatus`.
    """

    model_config = ConfigDict(populate_by_name=True)

    account: str
    spender: str
    token: str
    chain_id: int = Field(alias="chainId")
    allowance: int
    period: int = Field(description="Renewal cadence in seconds")
    start: Optional[int] = None
    end: Optional[int] = None
    salt: int = 0
    extra_data: str = Field(default="0x", alias="extraData")
    signature: Optional[str] = None
    permission_hash: Optional[str] = Field(default=None, alias="permissionHash")
    status: Optional[PermissionState] = None

    @field_validator("allowance", "period", "salt", "start", "end", mode="before")
    @classmethod
    def _coerce_int(cls, value: Any) -> Any:
        # The wallet RPC returns numbers as decimal strings or hex
        if isinstance(value, str):
            return int(value, 16) if value.startswith("0x") else int(value)
        return value

    @field_validator("allowance")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("allowance must be non-negative")
        return value

    @property
    def period_in_days(self) -> int:
        return self.period // SECONDS_PER_DAY

    def is_active(self, now_ms: Optional[int] = None) -> bool:
        """Active while there is no end or ``end * 1000 >= now``."""
        if self.end is None:
            return True
        now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
        return self.end * 1000 >= now_ms

    def with_status(self, now_ms: Optional[int] = None) -> "SpendPermission":
        state = PermissionState.ACTIVE if self.is_active(now_ms) else PermissionState.EXPIRED
        return self.model_copy(update={"status": state})

    def to_struct(self) -> Dict[str, Any]:
        """Fields in on-chain struct order."""
        return {
            "account": self.account,
            "spender": self.spender,
            "token": self.token,
            "allowance": self.allowance,
            "period": self.period,
            "start": self.start or 0,
            "end": self.end if self.end is not None else MAX_UINT48,
            "salt": self.salt,
            "extraData": self.extra_data,
        }

    @classmethod
    def from_registry(cls, entry: Dict[str, Any]) -> "SpendPermission":
        """Build from a ``coinbase_fetchPermissions`` entry."""
        permission = entry.get("permission") or entry.get("spendPermission") or entry
        return cls(
            account=permission["account"],
            spender=permission["spender"],
            token=permission["token"],
            chainId=entry.get("chainId", permission.get("chainId")),
            allowance=permission["allowance"],
            period=permission["period"],
            start=permission.get("start"),
            end=permission.get("end"),
            salt=permission.get("salt", 0),
            extraData=permission.get("extraData", "0x"),
            signature=entry.get("signature"),
            permissionHash=entry.get("permissionHash"),
        )


class PermissionStatus(BaseModel):
    """Live registry view of a permission."""

    remaining_spend: int
    is_revoked: bool = False
    is_valid: bool = True
    is_approved: bool = False
    current_period_start: Optional[int] = None
    current_period_end: Optional[int] = None

    @property
    def usable(self) -> bool:
        return self.remaining_spend > 0 and not self.is_revoked


class Call(BaseModel):
    """A single call executed by the custodial account."""

    to: Optional[str] = None
    data: str = "0x"
    value: int = 0

    @field_validator("value", mode="before")
    @classmethod
    def _coerce_value(cls, value: Any) -> Any:
        if value is None:
            return 0
        if isinstance(value, str):
            return int(value, 16) if value.startswith("0x") else int(value)
        return value

    def to_wire(self) -> Dict[str, Any]:
        return {"to": self.to, "data": self.data, "value": hex(self.value)}


class SpendCall(BaseModel):
    """Calls pulling ``spend_amount`` from one permission into custody.

    Built fresh per attempt and consumed once.
    """

    permission_hash: Optional[str] = None
    spend_amount: int
    calls: List[Call]

    def to_wire(self) -> List[Dict[str, Any]]:
        return [call.to_wire() for call in self.calls]


class SpendPlan(BaseModel):
    spend_calls: List[SpendCall] = Field(default_factory=list)
    contributions: List[int] = Field(default_factory=list)
    shortfall: int = 0

    @property
    def is_sufficient(self) -> bool:
        return self.shortfall <= 0

    @property
    def total(self) -> int:
        return sum(self.contributions)

    def to_wire(self) -> List[List[Dict[str, Any]]]:
        return [spend_call.to_wire() for spend_call in self.spend_calls]
