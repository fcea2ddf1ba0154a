"""Helpers for validating wallet addresses and token amounts."""

from __future__ import annotations

import re
from decimal import ROUND_FLOOR, Decimal, InvalidOperation
from typing import Any

from eth_utils import to_checksum_address

from ..core.recovery.errors import InputValidationError

_EVM_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")


def is_valid_evm_address(address: Any) -> bool:
    return isinstance(address, str) and bool(_EVM_ADDRESS_RE.fullmatch(address))


def normalize_address(address: str) -> str:
    """Lower-cased form used for keys and comparisons."""

    return address.strip().lower()


def addresses_equal(left: str | None, right: str | None) -> bool:
    if not left or not right:
        return False
    return normalize_address(left) == normalize_address(right)


def require_address(value: Any, field: str) -> str:
    """Return ``value`` checksummed or raise naming ``field``."""

    if not is_valid_evm_address(value):
        raise InputValidationError(
            f"Invalid {field} address. Must be a valid Ethereum address starting with 0x",
            field=field,
        )
    return to_checksum_address(value)


def require_positive_units(value: Any, field: str) -> int:
    """Parse an integer amount of smallest token units, rejecting anything <= 0."""

    if isinstance(value, bool):
        raise InputValidationError(f"{field} must be an integer amount", field=field)
    try:
        if isinstance(value, str):
            units = int(value.strip(), 16) if value.strip().startswith("0x") else int(value.strip())
        elif isinstance(value, float):
            if not value.is_integer():
                raise ValueError(value)
            units = int(value)
        else:
            units = int(value)
    except (TypeError, ValueError):
        raise InputValidationError(f"{field} must be an integer amount", field=field)

    if units <= 0:
        raise InputValidationError(f"{field} must be greater than 0", field=field)
    return units


def to_units(amount: Any, decimals: int = 6) -> int:
    """Convert a human amount (e.g. 1.5 USD) into smallest units, rounding down."""

    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise InputValidationError(f"Invalid amount: {amount}", field="amount")
    return int((value * (Decimal(10) ** decimals)).to_integral_value(rounding=ROUND_FLOOR))


def format_units(units: int, decimals: int = 6) -> str:
    value = Decimal(units) / (Decimal(10) ** decimals)
    return f"{value:.{decimals}f}"


__all__ = [
    "is_valid_evm_address",
    "normalize_address",
    "addresses_equal",
    "require_address",
    "require_positive_units",
    "to_units",
    "format_units",
]
