"""
Error taxonomy and backoff policy for fund movements.
"""

from .errors import (
    ErrorCategory,
    ErrorContext,
    RecoverableError,
    UnrecoverableError,
    AuthenticationError,
    InputValidationError,
    MalformedSpendCallError,
    NoPermissionsError,
    InsufficientAllowanceError,
    CustodyBalanceError,
    RelayTimeoutError,
    OperationFailedError,
    SwapFailedError,
    classify_error,
)
from .strategies import RetryConfig

__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "RecoverableError",
    "UnrecoverableError",
    "AuthenticationError",
    "InputValidationError",
    "MalformedSpendCallError",
    "NoPermissionsError",
    "InsufficientAllowanceError",
    "CustodyBalanceError",
    "RelayTimeoutError",
    "OperationFailedError",
    "SwapFailedError",
    "classify_error",
    "RetryConfig",
]
