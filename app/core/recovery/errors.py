"""
Error Classification

Error types shared by the server and the client.
Errors are classified as recoverable (the client may retry the whole fund
movement) or unrecoverable (retrying cannot change the outcome).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

import httpx


class ErrorCategory(str, Enum):
    """Categories of errors for retry decisions."""

    AUTHENTICATION = "authentication"  # Missing or invalid session
    VALIDATION = "validation"          # Malformed address, amount, call data
    PERMISSION_SHORTFALL = "permission_shortfall"  # Not enough delegated allowance
    INSUFFICIENT_FUNDS = "insufficient_funds"      # Custody balance not (yet) visible
    TIMEOUT = "timeout"                # Relay operation did not settle in time
    OPERATION_FAILED = "operation_failed"  # On-chain operation ended in a non-complete state
    NETWORK = "network"
    PROVIDER = "provider"              # Upstream service error
    UNKNOWN = "unknown"


@dataclass
class ErrorContext:
    """Additional context about an error."""

    category: ErrorCategory = ErrorCategory.UNKNOWN
    recoverable: bool = True
    suggested_action: Optional[str] = None
    operation_id: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


class RecoverableError(Exception):
    """
    Base class for transient errors.

    The Client-Side Retry Executor retries these with backoff:
    - Relay timeouts
    - Balance not yet reflected after a pull
    - Operations ending in a non-complete status
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        context: Optional[ErrorContext] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.context = context or ErrorContext(category=category, recoverable=True)


class UnrecoverableError(Exception):
    """
    Base class for errors that retrying cannot fix:
    bad input, missing session, missing allowance.
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        context: Optional[ErrorContext] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.context = context or ErrorContext(category=category, recoverable=False)


class AuthenticationError(UnrecoverableError):
    """No valid session for an operation that needs one."""

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message, category=ErrorCategory.AUTHENTICATION)


class InputValidationError(UnrecoverableError):
    """Rejected input; ``field`` names the offending parameter."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(
            message,
            category=ErrorCategory.VALIDATION,
            context=ErrorContext(
                category=ErrorCategory.VALIDATION,
                recoverable=False,
                details={"field": field} if field else {},
            ),
        )
        self.field = field


class MalformedSpendCallError(InputValidationError):
    """A spend call is missing its destination."""

    def __init__(self, index: int):
        super().__init__(
            f"Spend call at index {index} is missing 'to' field",
            field=f"spendCalls[{index}]",
        )
        self.index = index


class NoPermissionsError(UnrecoverableError):
    """The user has not granted any usable spend permission."""

    def __init__(self, message: str = "No spend permissions found. Please set up spend permissions first."):
        super().__init__(message, category=ErrorCategory.PERMISSION_SHORTFALL)


class InsufficientAllowanceError(UnrecoverableError):
    """Remaining allowance across all permissions is below the requested amount."""

    def __init__(self, shortfall: int, decimals: int = 6):
        needed = shortfall / (10 ** decimals)
        super().__init__(
            f"Insufficient spend permission allowance. Need {needed:g} more USDC in permissions.",
            category=ErrorCategory.PERMISSION_SHORTFALL,
            context=ErrorContext(
                category=ErrorCategory.PERMISSION_SHORTFALL,
                recoverable=False,
                suggested_action="Grant an additional spend permission",
                details={"shortfall": shortfall},
            ),
        )
        self.shortfall = shortfall


class CustodyBalanceError(RecoverableError):
    """Pulled funds are not (yet) visible in the custodial account."""

    def __init__(self, required: int, available: int, token: str):
        super().__init__(
            f"Insufficient balance in server wallet: have {available}, need {required}",
            category=ErrorCategory.INSUFFICIENT_FUNDS,
            context=ErrorContext(
                category=ErrorCategory.INSUFFICIENT_FUNDS,
                recoverable=True,
                suggested_action="Retry once the pull is reflected on chain",
                details={"required": required, "available": available, "token": token},
            ),
        )
        self.required = required
        self.available = available


class RelayTimeoutError(RecoverableError):
    """An operation did not reach a terminal state in time."""

    def __init__(self, operation_id: str, timeout_s: float):
        super().__init__(
            f"Operation {operation_id} did not complete within {timeout_s:g}s",
            category=ErrorCategory.TIMEOUT,
            context=ErrorContext(
                category=ErrorCategory.TIMEOUT,
                recoverable=True,
                operation_id=operation_id,
            ),
        )
        self.operation_id = operation_id


class OperationFailedError(RecoverableError):
    """An on-chain operation settled with a status other than ``complete``."""

    step = "operation"

    def __init__(self, status: str, operation_id: Optional[str] = None):
        super().__init__(
            f"{self.step.capitalize()} failed with status: {status}",
            category=ErrorCategory.OPERATION_FAILED,
            context=ErrorContext(
                category=ErrorCategory.OPERATION_FAILED,
                recoverable=True,
                operation_id=operation_id,
                details={"status": status},
            ),
        )
        self.status = status
        self.operation_id = operation_id


class SwapFailedError(OperationFailedError):
    step = "swap"


def classify_error(error: Exception) -> ErrorContext:
    """Return the error context for any exception raised during a fund movement."""
    if isinstance(error, (RecoverableError, UnrecoverableError)):
        return error.context

    if isinstance(error, httpx.TimeoutException):
        return ErrorContext(category=ErrorCategory.TIMEOUT, recoverable=True)
    if isinstance(error, httpx.RequestError):
        return ErrorContext(category=ErrorCategory.NETWORK, recoverable=True)
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        if status == 401:
            return ErrorContext(category=ErrorCategory.AUTHENTICATION, recoverable=False)
        if status in (400, 403, 422):
            return ErrorContext(category=ErrorCategory.VALIDATION, recoverable=False)
        return ErrorContext(category=ErrorCategory.PROVIDER, recoverable=True)

    # Unknown failures are retried; the executor bounds the attempts
    return ErrorContext(category=ErrorCategory.UNKNOWN, recoverable=True)
