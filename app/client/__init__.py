"""
Client side of the chat: talks to the server over HTTP and runs deferred
fund movements with retries using the user's own spend permissions.
"""

from .models import ChatMessage, ExecutionResult, TransactionRecord, TransactionStatus
from .api import AgentApiClient, ApiError
from .history import TransactionHistory
from .retry import RetryExecutor
from .session import ChatSession
from .signer import LocalKeySigner

__all__ = [
    "ChatMessage",
    "ExecutionResult",
    "TransactionRecord",
    "TransactionStatus",
    "AgentApiClient",
    "ApiError",
    "TransactionHistory",
    "RetryExecutor",
    "ChatSession",
    "LocalKeySigner",
]
