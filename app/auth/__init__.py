from .models import (
    AuthError,
    AuthStatus,
    InvalidNonceError,
    InvalidSignatureError,
    SessionExpiredError,
    SessionPayload,
    VerifyRequest,
    VerifyResponse,
)
from .nonce_store import NonceStore, StoreNonceStore
from .service import AuthService, get_auth_service
from .middleware import optional_session, require_session

__all__ = [
    "AuthError",
    "AuthStatus",
    "InvalidNonceError",
    "InvalidSignatureError",
    "SessionExpiredError",
    "SessionPayload",
    "VerifyRequest",
    "VerifyResponse",
    "NonceStore",
    "StoreNonceStore",
    "AuthService",
    "get_auth_service",
    "optional_session",
    "require_session",
]
