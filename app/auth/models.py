"""
Authentication models and exceptions.
"""

from typing import Optional
from pydantic import BaseModel, Field


class AuthError(Exception):
    """Base authentication error."""
    pass


class SessionExpiredError(AuthError):
    """Session has expired."""
    pass


class InvalidSignatureError(AuthError):
    """SIWE signature is invalid."""
    pass


class InvalidNonceError(AuthError):
    """Nonce is invalid or expired."""
    pass


class SessionPayload(BaseModel):
    """Claims carried by the session cookie."""
    address: str
    timestamp: int  # issued at, epoch milliseconds
    exp: Optional[int] = None


class NonceResponse(BaseModel):
    nonce: str


class VerifyRequest(BaseModel):
    """Request to verify SIWE signature."""
    address: str
    message: str
    signature: str


class VerifyResponse(BaseModel):
    ok: bool = True
    address: str
    session_token: str = Field(serialization_alias="sessionToken")


class AuthStatus(BaseModel):
    is_authenticated: bool = Field(serialization_alias="isAuthenticated")
    address: Optional[str] = None
    error: Optional[str] = None
