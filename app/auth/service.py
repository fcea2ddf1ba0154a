"""
Authentication service using Sign-In with Ethereum and JWT session cookies.
"""

import logging
import secrets
import time
from typing import Callable, Optional

import jwt
from siwe import SiweMessage, VerificationError

from app.config import settings
from app.services.address import addresses_equal, normalize_address

from .models import (
    AuthError,
    InvalidNonceError,
    InvalidSignatureError,
    SessionExpiredError,
    SessionPayload,
)
from .nonce_store import NonceStore, StoreNonceStore

JWT_ALGORITHM = "HS256"

logger = logging.getLogger(__name__)


class AuthService:
    """
    Wallet sign-in.

    Flow:
    1. Client requests a nonce via GET /auth/nonce
    2. Client signs a SIWE message carrying that nonce
    3. Client posts address + message + signature to POST /auth/verify
    4. Server consumes the nonce, verifies the signature and sets the
       session cookie (a JWT of {address, timestamp})
    """

    def __init__(
        self,
        nonces: Optional[NonceStore] = None,
        *,
        secret: Optional[str] = None,
        max_age_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.secret = secret if secret is not None else settings.session_secret
        if not self.secret:
            raise ValueError(
                "SESSION_SECRET must be set for session signing. "
                "This is required for authentication security."
            )
        self.nonces = nonces or StoreNonceStore()
        self.max_age_seconds = (
            max_age_seconds if max_age_seconds is not None else settings.session_max_age_seconds
        )
        self.clock = clock

    async def generate_nonce(self) -> str:
        # EIP-4361 nonces are alphanumeric only
        nonce = secrets.token_hex(16)
        await self.nonces.add(nonce)
        return nonce

    async def verify_signature(self, message: str, signature: str, address: str) -> str:
        """
        Verify a SIWE message signed by ``address``.

        The nonce is consumed before the signature is checked, so a message
        can never be replayed even when its first verification fails.
        Returns the lowercase signer address.
        """
        try:
            siwe_message = SiweMessage.from_message(message)
        except Exception as e:
            # The ABNF parser raises its own error types alongside ValueError
            raise InvalidSignatureError(f"Invalid sign-in message: {e}") from e

        nonce = siwe_message.nonce
        if not nonce or not await self.nonces.contains(nonce):
            raise InvalidNonceError("Invalid nonce")
        await self.nonces.remove(nonce)

        try:
            siwe_message.verify(signature)
        except VerificationError as e:
            raise InvalidSignatureError(f"Signature verification failed: {e}") from e

        if not addresses_equal(siwe_message.address, address):
            raise InvalidSignatureError("Signed message does not match address")

        logger.info("Wallet signed in: %s", normalize_address(address))
        return normalize_address(address)

    def issue_session_token(self, address: str) -> str:
        now = self.clock()
        payload = {
            "address": normalize_address(address),
            "timestamp": int(now * 1000),
            "exp": int(now) + self.max_age_seconds,
        }
        return jwt.encode(payload, self.secret, algorithm=JWT_ALGORITHM)

    def verify_session_token(self, token: str) -> SessionPayload:
        try:
            payload = jwt.decode(token, self.secret, algorithms=[JWT_ALGORITHM])
        except jwt.ExpiredSignatureError as e:
            raise SessionExpiredError("Session has expired") from e
        except jwt.InvalidTokenError as e:
            raise AuthError(f"Invalid session token: {e}") from e

        if not payload.get("address"):
            raise AuthError("Invalid session token: missing address")
        return SessionPayload(
            address=payload["address"],
            timestamp=payload.get("timestamp", 0),
            exp=payload.get("exp"),
        )


# Singleton instance
_auth_service: Optional[AuthService] = None


def get_auth_service() -> AuthService:
    """Get the singleton auth service instance."""
    global _auth_service
    if _auth_service is None:
        _auth_service = AuthService()
    return _auth_service
