"""
Authentication API endpoints.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from app.auth import (
    AuthError,
    AuthService,
    AuthStatus,
    SessionExpiredError,
    VerifyRequest,
    VerifyResponse,
    get_auth_service,
)
from app.auth.models import NonceResponse
from app.config import settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


@router.get("/auth/nonce", response_model=NonceResponse)
async def get_nonce(auth_service: AuthService = Depends(get_auth_service)):
    """
    Generate a nonce for wallet sign-in.

    The client embeds it in the SIWE message. Nonces are single use and
    expire after ``nonce_ttl_seconds``.
    """
    return NonceResponse(nonce=await auth_service.generate_nonce())


@router.post("/auth/verify")
async def verify_signature(
    body: VerifyRequest,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
):
    """Verify a signed SIWE message and start a cookie session."""
    try:
        address = await auth_service.verify_signature(body.message, body.signature, body.address)
    except AuthError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))

    token = auth_service.issue_session_token(address)
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.session_max_age_seconds,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="strict",
        path="/",
    )
    return VerifyResponse(address=address, session_token=token).model_dump(by_alias=True)


@router.get("/auth-status")
async def auth_status(
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
):
    token = request.cookies.get(settings.session_cookie_name)
    if not token:
        result = AuthStatus(is_authenticated=False, error="No session")
    else:
        try:
            session = auth_service.verify_session_token(token)
            result = AuthStatus(is_authenticated=True, address=session.address)
        except SessionExpiredError:
            result = AuthStatus(is_authenticated=False, error="Session expired")
        except AuthError:
            result = AuthStatus(is_authenticated=False, error="Invalid session")
    return result.model_dump(by_alias=True, exclude_none=True)


@router.get("/auth/signout")
async def signout(response: Response):
    response.delete_cookie(settings.session_cookie_name, path="/")
    return {"message": "Logged out successfully"}
