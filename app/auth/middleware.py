"""
FastAPI session dependencies.
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request, status

from app.config import settings

from .models import AuthError, SessionExpiredError, SessionPayload
from .service import AuthService, get_auth_service


def _session_cookie(request: Request) -> Optional[str]:
    return request.cookies.get(settings.session_cookie_name)


async def optional_session(
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
) -> Optional[SessionPayload]:
    """
    The current session, or None when the cookie is missing or invalid.

    Use `require_session` for endpoints that require authentication.
    """
    token = _session_cookie(request)
    if not token:
        return None
    try:
        return auth_service.verify_session_token(token)
    except AuthError:
        return None


async def require_session(
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
) -> SessionPayload:
    """
    Require a valid session cookie.

    Raises HTTPException 401 if not authenticated.
    """
    token = _session_cookie(request)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    try:
        return auth_service.verify_session_token(token)
    except SessionExpiredError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session has expired",
        )
    except AuthError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
        )
