"""
HTTP request logging middleware.

One ``http_request`` event per request, with the request id (and the signed-in
wallet, when the session cookie verifies) bound for every downstream log line.
"""

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from ..auth.models import AuthError
from ..auth.service import get_auth_service
from ..config import settings

logger = structlog.stdlib.get_logger("http")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log HTTP requests with timing, status and session address."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("x-request-id", str(uuid.uuid4())[:8])

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        token = request.cookies.get(settings.session_cookie_name)
        if token:
            try:
                session = get_auth_service().verify_session_token(token)
                structlog.contextvars.bind_contextvars(wallet=session.address)
            except AuthError:
                pass

        start = time.perf_counter()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers["x-request-id"] = request_id
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 1)

            log = logger.info if status_code < 400 else logger.warning
            if status_code >= 500:
                log = logger.error

            log(
                "http_request",
                method=request.method,
                path=request.url.path,
                status=status_code,
                duration_ms=duration_ms,
            )
