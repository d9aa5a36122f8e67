"""
HTTP middleware.

- CorrelationIDMiddleware: one ID per request, shared by every log line
- JWTValidationMiddleware: verifies the bearer token and records the caller
- RequestLoggingMiddleware: one access-log line per request
"""

import logging
import time
import uuid
from contextvars import ContextVar
from typing import Optional

from fastapi import Request
from jose import JWTError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from feelsy.core.auth import AuthOptionalUser, verify_access_token

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")


def get_correlation_id() -> str:
    """Correlation ID of the request being handled ("" outside a request)."""
    return correlation_id_var.get()


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Reuse the client's X-Request-ID (or X-Correlation-ID) or mint a UUID4.

    The ID lives on request.state and in correlation_id_var for the duration
    of the request and is echoed back in the X-Request-ID response header.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = (
            request.headers.get(REQUEST_ID_HEADER)
            or request.headers.get("X-Correlation-ID")
            or str(uuid.uuid4())
        )
        request.state.correlation_id = request_id
        token = correlation_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            correlation_id_var.reset(token)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def _bearer_token(header: Optional[str]) -> Optional[str]:
    if not header or not header.startswith("Bearer "):
        return None
    return header[len("Bearer ") :].strip() or None


class JWTValidationMiddleware(BaseHTTPMiddleware):
    """
    Verify the bearer token, if any, and record the caller on request.state.user.

    Never rejects a request itself: an unverifiable token leaves the caller
    anonymous with the reason in request.state.token_error, which
    require_auth_from_state turns into a 401.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        caller = AuthOptionalUser()
        token_error: Optional[str] = None

        token = _bearer_token(request.headers.get("Authorization"))
        if token:
            try:
                claims = await verify_access_token(token)
            except JWTError as e:
                token_error = str(e)
            except Exception as e:
                # JWKS unreachable, unreadable header, no signing key
                token_error = f"Auth error: {e}"
            else:
                caller = AuthOptionalUser(
                    auth_id=claims.get("sub"),
                    email=claims.get("email"),
                    is_authenticated=bool(claims.get("sub")),
                )

        request.state.user = caller
        request.state.token_error = token_error
        return await call_next(request)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path, status and duration of every request."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        logger.info(
            "%s %s -> %d (%.1fms)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
            },
        )
        return response
