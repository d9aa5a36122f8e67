"""
Per-caller request limits (slowapi, counters stored in Redis).

Endpoints opt in with @limiter.limit("N/period") and must take a
`request: Request` parameter.
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded

from feelsy.core.config import get_settings
from feelsy.core.exceptions import error_response


def _get_rate_limit_key(request: Request) -> str:
    """Bucket by Supabase user when the token verified, by client IP otherwise."""
    caller = getattr(request.state, "user", None)
    auth_id = getattr(caller, "auth_id", None)
    if auth_id:
        return f"auth:{auth_id}"

    host = request.client.host if request.client else "unknown"
    return f"ip:{host}"


_settings = get_settings()

limiter = Limiter(
    key_func=_get_rate_limit_key,
    default_limits=["60/minute"],
    enabled=_settings.rate_limit_enabled,
    storage_uri=_settings.redis_url,
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return error_response(
        429, "Rate limit exceeded. Please try again later.", "RATE_LIMIT_EXCEEDED"
    )
