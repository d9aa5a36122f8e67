"""
Supabase access-token verification.

JWTValidationMiddleware verifies the bearer token once per request and
leaves an AuthOptionalUser on request.state. Routes that need a caller
depend on require_auth_from_state.
"""

import asyncio
import logging
import time
from typing import Optional

import httpx
from fastapi import HTTPException, Request, status
from jose import JWTError, jwt
from pydantic import BaseModel

from feelsy.core.config import get_settings
from feelsy.core.database import get_supabase

logger = logging.getLogger(__name__)

TOKEN_AUDIENCE = "authenticated"
TOKEN_ALGORITHMS = ["RS256", "ES256"]


class AuthUser(BaseModel):
    """The verified caller."""

    auth_id: str  # Supabase auth.uid(), not the internal users.id
    email: str


class AuthOptionalUser(BaseModel):
    """What the middleware knows about the caller; anonymous unless a token verified."""

    auth_id: Optional[str] = None
    email: Optional[str] = None
    is_authenticated: bool = False


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


class JWKSCache:
    """
    Supabase signing keys with a soft and a hard expiry.

    Keys younger than TTL - REFRESH_BEFORE are served as is. Older keys that
    are still inside TTL are served while a single background task refetches
    them. Past TTL, or before the first fetch, the caller waits for a fetch.
    A failed background fetch keeps the previous keys.
    """

    TTL: int = 3600
    REFRESH_BEFORE: int = 300

    def __init__(self) -> None:
        self._keys: Optional[dict] = None
        self._fetched_at: Optional[float] = None
        self._refresh_task: Optional[asyncio.Task] = None
        self._lock: Optional[asyncio.Lock] = None  # created inside the running loop

    def _age(self, now: float) -> Optional[float]:
        if self._keys is None or self._fetched_at is None:
            return None
        return now - self._fetched_at

    def _get_lock(self) -> asyncio.Lock:
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    def _remember(self, keys: dict) -> dict:
        self._keys = keys
        self._fetched_at = time.time()
        return keys

    async def get_keys(self) -> dict:
        age = self._age(time.time())
        if age is not None and age < self.TTL:
            if age >= self.TTL - self.REFRESH_BEFORE:
                self._start_background_refresh()
            return self._keys

        async with self._get_lock():
            age = self._age(time.time())
            if age is not None and age < self.TTL - self.REFRESH_BEFORE:
                return self._keys
            return self._remember(await self._fetch_keys())

    def _start_background_refresh(self) -> None:
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.create_task(self._refresh_quietly())

    async def _refresh_quietly(self) -> None:
        try:
            async with self._get_lock():
                self._remember(await self._fetch_keys())
            logger.info("Refreshed Supabase JWKS in background")
        except Exception as e:
            logger.warning("JWKS refresh failed, serving previous keys: %s", e)

    async def _fetch_keys(self) -> dict:
        url = f"{get_settings().supabase_url}/auth/v1/.well-known/jwks.json"
        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail=f"Failed to fetch JWKS: {e}",
            ) from e
        return response.json()

    def invalidate(self) -> None:
        self._keys = None
        self._fetched_at = None


class DeactivatedAccountCache:
    """Per-process memo of whether an auth id belongs to a soft-deleted user."""

    TTL: int = 60

    def __init__(self, ttl_seconds: int = TTL):
        self._ttl = ttl_seconds
        self._entries: dict[str, tuple[bool, float]] = {}

    def lookup(self, auth_id: str) -> Optional[bool]:
        """True/False while the entry is fresh, None when unknown or expired."""
        entry = self._entries.get(auth_id)
        if entry is None:
            return None
        deactivated, expires_at = entry
        if time.time() > expires_at:
            del self._entries[auth_id]
            return None
        return deactivated

    def remember(self, auth_id: str, deactivated: bool) -> None:
        self._entries[auth_id] = (deactivated, time.time() + self._ttl)


_jwks_cache = JWKSCache()
_deactivated_cache = DeactivatedAccountCache()


async def get_jwks() -> dict:
    return await _jwks_cache.get_keys()


async def get_signing_key(token: str) -> dict:
    """Pick the JWK whose kid matches the token header."""
    try:
        kid = jwt.get_unverified_header(token).get("kid")
    except JWTError:
        raise _unauthorized("Invalid token header")

    keys = (await get_jwks()).get("keys", [])
    for key in keys:
        if key.get("kid") == kid:
            return key

    # Projects that never rotated keys publish a single key without kid
    if keys:
        return keys[0]

    raise _unauthorized("No matching signing key found")


async def verify_access_token(token: str) -> dict:
    """Verify signature, audience and expiry and return the claims.

    Raises:
        JWTError: Bad signature, wrong audience or expired token
        HTTPException: Unreadable header, no signing key, or JWKS unreachable
    """
    signing_key = await get_signing_key(token)
    return jwt.decode(token, signing_key, algorithms=TOKEN_ALGORITHMS, audience=TOKEN_AUDIENCE)


def _is_deactivated(auth_id: str) -> bool:
    cached = _deactivated_cache.lookup(auth_id)
    if cached is not None:
        return cached

    try:
        result = (
            get_supabase().table("users").select("deleted_at").eq("auth_id", auth_id).execute()
        )
    except Exception as e:
        # Fail open on lookup errors
        logger.warning("Deactivation lookup failed for auth_id=%s: %s", auth_id, e)
        return False

    deactivated = bool(result.data and result.data[0].get("deleted_at"))
    _deactivated_cache.remember(auth_id, deactivated)
    return deactivated


async def require_auth_from_state(request: Request) -> AuthUser:
    """Dependency returning the verified caller, or raising 401.

    Tokens that belong to a deactivated (soft-deleted) account are rejected too.
    """
    user: Optional[AuthOptionalUser] = getattr(request.state, "user", None)

    if user is None or not user.is_authenticated:
        token_error = getattr(request.state, "token_error", None)
        if token_error:
            raise _unauthorized(f"Authentication failed: {token_error}")
        raise _unauthorized("Authentication required")

    if _is_deactivated(user.auth_id):
        raise _unauthorized("This account has been deactivated")

    return AuthUser(auth_id=user.auth_id, email=user.email or "")
