"""Unit tests for auth module (feelsy/core/auth.py)."""

import time
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from conftest import make_table_mock, route_tables
from fastapi import HTTPException
from jose import JWTError, jwt
from pydantic import ValidationError

from feelsy.core.auth import (
    AuthUser,
    DeactivatedAccountCache,
    JWKSCache,
    get_jwks,
    get_signing_key,
    require_auth_from_state,
    verify_access_token,
)


class TestJWKSCache:
    """JWKS caching with TTL and background refresh."""

    @pytest.mark.unit
    async def test_first_call_fetches_then_caches(self, test_jwks) -> None:
        import feelsy.core.auth as auth_module

        with patch.object(
            auth_module._jwks_cache, "_fetch_keys", new_callable=AsyncMock
        ) as mock_fetch:
            mock_fetch.return_value = test_jwks

            assert await get_jwks() == test_jwks
            assert await get_jwks() == test_jwks

            mock_fetch.assert_called_once()

    @pytest.mark.unit
    async def test_stale_cache_returns_old_keys_and_refreshes(self) -> None:
        cache = JWKSCache()
        old_keys = {"keys": [{"kid": "old"}]}
        new_keys = {"keys": [{"kid": "new"}]}
        cache._keys = old_keys
        cache._fetched_at = time.time() - (JWKSCache.TTL - 60)

        with patch.object(cache, "_fetch_keys", new_callable=AsyncMock, return_value=new_keys):
            assert await cache.get_keys() == old_keys
            await cache._refresh_task

        assert cache._keys == new_keys

    @pytest.mark.unit
    async def test_background_refresh_failure_keeps_old_keys(self) -> None:
        cache = JWKSCache()
        old_keys = {"keys": [{"kid": "old"}]}
        cache._keys = old_keys
        cache._fetched_at = time.time() - (JWKSCache.TTL - 60)

        with patch.object(
            cache, "_fetch_keys", new_callable=AsyncMock, side_effect=RuntimeError("down")
        ):
            await cache.get_keys()
            await cache._refresh_task

        assert cache._keys == old_keys

    @pytest.mark.unit
    async def test_expired_cache_fetches_synchronously(self) -> None:
        cache = JWKSCache()
        cache._keys = {"keys": [{"kid": "old"}]}
        cache._fetched_at = time.time() - (JWKSCache.TTL + 1)
        new_keys = {"keys": [{"kid": "new"}]}

        with patch.object(cache, "_fetch_keys", new_callable=AsyncMock, return_value=new_keys):
            assert await cache.get_keys() == new_keys

    @pytest.mark.unit
    async def test_fetch_failure_surfaces_as_503(self) -> None:
        import feelsy.core.auth as auth_module

        with patch.object(
            auth_module._jwks_cache,
            "_fetch_keys",
            new_callable=AsyncMock,
            side_effect=HTTPException(status_code=503, detail="Failed to fetch JWKS: boom"),
        ):
            with pytest.raises(HTTPException) as exc_info:
                await get_jwks()

        assert exc_info.value.status_code == 503

    @pytest.mark.unit
    def test_invalidate(self) -> None:
        cache = JWKSCache()
        cache._keys = {"keys": []}
        cache._fetched_at = time.time()

        cache.invalidate()

        assert cache._keys is None
        assert cache._fetched_at is None


class TestGetSigningKey:
    @pytest.mark.unit
    async def test_returns_matching_key_by_kid(
        self, valid_jwt_token, test_jwks, jwks_key_id
    ) -> None:
        with patch("feelsy.core.auth.get_jwks", new_callable=AsyncMock, return_value=test_jwks):
            result = await get_signing_key(valid_jwt_token)

        assert result["kid"] == jwks_key_id

    @pytest.mark.unit
    async def test_falls_back_to_first_key(self, test_jwks, rsa_private_key_pem) -> None:
        token = jwt.encode(
            {"sub": "test", "aud": "authenticated"},
            rsa_private_key_pem,
            algorithm="RS256",
            headers={"kid": "non-existent-kid"},
        )

        with patch("feelsy.core.auth.get_jwks", new_callable=AsyncMock, return_value=test_jwks):
            result = await get_signing_key(token)

        assert result == test_jwks["keys"][0]

    @pytest.mark.unit
    async def test_malformed_token_is_401(self, malformed_jwt_token) -> None:
        with patch(
            "feelsy.core.auth.get_jwks", new_callable=AsyncMock, return_value={"keys": []}
        ):
            with pytest.raises(HTTPException) as exc_info:
                await get_signing_key(malformed_jwt_token)

        assert exc_info.value.status_code == 401
        assert "Invalid token header" in exc_info.value.detail

    @pytest.mark.unit
    async def test_no_keys_is_401(self, valid_jwt_token) -> None:
        with patch(
            "feelsy.core.auth.get_jwks", new_callable=AsyncMock, return_value={"keys": []}
        ):
            with pytest.raises(HTTPException) as exc_info:
                await get_signing_key(valid_jwt_token)

        assert "No matching signing key" in exc_info.value.detail


class TestRequireAuthFromState:
    @pytest.mark.unit
    async def test_returns_auth_user(self, mock_request_authenticated) -> None:
        mock_supabase = MagicMock()
        route_tables(mock_supabase, {"users": make_table_mock(data=[{"deleted_at": None}])})

        with patch("feelsy.core.auth.get_supabase", return_value=mock_supabase):
            result = await require_auth_from_state(mock_request_authenticated)

        assert result == AuthUser(auth_id="auth-user-uuid-12345", email="testuser@example.com")

    @pytest.mark.unit
    async def test_anonymous_is_401(self, mock_request_unauthenticated) -> None:
        with pytest.raises(HTTPException) as exc_info:
            await require_auth_from_state(mock_request_unauthenticated)

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Authentication required"

    @pytest.mark.unit
    async def test_token_error_in_detail(self, mock_request_unauthenticated) -> None:
        mock_request_unauthenticated.state.token_error = "Signature has expired."

        with pytest.raises(HTTPException) as exc_info:
            await require_auth_from_state(mock_request_unauthenticated)

        assert "Signature has expired." in exc_info.value.detail

    @pytest.mark.unit
    async def test_deleted_account_is_401(self, mock_request_authenticated) -> None:
        mock_supabase = MagicMock()
        route_tables(
            mock_supabase,
            {"users": make_table_mock(data=[{"deleted_at": "2026-01-01T00:00:00+00:00"}])},
        )

        with patch("feelsy.core.auth.get_supabase", return_value=mock_supabase):
            with pytest.raises(HTTPException) as exc_info:
                await require_auth_from_state(mock_request_authenticated)

        assert "deactivated" in exc_info.value.detail

    @pytest.mark.unit
    async def test_deleted_status_cached(self, mock_request_authenticated) -> None:
        mock_supabase = MagicMock()
        route_tables(mock_supabase, {"users": make_table_mock(data=[{"deleted_at": None}])})

        with patch("feelsy.core.auth.get_supabase", return_value=mock_supabase):
            await require_auth_from_state(mock_request_authenticated)
            await require_auth_from_state(mock_request_authenticated)

        assert mock_supabase.table.call_count == 1

    @pytest.mark.unit
    async def test_lookup_failure_fails_open(self, mock_request_authenticated) -> None:
        with patch("feelsy.core.auth.get_supabase", side_effect=RuntimeError("db down")):
            result = await require_auth_from_state(mock_request_authenticated)

        assert result.auth_id == "auth-user-uuid-12345"


class TestVerifyAccessToken:
    @pytest.mark.unit
    async def test_returns_claims(self, valid_jwt_token, test_jwks, valid_jwt_claims) -> None:
        with patch(
            "feelsy.core.auth.get_signing_key",
            new_callable=AsyncMock,
            return_value=test_jwks["keys"][0],
        ):
            claims = await verify_access_token(valid_jwt_token)

        assert claims["sub"] == valid_jwt_claims["sub"]
        assert claims["email"] == valid_jwt_claims["email"]

    @pytest.mark.unit
    async def test_wrong_audience_rejected(self, wrong_audience_jwt_token, test_jwks) -> None:
        with patch(
            "feelsy.core.auth.get_signing_key",
            new_callable=AsyncMock,
            return_value=test_jwks["keys"][0],
        ):
            with pytest.raises(JWTError):
                await verify_access_token(wrong_audience_jwt_token)

    @pytest.mark.unit
    async def test_expired_token_rejected(
        self, valid_jwt_claims, rsa_private_key_pem, jwks_key_id, test_jwks
    ) -> None:
        claims = {**valid_jwt_claims, "exp": int(time.time()) - 10}
        token = jwt.encode(
            claims, rsa_private_key_pem, algorithm="RS256", headers={"kid": jwks_key_id}
        )

        with patch(
            "feelsy.core.auth.get_signing_key",
            new_callable=AsyncMock,
            return_value=test_jwks["keys"][0],
        ):
            with pytest.raises(JWTError):
                await verify_access_token(token)


class TestDeactivatedAccountCache:
    @pytest.mark.unit
    def test_miss_returns_none(self) -> None:
        assert DeactivatedAccountCache().lookup("unknown") is None

    @pytest.mark.unit
    def test_remembers_status(self) -> None:
        cache = DeactivatedAccountCache()
        cache.remember("a", deactivated=True)
        cache.remember("b", deactivated=False)

        assert cache.lookup("a") is True
        assert cache.lookup("b") is False

    @pytest.mark.unit
    def test_entries_expire(self) -> None:
        cache = DeactivatedAccountCache(ttl_seconds=60)
        cache.remember("a", deactivated=True)

        with patch("feelsy.core.auth.time.time", return_value=time.time() + 61):
            assert cache.lookup("a") is None


class TestAuthUserModel:
    @pytest.mark.unit
    def test_requires_auth_id_and_email(self) -> None:
        with pytest.raises(ValidationError):
            AuthUser(email="test@example.com")  # type: ignore
        with pytest.raises(ValidationError):
            AuthUser(auth_id="123")  # type: ignore
