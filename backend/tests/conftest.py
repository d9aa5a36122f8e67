"""Shared pytest fixtures for test suite."""

import os
import time
from unittest.mock import MagicMock

# Settings are read at import time by the app, limiter and Celery modules
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379")

import pytest  # noqa: E402
from cryptography.hazmat.primitives import serialization  # noqa: E402
from cryptography.hazmat.primitives.asymmetric import rsa  # noqa: E402
from fastapi import Request  # noqa: E402
from jose import jwk, jwt  # noqa: E402

# =============================================================================
# Signing key and Supabase-style JWKS
# =============================================================================


@pytest.fixture(scope="session")
def rsa_private_key():
    """One RSA key for the whole run; generating it is slow."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def rsa_private_key_pem(rsa_private_key) -> bytes:
    return rsa_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


@pytest.fixture(scope="session")
def jwks_key_id() -> str:
    return "feelsy-test-key"


@pytest.fixture(scope="session")
def test_jwks(rsa_private_key, jwks_key_id):
    """The public half of the test key as a /.well-known/jwks.json payload."""
    public_pem = rsa_private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    key = jwk.construct(public_pem, algorithm="RS256").to_dict()
    return {"keys": [{**key, "kid": jwks_key_id, "use": "sig"}]}


# =============================================================================
# JWT Token Fixtures
# =============================================================================


@pytest.fixture
def valid_jwt_claims():
    """Standard valid JWT claims for a Supabase authenticated user."""
    return {
        "sub": "auth-user-uuid-12345",
        "email": "testuser@example.com",
        "aud": "authenticated",
        "role": "authenticated",
        "iat": int(time.time()),
        "exp": int(time.time()) + 3600,
    }


def create_test_jwt(claims: dict, private_key_pem: bytes, kid: str) -> str:
    """Sign claims with the test key, putting kid in the header."""
    return jwt.encode(claims, private_key_pem, algorithm="RS256", headers={"kid": kid})


@pytest.fixture
def valid_jwt_token(valid_jwt_claims, rsa_private_key_pem, jwks_key_id):
    return create_test_jwt(valid_jwt_claims, rsa_private_key_pem, jwks_key_id)


@pytest.fixture
def wrong_audience_jwt_token(valid_jwt_claims, rsa_private_key_pem, jwks_key_id):
    claims = {**valid_jwt_claims, "aud": "anon"}
    return create_test_jwt(claims, rsa_private_key_pem, jwks_key_id)


@pytest.fixture
def malformed_jwt_token():
    return "not.a.valid.jwt.token"


# =============================================================================
# Mock Request Fixtures
# =============================================================================


@pytest.fixture
def mock_request():
    """Create a mock FastAPI Request object."""
    request = MagicMock(spec=Request)
    request.state = MagicMock()
    request.headers = {}
    return request


@pytest.fixture
def mock_request_authenticated(mock_request):
    """Mock request with authenticated user in state (post-middleware)."""
    from feelsy.core.auth import AuthOptionalUser

    mock_request.state.user = AuthOptionalUser(
        auth_id="auth-user-uuid-12345", email="testuser@example.com", is_authenticated=True
    )
    mock_request.state.token_error = None
    return mock_request


@pytest.fixture
def mock_request_unauthenticated(mock_request):
    """Mock request with unauthenticated user in state."""
    from feelsy.core.auth import AuthOptionalUser

    mock_request.state.user = AuthOptionalUser(is_authenticated=False)
    mock_request.state.token_error = None
    return mock_request


# =============================================================================
# Cache Reset Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_auth_caches():
    """Fresh JWKS and deactivated-account caches for every test."""
    import feelsy.core.auth as auth_module

    auth_module._jwks_cache = auth_module.JWKSCache()
    auth_module._deactivated_cache = auth_module.DeactivatedAccountCache()
    yield
    auth_module._jwks_cache = auth_module.JWKSCache()
    auth_module._deactivated_cache = auth_module.DeactivatedAccountCache()


# =============================================================================
# Mock Supabase Client
# =============================================================================


def make_table_mock(data=None, count=None):
    """Chainable PostgREST table mock whose execute() returns data/count."""
    mock = MagicMock()
    for method in (
        "select",
        "eq",
        "neq",
        "is_",
        "in_",
        "or_",
        "gte",
        "lte",
        "order",
        "range",
        "limit",
        "insert",
        "update",
        "upsert",
    ):
        getattr(mock, method).return_value = mock
    mock.execute.return_value = MagicMock(data=data if data is not None else [], count=count)
    return mock


def route_tables(mock_supabase, tables: dict):
    """Route supabase.table(name) to per-table mocks, creating empty ones on demand."""

    def route(name):
        if name not in tables:
            tables[name] = make_table_mock()
        return tables[name]

    mock_supabase.table.side_effect = route
    return tables


@pytest.fixture
def mock_supabase():
    """Bare Supabase client mock; tests route tables with route_tables()."""
    return MagicMock()
