"""Pytest configuration and fixtures."""

import os
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Generator

import pytest
from httpx import ASGITransport, AsyncClient

# Set test environment variables before importing app
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-jwt-unit-tests")
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from tower.config import Settings
from tower.services.auth_service import AuthService
from tower.services.memory_store import MemoryCredentialStore, MemorySessionStore
from tower.services.password_hasher import PasswordHasher
from tower.services.token_service import AccessVerifier, TokenIssuer

JWT_SECRET = "test-secret-key-for-jwt-unit-tests"


class FixedClock:
    """Clock whose time only moves when a test advances it."""

    def __init__(self, now: datetime | None = None):
        self.now = now or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def test_settings() -> Settings:
    """Settings for an app backed by in-memory stores."""
    return Settings(
        storage_backend="memory",
        jwt_secret=JWT_SECRET,
        bcrypt_rounds=4,
        log_level="WARNING",
    )


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def credential_store() -> MemoryCredentialStore:
    return MemoryCredentialStore()


@pytest.fixture
def session_store(credential_store) -> MemorySessionStore:
    return MemorySessionStore(credential_store)


@pytest.fixture
def issuer() -> TokenIssuer:
    return TokenIssuer(JWT_SECRET)


@pytest.fixture
def verifier() -> AccessVerifier:
    return AccessVerifier(JWT_SECRET)


@pytest.fixture
def auth_service(credential_store, session_store, issuer, clock) -> AuthService:
    """AuthService over in-memory stores with a cheap bcrypt work factor."""
    return AuthService(
        credentials=credential_store,
        sessions=session_store,
        hasher=PasswordHasher(rounds=4),
        issuer=issuer,
        clock=clock,
    )


@pytest.fixture
def client(test_settings) -> Generator:
    """Create a TestClient for an app with in-memory storage."""
    from fastapi.testclient import TestClient

    from tower.main import create_app

    with TestClient(create_app(test_settings)) as tc:
        yield tc


@pytest.fixture
async def async_client(test_settings) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for integration tests."""
    from tower.main import create_app

    transport = ASGITransport(app=create_app(test_settings))
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
