"""
Pytest configuration: an isolated sqlite store per test, the app wired
with a fake provider and fake clocks, and an async HTTP client against it.
"""

from typing import AsyncGenerator

import pytest
from eth_account import Account
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

import db
from app import create_app
from factories import OTHER_PRIVATE_KEY, PRIVATE_KEY, FakeClock, FakeProvider
from settings import Settings
from storage.users import create_user

TEST_SECRET = "test-secret-key-for-testing-only-0123456789"


# =============================================================================
# Store
# =============================================================================

@pytest.fixture
def database(tmp_path):
    path = tmp_path / "app.db"
    db.configure(path)
    db.init_db()
    return path


# =============================================================================
# App
# =============================================================================

@pytest.fixture
def settings(database) -> Settings:
    return Settings(db_path=str(database), jwt_secret=TEST_SECRET, commit_sha="test-sha")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache_clock() -> FakeClock:
    return FakeClock(now=0.0)


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def test_app(settings, provider, clock, cache_clock) -> FastAPI:
    return create_app(settings, provider=provider, clock=clock, cache_clock=cache_clock)


@pytest.fixture
async def async_client(test_app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# =============================================================================
# Identities
# =============================================================================

@pytest.fixture
def wallet():
    return Account.from_key(PRIVATE_KEY)


@pytest.fixture
def other_wallet():
    return Account.from_key(OTHER_PRIVATE_KEY)


@pytest.fixture
def user(database, wallet):
    return create_user(wallet.address, name="ada")


@pytest.fixture
def auth_headers(test_app, user) -> dict:
    token = test_app.state.sessions.issue(user.id)
    return {"Authorization": f"Bearer {token}"}
