"""
tests/conftest.py -- Shared test fixtures for the user auth service.

This module provides:
  - token_config: a fixed TokenConfig with a known secret and issuer
  - store: an isolated in-memory UserStore per test
  - authenticator: an Authenticator over that store (bcrypt cost 4)
  - make_user: helper that registers a user directly through the Authenticator
  - api_client: TestClient on the real FastAPI app with a patched lifespan

Design: the API fixture uses named shared-memory SQLite URIs (not plain
:memory:) because TestClient runs sync route handlers in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread.

DEBUG and BCRYPT_ROUNDS must be set before any project import so
get_settings() auto-generates SECRET_KEY instead of raising, and hashing stays
fast.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import timedelta

# CRITICAL: Set env before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import RegistrationRequest, Role, User
from auth.service import Authenticator
from auth.store import UserStore
from auth.tokens import TokenConfig

TEST_SECRET = "test-secret-key-that-is-at-least-32-characters-long"
TEST_ISSUER = "user-auth-tests"
TEST_ROUNDS = 4


@pytest.fixture
def token_config() -> TokenConfig:
    return TokenConfig(
        secret=TEST_SECRET,
        issuer=TEST_ISSUER,
        access_ttl=timedelta(minutes=15),
        refresh_ttl=timedelta(days=7),
    )


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def authenticator(store: UserStore, token_config: TokenConfig) -> Authenticator:
    return Authenticator(store, token_config, bcrypt_rounds=TEST_ROUNDS)


def _register(authenticator: Authenticator, email: str, password: str, role: Role | str, name: str) -> User:
    return authenticator.register(RegistrationRequest(email=email, name=name, password=password, role=role))


@pytest.fixture
def make_user(authenticator: Authenticator) -> Callable[..., User]:
    """Return a factory: make_user(email, password="secret1", role=Role.EMPLOYEE, name="Test User")."""

    def factory(email: str, password: str = "secret1", role: Role | str = Role.EMPLOYEE, name: str = "Test User") -> User:
        return _register(authenticator, email, password, role, name)

    return factory


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------


@dataclass
class ApiContext:
    client: TestClient
    authenticator: Authenticator
    token_config: TokenConfig

    def register(self, email: str, password: str = "secret1", role: Role | str = Role.EMPLOYEE) -> User:
        return _register(self.authenticator, email, password, role, "Api User")

    def bearer(self, email: str, password: str = "secret1") -> dict[str, str]:
        """Log in through the Authenticator and return an Authorization header for the access token."""
        tokens = self.authenticator.login(email, password).tokens
        return {"Authorization": f"Bearer {tokens.access_token}"}


def _patch_lifespan(authenticator: Authenticator):
    """Return an async context manager that replaces the real lifespan.

    Wires the test Authenticator (and its store and token config) into
    app.state so routes see an isolated test DB.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = authenticator.store
        app.state.token_config = authenticator.token_config
        app.state.authenticator = authenticator
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request: pytest.FixtureRequest) -> Generator[ApiContext, None, None]:
    """Yield an ApiContext for API integration tests.

    One TestClient and one shared-memory DB per test module; tests use
    distinct emails so they do not collide.
    """
    db_name = request.module.__name__.replace(".", "_")
    user_store = UserStore(f"sqlite:///file:{db_name}?mode=memory&cache=shared&uri=true")
    config = TokenConfig(secret=TEST_SECRET, issuer=TEST_ISSUER)
    authenticator = Authenticator(user_store, config, bcrypt_rounds=TEST_ROUNDS)

    app.router.lifespan_context = _patch_lifespan(authenticator)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiContext(client=client, authenticator=authenticator, token_config=config)

    user_store.close()
