"""
tests/conftest.py -- Shared test fixtures for Postboard integration tests.

This module provides:
  - _make_test_engine(): an isolated named shared-memory SQLite engine
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api: a Harness (TestClient + stores + TokenService) with a fresh database
  - engine / user_store / blog_store: store-level fixtures on plain :memory:

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

Environment must be set before any api/auth/core import: get_settings() is
cached and the limiter reads it at import time.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

# CRITICAL: Set before any postboard import so get_settings() sees them.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver"]')

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine
from sqlalchemy.pool import SingletonThreadPool

from api.main import app
from auth.models import Role, User
from auth.store import UserStore
from auth.tokens import TokenService, hash_password
from blog.store import BlogStore
from core.config import get_settings
from core.database import create_db_engine

TEST_PASSWORD = "password123"

# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_engine() -> Engine:
    """Create an isolated named shared-memory SQLite engine.

    A uuid in the name keeps every test's database separate. The pool is one
    connection per thread; cache=shared lets those connections see the same
    database.
    """
    name = f"test_postboard_{uuid.uuid4().hex}"
    return create_db_engine(
        f"sqlite:///file:{name}?mode=memory&cache=shared&uri=true",
        poolclass=SingletonThreadPool,
    )


def _patch_lifespan(engine: Engine, user_store: UserStore, blog_store: BlogStore, tokens: TokenService):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = get_settings()
        app.state.engine = engine
        app.state.user_store = user_store
        app.state.blog_store = blog_store
        app.state.token_service = tokens
        yield

    return test_lifespan


@dataclass
class Harness:
    """Everything an integration test needs to drive the API."""

    client: TestClient
    user_store: UserStore
    blog_store: BlogStore
    tokens: TokenService

    def make_user(
        self,
        email: str,
        role: Role = Role.USER,
        password: str = TEST_PASSWORD,
        first_name: str = "Test",
        last_name: str = "User",
    ) -> tuple[str, dict[str, str]]:
        """Create an account directly in the store; return (user_id, auth headers)."""
        user_id = self.user_store.create_user(
            User(
                email=email,
                hashed_password=hash_password(password, rounds=4),
                first_name=first_name,
                last_name=last_name,
                country="Testland",
                role=role,
            )
        )
        return user_id, self.auth_headers(user_id)

    def auth_headers(self, user_id: str) -> dict[str, str]:
        identity = self.user_store.find_identity(user_id)
        return {"Authorization": f"Bearer {self.tokens.issue(identity)}"}

    def create_post(self, headers: dict[str, str], title: str = "Hello", content: str = "First post") -> dict:
        resp = self.client.post("/api/v1/posts", json={"title": title, "content": content}, headers=headers)
        assert resp.status_code == 201, resp.text
        return resp.json()

    def create_comment(self, headers: dict[str, str], post_id: str, content: str = "Nice post") -> dict:
        resp = self.client.post(f"/api/v1/posts/{post_id}/comments", json={"content": content}, headers=headers)
        assert resp.status_code == 201, resp.text
        return resp.json()


# ---------------------------------------------------------------------------
# Integration fixture -- fresh database per test
# ---------------------------------------------------------------------------


@pytest.fixture
def api() -> Generator[Harness, None, None]:
    """Yield a Harness bound to the real app with an isolated database.

    The TestClient uses the real FastAPI app with a patched lifespan so
    tests hit real route handlers, dependencies and exception handlers.
    """
    engine = _make_test_engine()
    user_store = UserStore(engine)
    blog_store = BlogStore(engine)
    tokens = TokenService(get_settings().secret_key, ttl_seconds=3600)

    app.router.lifespan_context = _patch_lifespan(engine, user_store, blog_store, tokens)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield Harness(client=client, user_store=user_store, blog_store=blog_store, tokens=tokens)

    engine.dispose()


# ---------------------------------------------------------------------------
# Store-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    eng = create_db_engine("sqlite:///:memory:")
    yield eng
    eng.dispose()


@pytest.fixture
def user_store(engine: Engine) -> UserStore:
    return UserStore(engine)


@pytest.fixture
def blog_store(engine: Engine, user_store: UserStore) -> BlogStore:
    return BlogStore(engine)


@pytest.fixture
def new_user(user_store: UserStore):
    """Factory: insert an account with a cheap hash and return its id."""

    def _make(email: str, role: Role = Role.USER) -> str:
        return user_store.create_user(
            User(
                email=email,
                hashed_password=hash_password(TEST_PASSWORD, rounds=4),
                first_name="Test",
                last_name="User",
                country="Testland",
                role=role,
            )
        )

    return _make
