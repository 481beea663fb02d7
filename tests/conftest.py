"""
tests/conftest.py -- Shared test fixtures for Libris integration tests.

This module provides:
  - make_stores(): isolated in-memory DBs for accounts + books
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: TestClient plus an admin account and its bearer token
  - account_store / book_store: bare stores for unit tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
TestClient fixtures because route handlers run in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread.

Environment must be set before any auth/core import: DEBUG=true so
get_settings() auto-generates SECRET_KEY, minimum bcrypt rounds to keep the
suite fast, and generous rate limits so login-heavy tests are not throttled.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from unittest.mock import MagicMock

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("REGISTER_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from asgi import app
from auth.credentials import hash_password
from auth.models import Account, Role
from auth.store import AccountStore
from auth.tokens import TokenConfig, TokenService
from books.store import BookStore
from core.config import get_settings

ADMIN_EMAIL = "admin@libris.io"
ADMIN_PASSWORD = "adminpass123"


def make_stores(db_suffix: str) -> tuple[AccountStore, BookStore]:
    """Create isolated named shared-memory SQLite stores.

    Args:
        db_suffix: Unique string appended to the DB name so test modules don't
                   share state.
    """
    auth_url = f"sqlite:///file:test_auth_{db_suffix}?mode=memory&cache=shared&uri=true"
    books_url = f"sqlite:///file:test_books_{db_suffix}?mode=memory&cache=shared&uri=true"
    return AccountStore(db_url=auth_url), BookStore(db_url=books_url)


def make_token_service() -> TokenService:
    return TokenService(TokenConfig.from_settings(get_settings()))


def _patch_lifespan(account_store: AccountStore, book_store: BookStore, tokens: TokenService):
    """Return an async context manager that replaces the real lifespan.

    The OAuth registry is a MagicMock so no test can reach Google.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.account_store = account_store
        app.state.book_store = book_store
        app.state.tokens = tokens
        app.state.oauth = MagicMock()
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, str, int], None, None]:
    """Yield (client, admin_token, admin_id) for API integration tests.

    Each test module gets its own databases. The admin account is created
    before the client starts.
    """
    account_store, book_store = make_stores(uuid.uuid4().hex[:8])
    tokens = make_token_service()

    admin_id = account_store.create_account(
        Account(email=ADMIN_EMAIL, name="Admin", role=Role.admin.value, password_hash=hash_password(ADMIN_PASSWORD))
    )
    token = tokens.issue(account_store.get_by_id(admin_id))

    app.router.lifespan_context = _patch_lifespan(account_store, book_store, tokens)

    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
        yield client, token, admin_id

    account_store.close()
    book_store.close()


@pytest.fixture
def account_store() -> Generator[AccountStore, None, None]:
    store = AccountStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def book_store() -> Generator[BookStore, None, None]:
    store = BookStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def admin_credentials() -> dict:
    """Login body for the admin account seeded by api_client."""
    return {"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD}
