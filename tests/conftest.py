"""
tests/conftest.py -- Shared fixtures for Watch Tracker tests.

This module provides:
  - make_settings(): Settings for tests (fast bcrypt, fixed key, in-memory DB)
  - In-memory repository fakes for unit-testing services without SQLAlchemy
  - auth_service: AuthenticationService wired to the fakes
  - api_client: TestClient on a real create_app() with an in-memory database,
    yielding (client, token, user_id) for a pre-registered user

Design: create_app() takes its Settings and Database as arguments, so every
fixture builds an isolated app. There is no global state to patch apart from
the shared slowapi counter store, which each fixture resets.

In-memory SQLite ("sqlite://") works across TestClient's worker threads
because core.database.Database uses StaticPool for memory URLs.
"""

from __future__ import annotations

import time
from collections.abc import Generator
from dataclasses import replace
from typing import Optional
from unittest.mock import MagicMock

import pytest
import requests
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import create_app
from auth.models import User
from auth.password import Password
from auth.store import UserStore
from auth.tokens import AuthenticationService
from core.config import Settings
from core.database import Database
from core.errors import UserAlreadyExistsError, UserNotFoundError, WatchedItemConflictError
from core.fetcher import CatalogClient
from watchlist.models import WatchedItem

TEST_SECRET = "test-secret-key-that-is-at-least-32-characters"
TEST_USERNAME = "testuser"
TEST_PASSWORD = "TestPass123"


def make_settings(**overrides) -> Settings:
    """Settings for tests. bcrypt_rounds=4 keeps hashing in the low milliseconds."""
    values = {
        "debug": True,
        "secret_key": TEST_SECRET,
        "bcrypt_rounds": 4,
        "login_rate_limit": "1000/minute",
        "database_url": "sqlite://",
        "omdb_api_key": "test-omdb-key",
        "allowed_hosts": ["testserver"],
    }
    values.update(overrides)
    return Settings(**values)


# ---------------------------------------------------------------------------
# In-memory repository fakes
# ---------------------------------------------------------------------------


class InMemoryUserRepository:
    def __init__(self) -> None:
        self.users: dict[int, User] = {}
        self._next_id = 1

    def create_user(self, user: User) -> User:
        if self.find_by_username(user.username) is not None:
            raise UserAlreadyExistsError(user.username)
        created = replace(user, id=self._next_id, created_at="2026-01-01T00:00:00", updated_at="2026-01-01T00:00:00")
        self.users[created.id] = created
        self._next_id += 1
        return created

    def save(self, user: User) -> None:
        if user.id not in self.users:
            raise UserNotFoundError(user.id)
        self.users[user.id] = user

    def find_by_id(self, user_id: int) -> Optional[User]:
        return self.users.get(user_id)

    def find_by_username(self, username: str) -> Optional[User]:
        return next((u for u in self.users.values() if u.username == username), None)


class InMemoryRevocationRepository:
    def __init__(self) -> None:
        self.revoked: dict[str, float] = {}
        self.cutoffs: dict[int, float] = {}

    def revoke(self, token_id: str, user_id: int, expires_at: float) -> bool:
        if token_id in self.revoked:
            return False
        self.revoked[token_id] = expires_at
        return True

    def is_revoked(self, token_id: str) -> bool:
        return token_id in self.revoked

    def set_user_cutoff(self, user_id: int, not_before: float) -> None:
        self.cutoffs[user_id] = not_before

    def get_user_cutoff(self, user_id: int) -> Optional[float]:
        return self.cutoffs.get(user_id)

    def purge_expired(self) -> int:
        now = time.time()
        expired = [jti for jti, exp in self.revoked.items() if exp < now]
        for jti in expired:
            del self.revoked[jti]
        return len(expired)


class InMemoryWatchedItemRepository:
    def __init__(self) -> None:
        self.items: dict[int, WatchedItem] = {}
        self._next_id = 1

    def create(self, item: WatchedItem) -> WatchedItem:
        if self.find_by_user_and_media(item.user_id, item.media_id) is not None:
            raise WatchedItemConflictError()
        created = replace(item, id=self._next_id)
        self.items[created.id] = created
        self._next_id += 1
        return created

    def update(self, item: WatchedItem) -> bool:
        if item.id not in self.items:
            return False
        self.items[item.id] = item
        return True

    def find_by_id(self, item_id: int) -> Optional[WatchedItem]:
        return self.items.get(item_id)

    def find_by_user_and_media(self, user_id: int, media_id: str) -> Optional[WatchedItem]:
        return next((i for i in self.items.values() if i.user_id == user_id and i.media_id == media_id), None)

    def find_by_user(self, user_id: int) -> list[WatchedItem]:
        return [i for _, i in sorted(self.items.items()) if i.user_id == user_id]

    def delete(self, item_id: int, user_id: int) -> bool:
        item = self.items.get(item_id)
        if item is None or item.user_id != user_id:
            return False
        del self.items[item_id]
        return True


# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def users() -> InMemoryUserRepository:
    return InMemoryUserRepository()


@pytest.fixture
def revocations() -> InMemoryRevocationRepository:
    return InMemoryRevocationRepository()


@pytest.fixture
def auth_service(settings, users, revocations) -> AuthenticationService:
    return AuthenticationService(settings, users, revocations)


@pytest.fixture
def alice(users) -> User:
    """A stored user with password TEST_PASSWORD, hashed at cost 4."""
    return users.create_user(User(username="alice", password=Password.from_plain_text(TEST_PASSWORD, rounds=4)))


@pytest.fixture
def database() -> Generator[Database, None, None]:
    db = Database("sqlite://")
    yield db
    db.close()


def mock_catalog(settings: Settings) -> tuple[CatalogClient, MagicMock]:
    """Return a CatalogClient whose requests.Session is a MagicMock."""
    session = MagicMock(spec=requests.Session)
    return CatalogClient(settings, session=session), session


# ---------------------------------------------------------------------------
# Module-scoped API fixture -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, str, int], None, None]:
    """Yield (client, token, user_id) for API integration tests.

    The TestClient runs the real create_app() with an in-memory database. The
    test user is registered before the client starts; the access token is
    minted by the app's own AuthenticationService.
    """
    limiter.reset()
    settings = make_settings()
    db = Database(settings.database_url)
    catalog, _session = mock_catalog(settings)

    user = UserStore(db.engine).create_user(
        User(username=TEST_USERNAME, password=Password.from_plain_text(TEST_PASSWORD, rounds=settings.bcrypt_rounds))
    )

    app = create_app(settings, database=db, catalog=catalog)
    with TestClient(app, raise_server_exceptions=True) as client:
        token = app.state.auth_service.generate_access_token(user)
        yield client, token, user.id

    db.close()
