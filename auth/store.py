"""
auth/store.py -- SQLAlchemy Core persistence layer for users.

Pattern: Repository + Data Mapper (same as watchlist/store.py).
UserRepository is the capability set the services depend on; UserStore is the
SQLAlchemy adapter implementing it and _row_to_user is the mapper. Services
never touch SQL directly, and tests can substitute an in-memory fake.

Security:
  All queries use bound parameters. No f-strings in SQL.

  username carries a UNIQUE constraint. Registration checks for an existing
  username before inserting, but the check and the insert are separate
  statements, so two concurrent registrations can both pass the check. The
  constraint is the real guard; create_user() reports the loser of that race
  as UserAlreadyExistsError, the same error the pre-check raises.

Layer rule: no imports from api/ or watchlist/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import Column, Integer, MetaData, String, Table, Text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import User
from auth.password import Password
from core.errors import UserAlreadyExistsError, UserNotFoundError

logger = logging.getLogger("watchtracker.auth.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(30), nullable=False, unique=True),
    Column("password", Text, nullable=False),  # bcrypt hash
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository interface
# ---------------------------------------------------------------------------


class UserRepository(Protocol):
    def create_user(self, user: User) -> User: ...

    def save(self, user: User) -> None: ...

    def find_by_id(self, user_id: int) -> User | None: ...

    def find_by_username(self, username: str) -> User | None: ...


# ---------------------------------------------------------------------------
# SQLAlchemy adapter
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore(db.engine)
        user = store.create_user(User(username="alice", password=Password.from_plain_text("Passw0rd1")))
        same = store.find_by_username("alice")
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        _metadata.create_all(self.engine)

    def create_user(self, user: User) -> User:
        """Insert a new user and return it with id and timestamps filled in.

        Raises UserAlreadyExistsError if the username is already taken.
        """
        now = _now_iso()
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    _users.insert().values(
                        username=user.username,
                        password=user.password.hash,
                        created_at=now,
                        updated_at=now,
                    )
                )
        except IntegrityError as exc:
            logger.info("Unique constraint rejected username %r", user.username)
            raise UserAlreadyExistsError(user.username) from exc
        return User(
            id=result.inserted_primary_key[0],
            username=user.username,
            password=user.password,
            created_at=now,
            updated_at=now,
        )

    def save(self, user: User) -> None:
        """Persist the mutable fields (password hash) of an existing user.

        Raises UserNotFoundError if no row has user.id.
        """
        now = _now_iso()
        with self.engine.begin() as conn:
            result = conn.execute(
                _users.update().where(_users.c.id == user.id).values(password=user.password.hash, updated_at=now)
            )
        if result.rowcount == 0:
            raise UserNotFoundError(user.id)
        user.updated_at = now

    def find_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_username(self, username: str) -> User | None:
        """Look up a user by exact username (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_user(row) if row is not None else None


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        password=Password.from_hash(row.password),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
