"""
auth/revocation.py -- Deny-list for refresh and password-reset tokens.

Access tokens are stateless and short-lived; nothing here applies to them.
Longer-lived tokens carry a random jti, and this store remembers two things:

  revoked_tokens      one row per revoked jti, kept until the token would have
                      expired anyway. After that the signature check rejects it
                      on its own, so purge_expired() can drop the row.

  user_token_cutoffs  one row per user: every token issued at or before
                      not_before is dead. This is "log out everywhere" without
                      having to enumerate the user's outstanding tokens.

Layer rule: no imports from api/ or watchlist/.
"""

from __future__ import annotations

import time
from typing import Protocol

from sqlalchemy import Column, Float, Integer, MetaData, String, Table, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

_metadata = MetaData()

_revoked_tokens = Table(
    "revoked_tokens",
    _metadata,
    Column("token_id", String(64), primary_key=True),
    Column("user_id", Integer, nullable=False),
    Column("expires_at", Float, nullable=False),  # epoch seconds
    Column("revoked_at", Float, nullable=False),
)

_user_token_cutoffs = Table(
    "user_token_cutoffs",
    _metadata,
    Column("user_id", Integer, primary_key=True),
    Column("not_before", Float, nullable=False),  # epoch seconds
)


class RevocationRepository(Protocol):
    def revoke(self, token_id: str, user_id: int, expires_at: float) -> bool: ...

    def is_revoked(self, token_id: str) -> bool: ...

    def set_user_cutoff(self, user_id: int, not_before: float) -> None: ...

    def get_user_cutoff(self, user_id: int) -> float | None: ...

    def purge_expired(self) -> int: ...


class RevocationStore:
    """SQLAlchemy-backed deny-list.

    Usage:
        store = RevocationStore(db.engine)
        store.revoke(claims.token_id, claims.user_id, claims.expires_at)
        store.is_revoked(claims.token_id)   # True
        store.purge_expired()               # call periodically
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        _metadata.create_all(self.engine)

    def revoke(self, token_id: str, user_id: int, expires_at: float) -> bool:
        """Add token_id to the deny-list.

        Returns True if this call recorded it, False if it was already revoked.
        The primary key decides, so of two concurrent calls exactly one wins.
        """
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    _revoked_tokens.insert().values(
                        token_id=token_id,
                        user_id=user_id,
                        expires_at=expires_at,
                        revoked_at=time.time(),
                    )
                )
        except IntegrityError:
            return False
        return True

    def is_revoked(self, token_id: str) -> bool:
        with self.engine.connect() as conn:
            row = conn.execute(
                select(_revoked_tokens.c.token_id).where(_revoked_tokens.c.token_id == token_id)
            ).fetchone()
        return row is not None

    def set_user_cutoff(self, user_id: int, not_before: float) -> None:
        """Record that every token issued at or before not_before is revoked."""
        with self.engine.begin() as conn:
            result = conn.execute(
                _user_token_cutoffs.update()
                .where(_user_token_cutoffs.c.user_id == user_id)
                .values(not_before=not_before)
            )
            if result.rowcount == 0:
                conn.execute(_user_token_cutoffs.insert().values(user_id=user_id, not_before=not_before))

    def get_user_cutoff(self, user_id: int) -> float | None:
        with self.engine.connect() as conn:
            row = conn.execute(
                select(_user_token_cutoffs.c.not_before).where(_user_token_cutoffs.c.user_id == user_id)
            ).fetchone()
        return row[0] if row is not None else None

    def purge_expired(self) -> int:
        """Delete deny-list rows whose token has expired. Returns number of rows removed."""
        with self.engine.begin() as conn:
            result = conn.execute(_revoked_tokens.delete().where(_revoked_tokens.c.expires_at < time.time()))
        return result.rowcount
