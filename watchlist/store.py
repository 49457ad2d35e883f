"""
watchlist/store.py -- SQLAlchemy-backed persistence for watched items.

Uses SQLAlchemy Core (not ORM) so the dataclass in watchlist/models.py remains
the authoritative domain representation.

Pattern: Repository + Data Mapper. WatchedItemRepository is the capability set
the service depends on, WatchedItemStore implements it, _row_to_item maps rows.

Invariants held by the schema:
  UNIQUE(user_id, media_id)  -- at most one entry per catalog item per user.
  delete() filters on id AND user_id, so ownership is part of the predicate
  itself; a non-owner's delete matches zero rows.

Security: all queries use bound parameters. No f-strings in SQL.
"""

from typing import Optional, Protocol

from sqlalchemy import Column, Integer, MetaData, String, Table, UniqueConstraint
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from core.errors import WatchedItemConflictError
from watchlist.models import WatchedItem

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_watched_items = Table(
    "watched_items",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False, index=True),
    Column("media_type", String(20), nullable=False),
    Column("media_id", String(64), nullable=False),
    Column("title", String(500), nullable=False),
    Column("poster_path", String(1000), nullable=False, server_default=""),
    Column("release_date", String(32), nullable=False, server_default=""),
    Column("status", String(30), nullable=False),
    Column("current_episode", Integer, nullable=False, server_default="0"),
    UniqueConstraint("user_id", "media_id", name="uq_user_media"),
)


# ---------------------------------------------------------------------------
# Repository interface
# ---------------------------------------------------------------------------


class WatchedItemRepository(Protocol):
    def create(self, item: WatchedItem) -> WatchedItem: ...

    def update(self, item: WatchedItem) -> bool: ...

    def find_by_id(self, item_id: int) -> Optional[WatchedItem]: ...

    def find_by_user_and_media(self, user_id: int, media_id: str) -> Optional[WatchedItem]: ...

    def find_by_user(self, user_id: int) -> list[WatchedItem]: ...

    def delete(self, item_id: int, user_id: int) -> bool: ...


# ---------------------------------------------------------------------------
# SQLAlchemy adapter
# ---------------------------------------------------------------------------


def _values(item: WatchedItem) -> dict:
    return {
        "user_id": item.user_id,
        "media_type": item.media_type,
        "media_id": item.media_id,
        "title": item.title,
        "poster_path": item.poster_path or "",
        "release_date": item.release_date or "",
        "status": item.status,
        "current_episode": item.current_episode,
    }


class WatchedItemStore:
    """Repository for WatchedItem entities.

    Usage:
        store = WatchedItemStore(db.engine)
        item = store.create(WatchedItem(user_id=1, media_type="movie", media_id="tt0133093", title="The Matrix"))
        items = store.find_by_user(1)
        store.delete(item.id, user_id=1)
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        _metadata.create_all(self.engine)

    def create(self, item: WatchedItem) -> WatchedItem:
        """Insert item and return a copy with its new id.

        Raises WatchedItemConflictError if the user already has this media_id.
        """
        try:
            with self.engine.begin() as conn:
                result = conn.execute(_watched_items.insert().values(**_values(item)))
        except IntegrityError as exc:
            raise WatchedItemConflictError() from exc
        return WatchedItem(id=result.inserted_primary_key[0], **_values(item))

    def update(self, item: WatchedItem) -> bool:
        """Overwrite every field of the row with item.id. Returns False if no such row.

        Raises WatchedItemConflictError if the new media_id collides with
        another of the user's items.
        """
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    _watched_items.update().where(_watched_items.c.id == item.id).values(**_values(item))
                )
        except IntegrityError as exc:
            raise WatchedItemConflictError() from exc
        return result.rowcount > 0

    def find_by_id(self, item_id: int) -> Optional[WatchedItem]:
        with self.engine.connect() as conn:
            row = conn.execute(_watched_items.select().where(_watched_items.c.id == item_id)).fetchone()
        return _row_to_item(row) if row is not None else None

    def find_by_user_and_media(self, user_id: int, media_id: str) -> Optional[WatchedItem]:
        with self.engine.connect() as conn:
            row = conn.execute(
                _watched_items.select().where(
                    (_watched_items.c.user_id == user_id) & (_watched_items.c.media_id == media_id)
                )
            ).fetchone()
        return _row_to_item(row) if row is not None else None

    def find_by_user(self, user_id: int) -> list[WatchedItem]:
        """Return all of a user's items in insertion order."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _watched_items.select().where(_watched_items.c.user_id == user_id).order_by(_watched_items.c.id)
            ).fetchall()
        return [_row_to_item(r) for r in rows]

    def delete(self, item_id: int, user_id: int) -> bool:
        """Delete the item only if user_id owns it. Returns True if a row was removed."""
        with self.engine.begin() as conn:
            result = conn.execute(
                _watched_items.delete().where((_watched_items.c.id == item_id) & (_watched_items.c.user_id == user_id))
            )
        return result.rowcount > 0


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_item(row) -> WatchedItem:
    return WatchedItem(
        id=row.id,
        user_id=row.user_id,
        media_type=row.media_type,
        media_id=row.media_id,
        title=row.title,
        poster_path=row.poster_path,
        release_date=row.release_date,
        status=row.status,
        current_episode=row.current_episode,
    )
