"""
tests/test_watchlist.py -- Unit tests for watchlist/service.py.

WatchedItemService runs against InMemoryWatchedItemRepository (conftest.py).

Covers:
  - add(): duplicate (user_id, media_id) rejected before touching storage
  - update(): missing item, foreign item, full overwrite
  - delete(): owner-scoped, returns whether anything was removed
  - list_for_user(): only the caller's items
"""

from __future__ import annotations

import pytest

from conftest import InMemoryWatchedItemRepository
from core.errors import UnauthorizedWatchedItemAccessError, WatchedItemConflictError, WatchedItemNotFoundError
from watchlist.service import AddWatchedItemCommand, UpdateWatchedItemCommand, WatchedItemService


@pytest.fixture
def repo() -> InMemoryWatchedItemRepository:
    return InMemoryWatchedItemRepository()


@pytest.fixture
def service(repo) -> WatchedItemService:
    return WatchedItemService(repo)


def _add(user_id: int = 1, media_id: str = "tt0133093") -> AddWatchedItemCommand:
    return AddWatchedItemCommand(
        user_id=user_id,
        media_type="movie",
        media_id=media_id,
        title="The Matrix",
        poster_path="",
        release_date="1999",
        status="planning",
        current_episode=0,
    )


def _update(item_id: int, user_id: int = 1, **overrides) -> UpdateWatchedItemCommand:
    values = {
        "id": item_id,
        "user_id": user_id,
        "media_type": "movie",
        "media_id": "tt0133093",
        "title": "The Matrix",
        "poster_path": "",
        "release_date": "1999",
        "status": "completed",
        "current_episode": 0,
    }
    values.update(overrides)
    return UpdateWatchedItemCommand(**values)


class TestAdd:
    def test_add_assigns_id(self, service) -> None:
        item = service.add(_add())
        assert item.id == 1
        assert item.title == "The Matrix"

    def test_duplicate_rejected(self, service, repo) -> None:
        service.add(_add())
        with pytest.raises(WatchedItemConflictError) as exc_info:
            service.add(_add())
        assert exc_info.value.message == "This item was already added"
        assert len(repo.items) == 1

    def test_same_media_different_users(self, service) -> None:
        service.add(_add(user_id=1))
        assert service.add(_add(user_id=2)).user_id == 2


class TestUpdate:
    def test_update_overwrites(self, service) -> None:
        item = service.add(_add())
        updated = service.update(_update(item.id, status="pending", current_episode=3, release_date=""))
        assert updated.status == "pending"
        stored = service.get(item.id)
        assert stored.current_episode == 3
        assert stored.release_date == ""

    def test_update_missing_item(self, service) -> None:
        with pytest.raises(WatchedItemNotFoundError):
            service.update(_update(404))

    def test_update_foreign_item(self, service) -> None:
        item = service.add(_add(user_id=1))
        with pytest.raises(UnauthorizedWatchedItemAccessError):
            service.update(_update(item.id, user_id=2))
        assert service.get(item.id).status == "planning", "A rejected update must not change the item"

    def test_update_lost_race_is_not_found(self, service, repo, monkeypatch) -> None:
        """The item existed at lookup but the write matched no row."""
        item = service.add(_add())
        monkeypatch.setattr(repo, "update", lambda _item: False)
        with pytest.raises(WatchedItemNotFoundError):
            service.update(_update(item.id))


class TestDeleteAndList:
    def test_owner_can_delete(self, service) -> None:
        item = service.add(_add())
        assert service.delete(item.id, 1) is True
        assert service.get(item.id) is None

    def test_non_owner_delete_is_noop(self, service) -> None:
        item = service.add(_add(user_id=1))
        assert service.delete(item.id, 2) is False
        assert service.get(item.id) is not None

    def test_list_only_returns_own_items(self, service) -> None:
        service.add(_add(user_id=1, media_id="tt1"))
        service.add(_add(user_id=2, media_id="tt2"))
        service.add(_add(user_id=1, media_id="tt3"))
        assert [i.media_id for i in service.list_for_user(1)] == ["tt1", "tt3"]
        assert service.list_for_user(3) == []
