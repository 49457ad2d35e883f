"""
watchlist/service.py -- Application service for the watch list.

Plain CRUD with three rules on top of storage:
  - add() refuses a second item with the same (user_id, media_id).
  - update() requires the item to exist and to belong to the caller, then
    overwrites every field (no partial patch).
  - delete() is scoped by (id, user_id) in the store predicate itself.
"""

import logging
from dataclasses import dataclass

from core.errors import (
    UnauthorizedWatchedItemAccessError,
    WatchedItemConflictError,
    WatchedItemNotFoundError,
)
from watchlist.models import WatchedItem
from watchlist.store import WatchedItemRepository

logger = logging.getLogger("watchtracker.watchlist")


@dataclass(frozen=True)
class AddWatchedItemCommand:
    user_id: int
    media_type: str
    media_id: str
    title: str
    poster_path: str
    release_date: str
    status: str
    current_episode: int


@dataclass(frozen=True)
class UpdateWatchedItemCommand:
    id: int
    user_id: int
    media_type: str
    media_id: str
    title: str
    poster_path: str
    release_date: str
    status: str
    current_episode: int


class WatchedItemService:
    def __init__(self, repository: WatchedItemRepository) -> None:
        self._repository = repository

    def add(self, command: AddWatchedItemCommand) -> WatchedItem:
        if self._repository.find_by_user_and_media(command.user_id, command.media_id) is not None:
            logger.info("Duplicate item rejected: user_id=%s media_id=%s", command.user_id, command.media_id)
            raise WatchedItemConflictError()

        item = self._repository.create(
            WatchedItem(
                user_id=command.user_id,
                media_type=command.media_type,
                media_id=command.media_id,
                title=command.title,
                poster_path=command.poster_path,
                release_date=command.release_date,
                status=command.status,
                current_episode=command.current_episode,
            )
        )
        logger.info("Item added: id=%s user_id=%s media_id=%s", item.id, item.user_id, item.media_id)
        return item

    def update(self, command: UpdateWatchedItemCommand) -> WatchedItem:
        existing = self._repository.find_by_id(command.id)
        if existing is None:
            raise WatchedItemNotFoundError(command.id)
        if existing.user_id != command.user_id:
            logger.warning("User %s tried to update item %s owned by %s", command.user_id, command.id, existing.user_id)
            raise UnauthorizedWatchedItemAccessError()

        updated = WatchedItem(
            id=command.id,
            user_id=command.user_id,
            media_type=command.media_type,
            media_id=command.media_id,
            title=command.title,
            poster_path=command.poster_path,
            release_date=command.release_date,
            status=command.status,
            current_episode=command.current_episode,
        )
        if not self._repository.update(updated):
            # Deleted between the lookup and the write.
            raise WatchedItemNotFoundError(command.id)
        return updated

    def delete(self, item_id: int, user_id: int) -> bool:
        deleted = self._repository.delete(item_id, user_id)
        if deleted:
            logger.info("Item deleted: id=%s user_id=%s", item_id, user_id)
        return deleted

    def list_for_user(self, user_id: int) -> list[WatchedItem]:
        return self._repository.find_by_user(user_id)

    def get(self, item_id: int) -> WatchedItem | None:
        return self._repository.find_by_id(item_id)
