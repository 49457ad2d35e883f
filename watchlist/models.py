"""
watchlist/models.py -- Domain dataclasses for the personal watch list.

Pure data containers. The one business rule (one item per user and external
media id) lives in watchlist/service.py and is backed by a unique constraint in
watchlist/store.py.
"""

from dataclasses import dataclass
from typing import Optional

# media_type and status are free text, as the web client sends them:
# media_type is movie, tv or book; status is one of not_started, planning,
# pending, completed, on_hold or dropped.
DEFAULT_STATUS = "planning"


@dataclass
class WatchedItem:
    """A catalog entry on one user's list, with progress.

    media_id is the external catalog id (an IMDb id from OMDb, a Google Books
    volume id). current_episode doubles as a chapter/page counter for books.

    id is None before the record is written to the database.
    """

    user_id: int
    media_type: str
    media_id: str
    title: str
    poster_path: str = ""
    release_date: str = ""
    status: str = DEFAULT_STATUS
    current_episode: int = 0
    id: Optional[int] = None
