"""
fetcher.py -- All external catalog fetching.

Two upstreams:
  OMDb         movie and series search + detail lookup. Requires an API key
               (free registration at https://www.omdbapi.com/apikey.aspx).
  Google Books volume search. No key required.

Responses are passed through untouched: the web client renders the upstream
JSON shapes directly, and this server makes no promises about them.
"""

import logging
from typing import Any, Optional

import requests

from core.config import Settings
from core.errors import ConfigurationError, ExternalServiceError

logger = logging.getLogger("watchtracker.fetcher")

OMDB_API = "http://www.omdbapi.com/"
GOOGLE_BOOKS_API = "https://www.googleapis.com/books/v1/volumes"


class CatalogClient:
    """HTTP client for the external media catalogs.

    One requests.Session per client for connection pooling. max_redirects=3
    replaces the requests default of 30 -- these are known public APIs, 3 hops
    is generous and protects against redirect chains.
    """

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None) -> None:
        self._omdb_api_key = settings.omdb_api_key
        self._timeout = settings.external_api_timeout
        self._session = session or requests.Session()
        self._session.max_redirects = 3

    def search_omdb(self, query: str, media_type: Optional[str] = None) -> Any:
        """Search OMDb by title. media_type narrows to "movie", "series" or "episode"."""
        params: dict[str, str] = {"apikey": self._require_omdb_key(), "s": query}
        if media_type:
            params["type"] = media_type
        return self._get_json(OMDB_API, params, source="OMDb search")

    def omdb_details(self, imdb_id: str) -> Any:
        """Fetch the full OMDb record (long plot) for one IMDb id."""
        params = {"apikey": self._require_omdb_key(), "i": imdb_id, "plot": "full"}
        return self._get_json(OMDB_API, params, source="OMDb details")

    def search_books(self, query: str) -> Any:
        return self._get_json(GOOGLE_BOOKS_API, {"q": query}, source="Google Books search")

    def close(self) -> None:
        self._session.close()

    def _require_omdb_key(self) -> str:
        if not self._omdb_api_key:
            raise ConfigurationError("OMDb API key is not configured")
        return self._omdb_api_key

    def _get_json(self, url: str, params: dict[str, str], source: str) -> Any:
        try:
            resp = self._session.get(url, params=params, timeout=self._timeout)
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as e:
            # Never log params: the OMDb key travels in the query string.
            logger.warning("%s failed: %s", source, type(e).__name__)
            raise ExternalServiceError(f"{source} is unavailable") from e
        except ValueError as e:
            logger.warning("%s returned a non-JSON body", source)
            raise ExternalServiceError(f"{source} returned an invalid response") from e
