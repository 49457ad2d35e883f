"""
tests/test_external.py -- Catalog client and /api/external/search routes.

The requests.Session inside CatalogClient is a MagicMock, so no test makes a
real network call.

Covers:
  - OMDb search/details and Google Books search build the right query
  - Upstream JSON is passed through unchanged
  - Missing OMDb key -> 500 configuration_error
  - Upstream connection failure or non-JSON body -> 502 external_service_error
  - The OMDb key never appears in log output
  - Query validation (missing query, bad type)
"""

from __future__ import annotations

import logging
from collections.abc import Generator
from unittest.mock import MagicMock

import pytest
import requests
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import create_app
from core.database import Database
from core.errors import ConfigurationError, ExternalServiceError
from core.fetcher import GOOGLE_BOOKS_API, OMDB_API, CatalogClient

from conftest import make_settings, mock_catalog


def _json_response(payload) -> MagicMock:
    resp = MagicMock()
    resp.json.return_value = payload
    resp.raise_for_status.return_value = None
    return resp


def _client_for(settings) -> Generator[tuple[TestClient, MagicMock], None, None]:
    limiter.reset()
    db = Database(settings.database_url)
    catalog, session = mock_catalog(settings)
    with TestClient(create_app(settings, database=db, catalog=catalog)) as client:
        yield client, session
    db.close()


@pytest.fixture
def external_client() -> Generator[tuple[TestClient, MagicMock], None, None]:
    yield from _client_for(make_settings())


@pytest.fixture
def keyless_client() -> Generator[tuple[TestClient, MagicMock], None, None]:
    yield from _client_for(make_settings(omdb_api_key=""))


class TestCatalogClient:
    def test_search_omdb_params(self) -> None:
        catalog, session = mock_catalog(make_settings())
        session.get.return_value = _json_response({"Search": []})

        catalog.search_omdb("matrix", "movie")

        args, kwargs = session.get.call_args
        assert args[0] == OMDB_API
        assert kwargs["params"] == {"apikey": "test-omdb-key", "s": "matrix", "type": "movie"}
        assert kwargs["timeout"] == 10.0

    def test_search_omdb_without_type(self) -> None:
        catalog, session = mock_catalog(make_settings())
        session.get.return_value = _json_response({"Search": []})
        catalog.search_omdb("matrix")
        assert "type" not in session.get.call_args.kwargs["params"]

    def test_omdb_details_requests_full_plot(self) -> None:
        catalog, session = mock_catalog(make_settings())
        session.get.return_value = _json_response({"Title": "The Matrix"})
        assert catalog.omdb_details("tt0133093") == {"Title": "The Matrix"}
        assert session.get.call_args.kwargs["params"] == {"apikey": "test-omdb-key", "i": "tt0133093", "plot": "full"}

    def test_search_books_needs_no_key(self) -> None:
        catalog, session = mock_catalog(make_settings(omdb_api_key=""))
        session.get.return_value = _json_response({"items": []})
        catalog.search_books("dune")
        args, kwargs = session.get.call_args
        assert args[0] == GOOGLE_BOOKS_API
        assert kwargs["params"] == {"q": "dune"}

    def test_missing_key_raises_configuration_error(self) -> None:
        catalog, session = mock_catalog(make_settings(omdb_api_key=""))
        with pytest.raises(ConfigurationError):
            catalog.search_omdb("matrix")
        session.get.assert_not_called()

    def test_redirects_capped(self) -> None:
        catalog, session = mock_catalog(make_settings())
        assert session.max_redirects == 3

    def test_failure_does_not_log_api_key(self, caplog) -> None:
        catalog, session = mock_catalog(make_settings())
        session.get.side_effect = requests.ConnectionError("http://www.omdbapi.com/?apikey=test-omdb-key")
        with caplog.at_level(logging.DEBUG, logger="watchtracker.fetcher"):
            with pytest.raises(ExternalServiceError):
                catalog.search_omdb("matrix")
        assert "test-omdb-key" not in caplog.text

    def test_non_json_body(self) -> None:
        catalog, session = mock_catalog(make_settings())
        resp = MagicMock()
        resp.json.side_effect = ValueError("Expecting value")
        session.get.return_value = resp
        with pytest.raises(ExternalServiceError):
            catalog.search_books("dune")


class TestExternalRoutes:
    def test_omdb_search_passthrough(self, external_client) -> None:
        client, session = external_client
        upstream = {"Search": [{"Title": "The Matrix", "imdbID": "tt0133093"}], "Response": "True"}
        session.get.return_value = _json_response(upstream)

        resp = client.get("/api/external/search/omdb", params={"query": "matrix", "type": "movie"})
        assert resp.status_code == 200, f"Expected 200, got {resp.status_code}: {resp.text}"
        assert resp.json() == upstream

    def test_omdb_details_passthrough(self, external_client) -> None:
        client, session = external_client
        session.get.return_value = _json_response({"Title": "The Matrix", "Plot": "..."})
        resp = client.get("/api/external/search/omdb-details", params={"id": "tt0133093"})
        assert resp.status_code == 200
        assert resp.json()["Title"] == "The Matrix"

    def test_book_search_passthrough(self, external_client) -> None:
        client, session = external_client
        session.get.return_value = _json_response({"totalItems": 0})
        resp = client.get("/api/external/search/book", params={"query": "dune"})
        assert resp.status_code == 200
        assert resp.json() == {"totalItems": 0}

    def test_upstream_failure_is_502(self, external_client) -> None:
        client, session = external_client
        session.get.side_effect = requests.Timeout()
        resp = client.get("/api/external/search/book", params={"query": "dune"})
        assert resp.status_code == 502
        assert resp.json()["error"]["code"] == "external_service_error"

    def test_missing_omdb_key_is_500(self, keyless_client) -> None:
        client, session = keyless_client
        resp = client.get("/api/external/search/omdb", params={"query": "matrix"})
        assert resp.status_code == 500
        assert resp.json()["error"]["code"] == "configuration_error"
        session.get.assert_not_called()

    def test_missing_query_is_400(self, external_client) -> None:
        client, _session = external_client
        assert client.get("/api/external/search/omdb").status_code == 400

    def test_bad_type_is_400(self, external_client) -> None:
        client, _session = external_client
        resp = client.get("/api/external/search/omdb", params={"query": "matrix", "type": "podcast"})
        assert resp.status_code == 400
