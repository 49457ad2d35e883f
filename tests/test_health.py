"""
tests/test_health.py -- Integration tests for GET /api/health and app-level error handling.

Covers:
  - 200 response with status, version, and components fields
  - components.database reports 'ok', and 'degraded' status when the ping fails
  - No authentication required
  - Unknown exceptions become a 500 envelope; detail only in debug mode
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import API_VERSION, create_app
from core.database import Database

from conftest import make_settings, mock_catalog


def test_health_returns_200_with_components(api_client):
    """Health endpoint returns 200 with status, version, and components."""
    client, _token, _ = api_client
    resp = client.get("/api/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["version"] == API_VERSION
    assert data["components"]["database"] == "ok"


def test_health_no_auth_required(api_client):
    """Health endpoint is accessible without any authentication headers."""
    client, _, _ = api_client
    resp = client.get("/api/health", headers={})
    assert resp.status_code == 200


def test_health_reports_degraded_database(api_client, monkeypatch):
    client, _, _ = api_client
    monkeypatch.setattr(client.app.state.database, "ping", lambda: False)
    data = client.get("/api/health").json()
    assert data["status"] == "degraded"
    assert data["components"]["database"] == "unavailable"


def test_unknown_host_rejected(api_client):
    client, _, _ = api_client
    resp = client.get("/api/health", headers={"Host": "evil.example.com"})
    assert resp.status_code == 400


def _crashing_app(debug: bool):
    limiter.reset()
    settings = make_settings(debug=debug)
    db = Database(settings.database_url)
    catalog, session = mock_catalog(settings)
    session.get.side_effect = RuntimeError("kaboom in the catalog")
    return create_app(settings, database=db, catalog=catalog), db


def test_unhandled_exception_hides_detail_in_production():
    app, db = _crashing_app(debug=False)
    with TestClient(app, raise_server_exceptions=False) as client:
        resp = client.get("/api/external/search/book", params={"query": "dune"})
    db.close()
    assert resp.status_code == 500
    error = resp.json()["error"]
    assert error["code"] == "internal_error"
    assert error["detail"] is None, "Exception text must not leak outside debug mode"


def test_unhandled_exception_shows_detail_in_debug():
    app, db = _crashing_app(debug=True)
    with TestClient(app, raise_server_exceptions=False) as client:
        resp = client.get("/api/external/search/book", params={"query": "dune"})
    db.close()
    assert resp.status_code == 500
    assert "kaboom" in resp.json()["error"]["detail"]
