"""
api/routes/external.py -- Catalog search passthrough.

Routes:
  GET /external/search/omdb?query=&type=   -- OMDb title search
  GET /external/search/omdb-details?id=    -- OMDb full record for an IMDb id
  GET /external/search/book?query=         -- Google Books volume search

The upstream JSON is returned as-is. Public routes: the web client searches
before the user has logged in. Rate limited per client IP because every hit
spends the server's OMDb quota.

Errors come from CatalogClient as AppErrors and are mapped by the app-level
handler: ConfigurationError (no OMDb key) -> 500, ExternalServiceError -> 502.
"""

from typing import Any, Optional

from fastapi import APIRouter, Query, Request

from api.limiter import limiter
from core.fetcher import CatalogClient

router = APIRouter()


@router.get("/external/search/omdb")
@limiter.limit("60/minute")
def search_omdb(
    request: Request,
    query: str = Query(..., min_length=1, max_length=200),
    type: Optional[str] = Query(default=None, pattern=r"^(movie|series|episode)$"),
) -> Any:
    catalog: CatalogClient = request.app.state.catalog
    return catalog.search_omdb(query, type)


@router.get("/external/search/omdb-details")
@limiter.limit("60/minute")
def omdb_details(
    request: Request,
    id: str = Query(..., min_length=1, max_length=32),
) -> Any:
    catalog: CatalogClient = request.app.state.catalog
    return catalog.omdb_details(id)


@router.get("/external/search/book")
@limiter.limit("60/minute")
def search_books(
    request: Request,
    query: str = Query(..., min_length=1, max_length=200),
) -> Any:
    catalog: CatalogClient = request.app.state.catalog
    return catalog.search_books(query)
