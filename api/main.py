"""
api/main.py -- FastAPI application factory for Watch Tracker.

Exposes the auth, watch list and catalog search routes under /api for the web
client. create_app() takes its Settings (and optionally a ready Database and
CatalogClient) as arguments, so every test builds an isolated app and nothing
in the process reaches for a global configuration.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for the web client's origins
  3. SlowAPIMiddleware     -- app-wide limiter hook; route limits run in the
                              @limiter.limit wrappers from api.limiter

Lifespan handles startup (database, stores, services, revocation purge task)
and shutdown (cancel purge task, close catalog session and DB) symmetrically.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from api.routes.external import router as external_router
from api.routes.watched import router as watched_router
from auth.revocation import RevocationStore
from auth.store import UserStore
from auth.tokens import AuthenticationService
from core.config import Settings
from core.database import Database
from core.errors import AppError, AuthenticationError
from core.fetcher import CatalogClient
from watchlist.service import WatchedItemService
from watchlist.store import WatchedItemStore

API_VERSION = "1.0.0"

# Revoked refresh tokens stay on the deny-list until their own expiry; after
# that the signature check rejects them anyway and the row is dead weight.
_PURGE_INTERVAL_SECONDS = 6 * 60 * 60

logger = logging.getLogger("watchtracker.api")


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI) -> None:
    """Purge expired revocation entries every 6 hours.

    Runs as a background asyncio task started in lifespan startup.
    CancelledError from task.cancel() during shutdown propagates out of
    asyncio.sleep and unwinds the coroutine cleanly. A failed purge is logged
    and retried on the next tick.
    """
    while True:
        await asyncio.sleep(_PURGE_INTERVAL_SECONDS)
        try:
            app.state.auth_service.purge_expired_revocations()
        except Exception:
            logger.exception("Revocation purge failed")


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(
    settings: Settings,
    database: Optional[Database] = None,
    catalog: Optional[CatalogClient] = None,
) -> FastAPI:
    """Build a fully wired FastAPI application.

    Args:
        settings: Configuration for this app instance.
        database: Pre-built Database to use instead of one built from
                  settings.database_url. The caller keeps ownership and
                  closes it.
        catalog:  Pre-built CatalogClient (tests pass one with a mocked
                  requests.Session).
    """
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Manage application-level resources across the full server lifetime.

        Startup order matters: the stores create their tables on construction,
        so the Database must exist first, and AuthenticationService needs both
        the user and revocation stores.
        """
        logger.info("Watch Tracker API starting up")
        owns_database = database is None
        db = database or Database(settings.database_url)
        app.state.database = db

        app.state.user_store = UserStore(db.engine)
        app.state.revocation_store = RevocationStore(db.engine)
        app.state.auth_service = AuthenticationService(settings, app.state.user_store, app.state.revocation_store)
        app.state.watchlist = WatchedItemService(WatchedItemStore(db.engine))
        app.state.catalog = catalog or CatalogClient(settings)
        if not settings.omdb_api_key:
            logger.warning("OMDb API key not configured -- movie and series search will fail")
        logger.info("Stores initialized (%s)", db.engine.url.get_backend_name())

        app.state.purge_task = asyncio.create_task(_purge_loop(app))

        yield

        app.state.purge_task.cancel()
        app.state.catalog.close()
        if owns_database:
            db.close()
        logger.info("Watch Tracker API shutdown complete")

    app = FastAPI(
        title="Watch Tracker API",
        description="Accounts and personal watch lists for movies, series and books.",
        version=API_VERSION,
        lifespan=lifespan,
        # The schema browser is a development convenience only.
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )
    app.state.settings = settings

    # -----------------------------------------------------------------------
    # Middleware stack. Register in the order you want the request to
    # encounter them: TrustedHost -> CORS -> SlowAPI.
    # -----------------------------------------------------------------------

    app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=3600,
    )

    app.add_middleware(SlowAPIMiddleware)

    # SlowAPI looks for app.state.limiter by convention.
    app.state.limiter = limiter

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        ms = (time.perf_counter() - start) * 1000
        logger.info(
            "%s %s %d %.1fms %s",
            request.method,
            request.url.path,
            response.status_code,
            ms,
            request.client.host if request.client else "unknown",
        )
        return response

    # -----------------------------------------------------------------------
    # Router registration
    # -----------------------------------------------------------------------

    app.include_router(auth_router, prefix="/api", tags=["Auth"])
    app.include_router(watched_router, prefix="/api", tags=["Watched Items"])
    app.include_router(external_router, prefix="/api", tags=["External Catalogs"])

    _register_exception_handlers(app, settings)

    # -----------------------------------------------------------------------
    # Health endpoint. Defined here, not in a router, and never rate limited.
    # -----------------------------------------------------------------------

    @app.get("/api/health", tags=["Health"])
    def health(request: Request) -> HealthResponse:
        """Return API liveness, version and database reachability."""
        db_ok = request.app.state.database.ping()
        return HealthResponse(
            status="healthy" if db_ok else "degraded",
            version=API_VERSION,
            components={"database": "ok" if db_ok else "unavailable"},
        )

    return app


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        """Map a domain or infrastructure error onto its own status and code."""
        if exc.status_code >= 500:
            logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
        response = JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=ErrorDetail(code=exc.code, message=exc.message)).model_dump(),
        )
        if isinstance(exc, AuthenticationError):
            response.headers["WWW-Authenticate"] = "Bearer"
        return response

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        """Return 429 with a structured error when a rate limit is exceeded.

        Retry-After tells clients how many seconds to wait before retrying.
        """
        retry_after = int(getattr(exc, "retry_after", 60))
        response = JSONResponse(
            status_code=429,
            content=ErrorResponse(
                error=ErrorDetail(
                    code="rate_limited",
                    message="Too many requests.",
                    detail=str(exc),
                )
            ).model_dump(),
        )
        response.headers["Retry-After"] = str(retry_after)
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Return 400 with structured error when request body or query params fail validation."""
        return JSONResponse(
            status_code=400,
            content=ErrorResponse(
                error=ErrorDetail(
                    code="validation_error",
                    message="Request validation failed.",
                    detail=str(exc.errors()),
                )
            ).model_dump(),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        """Return a structured error for all FastAPI/Starlette HTTP exceptions.

        Route handlers raise HTTPException with detail=ErrorDetail(...).model_dump()
        (a dict). When detail is already a structured dict, use it directly as the
        error field rather than stringifying it.
        """
        if isinstance(exc.detail, dict):
            return JSONResponse(
                status_code=exc.status_code,
                content={"error": exc.detail},
                headers=exc.headers,
            )
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=ErrorDetail(
                    code=f"http_{exc.status_code}",
                    message=str(exc.detail),
                )
            ).model_dump(),
            headers=exc.headers,
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all handler for unexpected server errors.

        The traceback goes to the log. The response carries the exception text
        only in debug mode.
        """
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error=ErrorDetail(
                    code="internal_error",
                    message="An unexpected error occurred.",
                    detail=str(exc) if settings.debug else None,
                )
            ).model_dump(),
        )
