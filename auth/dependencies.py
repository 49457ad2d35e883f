"""
auth/dependencies.py -- FastAPI Depends() gate for bearer-token routes.

require_access_token() is a pure gate:
  1. No usable "Authorization: Bearer <token>" header  -> MissingTokenError
     (HTTP 401 via the app-level AppError handler), before the route handler runs.
  2. Token present but fails verification            -> HTTP 403.
  3. Otherwise the AccessClaims are stored on request.state.claims and returned.

It writes nothing and calls nothing beyond AuthenticationService.verify_access_token.

Layer rule: auth/dependencies.py may import from fastapi (for Request and
HTTPException) because this module is part of the FastAPI dependency
injection system. No imports from api/ or watchlist/.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import AccessClaims
from auth.tokens import AuthenticationService
from core.errors import InvalidTokenError, MissingTokenError


def require_access_token(request: Request) -> AccessClaims:
    """Require a valid access token.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(claims: AccessClaims = Depends(require_access_token)): ...
    """
    auth_service: AuthenticationService = request.app.state.auth_service

    token = auth_service.extract_token_from_header(request.headers.get("Authorization"))
    if token is None:
        raise MissingTokenError()

    try:
        claims = auth_service.verify_access_token(token)
    except InvalidTokenError:
        raise HTTPException(
            status_code=403,
            detail={"code": "invalid_token", "message": "Invalid or expired token."},
        ) from None

    request.state.claims = claims
    return claims
