"""
core/errors.py -- Application error taxonomy.

Every domain and infrastructure failure the service knows about is an AppError
subclass carrying the HTTP status it maps to and a short machine-readable code.
api/main.py registers one exception handler for AppError that turns any of
these into the standard ErrorResponse envelope, so services raise domain
errors and never build HTTP responses themselves.

  4xx  domain errors: bad input, bad credentials, ownership, entity state.
  5xx  infrastructure errors: database, configuration, upstream catalogs.
       Their messages are deliberately generic; the underlying cause is logged,
       not returned.

Credential and token failures are coarse on purpose: InvalidCredentialsError
and InvalidTokenError carry fixed messages so callers cannot tell "unknown
user" from "wrong password" or "expired" from "forged".

Layer rule: core/ imports nothing from api/, auth/, or watchlist/.
"""

from __future__ import annotations


class AppError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# Domain errors (4xx)
# ---------------------------------------------------------------------------


class ValidationError(AppError):
    status_code = 400
    code = "validation_error"
    default_message = "Validation failed"


class AuthenticationError(AppError):
    status_code = 401
    code = "authentication_failed"
    default_message = "Authentication failed"


class InvalidTokenError(AuthenticationError):
    code = "invalid_token"

    def __init__(self) -> None:
        super().__init__("Invalid or expired token")


class MissingTokenError(AuthenticationError):
    code = "missing_token"

    def __init__(self) -> None:
        super().__init__("Authentication token is required")


class InvalidCredentialsError(AuthenticationError):
    code = "bad_credentials"

    def __init__(self) -> None:
        super().__init__("Invalid username or password")


class AuthorizationError(AppError):
    status_code = 403
    code = "forbidden"
    default_message = "Authorization failed"


class NotFoundError(AppError):
    status_code = 404
    code = "not_found"
    default_message = "Resource not found"


class ConflictError(AppError):
    status_code = 409
    code = "conflict"
    default_message = "Resource conflict"


# ---------------------------------------------------------------------------
# Infrastructure errors (5xx)
# ---------------------------------------------------------------------------


class DatabaseError(AppError):
    code = "database_error"
    default_message = "Database error"


class ConfigurationError(AppError):
    code = "configuration_error"
    default_message = "Configuration error"


class ExternalServiceError(AppError):
    status_code = 502
    code = "external_service_error"
    default_message = "External service error"


# ---------------------------------------------------------------------------
# Entity-specific errors
# ---------------------------------------------------------------------------


class UserAlreadyExistsError(ConflictError):
    def __init__(self, username: str) -> None:
        super().__init__(f"User with username '{username}' already exists")


class UserNotFoundError(NotFoundError):
    def __init__(self, identifier: str | int) -> None:
        super().__init__(f"User with identifier '{identifier}' not found")


class WatchedItemNotFoundError(NotFoundError):
    def __init__(self, item_id: int) -> None:
        super().__init__(f"Watched item with id '{item_id}' not found")


class WatchedItemConflictError(ConflictError):
    def __init__(self) -> None:
        super().__init__("This item was already added")


class UnauthorizedWatchedItemAccessError(AuthorizationError):
    def __init__(self) -> None:
        super().__init__("You are not authorized to access this watched item")
