"""
API request and response models for Watch Tracker REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
watchlist/models.py, which own the internal domain representation. Route
handlers map between the two.

Field names are snake_case in Python and camelCase on the wire (the web client
sends and expects mediaId, posterPath, currentEpisode, ...). populate_by_name
lets tests and internal callers use either spelling.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from auth.models import PublicUser
from watchlist.models import DEFAULT_STATUS, WatchedItem


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


# ---------------------------------------------------------------------------
# Auth -- requests
# ---------------------------------------------------------------------------


class CredentialsRequest(BaseModel):
    """Request body for POST /api/auth/register and /api/auth/login.

    Format and strength rules are enforced by the registration handler so that
    every violated rule is reported together; the API layer only bounds size.
    max_length=128 rejects megabyte-sized bodies outright; the 72-byte bcrypt
    ceiling is a policy rule, reported as a 400 with the others.
    """

    username: str = Field(default="", max_length=128)
    password: str = Field(default="", max_length=128)


class TokenRequest(BaseModel):
    """Request body for POST /api/auth/refresh-token and /api/auth/logout."""

    token: Optional[str] = Field(default=None, max_length=4096)


class ResetPasswordRequest(_CamelModel):
    token: str = Field(max_length=4096)
    new_password: str = Field(max_length=128)


# ---------------------------------------------------------------------------
# Auth -- responses
# ---------------------------------------------------------------------------


class UserResponse(_CamelModel):
    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_public(cls, user: PublicUser) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            created_at=user.created_at or None,
            updated_at=user.updated_at or None,
        )


class LoginResponse(_CamelModel):
    model_config = ConfigDict(frozen=True)

    user: UserResponse
    token: str
    refresh_token: str
    expires_in: int


class RefreshResponse(_CamelModel):
    model_config = ConfigDict(frozen=True)

    token: str
    refresh_token: str


class MeResponse(_CamelModel):
    model_config = ConfigDict(frozen=True)

    id: int
    username: str


# ---------------------------------------------------------------------------
# Watched items
# ---------------------------------------------------------------------------


class WatchedItemBody(_CamelModel):
    """Request body for POST /api/watched and PUT /api/watched/{id}.

    PUT is a full overwrite, so both verbs take the same body. A userId sent by
    the client is accepted for compatibility and ignored: the owner is always
    the authenticated caller.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    user_id: Optional[int] = None
    media_type: str = Field(min_length=1, max_length=20)
    media_id: str = Field(min_length=1, max_length=64)
    title: str = Field(min_length=1, max_length=500)
    poster_path: str = Field(default="", max_length=1000)
    release_date: str = Field(default="", max_length=32)
    status: str = Field(default=DEFAULT_STATUS, min_length=1, max_length=30)
    current_episode: int = Field(default=0, ge=0)


class WatchedItemResponse(_CamelModel):
    model_config = ConfigDict(frozen=True)

    id: int
    user_id: int
    media_type: str
    media_id: str
    title: str
    poster_path: str
    release_date: str
    status: str
    current_episode: int

    @classmethod
    def from_item(cls, item: WatchedItem) -> "WatchedItemResponse":
        return cls(
            id=item.id,
            user_id=item.user_id,
            media_type=item.media_type,
            media_id=item.media_id,
            title=item.title,
            poster_path=item.poster_path,
            release_date=item.release_date,
            status=item.status,
            current_episode=item.current_episode,
        )
