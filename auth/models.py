"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in watchlist/models.py -- dataclasses own domain shape; stores, services and
routes do the work.

Token claims are a tagged variant: one frozen dataclass per token kind. The
wire format is a single signed JWT whose "type" claim selects the variant;
auth/tokens.py decodes into exactly one of AccessClaims, RefreshClaims or
PasswordResetClaims and nothing downstream looks at the raw tag again.

Layer rule: no imports from api/ or watchlist/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from auth.password import Password


@dataclass
class User:
    """A registered identity.

    password always holds a hash (see auth/password.py); plaintext never
    reaches this object. id is None before the record is written.
    """

    username: str
    password: Password
    id: int | None = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""  # ISO 8601, bumped by store on every write


@dataclass(frozen=True)
class PublicUser:
    """The only user shape that leaves the service layer. No password field."""

    id: int
    username: str
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_user(cls, user: User) -> PublicUser:
        return cls(
            id=user.id,
            username=user.username,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class TokenType(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"
    PASSWORD_RESET = "password_reset"


@dataclass(frozen=True)
class AccessClaims:
    user_id: int
    username: str
    issued_at: float  # epoch seconds, fractional
    expires_at: int
    token_type: TokenType = TokenType.ACCESS


@dataclass(frozen=True)
class RefreshClaims:
    """token_id is the random jti used as the revocation key."""

    user_id: int
    username: str
    issued_at: float  # epoch seconds, fractional
    expires_at: int
    token_id: str
    token_type: TokenType = TokenType.REFRESH


@dataclass(frozen=True)
class PasswordResetClaims:
    user_id: int
    username: str
    issued_at: float  # epoch seconds, fractional
    expires_at: int
    token_id: str
    token_type: TokenType = TokenType.PASSWORD_RESET


@dataclass(frozen=True)
class UserSession:
    """One access token + one refresh token, minted together."""

    access_token: str
    refresh_token: str
    expires_in: int  # access token lifetime in seconds
    user: PublicUser
