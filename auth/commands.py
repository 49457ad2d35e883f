"""
auth/commands.py -- Registration, login, refresh, logout and password-reset flows.

Pattern: Command + Handler. Each command is an immutable dataclass holding the
caller's input; each handler is constructed once with its collaborators and
exposes handle(command). Route handlers build commands from request bodies and
map the results onto response models; they never call stores directly.

Error contract:
  RegisterUserHandler   ValidationError (all violated rules in one message),
                        UserAlreadyExistsError, DatabaseError for anything else.
  LoginUserHandler      InvalidCredentialsError for unknown user AND wrong
                        password -- one error, one message, no enumeration.
  RefreshTokenHandler   InvalidTokenError.
  LogoutUserHandler     never fails on bad input; a valid refresh token is revoked.
  ResetPasswordHandler  InvalidTokenError, ValidationError.

Layer rule: no imports from api/ or watchlist/.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from auth.models import PublicUser, User
from auth.password import DEFAULT_ROUNDS, Password, check_password_policy
from auth.store import UserRepository
from auth.tokens import AuthenticationService
from core.errors import (
    DatabaseError,
    InvalidCredentialsError,
    InvalidTokenError,
    UserAlreadyExistsError,
    ValidationError,
)

logger = logging.getLogger("watchtracker.auth.commands")

USERNAME_RE = re.compile(r"^[A-Za-z0-9_]{3,30}$")


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RegisterUserCommand:
    username: str
    password: str

    @classmethod
    def create(cls, username: str | None, password: str | None) -> RegisterUserCommand:
        if not username or not password:
            raise ValidationError("Username and password are required")
        return cls(username=username.strip(), password=password)


class RegisterUserHandler:
    def __init__(self, users: UserRepository, bcrypt_rounds: int = DEFAULT_ROUNDS) -> None:
        self._users = users
        self._rounds = bcrypt_rounds

    def handle(self, command: RegisterUserCommand) -> PublicUser:
        logger.info("Processing registration for username=%r", command.username)
        try:
            self._validate(command)
            self._ensure_user_does_not_exist(command.username)
            password = Password.from_plain_text(command.password, rounds=self._rounds)
            # create_user() raises UserAlreadyExistsError itself if a concurrent
            # registration won the race between the check above and this insert.
            created = self._users.create_user(User(username=command.username, password=password))
        except (ValidationError, UserAlreadyExistsError, DatabaseError) as exc:
            logger.warning("Registration rejected for username=%r: %s", command.username, exc)
            raise
        except Exception as exc:
            logger.exception("Registration failed for username=%r", command.username)
            raise DatabaseError("User registration failed due to unexpected error") from exc

        logger.info("User registered: user_id=%s username=%r", created.id, created.username)
        return PublicUser.from_user(created)

    @staticmethod
    def _validate(command: RegisterUserCommand) -> None:
        errors: list[str] = []
        if not command.username:
            errors.append("Username is required")
        elif not USERNAME_RE.match(command.username):
            errors.append("Username must be 3-30 characters long and contain only letters, numbers, and underscores")

        if not command.password:
            errors.append("Password is required")
        else:
            errors.extend(check_password_policy(command.password))

        if errors:
            raise ValidationError(f"Registration validation failed: {', '.join(errors)}")

    def _ensure_user_does_not_exist(self, username: str) -> None:
        if self._users.find_by_username(username) is not None:
            raise UserAlreadyExistsError(username)


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoginUserCommand:
    username: str
    password: str


@dataclass(frozen=True)
class LoginResult:
    user: PublicUser
    token: str
    refresh_token: str
    expires_in: int


class LoginUserHandler:
    """Validate credentials, opportunistically upgrade the hash, open a session."""

    def __init__(
        self,
        auth_service: AuthenticationService,
        users: UserRepository,
        bcrypt_rounds: int = DEFAULT_ROUNDS,
    ) -> None:
        self._auth = auth_service
        self._users = users
        self._rounds = bcrypt_rounds

    def handle(self, command: LoginUserCommand) -> LoginResult:
        user = self._auth.validate_credentials(command.username, command.password)
        if user is None:
            raise InvalidCredentialsError()

        self._rehash_if_needed(user, command.password)

        session = self._auth.create_user_session(user)
        return LoginResult(
            user=PublicUser.from_user(user),
            token=session.access_token,
            refresh_token=session.refresh_token,
            expires_in=session.expires_in,
        )

    def _rehash_if_needed(self, user: User, plain: str) -> None:
        """Re-hash at the configured cost if the stored hash is weaker.

        The plaintext is only available at login, so this is the one place an
        old hash can be upgraded. A failure here must not block the login.
        """
        if not user.password.needs_rehash(self._rounds):
            return
        try:
            user.password = Password.rehash(user.password, plain, rounds=self._rounds)
            self._users.save(user)
        except Exception:
            logger.warning("Password rehash failed for user_id=%s", user.id, exc_info=True)
            return
        logger.info("Password rehashed at cost %d for user_id=%s", self._rounds, user.id)


# ---------------------------------------------------------------------------
# Refresh
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RefreshTokenCommand:
    token: str


@dataclass(frozen=True)
class RefreshResult:
    token: str  # new access token
    refresh_token: str  # replacement refresh token


class RefreshTokenHandler:
    """Exchange a refresh token for a new access token, rotating the refresh token.

    The presented refresh token is revoked once used, so a stolen copy is only
    good until its legitimate owner refreshes. Revoking is the claim: when two
    requests race with the same token, only the one whose deny-list insert
    lands gets a new pair.
    """

    def __init__(self, auth_service: AuthenticationService) -> None:
        self._auth = auth_service

    def handle(self, command: RefreshTokenCommand) -> RefreshResult:
        user = self._auth.verify_refresh_token(command.token)
        if not self._auth.revoke_refresh_token(command.token):
            logger.warning("Refresh token for user_id=%s was used concurrently", user.id)
            raise InvalidTokenError()
        return RefreshResult(
            token=self._auth.generate_access_token(user),
            refresh_token=self._auth.generate_refresh_token(user),
        )


# ---------------------------------------------------------------------------
# Logout
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LogoutUserCommand:
    token: str | None = None


class LogoutUserHandler:
    def __init__(self, auth_service: AuthenticationService) -> None:
        self._auth = auth_service

    def handle(self, command: LogoutUserCommand) -> None:
        if command.token:
            self._auth.revoke_refresh_token(command.token)


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ResetPasswordCommand:
    token: str
    new_password: str


class ResetPasswordHandler:
    """Set a new password from a reset token and log the user out everywhere.

    invalidate_all_user_tokens() also kills the reset token itself (it was
    issued before the cutoff), so each reset token works once.
    """

    def __init__(
        self,
        auth_service: AuthenticationService,
        users: UserRepository,
        bcrypt_rounds: int = DEFAULT_ROUNDS,
    ) -> None:
        self._auth = auth_service
        self._users = users
        self._rounds = bcrypt_rounds

    def handle(self, command: ResetPasswordCommand) -> PublicUser:
        user = self._auth.verify_password_reset_token(command.token)
        user.password = Password.from_plain_text(command.new_password, rounds=self._rounds)
        self._users.save(user)
        self._auth.invalidate_all_user_tokens(user.id)
        logger.info("Password reset for user_id=%s", user.id)
        return PublicUser.from_user(user)
