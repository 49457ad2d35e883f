"""
auth/tokens.py -- JWT issuance/verification and credential validation.

Security design decisions:
  JWT: python-jose with HS256, signed with Settings.secret_key. Every token
       carries user_id, username, a "type" tag, iat, exp, iss and aud. Refresh
       and password-reset tokens also carry a random 32-char jti. The type tag
       partitions the namespace: verify_* for one kind rejects every other kind.

  Verification failures of any sort (missing, malformed, bad signature,
       expired, wrong iss/aud, wrong type, missing claims, user deleted) all
       surface as the same InvalidTokenError so callers learn nothing about why.
       Only genuinely unexpected failures (e.g. the user store is down) raise
       AuthenticationError.

  Existence check: every verification looks the user up again. A token for a
       deleted user stops working immediately, not at expiry.

  Revocation: refresh and password-reset tokens are checked against the
       deny-list in auth/revocation.py (per-jti and per-user cutoff). Access
       tokens are stateless and only expire.

  Passwords: validate_credentials() always runs bcrypt, against a dummy hash
       when the username does not exist, so response time does not reveal
       whether a username exists.

Layer rule: no imports from api/ or watchlist/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import re
import secrets
import string
import time

from jose import ExpiredSignatureError, JWTError, jwt

from auth.models import (
    AccessClaims,
    PasswordResetClaims,
    PublicUser,
    RefreshClaims,
    TokenType,
    User,
    UserSession,
)
from auth.password import Password
from auth.revocation import RevocationRepository
from auth.store import UserRepository
from core.config import JWT_AUDIENCE, JWT_ISSUER, Settings
from core.errors import AuthenticationError, InvalidTokenError

logger = logging.getLogger("watchtracker.auth")

_ALGORITHM = "HS256"

DEFAULT_ACCESS_EXPIRE_SECONDS = 3600
DEFAULT_REFRESH_EXPIRE_SECONDS = 604800
PASSWORD_RESET_EXPIRE_SECONDS = 3600

_TOKEN_ID_LENGTH = 32
_TOKEN_ID_ALPHABET = string.ascii_letters + string.digits

_DURATION_RE = re.compile(r"^(\d+)([smhd])$", re.IGNORECASE)
_UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(expr: str | int, default: int) -> int:
    """Convert "<digits><unit>" (unit s/m/h/d) to seconds.

    Plain integers are taken as seconds. Anything unparseable returns default
    rather than failing, so a typo in the environment degrades to the standard
    lifetime instead of taking the service down.
    """
    if isinstance(expr, int):
        return expr
    match = _DURATION_RE.match(expr.strip()) if isinstance(expr, str) else None
    if match is None:
        return default
    return int(match.group(1)) * _UNIT_SECONDS[match.group(2).lower()]


def generate_token_id(length: int = _TOKEN_ID_LENGTH) -> str:
    return "".join(secrets.choice(_TOKEN_ID_ALPHABET) for _ in range(length))


class AuthenticationService:
    """Issues and verifies access, refresh and password-reset tokens.

    Constructed explicitly with its collaborators; there is no module-level
    instance:

        service = AuthenticationService(settings, UserStore(db.engine), RevocationStore(db.engine))
        session = service.create_user_session(user)
        claims = service.verify_access_token(session.access_token)
    """

    def __init__(
        self,
        settings: Settings,
        users: UserRepository,
        revocations: RevocationRepository,
    ) -> None:
        self._secret = settings.secret_key
        self._access_expire = settings.access_token_expire
        self._refresh_expire = settings.refresh_token_expire
        self._users = users
        self._revocations = revocations
        # Hashed once up front so the first failed login is not measurably
        # slower than later ones.
        self._dummy_password = Password.from_plain_text("TimingDummy0", rounds=settings.bcrypt_rounds)

    # ------------------------------------------------------------------
    # Lifetimes and header parsing
    # ------------------------------------------------------------------

    def get_token_expiration_time(self) -> int:
        return parse_duration(self._access_expire, DEFAULT_ACCESS_EXPIRE_SECONDS)

    def get_refresh_token_expiration_time(self) -> int:
        return parse_duration(self._refresh_expire, DEFAULT_REFRESH_EXPIRE_SECONDS)

    @staticmethod
    def extract_token_from_header(header: str | None) -> str | None:
        """Return the token from "Bearer <token>", or None for any other shape."""
        if not header:
            return None
        parts = header.split(" ")
        if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
            return None
        return parts[1]

    # ------------------------------------------------------------------
    # Access tokens
    # ------------------------------------------------------------------

    def generate_access_token(self, user: User) -> str:
        token = self._sign(user, TokenType.ACCESS, self.get_token_expiration_time())
        logger.debug("Access token issued for user_id=%s", user.id)
        return token

    def verify_access_token(self, token: str) -> AccessClaims:
        """Return the claims of a valid access token or raise InvalidTokenError."""
        try:
            payload = self._decode(token, TokenType.ACCESS)
            if self._users.find_by_id(payload["user_id"]) is None:
                logger.warning("Access token rejected: user_id=%s no longer exists", payload["user_id"])
                raise InvalidTokenError()
        except InvalidTokenError:
            raise
        except Exception as exc:
            logger.exception("Access token verification failed unexpectedly")
            raise AuthenticationError("Token verification failed") from exc
        return AccessClaims(
            user_id=payload["user_id"],
            username=payload["username"],
            issued_at=payload["iat"],
            expires_at=payload["exp"],
        )

    # ------------------------------------------------------------------
    # Refresh tokens
    # ------------------------------------------------------------------

    def generate_refresh_token(self, user: User) -> str:
        token = self._sign(
            user,
            TokenType.REFRESH,
            self.get_refresh_token_expiration_time(),
            token_id=generate_token_id(),
        )
        logger.debug("Refresh token issued for user_id=%s", user.id)
        return token

    def verify_refresh_token(self, token: str) -> User:
        """Return the owner of a valid, unrevoked refresh token or raise InvalidTokenError."""
        return self._verify_revocable(token, TokenType.REFRESH)

    def decode_refresh_token(self, token: str) -> RefreshClaims:
        """Structural checks only: signature, expiry, iss/aud, type. No store lookups."""
        payload = self._decode(token, TokenType.REFRESH)
        return RefreshClaims(
            user_id=payload["user_id"],
            username=payload["username"],
            issued_at=payload["iat"],
            expires_at=payload["exp"],
            token_id=payload["jti"],
        )

    def revoke_refresh_token(self, token: str) -> bool:
        """Deny-list the token's jti until its natural expiry.

        Returns True only if this call did the revoking. A token that does not
        decode as a live refresh token cannot be used anyway, so there is
        nothing to record for it and the result is False.
        """
        try:
            claims = self.decode_refresh_token(token)
        except InvalidTokenError:
            logger.debug("Revocation skipped: not a live refresh token")
            return False
        try:
            recorded = self._revocations.revoke(claims.token_id, claims.user_id, claims.expires_at)
        except Exception as exc:
            logger.exception("Failed to revoke refresh token for user_id=%s", claims.user_id)
            raise AuthenticationError("Failed to revoke refresh token") from exc
        if recorded:
            logger.info("Refresh token revoked for user_id=%s", claims.user_id)
        else:
            logger.info("Refresh token for user_id=%s was already revoked", claims.user_id)
        return recorded

    def is_refresh_token_revoked(self, token: str) -> bool:
        """True if the token is deny-listed, cut off, or does not decode at all.

        Store errors propagate: a revoked token must never read as live.
        """
        try:
            claims = self.decode_refresh_token(token)
        except InvalidTokenError:
            return True
        return self._is_revoked(claims)

    def invalidate_all_user_tokens(self, user_id: int) -> None:
        """Revoke every refresh and password-reset token issued to user_id so far."""
        try:
            self._revocations.set_user_cutoff(user_id, time.time())
        except Exception as exc:
            logger.exception("Failed to invalidate tokens for user_id=%s", user_id)
            raise AuthenticationError("Failed to invalidate user tokens") from exc
        logger.info("All tokens invalidated for user_id=%s", user_id)

    def purge_expired_revocations(self) -> int:
        removed = self._revocations.purge_expired()
        logger.info("Purged %d expired revocation entries", removed)
        return removed

    # ------------------------------------------------------------------
    # Password reset tokens
    # ------------------------------------------------------------------

    def generate_password_reset_token(self, user: User) -> str:
        token = self._sign(
            user,
            TokenType.PASSWORD_RESET,
            PASSWORD_RESET_EXPIRE_SECONDS,
            token_id=generate_token_id(),
        )
        logger.info("Password reset token issued for user_id=%s", user.id)
        return token

    def verify_password_reset_token(self, token: str) -> User:
        return self._verify_revocable(token, TokenType.PASSWORD_RESET)

    # ------------------------------------------------------------------
    # Credentials and sessions
    # ------------------------------------------------------------------

    def validate_credentials(self, username: str, password: str) -> User | None:
        """Return the user if username exists and password matches, else None.

        Unknown username and wrong password are deliberately indistinguishable,
        in the return value and in timing.
        """
        if not username or not password:
            return None
        try:
            user = self._users.find_by_username(username)
        except Exception as exc:
            logger.exception("Credential lookup failed")
            raise AuthenticationError("Failed to validate credentials") from exc
        if user is None:
            # Equalize timing -- do NOT return before running bcrypt.
            self._dummy_password.verify(password)
            return None
        if not user.password.verify(password):
            logger.debug("Password mismatch for user_id=%s", user.id)
            return None
        logger.info("Credentials validated for user_id=%s", user.id)
        return user

    def create_user_session(self, user: User) -> UserSession:
        """Mint an access/refresh pair. Either both tokens are issued or neither is."""
        try:
            access_token = self.generate_access_token(user)
            refresh_token = self.generate_refresh_token(user)
        except AuthenticationError as exc:
            logger.error("Failed to create session for user_id=%s", user.id)
            raise AuthenticationError("Failed to create user session") from exc
        logger.info("Session created for user_id=%s", user.id)
        return UserSession(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=self.get_token_expiration_time(),
            user=PublicUser(id=user.id, username=user.username),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _sign(self, user: User, token_type: TokenType, lifetime: int, token_id: str | None = None) -> str:
        now = time.time()
        payload = {
            "user_id": user.id,
            "username": user.username,
            "type": token_type.value,
            "iat": now,
            "exp": int(now) + lifetime,
            "iss": JWT_ISSUER,
            "aud": JWT_AUDIENCE,
        }
        if token_id is not None:
            payload["jti"] = token_id
        try:
            return jwt.encode(payload, self._secret, algorithm=_ALGORITHM)
        except (JWTError, TypeError, ValueError) as exc:
            logger.error("Failed to sign %s token for user_id=%s: %s", token_type.value, user.id, exc)
            raise AuthenticationError(f"Failed to generate {token_type.value} token") from exc

    def _decode(self, token: str, expected: TokenType) -> dict:
        """Verify signature, expiry, iss, aud, required claims and type tag."""
        if not token or not isinstance(token, str):
            raise InvalidTokenError()
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[_ALGORITHM],
                audience=JWT_AUDIENCE,
                issuer=JWT_ISSUER,
            )
        except ExpiredSignatureError:
            logger.debug("Rejected expired %s token", expected.value)
            raise InvalidTokenError() from None
        except JWTError as exc:
            logger.warning("Rejected invalid %s token: %s", expected.value, exc)
            raise InvalidTokenError() from None
        if not isinstance(payload.get("user_id"), int) or not payload.get("username"):
            raise InvalidTokenError()
        if "iat" not in payload or "exp" not in payload:
            raise InvalidTokenError()
        if payload.get("type") != expected.value:
            logger.warning("Rejected token: expected type %s, got %r", expected.value, payload.get("type"))
            raise InvalidTokenError()
        if expected is not TokenType.ACCESS and not payload.get("jti"):
            raise InvalidTokenError()
        return payload

    def _is_revoked(self, claims: RefreshClaims | PasswordResetClaims) -> bool:
        if self._revocations.is_revoked(claims.token_id):
            return True
        cutoff = self._revocations.get_user_cutoff(claims.user_id)
        return cutoff is not None and claims.issued_at <= cutoff

    def _verify_revocable(self, token: str, expected: TokenType) -> User:
        try:
            payload = self._decode(token, expected)
            claims_cls = RefreshClaims if expected is TokenType.REFRESH else PasswordResetClaims
            claims = claims_cls(
                user_id=payload["user_id"],
                username=payload["username"],
                issued_at=payload["iat"],
                expires_at=payload["exp"],
                token_id=payload["jti"],
            )
            if self._is_revoked(claims):
                logger.warning("Rejected revoked %s token for user_id=%s", expected.value, claims.user_id)
                raise InvalidTokenError()
            user = self._users.find_by_id(claims.user_id)
            if user is None:
                logger.warning("Rejected %s token: user_id=%s no longer exists", expected.value, claims.user_id)
                raise InvalidTokenError()
        except InvalidTokenError:
            raise
        except Exception as exc:
            logger.exception("%s token verification failed unexpectedly", expected.value)
            raise AuthenticationError("Token verification failed") from exc
        return user
