"""
auth/password.py -- Password value object.

A Password only ever holds a bcrypt hash. It is built either from plaintext
(validated against the strength policy, then hashed) or from a stored hash
(wrapped verbatim, never re-validated). The plaintext is never kept on the
object and never logged.

Using bcrypt directly rather than passlib: passlib's wrap-bug detection trips
over bcrypt 4.x, and direct usage has no compatibility shim.

Layer rule: no imports from api/ or watchlist/.
"""

from __future__ import annotations

import re

import bcrypt

from core.errors import ValidationError

DEFAULT_ROUNDS = 12

_MIN_LENGTH = 8

# bcrypt refuses (>= 5.0) or silently truncates (older) anything longer.
_MAX_BYTES = 72

# bcrypt hashes look like $2b$12$<22-char salt><31-char digest>.
_COST_RE = re.compile(r"^\$2[abxy]?\$(\d{2})\$")


def check_password_policy(plain: str) -> list[str]:
    """Return every strength rule the password violates (empty list = strong)."""
    errors: list[str] = []
    if len(plain) < _MIN_LENGTH:
        errors.append(f"Password must be at least {_MIN_LENGTH} characters long")
    if len(plain.encode("utf-8")) > _MAX_BYTES:
        errors.append(f"Password must be at most {_MAX_BYTES} bytes long")
    if not re.search(r"[a-z]", plain):
        errors.append("Password must contain at least one lowercase letter")
    if not re.search(r"[A-Z]", plain):
        errors.append("Password must contain at least one uppercase letter")
    if not re.search(r"\d", plain):
        errors.append("Password must contain at least one number")
    return errors


class Password:
    """One-way password hash with verification and rehash detection."""

    __slots__ = ("_hash",)

    def __init__(self, hashed: str) -> None:
        self._hash = hashed

    @classmethod
    def from_plain_text(cls, plain: str, rounds: int = DEFAULT_ROUNDS) -> Password:
        """Validate plain against the policy and return its salted bcrypt hash.

        Intentionally slow: the cost factor is what makes brute force expensive.
        The policy caps input at 72 UTF-8 bytes, the most bcrypt accepts.
        """
        if not isinstance(plain, str) or not plain:
            raise ValidationError("Password is required")
        if not plain.strip():
            raise ValidationError("Password cannot be empty")
        violations = check_password_policy(plain)
        if violations:
            raise ValidationError(f"Password validation failed: {', '.join(violations)}")
        hashed = bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
        return cls(hashed.decode("utf-8"))

    @classmethod
    def from_hash(cls, hashed: str) -> Password:
        """Wrap a hash loaded from storage."""
        if not isinstance(hashed, str) or not hashed:
            raise ValidationError("Hashed password must be a non-empty string")
        return cls(hashed)

    @classmethod
    def rehash(cls, password: Password, plain: str, rounds: int = DEFAULT_ROUNDS) -> Password:
        """Return a fresh hash of plain at the current cost, if plain matches password."""
        if not password.verify(plain):
            raise ValidationError("Cannot rehash: plain password does not match current hash")
        return cls.from_plain_text(plain, rounds=rounds)

    @property
    def hash(self) -> str:
        """Raw hash, for persistence only."""
        return self._hash

    def verify(self, plain: str) -> bool:
        """Return True if plain matches. Never raises."""
        if not isinstance(plain, str) or not plain:
            return False
        try:
            return bcrypt.checkpw(plain.encode("utf-8"), self._hash.encode("utf-8"))
        except Exception:
            return False

    def needs_rehash(self, rounds: int = DEFAULT_ROUNDS) -> bool:
        """True if the embedded cost is below rounds, or cannot be parsed."""
        match = _COST_RE.match(self._hash)
        if match is None:
            return True
        return int(match.group(1)) < rounds

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Password):
            return NotImplemented
        return self._hash == other._hash

    def __hash__(self) -> int:
        return hash(self._hash)

    def __str__(self) -> str:
        return "[Password Hash]"

    __repr__ = __str__
