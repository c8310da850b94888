"""bcrypt password hashing backed by passlib."""

from __future__ import annotations

from passlib.context import CryptContext
from passlib.exc import PasswordValueError

from ..domain.errors import HashingError


class PasswordHasher:
    """Salted, adaptive one-way hashing for account passwords."""

    def __init__(self, rounds: int = 12) -> None:
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )

    def hash(self, plaintext: str) -> str:
        try:
            return self._context.hash(plaintext)
        except (ValueError, TypeError, OSError) as exc:
            raise HashingError() from exc

    def verify(self, plaintext: str, hash_value: str) -> bool:
        """Return whether ``plaintext`` matches; raise only for a malformed hash."""
        try:
            return self._context.verify(plaintext, hash_value)
        except PasswordValueError:
            # bcrypt cannot represent the input (e.g. NUL bytes), so it never matches.
            self._context.dummy_verify()
            return False
        except (ValueError, TypeError) as exc:
            raise HashingError() from exc

    def dummy_verify(self) -> None:
        """Burn one verification's worth of time for unknown accounts."""
        self._context.dummy_verify()
