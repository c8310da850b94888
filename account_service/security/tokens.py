"""Utilities for issuing and validating bearer JWTs."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import jwt

from ..domain.account import Account, Role
from ..domain.errors import TokenExpired, TokenInvalid

_ALGORITHM = "HS256"
_REQUIRED_CLAIMS = ("sub", "email", "role", "iat", "exp")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class TokenClaims:
    """Identity facts carried by a verified token."""

    subject_id: int
    email: str
    role: Role
    issued_at: datetime
    expires_at: datetime

    def with_live_state(self, account: Account) -> "TokenClaims":
        """Return a copy reflecting the account's current email and role."""
        return replace(self, email=account.email, role=account.role)


class TokenIssuer:
    """Signs and verifies HS256 access tokens with a server-held secret.

    Parameters
    ----------
    secret:
        HMAC key; tokens signed with any other key fail verification.
    issuer:
        Value written to and required in the ``iss`` claim.
    ttl_seconds:
        Lifetime of issued tokens.
    clock:
        Returns the current UTC time; overridable for tests.
    """

    def __init__(
        self,
        *,
        secret: str,
        issuer: str,
        ttl_seconds: int = 3600,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not secret:
            raise ValueError("jwt secret must not be blank")
        self._secret = secret
        self._issuer = issuer
        self._ttl_seconds = ttl_seconds
        self._clock = clock

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def issue(self, account: Account) -> tuple[str, int]:
        """Create a signed JWT for the account.

        Returns
        -------
        tuple[str, int]
            The encoded token and its TTL in seconds.
        """
        now = int(self._clock().timestamp())
        payload: dict[str, Any] = {
            "iss": self._issuer,
            "sub": str(account.account_id),
            "email": account.email,
            "role": Role(account.role).value,
            "iat": now,
            "exp": now + self._ttl_seconds,
        }
        return jwt.encode(payload, self._secret, algorithm=_ALGORITHM), self._ttl_seconds

    def verify(self, token: str) -> TokenClaims:
        """Decode and verify a token, returning its claims.

        Raises
        ------
        TokenExpired
            When the current time is past ``exp``; carries the expiry instant.
        TokenInvalid
            On signature mismatch, foreign issuer, missing claims or garbage input.
        """
        if not token:
            raise TokenInvalid()
        try:
            # Expiry is checked below against the injected clock.
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[_ALGORITHM],
                issuer=self._issuer,
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "require": list(_REQUIRED_CLAIMS),
                },
            )
            claims = TokenClaims(
                subject_id=int(payload["sub"]),
                email=str(payload["email"]),
                role=Role(payload["role"]),
                issued_at=datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc),
                expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc),
            )
        except (jwt.PyJWTError, KeyError, TypeError, ValueError) as exc:
            raise TokenInvalid() from exc

        if self._clock() > claims.expires_at:
            raise TokenExpired(claims.expires_at)
        return claims
