"""Typed failure outcomes surfaced by the account workflows.

Every error carries a stable ``code`` for the HTTP layer to expose; messages
are fixed strings and never include the underlying cause.
"""

from __future__ import annotations

from datetime import datetime


class AccountError(Exception):
    """Base class for expected, caller-facing account failures."""

    code = "account_error"
    message = "account error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)


class EmailAlreadyRegistered(AccountError):
    code = "email_already_registered"
    message = "email already registered"


class InvalidCredentials(AccountError):
    code = "invalid_credentials"
    message = "invalid email or password"


class AccountDeactivated(AccountError):
    code = "account_deactivated"
    message = "account is deactivated"


class AccountNotFound(AccountError):
    code = "account_not_found"
    message = "account not found"


class AccessDenied(AccountError):
    code = "access_denied"
    message = "access denied"


class TokenInvalid(AccountError):
    code = "token_invalid"
    message = "invalid token"


class TokenExpired(AccountError):
    code = "token_expired"
    message = "token expired"

    def __init__(self, expired_at: datetime) -> None:
        super().__init__()
        self.expired_at = expired_at


class HashingError(AccountError):
    code = "hashing_error"
    message = "password hashing failed"


class DuplicateEmail(Exception):
    """Raised by stores when the normalized email is already taken."""

    def __init__(self, email: str) -> None:
        super().__init__("duplicate email")
        self.email = email
