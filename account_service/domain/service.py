"""Account service orchestrating credential checks, token issuance and profile access."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone

from prometheus_client import Counter

from ..security.passwords import PasswordHasher
from ..security.tokens import TokenClaims, TokenIssuer
from .account import Account, Role, normalize_email
from .authorization import ADMIN_ONLY, can_access
from .contracts import AccountStore, NewAccount, Page, ProfileUpdate, RegisterInput
from .errors import (
    AccessDenied,
    AccountDeactivated,
    AccountError,
    AccountNotFound,
    DuplicateEmail,
    EmailAlreadyRegistered,
    InvalidCredentials,
)

logger = logging.getLogger(__name__)

AUTH_EVENTS = Counter(
    "account_auth_events_total",
    "Registration, login and token authentication outcomes.",
    ["event", "outcome"],
)


@dataclass(slots=True)
class TokenBundle:
    """Access token returned to API consumers after register/login."""

    access_token: str
    expires_in: int
    token_type: str = "bearer"


class AccountService:
    """Account workflows over an injected store, hasher and token issuer.

    The service holds no per-request state; every call reads what it needs
    from the store. Expected failures are raised as
    :class:`~account_service.domain.errors.AccountError` subclasses, anything
    else (store outages included) propagates untouched.
    """

    def __init__(
        self,
        repository: AccountStore,
        hasher: PasswordHasher,
        tokens: TokenIssuer,
    ) -> None:
        self._repository = repository
        self._hasher = hasher
        self._tokens = tokens

    def register(self, payload: RegisterInput) -> Account:
        """Create a user account with least privilege.

        Raises
        ------
        EmailAlreadyRegistered
            When the normalized email exists, including when a concurrent
            insert wins the race past the existence check.
        HashingError
            When the password could not be hashed.
        """
        email = normalize_email(payload.email)
        if self._repository.find_by_email(email) is not None:
            AUTH_EVENTS.labels(event="register", outcome="duplicate").inc()
            raise EmailAlreadyRegistered()

        password_hash = self._hasher.hash(payload.password)
        try:
            account = self._repository.create(
                NewAccount(
                    email=email,
                    name=payload.name,
                    password_hash=password_hash,
                    role=Role.user,
                    is_active=True,
                )
            )
        except DuplicateEmail as exc:
            AUTH_EVENTS.labels(event="register", outcome="duplicate").inc()
            raise EmailAlreadyRegistered() from exc

        AUTH_EVENTS.labels(event="register", outcome="success").inc()
        logger.info("account.registered account_id=%s", account.account_id)
        return account

    def login(self, email: str, password: str) -> Account:
        """Check credentials and stamp ``last_login_at``.

        Unknown emails and wrong passwords both raise ``InvalidCredentials``;
        a deactivated account raises ``AccountDeactivated``.
        """
        account = self._repository.find_by_email(normalize_email(email))
        if account is None:
            self._hasher.dummy_verify()
            self._login_failed("unknown_email")
            raise InvalidCredentials()

        if not account.is_active:
            self._login_failed("deactivated", account)
            raise AccountDeactivated()

        if not self._hasher.verify(password, account.password_hash):
            self._login_failed("bad_password", account)
            raise InvalidCredentials()

        updated = self._repository.update(
            account.account_id, last_login_at=datetime.now(timezone.utc)
        )
        if updated is None:
            # Deleted between lookup and update.
            self._login_failed("vanished", account)
            raise InvalidCredentials()

        AUTH_EVENTS.labels(event="login", outcome="success").inc()
        logger.info("account.login account_id=%s", updated.account_id)
        return updated

    def issue_token(self, account: Account) -> TokenBundle:
        token, expires_in = self._tokens.issue(account)
        return TokenBundle(access_token=token, expires_in=expires_in)

    def authenticate(self, token: str) -> TokenClaims:
        """Verify a bearer token and confirm its subject is still a live account."""
        try:
            claims = self._tokens.verify(token)
            account = self._repository.find_by_id(claims.subject_id)
            if account is None:
                raise AccountNotFound()
            if not account.is_active:
                raise AccountDeactivated()
        except AccountError as exc:
            AUTH_EVENTS.labels(event="authenticate", outcome=exc.code).inc()
            raise
        return claims.with_live_state(account)

    def get_profile(self, claims: TokenClaims, account_id: int | str) -> Account:
        """Return an account visible to the actor (self or admin)."""
        self._require_access(claims, account_id)
        return self._get_existing(account_id)

    def update_profile(
        self, claims: TokenClaims, account_id: int | str, changes: ProfileUpdate
    ) -> Account:
        self._require_access(claims, account_id)
        fields = {}
        if changes.name is not None:
            fields["name"] = changes.name
        account = self._repository.update(self._as_id(account_id), **fields)
        if account is None:
            raise AccountNotFound()
        logger.info(
            "account.profile_updated account_id=%s actor=%s", account.account_id, claims.subject_id
        )
        return account

    def list_accounts(self, claims: TokenClaims, *, page: int = 1, limit: int = 10) -> Page:
        """Return one page of all accounts (admin only)."""
        self._require_access(claims, ADMIN_ONLY)
        page = max(1, page)
        limit = max(1, min(limit, 100))
        items, total = self._repository.list_accounts(offset=(page - 1) * limit, limit=limit)
        return Page(
            items=items,
            page=page,
            limit=limit,
            total=total,
            pages=math.ceil(total / limit),
        )

    def set_active(self, claims: TokenClaims, account_id: int | str, is_active: bool) -> Account:
        """Activate or deactivate an account (admin only)."""
        self._require_access(claims, ADMIN_ONLY)
        account = self._repository.update(self._as_id(account_id), is_active=is_active)
        if account is None:
            raise AccountNotFound()
        logger.info(
            "account.%s account_id=%s actor=%s",
            "activated" if is_active else "deactivated",
            account.account_id,
            claims.subject_id,
        )
        return account

    def delete_account(self, claims: TokenClaims, account_id: int | str) -> None:
        self._require_access(claims, ADMIN_ONLY)
        if not self._repository.delete(self._as_id(account_id)):
            raise AccountNotFound()
        logger.info("account.deleted account_id=%s actor=%s", account_id, claims.subject_id)

    def _require_access(self, claims: TokenClaims, target_owner_id: object) -> None:
        if not can_access(claims, target_owner_id):
            logger.warning(
                "account.access_denied actor=%s target=%s", claims.subject_id, target_owner_id
            )
            raise AccessDenied()

    def _get_existing(self, account_id: int | str) -> Account:
        account = self._repository.find_by_id(self._as_id(account_id))
        if account is None:
            raise AccountNotFound()
        return account

    def _as_id(self, account_id: int | str) -> int:
        try:
            return int(account_id)
        except (TypeError, ValueError) as exc:
            raise AccountNotFound() from exc

    def _login_failed(self, reason: str, account: Account | None = None) -> None:
        AUTH_EVENTS.labels(event="login", outcome=reason).inc()
        logger.info(
            "account.login_failed reason=%s account_id=%s",
            reason,
            account.account_id if account else None,
        )
