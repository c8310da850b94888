from __future__ import annotations

import itertools
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from account_service.api import routes
from account_service.domain.account import Account, normalize_email
from account_service.domain.contracts import NewAccount
from account_service.domain.errors import DuplicateEmail
from account_service.domain.service import AccountService
from account_service.security.passwords import PasswordHasher
from account_service.security.rate_limiter import SlidingWindowRateLimiter
from account_service.security.tokens import TokenIssuer

TEST_SECRET = "test-secret-with-at-least-32-bytes!!"
TEST_ISSUER = "account-service-tests"


class FakeRepository:
    """In-memory repository mimicking Postgres-backed behaviors."""

    def __init__(self) -> None:
        self.accounts: dict[int, Account] = {}
        self._ids = itertools.count(1)
        self._created = itertools.count()
        self.fail_next_create_with_duplicate = False

    def create(self, payload: NewAccount) -> Account:
        email = normalize_email(payload.email)
        if self.fail_next_create_with_duplicate:
            # Simulates a concurrent insert winning the unique index.
            self.fail_next_create_with_duplicate = False
            raise DuplicateEmail(email)
        if any(account.email == email for account in self.accounts.values()):
            raise DuplicateEmail(email)
        created_at = datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(
            seconds=next(self._created)
        )
        account = Account(
            account_id=next(self._ids),
            email=email,
            name=payload.name,
            password_hash=payload.password_hash,
            role=payload.role,
            is_active=payload.is_active,
            created_at=created_at,
            updated_at=created_at,
        )
        self.accounts[account.account_id] = account
        return replace(account)

    def find_by_email(self, email: str) -> Account | None:
        email = normalize_email(email)
        for account in self.accounts.values():
            if account.email == email:
                return replace(account)
        return None

    def find_by_id(self, account_id: int) -> Account | None:
        account = self.accounts.get(account_id)
        return replace(account) if account else None

    def update(self, account_id: int, **fields: object) -> Account | None:
        account = self.accounts.get(account_id)
        if account is None:
            return None
        updated = replace(account, **fields)
        self.accounts[account_id] = updated
        return replace(updated)

    def list_accounts(self, *, offset: int, limit: int) -> tuple[list[Account], int]:
        ordered = sorted(
            self.accounts.values(),
            key=lambda a: (a.created_at, a.account_id),
            reverse=True,
        )
        return [replace(a) for a in ordered[offset : offset + limit]], len(ordered)

    def delete(self, account_id: int) -> bool:
        return self.accounts.pop(account_id, None) is not None


class FakeClock:
    """Manually advanced UTC clock for token expiry tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def hasher() -> PasswordHasher:
    # Minimum bcrypt cost keeps the suite fast.
    return PasswordHasher(rounds=4)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def tokens(clock: FakeClock) -> TokenIssuer:
    return TokenIssuer(secret=TEST_SECRET, issuer=TEST_ISSUER, ttl_seconds=3600, clock=clock)


@pytest.fixture
def service(repository, hasher, tokens) -> AccountService:
    return AccountService(repository, hasher, tokens)


@pytest.fixture
def api_client(service):
    """Provide a FastAPI test client with isolated state."""
    app = FastAPI()
    app.include_router(routes.router)
    app.state.account_service = service

    original_limiter = routes.rate_limiter
    routes.rate_limiter = SlidingWindowRateLimiter(max_requests=5, window_seconds=60)

    with TestClient(app) as client:
        yield client

    routes.rate_limiter = original_limiter
