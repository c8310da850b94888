"""Domain-level request contracts and the store port shared by multiple layers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from .account import Account, Role


@dataclass(slots=True)
class RegisterInput:
    """Raw registration fields; the email is normalized by the service."""

    email: str
    password: str
    name: str


@dataclass(slots=True)
class NewAccount:
    """Fully prepared record handed to the store for insertion."""

    email: str
    name: str
    password_hash: str
    role: Role = Role.user
    is_active: bool = True


@dataclass(slots=True)
class ProfileUpdate:
    """Fields a user may change on their own profile."""

    name: str | None = None


@dataclass(slots=True)
class Page:
    """One page of accounts for the admin listing."""

    items: list[Account]
    page: int
    limit: int
    total: int
    pages: int


class AccountStore(Protocol):
    """Persistence port consumed by :class:`~account_service.domain.service.AccountService`."""

    def find_by_email(self, email: str) -> Account | None: ...

    def find_by_id(self, account_id: int) -> Account | None: ...

    def create(self, payload: NewAccount) -> Account: ...

    def update(self, account_id: int, **fields: object) -> Account | None: ...

    def list_accounts(self, *, offset: int, limit: int) -> tuple[list[Account], int]: ...

    def delete(self, account_id: int) -> bool: ...
