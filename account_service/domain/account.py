from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    user = "user"
    admin = "admin"


def normalize_email(email: str) -> str:
    """Return the lookup/uniqueness key for an email address."""
    return (email or "").strip().lower()


@dataclass(slots=True)
class Account:
    """Aggregate root for a registered user."""

    account_id: int
    email: str
    name: str
    password_hash: str
    role: Role = Role.user
    is_active: bool = True
    last_login_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
