"""Repository checks that do not need a live Postgres connection."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from account_service.domain.account import Role
from account_service.repository import SCHEMA_SQL, AccountRepository


class _ExplodingPool:
    def connection(self):
        raise AssertionError("no database access expected")


def test_update_rejects_unknown_columns():
    repository = AccountRepository(_ExplodingPool())
    with pytest.raises(ValueError):
        repository.update(1, id=2)


def test_map_record_builds_domain_account():
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    repository = AccountRepository(_ExplodingPool())

    account = repository._map_record((3, "a@example.com", "A", "$2b$hash", "admin", False, None, now, now))

    assert account.account_id == 3
    assert account.role is Role.admin
    assert account.is_active is False
    assert account.created_at == now


def test_schema_enforces_case_insensitive_email_uniqueness():
    assert "UNIQUE INDEX" in SCHEMA_SQL
    assert "lower(email)" in SCHEMA_SQL
