"""Seed demo accounts into Postgres.

Usage:
  python scripts/seed_users.py
  python scripts/seed_users.py --email admin@example.com --password '...' --name Admin --role admin

NOTE: This is intended for local/dev.
"""

from __future__ import annotations

import argparse
import logging

from psycopg_pool import ConnectionPool

from account_service.config import get_settings
from account_service.domain.account import Account, Role, normalize_email
from account_service.domain.contracts import AccountStore, RegisterInput
from account_service.domain.errors import EmailAlreadyRegistered
from account_service.domain.service import AccountService
from account_service.main import build_service
from account_service.repository import AccountRepository

logger = logging.getLogger("seed_users")

DEMO_USERS = [
    RegisterInput(email="user1@example.com", password="password123", name="Test User 1"),
    RegisterInput(email="user2@example.com", password="password123", name="Test User 2"),
]


def seed(
    service: AccountService,
    repository: AccountStore,
    users: list[RegisterInput],
    role: Role = Role.user,
) -> list[Account]:
    """Register each user, then apply ``role``; existing accounts get the role applied too."""
    seeded: list[Account] = []
    for payload in users:
        try:
            account = service.register(payload)
            logger.info("created %s (id=%s)", account.email, account.account_id)
        except EmailAlreadyRegistered:
            account = repository.find_by_email(normalize_email(payload.email))
            if account is None:
                # Deleted between the register attempt and the lookup.
                continue
            logger.info("%s already registered (id=%s)", account.email, account.account_id)
        if role != Role.user and account.role != role:
            # The service only creates plain users; roles are set on the store.
            account = repository.update(account.account_id, role=role)
            logger.info("set role of %s to %s", account.email, account.role.value)
        seeded.append(account)
    return seeded


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--email")
    ap.add_argument("--password")
    ap.add_argument("--name", default="Seeded User")
    ap.add_argument("--role", choices=[role.value for role in Role], default=Role.user.value)
    args = ap.parse_args()

    users = DEMO_USERS
    if args.email:
        if not args.password:
            ap.error("--password is required with --email")
        users = [RegisterInput(email=args.email, password=args.password, name=args.name)]

    settings = get_settings()
    with ConnectionPool(settings.database_url) as pool:
        repository = AccountRepository(pool)
        repository.init_schema()
        seed(build_service(repository), repository, users, Role(args.role))


if __name__ == "__main__":
    main()
