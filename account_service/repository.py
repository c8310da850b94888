"""Postgres repository for user accounts."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from psycopg import errors, sql
from psycopg.rows import tuple_row
from psycopg_pool import ConnectionPool

from .domain.account import Account, Role, normalize_email
from .domain.contracts import NewAccount
from .domain.errors import DuplicateEmail

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS users (
    id BIGSERIAL PRIMARY KEY,
    email TEXT NOT NULL,
    name TEXT NOT NULL,
    password_hash TEXT NOT NULL,
    role TEXT NOT NULL DEFAULT 'user' CHECK (role IN ('user', 'admin')),
    is_active BOOLEAN NOT NULL DEFAULT TRUE,
    last_login_at TIMESTAMPTZ,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE UNIQUE INDEX IF NOT EXISTS users_email_lower_key ON users (lower(email));
"""

_COLUMNS = "id, email, name, password_hash, role, is_active, last_login_at, created_at, updated_at"

_UPDATABLE = frozenset({"email", "name", "password_hash", "role", "is_active", "last_login_at"})


class AccountRepository:
    """Postgres-backed account persistence."""

    def __init__(self, pool: ConnectionPool) -> None:
        """Store the connection pool used for all database interactions."""
        self._pool = pool

    def init_schema(self) -> None:
        """Create the users table and its case-insensitive email index if missing."""
        with self._pool.connection() as conn:
            conn.execute(SCHEMA_SQL)
            conn.commit()

    def create(self, payload: NewAccount) -> Account:
        """Insert an account, raising :class:`DuplicateEmail` on a unique-index conflict."""
        email = normalize_email(payload.email)
        now = datetime.now(timezone.utc)
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        f"""
                        INSERT INTO users (email, name, password_hash, role, is_active, created_at, updated_at)
                        VALUES (%s, %s, %s, %s, %s, %s, %s)
                        RETURNING {_COLUMNS}
                        """,
                        (
                            email,
                            payload.name,
                            payload.password_hash,
                            Role(payload.role).value,
                            payload.is_active,
                            now,
                            now,
                        ),
                    )
                    row = cur.fetchone()
                conn.commit()
        except errors.UniqueViolation as exc:
            raise DuplicateEmail(email) from exc
        return self._map_record(row)

    def find_by_email(self, email: str) -> Account | None:
        return self._fetch_one(
            f"SELECT {_COLUMNS} FROM users WHERE lower(email) = %s",
            (normalize_email(email),),
        )

    def find_by_id(self, account_id: int) -> Account | None:
        return self._fetch_one(f"SELECT {_COLUMNS} FROM users WHERE id = %s", (account_id,))

    def update(self, account_id: int, **fields: Any) -> Account | None:
        """Apply a partial update and return the refreshed account, or ``None`` if absent."""
        unknown = set(fields) - _UPDATABLE
        if unknown:
            raise ValueError(f"cannot update columns: {sorted(unknown)}")
        if not fields:
            return self.find_by_id(account_id)

        if "email" in fields:
            fields["email"] = normalize_email(fields["email"])
        if "role" in fields:
            fields["role"] = Role(fields["role"]).value
        fields["updated_at"] = datetime.now(timezone.utc)

        assignments = sql.SQL(", ").join(
            sql.SQL("{} = %s").format(sql.Identifier(column)) for column in fields
        )
        query = sql.SQL("UPDATE users SET {} WHERE id = %s RETURNING {}").format(
            assignments, sql.SQL(_COLUMNS)
        )
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(query, [*fields.values(), account_id])
                    row = cur.fetchone()
                conn.commit()
        except errors.UniqueViolation as exc:
            raise DuplicateEmail(fields["email"]) from exc
        if not row:
            return None
        return self._map_record(row)

    def list_accounts(self, *, offset: int, limit: int) -> tuple[list[Account], int]:
        """Return one page of accounts, newest first, and the total account count."""
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute("SELECT COUNT(*) FROM users")
                (total,) = cur.fetchone()
                cur.execute(
                    f"""
                    SELECT {_COLUMNS}
                    FROM users
                    ORDER BY created_at DESC, id DESC
                    OFFSET %s LIMIT %s
                    """,
                    (offset, limit),
                )
                rows = cur.fetchall()
        return [self._map_record(row) for row in rows], int(total)

    def delete(self, account_id: int) -> bool:
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM users WHERE id = %s", (account_id,))
                deleted = cur.rowcount > 0
            conn.commit()
        return deleted

    def _fetch_one(self, query: str, params: tuple[Any, ...]) -> Account | None:
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(query, params)
                row = cur.fetchone()
        if not row:
            return None
        return self._map_record(row)

    def _map_record(self, row: tuple) -> Account:
        """Convert a raw database tuple into the domain ``Account`` dataclass."""
        return Account(
            account_id=row[0],
            email=row[1],
            name=row[2],
            password_hash=row[3],
            role=Role(row[4]),
            is_active=row[5],
            last_login_at=row[6],
            created_at=row[7],
            updated_at=row[8],
        )
