"""
PostgreSQL repository adapters - Implement the domain repository protocols.

This module provides PostgreSQL implementations of the domain's credential
and OTP ports using psycopg3 with raw SQL.

Concurrency Design - Per-Key Read-Modify-Write:
-----------------------------------------------
Every modify() call runs inside a single transaction:

1. **SELECT ... FOR UPDATE**: The row for the key (email, or email + purpose)
   is locked before the mutator sees it. A concurrent modify() for the same
   key blocks until this transaction commits, so counter updates are never
   lost (two failed logins always add two).

2. **Write-back in the same transaction**: The mutator's returned record is
   written (or deleted) before COMMIT releases the lock.

3. **Atomic inserts**: add() uses INSERT ... ON CONFLICT DO NOTHING on the
   unique email; replace() upserts on the (email, purpose) primary key, so
   concurrent OTP issuance leaves exactly one live code.

Time comparisons are made by the domain's clock, not database NOW(), so
this adapter and the in-memory one expire records identically.
"""

import logging
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any, TypeVar

from psycopg_pool import ConnectionPool

from src.domain.ports import Credential, OneTimeCode, OtpPurpose, Role

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CREDENTIAL_COLUMNS = """
    id, email, password_hash, first_name, last_name, role, avatar,
    failed_login_count, locked_until, created_at, updated_at
"""


def _row_to_credential(row: tuple[Any, ...]) -> Credential:
    return Credential(
        id=row[0],
        email=row[1],
        password_hash=row[2],
        first_name=row[3],
        last_name=row[4],
        role=Role(row[5]),
        avatar=row[6],
        failed_login_count=row[7],
        locked_until=row[8],
        created_at=row[9],
        updated_at=row[10],
    )


def _row_to_code(row: tuple[Any, ...]) -> OneTimeCode:
    return OneTimeCode(
        email=row[0],
        purpose=OtpPurpose(row[1]),
        code=row[2],
        attempt_count=row[3],
        issued_at=row[4],
        expires_at=row[5],
    )


class PostgresCredentialRepository:
    """
    Implements CredentialRepository protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """
        Initialize repository with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
        """
        self._pool = pool

    def find_by_email(self, email: str) -> Credential | None:
        sql = f"SELECT {_CREDENTIAL_COLUMNS} FROM credentials WHERE email = %s"
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (email,))
            row = cursor.fetchone()
        return _row_to_credential(row) if row is not None else None

    def find_by_id(self, credential_id: str) -> Credential | None:
        sql = f"SELECT {_CREDENTIAL_COLUMNS} FROM credentials WHERE id = %s"
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (credential_id,))
            row = cursor.fetchone()
        return _row_to_credential(row) if row is not None else None

    def add(self, credential: Credential) -> bool:
        """
        Atomically insert a credential.

        The UNIQUE constraint on email makes concurrent registrations of the
        same address race-free: exactly one INSERT affects a row.

        Returns:
            True if inserted, False if the email already exists
        """
        sql = f"""
            INSERT INTO credentials ({_CREDENTIAL_COLUMNS})
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (email) DO NOTHING
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                sql,
                (
                    credential.id,
                    credential.email,
                    credential.password_hash,
                    credential.first_name,
                    credential.last_name,
                    credential.role.value,
                    credential.avatar,
                    credential.failed_login_count,
                    credential.locked_until,
                    credential.created_at,
                    credential.updated_at,
                ),
            )
            conn.commit()
            return cursor.rowcount == 1

    def modify(
        self,
        email: str,
        mutator: Callable[[Credential | None], tuple[Credential | None, T]],
    ) -> T:
        """
        Read-modify-write a credential under a row lock.

        Uses SELECT FOR UPDATE so concurrent logins for one email serialize.
        """
        select_sql = f"SELECT {_CREDENTIAL_COLUMNS} FROM credentials WHERE email = %s FOR UPDATE"

        update_sql = """
            UPDATE credentials
            SET password_hash = %s,
                first_name = %s,
                last_name = %s,
                role = %s,
                avatar = %s,
                failed_login_count = %s,
                locked_until = %s,
                updated_at = %s
            WHERE email = %s
        """

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(select_sql, (email,))
            row = cursor.fetchone()
            current = _row_to_credential(row) if row is not None else None

            try:
                record, result = mutator(current)
            except Exception:
                conn.rollback()
                raise

            if record is not None:
                cursor.execute(
                    update_sql,
                    (
                        record.password_hash,
                        record.first_name,
                        record.last_name,
                        record.role.value,
                        record.avatar,
                        record.failed_login_count,
                        record.locked_until,
                        record.updated_at,
                        email,
                    ),
                )
            conn.commit()
            return result


class PostgresOtpRepository:
    """
    Implements OtpRepository protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def replace(self, code: OneTimeCode) -> None:
        """
        Store a fresh code, invalidating any previous one for the key.

        INSERT ... ON CONFLICT DO UPDATE on the (email, purpose) primary key
        keeps at most one live code even under concurrent issuance.
        """
        sql = """
            INSERT INTO one_time_codes (email, purpose, code, attempt_count, issued_at, expires_at)
            VALUES (%s, %s, %s, %s, %s, %s)
            ON CONFLICT (email, purpose) DO UPDATE
            SET code = EXCLUDED.code,
                attempt_count = EXCLUDED.attempt_count,
                issued_at = EXCLUDED.issued_at,
                expires_at = EXCLUDED.expires_at
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                sql,
                (
                    code.email,
                    code.purpose.value,
                    code.code,
                    code.attempt_count,
                    code.issued_at,
                    code.expires_at,
                ),
            )
            conn.commit()

    def modify(
        self,
        email: str,
        purpose: OtpPurpose,
        mutator: Callable[[OneTimeCode | None], tuple[OneTimeCode | None, T]],
    ) -> T:
        """Read-modify-write a code under a row lock; None from the mutator deletes it."""
        select_sql = """
            SELECT email, purpose, code, attempt_count, issued_at, expires_at
            FROM one_time_codes
            WHERE email = %s AND purpose = %s
            FOR UPDATE
        """

        update_sql = """
            UPDATE one_time_codes
            SET attempt_count = %s
            WHERE email = %s AND purpose = %s
        """

        delete_sql = "DELETE FROM one_time_codes WHERE email = %s AND purpose = %s"

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(select_sql, (email, purpose.value))
            row = cursor.fetchone()
            current = _row_to_code(row) if row is not None else None

            try:
                record, result = mutator(current)
            except Exception:
                conn.rollback()
                raise

            if record is None:
                if current is not None:
                    cursor.execute(delete_sql, (email, purpose.value))
            else:
                cursor.execute(update_sql, (record.attempt_count, email, purpose.value))
            conn.commit()
            return result

    def purge_expired(self, now: datetime) -> int:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute("DELETE FROM one_time_codes WHERE expires_at < %s", (now,))
            conn.commit()
            return cursor.rowcount


def run_migrations(pool: ConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 ConnectionPool instance
    """
    # Structure: src/adapters/repository/postgres.py -> migrations/
    migrations_dir = Path(__file__).parent.parent.parent.parent / "migrations"

    if not migrations_dir.exists():
        logger.warning(f"Migrations directory not found: {migrations_dir}")
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))

    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info(f"Running {len(sql_files)} migration(s)")

    for sql_file in sql_files:
        logger.info(f"Executing migration: {sql_file.name}")
        try:
            sql_content = sql_file.read_text()

            with pool.connection() as conn:
                conn.execute(sql_content)

            logger.info(f"Migration complete: {sql_file.name}")
        except Exception as e:
            logger.error(f"Migration failed: {sql_file.name} - {e}")
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
