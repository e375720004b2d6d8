"""
PostgreSQL repository adapters - Implement AccountStore and TokenStore.

This module provides the PostgreSQL implementation of the domain's
repository ports using psycopg3 with raw SQL.

Atomicity Design:
-----------------
1. **Identifier uniqueness**: a UNIQUE index on lower(identifier) backs
   INSERT ... ON CONFLICT DO NOTHING. Two concurrent creates for one
   identifier yield exactly one row; the loser sees no RETURNING row and
   raises DuplicateAccount.

2. **One token per account**: confirmation_tokens is keyed by account_id
   and written with INSERT ... ON CONFLICT DO UPDATE, so issuing a token
   replaces the previous one in a single statement.

3. **Single use**: consumption is UPDATE ... WHERE NOT consumed. Only one
   of two concurrent redemptions gets rowcount == 1.

4. **Activation**: UPDATE ... SET activation_state = 'ACTIVE' has no
   state guard, so repeating it is a harmless no-op.

Driver and pool failures are translated into StoreUnavailable so the
domain never sees psycopg types.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import psycopg
from psycopg_pool import ConnectionPool, PoolTimeout

from registrar.domain.exceptions import DuplicateAccount, StoreUnavailable
from registrar.domain.ports import Account, ActivationState, TokenRecord

logger = logging.getLogger(__name__)

_ACCOUNT_COLUMNS = """
    id, identifier, first_name, last_name, password_hash,
    activation_state, registered_at, password_expires_at
"""


@contextmanager
def _translate_errors(operation: str) -> Iterator[None]:
    """Re-raise connectivity failures as StoreUnavailable."""
    try:
        yield
    except (psycopg.OperationalError, psycopg.InterfaceError, PoolTimeout) as e:
        logger.error(f"Database operation failed: {operation} - {e}")
        raise StoreUnavailable(operation) from e


def _row_to_account(row: tuple) -> Account:
    return Account(
        id=row[0],
        identifier=row[1],
        first_name=row[2],
        last_name=row[3],
        password_hash=row[4],
        activation_state=ActivationState(row[5]),
        registered_at=row[6],
        password_expires_at=row[7],
    )


class PostgresAccountStore:
    """
    Implements AccountStore protocol via psycopg3.

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

    def find_by_identifier(self, identifier: str) -> Account | None:
        sql = f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE lower(identifier) = lower(%s)"
        with _translate_errors("find_by_identifier"):
            with self._pool.connection() as conn, conn.cursor() as cursor:
                cursor.execute(sql, (identifier,))
                row = cursor.fetchone()
        return _row_to_account(row) if row is not None else None

    def find_by_id(self, account_id: int) -> Account | None:
        sql = f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE id = %s"
        with _translate_errors("find_by_id"):
            with self._pool.connection() as conn, conn.cursor() as cursor:
                cursor.execute(sql, (account_id,))
                row = cursor.fetchone()
        return _row_to_account(row) if row is not None else None

    def create(
        self, identifier: str, first_name: str, last_name: str, password_hash: str
    ) -> Account:
        """
        Insert a PENDING account.

        The unique index decides races; a prior lookup is never trusted.

        Raises:
            DuplicateAccount: If the identifier is already taken
            StoreUnavailable: If the database cannot be reached
        """
        sql = f"""
            INSERT INTO accounts (identifier, first_name, last_name, password_hash, activation_state)
            VALUES (%s, %s, %s, %s, 'PENDING')
            ON CONFLICT ((lower(identifier))) DO NOTHING
            RETURNING {_ACCOUNT_COLUMNS}
        """
        with _translate_errors("create"):
            with self._pool.connection() as conn, conn.cursor() as cursor:
                cursor.execute(sql, (identifier, first_name, last_name, password_hash))
                row = cursor.fetchone()
                conn.commit()

        if row is None:
            raise DuplicateAccount(identifier)
        return _row_to_account(row)

    def activate(self, account_id: int) -> bool:
        """
        Mark an account ACTIVE; repeating it is a no-op.

        Returns:
            True if the account exists, False otherwise
        """
        sql = """
            UPDATE accounts
            SET activation_state = %s,
                activated_at = COALESCE(activated_at, NOW())
            WHERE id = %s
        """
        with _translate_errors("activate"):
            with self._pool.connection() as conn, conn.cursor() as cursor:
                cursor.execute(sql, (ActivationState.ACTIVE.value, account_id))
                conn.commit()
                return cursor.rowcount == 1

    def ping(self) -> None:
        """Validate database connectivity."""
        with _translate_errors("ping"):
            with self._pool.connection() as conn:
                conn.execute("SELECT 1")


class PostgresTokenStore:
    """Implements TokenStore protocol via psycopg3."""

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def save(self, record: TokenRecord) -> None:
        """Insert or replace the account's token, resetting consumed."""
        sql = """
            INSERT INTO confirmation_tokens (account_id, token_hash, salt, issued_at, expires_at, consumed)
            VALUES (%s, %s, %s, %s, %s, FALSE)
            ON CONFLICT (account_id) DO UPDATE
            SET token_hash = EXCLUDED.token_hash,
                salt = EXCLUDED.salt,
                issued_at = EXCLUDED.issued_at,
                expires_at = EXCLUDED.expires_at,
                consumed = FALSE
        """
        with _translate_errors("save_token"):
            with self._pool.connection() as conn, conn.cursor() as cursor:
                cursor.execute(
                    sql,
                    (
                        record.account_id,
                        record.token_hash,
                        record.salt,
                        record.issued_at,
                        record.expires_at,
                    ),
                )
                conn.commit()

    def get(self, account_id: int) -> TokenRecord | None:
        sql = """
            SELECT account_id, token_hash, salt, issued_at, expires_at, consumed
            FROM confirmation_tokens
            WHERE account_id = %s
        """
        with _translate_errors("get_token"):
            with self._pool.connection() as conn, conn.cursor() as cursor:
                cursor.execute(sql, (account_id,))
                row = cursor.fetchone()

        if row is None:
            return None
        return TokenRecord(
            account_id=row[0],
            token_hash=row[1],
            salt=row[2],
            issued_at=row[3],
            expires_at=row[4],
            consumed=row[5],
        )

    def mark_consumed(self, account_id: int) -> bool:
        """Compare-and-set consumed; True only for the call that flipped it."""
        sql = """
            UPDATE confirmation_tokens
            SET consumed = TRUE
            WHERE account_id = %s AND NOT consumed
        """
        with _translate_errors("mark_consumed"):
            with self._pool.connection() as conn, conn.cursor() as cursor:
                cursor.execute(sql, (account_id,))
                conn.commit()
                return cursor.rowcount == 1


def run_migrations(pool: ConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 ConnectionPool instance
    """
    # Structure: registrar/adapters/repository/postgres.py -> migrations/
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
