"""
Integration tests for the PostgreSQL account and token stores.

Tests repository operations against a real PostgreSQL database.
Requires PostgreSQL to be running; skipped otherwise.
"""

import threading
from collections.abc import Generator
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest
from psycopg_pool import ConnectionPool, PoolTimeout

from registrar.adapters.repository.postgres import (
    PostgresAccountStore,
    PostgresTokenStore,
    run_migrations,
)
from registrar.config.settings import get_settings
from registrar.domain.exceptions import DuplicateAccount, StoreUnavailable
from registrar.domain.ports import ActivationState, TokenRecord
from registrar.domain.tokens import ConfirmationTokenService

pytestmark = pytest.mark.integration


@pytest.fixture(scope="module")
def pool() -> Generator[ConnectionPool, None, None]:
    """Create connection pool for integration tests; skip if unreachable."""
    settings = get_settings()
    pool = ConnectionPool(
        conninfo=settings.database_url,
        min_size=1,
        max_size=10,
        open=True,
    )
    try:
        pool.wait(timeout=3)
    except PoolTimeout:
        pool.close()
        pytest.skip("PostgreSQL is not reachable")
    run_migrations(pool)
    yield pool
    pool.close()


@pytest.fixture(autouse=True)
def clean_database(pool: ConnectionPool) -> Generator[None, None, None]:
    """Empty both tables before each test."""
    with pool.connection() as conn:
        conn.execute("DELETE FROM confirmation_tokens")
        conn.execute("DELETE FROM accounts")
        conn.commit()
    yield


@pytest.fixture
def accounts(pool: ConnectionPool) -> PostgresAccountStore:
    return PostgresAccountStore(pool)


@pytest.fixture
def tokens(pool: ConnectionPool) -> PostgresTokenStore:
    return PostgresTokenStore(pool)


def _record(account_id: int, token_hash: str = "hash") -> TokenRecord:
    now = datetime.now(timezone.utc)
    return TokenRecord(
        account_id=account_id,
        token_hash=token_hash,
        salt="salt",
        issued_at=now,
        expires_at=now + timedelta(hours=24),
    )


class TestAccountStore:
    def test_create_returns_pending_account(self, accounts: PostgresAccountStore) -> None:
        account = accounts.create("pg@example.com", "Ada", "Lovelace", "$2b$10$hash")

        assert account.id > 0
        assert account.activation_state == ActivationState.PENDING
        assert account.registered_at.tzinfo is not None

    def test_duplicate_identifier_case_insensitive(self, accounts: PostgresAccountStore) -> None:
        accounts.create("pg@example.com", "Ada", "Lovelace", "$2b$10$hash")

        with pytest.raises(DuplicateAccount):
            accounts.create("PG@Example.com", "Eve", "Other", "$2b$10$hash2")

    def test_find_by_identifier_and_id(self, accounts: PostgresAccountStore) -> None:
        created = accounts.create("pg@example.com", "Ada", "Lovelace", "$2b$10$hash")

        assert accounts.find_by_identifier("PG@EXAMPLE.COM").id == created.id
        assert accounts.find_by_id(created.id).identifier == "pg@example.com"
        assert accounts.find_by_identifier("missing@example.com") is None
        assert accounts.find_by_id(created.id + 1000) is None

    def test_activate_is_idempotent(self, accounts: PostgresAccountStore) -> None:
        created = accounts.create("pg@example.com", "Ada", "Lovelace", "$2b$10$hash")

        assert accounts.activate(created.id) is True
        assert accounts.activate(created.id) is True
        assert accounts.find_by_id(created.id).activation_state == ActivationState.ACTIVE

    def test_activate_unknown_account(self, accounts: PostgresAccountStore) -> None:
        assert accounts.activate(987654) is False

    def test_concurrent_create_exactly_one_row(
        self, accounts: PostgresAccountStore, pool: ConnectionPool
    ) -> None:
        results: list[bool] = []
        results_lock = threading.Lock()

        def attempt() -> None:
            try:
                accounts.create("race@example.com", "A", "B", "$2b$10$hash")
                outcome = True
            except DuplicateAccount:
                outcome = False
            with results_lock:
                results.append(outcome)

        with ThreadPoolExecutor(max_workers=5) as executor:
            for future in [executor.submit(attempt) for _ in range(5)]:
                future.result()

        assert results.count(True) == 1
        with pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute("SELECT COUNT(*) FROM accounts WHERE lower(identifier) = %s", ("race@example.com",))
            assert cursor.fetchone()[0] == 1

    def test_ping(self, accounts: PostgresAccountStore) -> None:
        accounts.ping()


class TestTokenStore:
    @pytest.fixture
    def account_id(self, accounts: PostgresAccountStore) -> int:
        return accounts.create("tok@example.com", "T", "K", "$2b$10$hash").id

    def test_save_and_get(self, tokens: PostgresTokenStore, account_id: int) -> None:
        tokens.save(_record(account_id))

        stored = tokens.get(account_id)
        assert stored.token_hash == "hash"
        assert stored.consumed is False

    def test_save_replaces_and_resets_consumed(self, tokens: PostgresTokenStore, account_id: int) -> None:
        tokens.save(_record(account_id))
        tokens.mark_consumed(account_id)
        tokens.save(_record(account_id, token_hash="hash2"))

        stored = tokens.get(account_id)
        assert stored.token_hash == "hash2"
        assert stored.consumed is False

    def test_mark_consumed_once(self, tokens: PostgresTokenStore, account_id: int) -> None:
        tokens.save(_record(account_id))

        assert tokens.mark_consumed(account_id) is True
        assert tokens.mark_consumed(account_id) is False

    def test_concurrent_consume_exactly_one(self, tokens: PostgresTokenStore, account_id: int) -> None:
        tokens.save(_record(account_id))

        with ThreadPoolExecutor(max_workers=8) as executor:
            results = list(executor.map(lambda _: tokens.mark_consumed(account_id), range(8)))

        assert results.count(True) == 1

    def test_token_service_round_trip(self, tokens: PostgresTokenStore, account_id: int) -> None:
        service = ConfirmationTokenService(store=tokens)
        secret, _ = service.issue(account_id)

        assert service.validate(account_id, secret).value == "valid"


class TestUnavailable:
    def test_closed_pool_raises_store_unavailable(self, pool: ConnectionPool) -> None:
        settings_pool = ConnectionPool(conninfo=pool.conninfo, min_size=1, max_size=1, open=False)
        store = PostgresAccountStore(settings_pool)

        with pytest.raises(StoreUnavailable):
            store.find_by_id(1)
