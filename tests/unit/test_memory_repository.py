"""
Unit tests for the in-memory AccountStore and TokenStore adapters.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest

from registrar.adapters.repository.memory import InMemoryAccountStore, InMemoryTokenStore
from registrar.domain.exceptions import DuplicateAccount
from registrar.domain.ports import ActivationState, TokenRecord


class TestInMemoryAccountStore:
    def test_create_returns_pending_account(self, account_store: InMemoryAccountStore, clock) -> None:
        account = account_store.create("a@example.com", "A", "B", "$2b$10$hash")

        assert account.id == 1
        assert account.activation_state == ActivationState.PENDING
        assert account.registered_at == clock.now

    def test_identifier_unique_case_insensitive(self, account_store: InMemoryAccountStore) -> None:
        account_store.create("a@example.com", "A", "B", "$2b$10$hash")

        with pytest.raises(DuplicateAccount):
            account_store.create("A@EXAMPLE.com", "A", "B", "$2b$10$hash")

    def test_find_by_identifier_case_insensitive(self, account_store: InMemoryAccountStore) -> None:
        created = account_store.create("a@example.com", "A", "B", "$2b$10$hash")

        assert account_store.find_by_identifier("A@Example.com").id == created.id
        assert account_store.find_by_identifier("other@example.com") is None

    def test_activate_is_idempotent(self, account_store: InMemoryAccountStore) -> None:
        account = account_store.create("a@example.com", "A", "B", "$2b$10$hash")

        assert account_store.activate(account.id) is True
        assert account_store.activate(account.id) is True
        assert account_store.find_by_id(account.id).activation_state == ActivationState.ACTIVE

    def test_activate_unknown_account(self, account_store: InMemoryAccountStore) -> None:
        assert account_store.activate(42) is False

    def test_returned_accounts_are_copies(self, account_store: InMemoryAccountStore) -> None:
        account = account_store.create("a@example.com", "A", "B", "$2b$10$hash")
        account.activation_state = ActivationState.ACTIVE

        assert account_store.find_by_id(account.id).activation_state == ActivationState.PENDING

    def test_expire_password(self, account_store: InMemoryAccountStore, clock) -> None:
        account = account_store.create("a@example.com", "A", "B", "$2b$10$hash")
        account_store.expire_password(account.id, clock.now)

        assert account_store.find_by_id(account.id).is_password_expired(clock.now)

    def test_concurrent_create_exactly_one_wins(self, account_store: InMemoryAccountStore) -> None:
        def attempt(_):
            try:
                account_store.create("race@example.com", "A", "B", "$2b$10$hash")
                return True
            except DuplicateAccount:
                return False

        with ThreadPoolExecutor(max_workers=10) as executor:
            results = list(executor.map(attempt, range(20)))

        assert results.count(True) == 1


class TestInMemoryTokenStore:
    @pytest.fixture
    def record(self, clock) -> TokenRecord:
        return TokenRecord(
            account_id=1,
            token_hash="hash",
            salt="salt",
            issued_at=clock.now,
            expires_at=clock.now + timedelta(hours=1),
        )

    def test_save_and_get(self, token_store: InMemoryTokenStore, record: TokenRecord) -> None:
        token_store.save(record)
        assert token_store.get(1) == record

    def test_save_replaces_previous(self, token_store: InMemoryTokenStore, record: TokenRecord) -> None:
        token_store.save(record)
        token_store.mark_consumed(1)
        replacement = TokenRecord(1, "hash2", "salt2", record.issued_at, record.expires_at)
        token_store.save(replacement)

        stored = token_store.get(1)
        assert stored.token_hash == "hash2"
        assert stored.consumed is False

    def test_mark_consumed_once(self, token_store: InMemoryTokenStore, record: TokenRecord) -> None:
        token_store.save(record)

        assert token_store.mark_consumed(1) is True
        assert token_store.mark_consumed(1) is False

    def test_mark_consumed_missing(self, token_store: InMemoryTokenStore) -> None:
        assert token_store.mark_consumed(1) is False

    def test_get_missing(self, token_store: InMemoryTokenStore) -> None:
        assert token_store.get(1) is None
