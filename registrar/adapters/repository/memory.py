"""
In-memory repository adapters - Implement AccountStore and TokenStore.

Process-local stores for development (storage_backend=memory) and tests.
A single lock per store gives the same atomicity the PostgreSQL adapter
gets from its unique index and conditional UPDATEs.
"""

import itertools
import threading
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timezone

from registrar.domain.exceptions import DuplicateAccount
from registrar.domain.ports import Account, ActivationState, TokenRecord


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryAccountStore:
    """
    Implements AccountStore protocol with a dict.

    Uses structural subtyping - no explicit inheritance from Protocol.
    Returned accounts are copies; mutating them does not change the store.
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._accounts: dict[int, Account] = {}
        self._by_identifier: dict[str, int] = {}

    def find_by_identifier(self, identifier: str) -> Account | None:
        with self._lock:
            account_id = self._by_identifier.get(identifier.lower())
            if account_id is None:
                return None
            return replace(self._accounts[account_id])

    def find_by_id(self, account_id: int) -> Account | None:
        with self._lock:
            account = self._accounts.get(account_id)
            return replace(account) if account is not None else None

    def create(
        self, identifier: str, first_name: str, last_name: str, password_hash: str
    ) -> Account:
        key = identifier.lower()
        with self._lock:
            # Check and insert under one lock: create-if-absent
            if key in self._by_identifier:
                raise DuplicateAccount(identifier)
            account = Account(
                id=next(self._ids),
                identifier=identifier,
                first_name=first_name,
                last_name=last_name,
                password_hash=password_hash,
                activation_state=ActivationState.PENDING,
                registered_at=self._clock(),
            )
            self._accounts[account.id] = account
            self._by_identifier[key] = account.id
            return replace(account)

    def activate(self, account_id: int) -> bool:
        with self._lock:
            account = self._accounts.get(account_id)
            if account is None:
                return False
            account.activation_state = ActivationState.ACTIVE
            return True

    def expire_password(self, account_id: int, when: datetime) -> None:
        """Flag an account's password as expiring at `when`."""
        with self._lock:
            self._accounts[account_id].password_expires_at = when

    def ping(self) -> None:
        """Health probe; an in-process dict is always reachable."""
        return None


class InMemoryTokenStore:
    """Implements TokenStore protocol with a dict keyed by account id."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tokens: dict[int, TokenRecord] = {}

    def save(self, record: TokenRecord) -> None:
        with self._lock:
            self._tokens[record.account_id] = replace(record)

    def get(self, account_id: int) -> TokenRecord | None:
        with self._lock:
            record = self._tokens.get(account_id)
            return replace(record) if record is not None else None

    def mark_consumed(self, account_id: int) -> bool:
        with self._lock:
            record = self._tokens.get(account_id)
            if record is None or record.consumed:
                return False
            record.consumed = True
            return True
