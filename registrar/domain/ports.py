"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the records the workflows operate on and the
interfaces (ports) they require from infrastructure. Adapters implement
these protocols through structural subtyping.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Protocol


class ActivationState(str, Enum):
    """
    Account activation lifecycle.

    State Transitions (forward-only):
    - PENDING -> ACTIVE (confirmation token redeemed)

    ACTIVE is terminal: an account never moves back to PENDING.
    """

    PENDING = "PENDING"
    ACTIVE = "ACTIVE"


class ValidationOutcome(Enum):
    """
    Result of checking a presented confirmation secret.

    Only VALID allows activation. The remaining values are kept distinct
    for logging and tests; callers must not expose them to end users.
    """

    VALID = "valid"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    ALREADY_CONSUMED = "already_consumed"
    MISMATCH = "mismatch"


@dataclass
class Account:
    """A registered account as stored by an AccountStore."""

    id: int
    identifier: str
    first_name: str
    last_name: str
    password_hash: str
    activation_state: ActivationState
    registered_at: datetime
    password_expires_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.activation_state == ActivationState.ACTIVE

    def can_log_in(self) -> bool:
        """Pending accounts are never allowed to establish a session."""
        return self.is_active

    def can_request_password_reset(self) -> bool:
        """Pending accounts are never allowed through a forgot-password check."""
        return self.is_active

    def is_password_expired(self, now: datetime) -> bool:
        return self.password_expires_at is not None and self.password_expires_at <= now


@dataclass
class TokenRecord:
    """Persisted half of a confirmation token. The secret itself is never stored."""

    account_id: int
    token_hash: str
    salt: str
    issued_at: datetime
    expires_at: datetime
    consumed: bool = False


class AccountStore(Protocol):
    """Port interface for account persistence."""

    def find_by_identifier(self, identifier: str) -> Account | None:
        """
        Find an account by its unique identifier (case-insensitive).

        Returns:
            The account, or None when no account uses the identifier
        """
        ...

    def find_by_id(self, account_id: int) -> Account | None:
        """Find an account by primary key."""
        ...

    def create(
        self, identifier: str, first_name: str, last_name: str, password_hash: str
    ) -> Account:
        """
        Create a PENDING account.

        Uniqueness is enforced by the storage layer itself, not by a
        prior lookup, so concurrent creates for one identifier yield
        exactly one account.

        Raises:
            DuplicateAccount: If the identifier is already taken
            StoreUnavailable: If the store cannot be reached
        """
        ...

    def activate(self, account_id: int) -> bool:
        """
        Mark an account ACTIVE.

        Idempotent: activating an ACTIVE account is a successful no-op.

        Returns:
            True if the account exists, False otherwise
        """
        ...

    def ping(self) -> None:
        """
        Validate connectivity.

        Raises:
            StoreUnavailable: If the store cannot be reached
        """
        ...


class TokenStore(Protocol):
    """Port interface for confirmation token persistence."""

    def save(self, record: TokenRecord) -> None:
        """Persist a token, replacing any prior token for the same account."""
        ...

    def get(self, account_id: int) -> TokenRecord | None:
        """Return the current token for an account, if any."""
        ...

    def mark_consumed(self, account_id: int) -> bool:
        """
        Atomically flip consumed from False to True (compare-and-set).

        Returns:
            True if this call consumed the token, False if there was no
            token or it was already consumed
        """
        ...


class Notifier(Protocol):
    """Port interface for out-of-band message delivery (email)."""

    def send(self, to_address: str, subject: str, data: dict[str, Any]) -> bool:
        """
        Deliver a templated message.

        Returns:
            True when the message was handed to the transport, False otherwise
        """
        ...


class SessionManager(Protocol):
    """Port interface for establishing an authenticated request context."""

    def log_in(self, account: Account, remember: bool = False) -> None: ...
