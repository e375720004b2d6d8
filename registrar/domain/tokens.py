"""
Confirmation token service - single-use, time-bounded secrets.

Token Lifecycle
===============

    issue()     -> new secret returned once, salted hash persisted,
                   any earlier token for the account is replaced
    validate()  -> read-only check of a presented secret
    consume()   -> compare-and-set of the consumed flag, called only
                   after the account has been activated

Security Design:
- Secrets come from the secrets module (>= 128 bits of entropy).
- Only sha256(salt || secret) is stored; the secret cannot be recovered.
- Hash comparison uses hmac.compare_digest (constant time).
- The hash comparison always runs before consumed/expiry checks, so a
  caller without the secret only ever observes MISMATCH or NOT_FOUND.
"""

import hashlib
import hmac
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from .exceptions import StoreUnavailable, TokenInvalid
from .ports import TokenRecord, TokenStore, ValidationOutcome

logger = logging.getLogger(__name__)

MIN_SECRET_BYTES = 16


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def hash_secret(secret: str, salt: str) -> str:
    """Salted sha256 of a token secret, hex encoded."""
    return hashlib.sha256(salt.encode() + secret.encode()).hexdigest()


@dataclass
class ConfirmationTokenService:
    """Issues and checks confirmation tokens for PENDING accounts."""

    store: TokenStore
    ttl: timedelta = timedelta(hours=24)
    secret_bytes: int = 32
    clock: Callable[[], datetime] = field(default=_utcnow)

    def __post_init__(self) -> None:
        if self.secret_bytes < MIN_SECRET_BYTES:
            raise ValueError(f"secret_bytes must be at least {MIN_SECRET_BYTES}")

    def issue(self, account_id: int) -> tuple[str, datetime]:
        """
        Create a new token for an account, replacing any earlier one.

        Args:
            account_id: Owning account

        Returns:
            (secret, expires_at). The secret is only available here.

        Raises:
            StoreUnavailable: If the token could not be persisted
        """
        secret = secrets.token_urlsafe(self.secret_bytes)
        salt = secrets.token_hex(16)
        issued_at = self.clock()
        expires_at = issued_at + self.ttl

        self.store.save(
            TokenRecord(
                account_id=account_id,
                token_hash=hash_secret(secret, salt),
                salt=salt,
                issued_at=issued_at,
                expires_at=expires_at,
            )
        )
        logger.info("Issued confirmation token for account %s", account_id)
        return secret, expires_at

    def validate(self, account_id: int, presented: str | None) -> ValidationOutcome:
        """
        Check a presented secret without side effects.

        A store failure is reported as NOT_FOUND; nothing is raised.
        """
        if not isinstance(presented, str) or not presented:
            return ValidationOutcome.MISMATCH

        try:
            record = self.store.get(account_id)
        except StoreUnavailable:
            logger.exception("Token lookup failed for account %s", account_id)
            return ValidationOutcome.NOT_FOUND

        if record is None:
            return ValidationOutcome.NOT_FOUND

        presented_hash = hash_secret(presented, record.salt)
        if not hmac.compare_digest(presented_hash.encode(), record.token_hash.encode()):
            return ValidationOutcome.MISMATCH
        if record.consumed:
            return ValidationOutcome.ALREADY_CONSUMED
        if self.clock() >= record.expires_at:
            return ValidationOutcome.EXPIRED
        return ValidationOutcome.VALID

    def consume(self, account_id: int) -> ValidationOutcome:
        """
        Mark the account's token as used.

        Returns:
            VALID if this call consumed it, ALREADY_CONSUMED if another call
            got there first, NOT_FOUND if the account has no token

        Raises:
            StoreUnavailable: If the store could not be reached
        """
        if self.store.mark_consumed(account_id):
            logger.info("Consumed confirmation token for account %s", account_id)
            return ValidationOutcome.VALID
        if self.store.get(account_id) is None:
            return ValidationOutcome.NOT_FOUND
        return ValidationOutcome.ALREADY_CONSUMED

    def check(self, account_id: int, presented: str | None) -> None:
        """
        Like validate(), but raise for anything other than VALID.

        Raises:
            TokenInvalid: Carrying the specific outcome for logging
        """
        outcome = self.validate(account_id, presented)
        if outcome != ValidationOutcome.VALID:
            raise TokenInvalid(outcome)
