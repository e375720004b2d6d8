"""
Credential check that honours the activation gate.

PENDING accounts never authenticate, whatever password is supplied.
"""

import logging
from dataclasses import dataclass

import bcrypt

from .ports import Account, AccountStore
from .registration import BCRYPT_MAX_BYTES, normalize_identifier

logger = logging.getLogger(__name__)

# Pre-computed bcrypt hash for timing oracle prevention.
# Used when the identifier doesn't exist so bcrypt always runs.
_DUMMY_BCRYPT_HASH = bcrypt.hashpw(b"dummy_password_for_timing_safety", bcrypt.gensalt(10)).decode()


@dataclass
class AuthenticationService:
    """Verifies identifier/password pairs for ACTIVE accounts."""

    accounts: AccountStore

    def authenticate(self, identifier: str, password: str) -> Account | None:
        """
        Return the account when the credentials match and it may log in.

        bcrypt.checkpw runs for unknown identifiers as well, so response
        time does not reveal whether an account exists.
        """
        account = self.accounts.find_by_identifier(normalize_identifier(identifier))
        stored_hash = account.password_hash if account is not None else _DUMMY_BCRYPT_HASH

        candidate = password.encode()
        password_valid = bcrypt.checkpw(candidate[:BCRYPT_MAX_BYTES], stored_hash.encode())

        if account is None or not password_valid or len(candidate) > BCRYPT_MAX_BYTES:
            return None
        if not account.can_log_in():
            logger.info("Login refused for pending account %s", account.id)
            return None
        return account
