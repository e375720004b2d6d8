"""
Registration domain service - account creation gated by email confirmation.

Registration State Machine (single request)
===========================================

    validate input --fail--> VALIDATION_FAILED (nothing written)
          |
    lookup identifier
          |-- not found --> create PENDING account --+
          |-- PENDING ------------------------------+--> issue token --> notify --> PENDING_CONFIRMATION
          |-- ACTIVE  ------------------------------------------------------------> PENDING_CONFIRMATION
                                                     (no token, no credential change)

The caller gets the same PENDING_CONFIRMATION answer for all three
lookup branches, so a response never reveals whether an identifier
already has an account.

Side effects are ordered: account write, then token issue, then
notification. A failed notification never undoes the first two; the
user can register again to get a fresh link (PENDING branch).

A confirmation may complete between the lookup and the token issue.
The account is re-read after issuing; if it has become ACTIVE the new
token is consumed on the spot and nothing is sent.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from urllib.parse import quote

import bcrypt
from email_validator import EmailNotValidError, validate_email

from .confirmation import is_relative_url
from .events import AccountCreated, ConfirmationIssued, EventPublisher, RegistrationFailed
from .exceptions import DuplicateAccount, StoreUnavailable
from .ports import Account, AccountStore, Notifier
from .results import FieldError, RegistrationResult
from .tokens import ConfirmationTokenService

logger = logging.getLogger(__name__)

CONFIRMATION_SUBJECT = "Your confirmation link"
GENERIC_FAILURE = "Registration failed, please try again later"

# bcrypt only looks at the first 72 bytes of a password
BCRYPT_MAX_BYTES = 72

# Shared by all services; a hung notifier holds at most one of these threads
NOTIFIER_WORKERS = 4
_notifier_pool = ThreadPoolExecutor(max_workers=NOTIFIER_WORKERS, thread_name_prefix="notifier")


@dataclass(frozen=True)
class RegistrationForm:
    """Submitted registration data, as received from the form collaborator."""

    email: str | None = None
    first_name: str | None = None
    surname: str | None = None
    password: str | None = None
    password_confirm: str | None = None
    back_url: str | None = None


def normalize_identifier(identifier: str) -> str:
    """
    Normalize an identifier for consistent storage and lookup.

    Applies: strip whitespace + lowercase
    """
    return identifier.strip().lower()


def validate_registration(form: RegistrationForm, password_min_length: int = 8) -> list[FieldError]:
    """
    Input-shape checks for a registration submission.

    Returns every problem found, in field order, rather than stopping
    at the first one.
    """
    errors: list[FieldError] = []

    email = (form.email or "").strip()
    if not email:
        errors.append(FieldError("Email", "Email is required"))
    else:
        try:
            validate_email(email, check_deliverability=False)
        except EmailNotValidError:
            errors.append(FieldError("Email", "Email is not a valid email address"))

    if not (form.first_name or "").strip():
        errors.append(FieldError("FirstName", "First name is required"))
    if not (form.surname or "").strip():
        errors.append(FieldError("Surname", "Surname is required"))

    password = form.password or ""
    if not password:
        errors.append(FieldError("Password", "Password is required"))
    else:
        if len(password) < password_min_length:
            errors.append(
                FieldError(
                    "Password",
                    f"Password must be at least {password_min_length} characters",
                )
            )
        if len(password.encode()) > BCRYPT_MAX_BYTES:
            errors.append(FieldError("Password", f"Password must be at most {BCRYPT_MAX_BYTES} bytes"))
        if password != (form.password_confirm or ""):
            errors.append(FieldError("Password", "Passwords do not match"))

    return errors


@dataclass
class RegistrationService:
    """
    Domain service for self-service registration.

    Orchestrates the registration flow: input validation, identifier
    lookup, PENDING account creation, token issue and notification.
    """

    accounts: AccountStore
    tokens: ConfirmationTokenService
    notifier: Notifier
    confirm_base_link: str = "/v1/register/confirm"
    events: EventPublisher = field(default_factory=EventPublisher)
    bcrypt_cost: int = 10
    password_min_length: int = 8
    notification_timeout: float = 10.0

    def register(self, form: RegistrationForm) -> RegistrationResult:
        """
        Register a new account, or resume a PENDING one.

        Args:
            form: Submitted registration data

        Returns:
            RegistrationResult. Expected failures are returned, never raised.
        """
        errors = validate_registration(form, self.password_min_length)
        if errors:
            self.events.publish(RegistrationFailed(identifier=form.email or "", reason="validation"))
            return RegistrationResult.invalid(errors)

        identifier = normalize_identifier(form.email or "")

        try:
            account = self._find_or_create(identifier, form)
        except StoreUnavailable:
            logger.exception("Account store unavailable while registering %s", identifier)
            self.events.publish(RegistrationFailed(identifier=identifier, reason="store_unavailable"))
            return RegistrationResult.failed(GENERIC_FAILURE)

        if account.is_active:
            # Same answer as a fresh registration; the active account is left untouched.
            logger.info("Registration submitted for already active account %s; ignored", account.id)
            return RegistrationResult.pending(notification_sent=False)

        try:
            secret, expires_at = self.tokens.issue(account.id)
        except StoreUnavailable:
            logger.exception("Token store unavailable while registering account %s", account.id)
            self.events.publish(RegistrationFailed(identifier=identifier, reason="store_unavailable"))
            return RegistrationResult.failed(GENERIC_FAILURE)

        try:
            current = self.accounts.find_by_id(account.id)
            if current is not None and current.is_active:
                # Confirmed concurrently; the fresh token must not stay redeemable
                self.tokens.consume(account.id)
                logger.info("Account %s was confirmed during registration; link not sent", account.id)
                return RegistrationResult.pending(notification_sent=False)
        except StoreUnavailable:
            logger.exception("Store unavailable while re-reading account %s", account.id)
            self.events.publish(RegistrationFailed(identifier=identifier, reason="store_unavailable"))
            return RegistrationResult.failed(GENERIC_FAILURE)

        self.events.publish(ConfirmationIssued(account_id=account.id, expires_at=expires_at))

        sent = self._send_confirmation(account, secret, form.back_url)
        return RegistrationResult.pending(notification_sent=sent)

    def confirmation_link(self, account_id: int, secret: str, back_url: str | None = None) -> str:
        """
        Build the link a user follows to confirm their account.

        A relative back_url rides along as BackURL; anything else is dropped.
        """
        link = f"{self.confirm_base_link}?m={account_id}&t={quote(secret, safe='')}"
        if is_relative_url(back_url):
            link += f"&BackURL={quote(back_url.strip(), safe='')}"
        return link

    def _find_or_create(self, identifier: str, form: RegistrationForm) -> Account:
        account = self.accounts.find_by_identifier(identifier)
        if account is not None:
            logger.info("Resuming registration for existing account %s", account.id)
            return account

        password_hash = self._hash_password(form.password or "")
        try:
            account = self.accounts.create(
                identifier,
                (form.first_name or "").strip(),
                (form.surname or "").strip(),
                password_hash,
            )
        except DuplicateAccount:
            # Lost a concurrent create for the same identifier
            account = self.accounts.find_by_identifier(identifier)
            if account is None:
                raise StoreUnavailable(f"account for {identifier} disappeared") from None
            logger.info("Concurrent registration for %s resolved to account %s", identifier, account.id)
            return account

        logger.info("Created pending account %s", account.id)
        self.events.publish(AccountCreated(account_id=account.id, identifier=identifier))
        return account

    def _send_confirmation(self, account: Account, secret: str, back_url: str | None = None) -> bool:
        """
        Hand the confirmation link to the notifier, bounded by a timeout.

        Delivery is best-effort: any failure is logged and reported as
        False, never raised.
        """
        data = {
            "RegisterLink": self.confirmation_link(account.id, secret, back_url),
            "FirstName": account.first_name,
            "Surname": account.last_name,
            "Email": account.identifier,
        }
        future = _notifier_pool.submit(self.notifier.send, account.identifier, CONFIRMATION_SUBJECT, data)
        try:
            sent = bool(future.result(timeout=self.notification_timeout))
        except FutureTimeout:
            # Still queued behind hung sends: drop it rather than send late
            future.cancel()
            logger.warning("Confirmation email for account %s timed out", account.id)
            return False
        except Exception:
            logger.exception("Confirmation email for account %s failed", account.id)
            return False

        if not sent:
            logger.warning("Confirmation email for account %s was not accepted", account.id)
        return sent

    def _hash_password(self, password: str) -> str:
        """Hash password using bcrypt with the configured cost factor."""
        return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=self.bcrypt_cost)).decode()
