"""
Confirmation domain service - redeems a confirmation link.

Every failure (missing parameters, unknown account, any non-VALID token
outcome, store errors) ends in the same redirect to the registration
entry point with no message, so the endpoint cannot be used as an
oracle for account or token existence.

Order on success: activate, then consume, then log in. If the process
dies between activate and consume the token is still valid and the
link can simply be followed again.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from urllib.parse import urlsplit

from .events import AccountActivated, EventPublisher
from .exceptions import StoreUnavailable, TokenInvalid
from .ports import Account, AccountStore, ActivationState, SessionManager, ValidationOutcome
from .results import ConfirmationResult
from .tokens import ConfirmationTokenService

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_relative_url(url: str | None) -> bool:
    """
    True for same-site relative URLs only.

    Rejects anything with a scheme or host, protocol-relative URLs
    ("//evil.example") and backslash variants browsers treat the same way.
    """
    if not url:
        return False
    url = url.strip()
    if not url or "\\" in url or url.startswith("//"):
        return False
    if any(ord(char) < 32 for char in url):
        return False
    parts = urlsplit(url)
    return not parts.scheme and not parts.netloc


@dataclass(frozen=True)
class DestinationPolicy:
    """
    Where to send a freshly confirmed account. First match wins:

    1. expired password      -> change password page
    2. relative BackURL      -> BackURL
    3. configured default    -> default_register_dest
    4. otherwise             -> referring page, with a welcome message
    """

    change_password_url: str
    default_register_dest: str | None = None
    fallback_url: str = "/"

    def choose(
        self,
        account: Account,
        now: datetime,
        back_url: str | None = None,
        referer: str | None = None,
    ) -> ConfirmationResult:
        if account.is_password_expired(now):
            return ConfirmationResult(redirect_to=self.change_password_url, activated=True)

        if is_relative_url(back_url):
            return ConfirmationResult(redirect_to=back_url.strip(), activated=True)

        if self.default_register_dest:
            return ConfirmationResult(redirect_to=self.default_register_dest, activated=True)

        target = referer.strip() if is_relative_url(referer) else self.fallback_url
        return ConfirmationResult(
            redirect_to=target,
            activated=True,
            message=f"Welcome Back, {account.first_name}",
        )


def parse_account_id(raw: int | str | None) -> int | None:
    """Parse the m= link parameter; anything but a positive integer is None."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        account_id = int(str(raw).strip())
    except ValueError:
        return None
    return account_id if account_id > 0 else None


@dataclass
class ConfirmationService:
    """Domain service that activates PENDING accounts from confirmation links."""

    accounts: AccountStore
    tokens: ConfirmationTokenService
    destinations: DestinationPolicy
    registration_entry_url: str = "/v1/register"
    events: EventPublisher = field(default_factory=EventPublisher)
    clock: Callable[[], datetime] = field(default=_utcnow)

    def confirm(
        self,
        account_id: int | str | None,
        token: str | None,
        session: SessionManager,
        back_url: str | None = None,
        referer: str | None = None,
    ) -> ConfirmationResult:
        """
        Redeem a confirmation link.

        Args:
            account_id: Raw m= parameter
            token: Raw t= parameter
            session: Collaborator used to log the account in
            back_url: Optional caller-supplied return URL
            referer: Referring page, used by the last destination rule

        Returns:
            ConfirmationResult with the redirect target. Never raises for
            bad input or store failures.
        """
        parsed_id = parse_account_id(account_id)
        if parsed_id is None or not token:
            return self._dead_link()

        try:
            account = self.accounts.find_by_id(parsed_id)
        except StoreUnavailable:
            logger.exception("Account store unavailable while confirming account %s", parsed_id)
            return self._dead_link()

        if account is None:
            return self._dead_link()

        try:
            self.tokens.check(parsed_id, token)
        except TokenInvalid as exc:
            logger.warning("Confirmation rejected for account %s: %s", parsed_id, exc.outcome.value)
            return self._dead_link()

        try:
            if not self.accounts.activate(parsed_id):
                return self._dead_link()
            consumed = self.tokens.consume(parsed_id)
        except StoreUnavailable:
            logger.exception("Store unavailable while activating account %s", parsed_id)
            return self._dead_link()

        if consumed != ValidationOutcome.VALID:
            # A concurrent redemption of the same link consumed it first
            logger.info("Confirmation for account %s already redeemed concurrently", parsed_id)
            return self._dead_link()

        account = replace(account, activation_state=ActivationState.ACTIVE)
        session.log_in(account, remember=False)
        logger.info("Account %s activated", parsed_id)
        self.events.publish(AccountActivated(account_id=parsed_id))

        return self.destinations.choose(account, self.clock(), back_url=back_url, referer=referer)

    def _dead_link(self) -> ConfirmationResult:
        return ConfirmationResult(redirect_to=self.registration_entry_url)
