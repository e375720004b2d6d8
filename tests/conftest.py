"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- In-memory account and token stores
- Recording notifier and session collaborators
- A controllable clock for expiry tests
- Fully wired registration and confirmation services
"""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlsplit

import pytest

from registrar.adapters.repository.memory import InMemoryAccountStore, InMemoryTokenStore
from registrar.domain.confirmation import ConfirmationService, DestinationPolicy
from registrar.domain.events import DomainEvent, EventPublisher
from registrar.domain.ports import Account
from registrar.domain.registration import RegistrationForm, RegistrationService
from registrar.domain.tokens import ConfirmationTokenService


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class RecordingNotifier:
    """Notifier that keeps every message it is asked to send."""

    def __init__(self, result: bool = True) -> None:
        self.result = result
        self.sent: list[tuple[str, str, dict]] = []

    def send(self, to_address: str, subject: str, data: dict) -> bool:
        self.sent.append((to_address, subject, data))
        return self.result

    @property
    def last_link(self) -> str:
        return self.sent[-1][2]["RegisterLink"]


class RecordingSession:
    """Session collaborator that records log-ins."""

    def __init__(self) -> None:
        self.logged_in: list[Account] = []

    def log_in(self, account: Account, remember: bool = False) -> None:
        self.logged_in.append(account)


def link_params(link: str) -> tuple[str, str]:
    """Return the (m, t) query parameters of a confirmation link."""
    query = parse_qs(urlsplit(link).query)
    return query["m"][0], query["t"][0]


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def account_store(clock: FixedClock) -> InMemoryAccountStore:
    return InMemoryAccountStore(clock=clock)


@pytest.fixture
def token_store() -> InMemoryTokenStore:
    return InMemoryTokenStore()


@pytest.fixture
def token_service(token_store: InMemoryTokenStore, clock: FixedClock) -> ConfirmationTokenService:
    return ConfirmationTokenService(store=token_store, ttl=timedelta(hours=24), clock=clock)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def session() -> RecordingSession:
    return RecordingSession()


@pytest.fixture
def published() -> list[DomainEvent]:
    return []


@pytest.fixture
def events(published: list[DomainEvent]) -> EventPublisher:
    return EventPublisher([published.append])


@pytest.fixture
def registration_service(
    account_store: InMemoryAccountStore,
    token_service: ConfirmationTokenService,
    notifier: RecordingNotifier,
    events: EventPublisher,
) -> RegistrationService:
    return RegistrationService(
        accounts=account_store,
        tokens=token_service,
        notifier=notifier,
        confirm_base_link="/v1/register/confirm",
        events=events,
    )


@pytest.fixture
def destinations() -> DestinationPolicy:
    return DestinationPolicy(change_password_url="/v1/password/change")


@pytest.fixture
def confirmation_service(
    account_store: InMemoryAccountStore,
    token_service: ConfirmationTokenService,
    destinations: DestinationPolicy,
    events: EventPublisher,
    clock: FixedClock,
) -> ConfirmationService:
    return ConfirmationService(
        accounts=account_store,
        tokens=token_service,
        destinations=destinations,
        registration_entry_url="/v1/register",
        events=events,
        clock=clock,
    )


@pytest.fixture
def make_form() -> Callable[..., RegistrationForm]:
    """Factory for valid registration forms; override any field by keyword."""

    def _make(**overrides: str | None) -> RegistrationForm:
        fields = {
            "email": "new@example.com",
            "first_name": "Ada",
            "surname": "Lovelace",
            "password": "pw123456",
            "password_confirm": "pw123456",
        }
        fields.update(overrides)
        return RegistrationForm(**fields)

    return _make
