"""
Registration domain events.

The workflows publish one event after each state transition. Side
effects that are not part of the state machine (audit logging,
analytics, welcome mails) subscribe to the EventPublisher instead of
being called from the workflow directly.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DomainEvent:
    """Base class for events emitted by the workflows."""

    occurred_at: datetime = field(default_factory=_utcnow, kw_only=True)


@dataclass(frozen=True)
class AccountCreated(DomainEvent):
    account_id: int
    identifier: str


@dataclass(frozen=True)
class ConfirmationIssued(DomainEvent):
    account_id: int
    expires_at: datetime


@dataclass(frozen=True)
class AccountActivated(DomainEvent):
    account_id: int


@dataclass(frozen=True)
class RegistrationFailed(DomainEvent):
    identifier: str
    reason: str


Observer = Callable[[DomainEvent], None]


class EventPublisher:
    """
    Synchronous observer list.

    Observers run in subscription order. An observer that raises is
    logged and skipped; it never fails the workflow that published.
    """

    def __init__(self, observers: list[Observer] | None = None) -> None:
        self._observers: list[Observer] = list(observers or [])

    def subscribe(self, observer: Observer) -> None:
        self._observers.append(observer)

    def publish(self, event: DomainEvent) -> None:
        logger.debug("Publishing %s", type(event).__name__)
        for observer in self._observers:
            try:
                observer(event)
            except Exception:
                logger.exception(
                    "Observer %r failed handling %s", observer, type(event).__name__
                )
