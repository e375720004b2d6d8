"""
Domain layer - Pure business logic with no web or database imports.

This package contains the registration/confirmation state machine and
the token lifecycle. It defines its own port interfaces for
infrastructure abstraction; adapters live outside the domain.
"""

from .authentication import AuthenticationService
from .confirmation import ConfirmationService, DestinationPolicy
from .events import (
    AccountActivated,
    AccountCreated,
    ConfirmationIssued,
    DomainEvent,
    EventPublisher,
    RegistrationFailed,
)
from .exceptions import (
    DuplicateAccount,
    RegistrationError,
    StoreUnavailable,
    TokenInvalid,
    ValidationFailed,
)
from .ports import (
    Account,
    AccountStore,
    ActivationState,
    Notifier,
    SessionManager,
    TokenRecord,
    TokenStore,
    ValidationOutcome,
)
from .registration import RegistrationForm, RegistrationService
from .results import ConfirmationResult, FieldError, RegistrationResult, RegistrationStatus
from .tokens import ConfirmationTokenService

__all__ = [
    "Account",
    "AccountActivated",
    "AccountCreated",
    "AccountStore",
    "ActivationState",
    "AuthenticationService",
    "ConfirmationIssued",
    "ConfirmationResult",
    "ConfirmationService",
    "ConfirmationTokenService",
    "DestinationPolicy",
    "DomainEvent",
    "DuplicateAccount",
    "EventPublisher",
    "FieldError",
    "Notifier",
    "RegistrationError",
    "RegistrationFailed",
    "RegistrationForm",
    "RegistrationResult",
    "RegistrationService",
    "RegistrationStatus",
    "SessionManager",
    "StoreUnavailable",
    "TokenInvalid",
    "TokenRecord",
    "TokenStore",
    "ValidationFailed",
    "ValidationOutcome",
]
