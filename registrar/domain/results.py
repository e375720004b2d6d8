"""
Workflow result types.

Registration and confirmation return these values instead of raising
for expected failures, so callers never inspect exceptions to decide
what to show the user.
"""

from dataclasses import dataclass, field
from enum import Enum

from .exceptions import StoreUnavailable, ValidationFailed


@dataclass(frozen=True)
class FieldError:
    """A single field-level validation message."""

    field: str
    message: str


class RegistrationStatus(str, Enum):
    PENDING_CONFIRMATION = "PENDING_CONFIRMATION"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class RegistrationResult:
    """
    Outcome of a registration request.

    PENDING_CONFIRMATION is returned for new, resumed and already-active
    identifiers alike, so the caller cannot tell them apart.
    """

    status: RegistrationStatus
    errors: tuple[FieldError, ...] = field(default_factory=tuple)
    notification_sent: bool = False

    @property
    def ok(self) -> bool:
        return self.status == RegistrationStatus.PENDING_CONFIRMATION

    @property
    def message(self) -> str:
        """All field messages joined for display."""
        return "; ".join(error.message for error in self.errors)

    def raise_for_status(self) -> None:
        """
        Raise the matching domain exception for a failed result.

        Raises:
            ValidationFailed: For VALIDATION_FAILED, carrying the field errors
            StoreUnavailable: For FAILED
        """
        if self.status == RegistrationStatus.VALIDATION_FAILED:
            raise ValidationFailed(list(self.errors))
        if self.status == RegistrationStatus.FAILED:
            raise StoreUnavailable(self.message)

    @classmethod
    def pending(cls, notification_sent: bool) -> "RegistrationResult":
        return cls(RegistrationStatus.PENDING_CONFIRMATION, notification_sent=notification_sent)

    @classmethod
    def invalid(cls, errors: list[FieldError]) -> "RegistrationResult":
        return cls(RegistrationStatus.VALIDATION_FAILED, errors=tuple(errors))

    @classmethod
    def failed(cls, message: str) -> "RegistrationResult":
        return cls(RegistrationStatus.FAILED, errors=(FieldError("", message),))


@dataclass(frozen=True)
class ConfirmationResult:
    """Where to send the browser after a confirmation attempt."""

    redirect_to: str
    activated: bool = False
    message: str | None = None
