"""
Domain exceptions - Semantic error types for registration.

This module defines domain-specific exceptions that communicate
business rule violations without leaking infrastructure details.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .ports import ValidationOutcome
    from .results import FieldError


class RegistrationError(Exception):
    """Base class for registration domain errors."""

    pass


class ValidationFailed(RegistrationError):
    """Submitted registration data is missing or malformed."""

    def __init__(self, errors: "list[FieldError]") -> None:
        self.errors = list(errors)
        super().__init__(self.message)

    @property
    def message(self) -> str:
        return "; ".join(error.message for error in self.errors)


class DuplicateAccount(RegistrationError):
    """Identifier is already used by another account."""

    pass


class TokenInvalid(RegistrationError):
    """Confirmation token not found, expired, consumed or mismatched."""

    def __init__(self, outcome: "ValidationOutcome") -> None:
        self.outcome = outcome
        super().__init__(outcome.value)


class StoreUnavailable(RegistrationError):
    """The persistence layer could not complete the operation."""

    pass
