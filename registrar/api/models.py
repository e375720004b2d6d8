"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
Registration fields are optional at this layer: the domain validates them
so that every missing field is reported in one aggregated message.
"""

from pydantic import BaseModel, ConfigDict, Field

from registrar.domain.registration import RegistrationForm


class RegisterRequest(BaseModel):
    """Request model for account registration (form field names)."""

    model_config = ConfigDict(populate_by_name=True)

    email: str | None = Field(None, alias="Email", description="Unique identifier (email address)")
    first_name: str | None = Field(None, alias="FirstName")
    surname: str | None = Field(None, alias="Surname")
    password: str | None = Field(None, alias="Password")
    password_confirm: str | None = Field(
        None, alias="PasswordConfirm", description="Must match Password"
    )
    back_url: str | None = Field(None, alias="BackURL", description="Relative URL to return to")

    def to_form(self) -> RegistrationForm:
        return RegistrationForm(
            email=self.email,
            first_name=self.first_name,
            surname=self.surname,
            password=self.password,
            password_confirm=self.password_confirm,
            back_url=self.back_url,
        )


class RegisterResponse(BaseModel):
    """Response model for an accepted registration."""

    message: str


class LoginResponse(BaseModel):
    """Response model for successful login."""

    message: str
    email: str


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: str
