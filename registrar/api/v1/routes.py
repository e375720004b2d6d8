"""
API v1 routes.

Defines the HTTP endpoints of the registration API:
- POST /v1/register          - Submit registration, send confirmation link
- GET  /v1/register/confirm  - Redeem confirmation link, redirect
- POST /v1/login             - Log in an ACTIVE account (HTTP BASIC AUTH)
"""

from urllib.parse import urlsplit

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import RedirectResponse

from registrar.api.dependencies import (
    get_authentication_service,
    get_basic_auth_credentials,
    get_confirmation_service,
    get_registration_service,
    get_session_manager,
)
from registrar.api.models import ErrorResponse, LoginResponse, RegisterRequest, RegisterResponse
from registrar.api.session import StarletteSessionManager
from registrar.domain.authentication import AuthenticationService
from registrar.domain.confirmation import ConfirmationService
from registrar.domain.exceptions import StoreUnavailable, ValidationFailed
from registrar.domain.registration import RegistrationService

router = APIRouter(tags=["v1"])

CONFIRMATION_SENT = (
    "We sent you a confirmation link, you will need to click on it to validate your account"
)


def _same_site_referer(request: Request) -> str | None:
    """Reduce a same-host Referer to its path; drop foreign ones."""
    referer = request.headers.get("referer")
    if not referer:
        return None
    parts = urlsplit(referer)
    if parts.netloc and parts.netloc != request.url.netloc:
        return None
    path = parts.path or "/"
    return f"{path}?{parts.query}" if parts.query else path


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={
        422: {"model": ErrorResponse, "description": "Validation error"},
        503: {"model": ErrorResponse, "description": "Storage unavailable"},
    },
    summary="Register a new account",
    description="Submit identity and password data. A confirmation link is sent "
    "to the email address; the account cannot log in until it is followed.",
)
def register(
    request_data: RegisterRequest,
    service: RegistrationService = Depends(get_registration_service),
) -> RegisterResponse:
    """
    Register a new account and send a confirmation link.

    The response is identical whether the address was new, pending or
    already active.
    """
    result = service.register(request_data.to_form())
    try:
        result.raise_for_status()
    except ValidationFailed as exc:
        raise HTTPException(
            status_code=422,
            detail=exc.message,
        ) from None
    except StoreUnavailable:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Registration failed",
        ) from None
    return RegisterResponse(message=CONFIRMATION_SENT)


@router.get(
    "/register/confirm",
    response_class=RedirectResponse,
    status_code=status.HTTP_303_SEE_OTHER,
    summary="Confirm an account from the emailed link",
    description="Always answers with a redirect. Invalid, expired or reused "
    "links go back to the registration page without an error.",
)
def confirm(
    request: Request,
    m: str | None = Query(None, description="Account id"),
    t: str | None = Query(None, description="Confirmation token"),
    back_url: str | None = Query(None, alias="BackURL"),
    service: ConfirmationService = Depends(get_confirmation_service),
    session: StarletteSessionManager = Depends(get_session_manager),
) -> RedirectResponse:
    result = service.confirm(
        m,
        t,
        session,
        back_url=back_url,
        referer=_same_site_referer(request),
    )
    if result.message:
        session.flash(result.message)
    return RedirectResponse(result.redirect_to, status_code=status.HTTP_303_SEE_OTHER)


@router.post(
    "/login",
    response_model=LoginResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
        503: {"model": ErrorResponse, "description": "Storage unavailable"},
    },
    summary="Log in with a confirmed account",
    description="Credentials via HTTP BASIC AUTH. Accounts that have not "
    "been confirmed are refused like wrong credentials.",
)
def login(
    credentials: tuple[str, str] = Depends(get_basic_auth_credentials),
    service: AuthenticationService = Depends(get_authentication_service),
    session: StarletteSessionManager = Depends(get_session_manager),
) -> LoginResponse:
    email, password = credentials

    try:
        account = service.authenticate(email, password)
    except StoreUnavailable:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Login failed",
        ) from None

    # Unknown, wrong password and unconfirmed all get the same answer
    if account is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    session.log_in(account)
    return LoginResponse(message="Logged in", email=account.identifier)
