"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes.
Stores and the event publisher are created during app lifespan
startup and stored in app.state.
"""

from datetime import timedelta

from fastapi import Depends, Request
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from registrar.adapters.smtp.console import ConsoleNotifier
from registrar.api.session import StarletteSessionManager
from registrar.config.settings import Settings, get_settings
from registrar.domain.authentication import AuthenticationService
from registrar.domain.confirmation import ConfirmationService, DestinationPolicy
from registrar.domain.events import EventPublisher
from registrar.domain.ports import AccountStore, Notifier, TokenStore
from registrar.domain.registration import RegistrationService
from registrar.domain.tokens import ConfirmationTokenService

# Module-level singleton - ConsoleNotifier is stateless
_notifier = ConsoleNotifier()


def get_account_store(request: Request) -> AccountStore:
    """Get the account store from app state."""
    return request.app.state.account_store


def get_token_store(request: Request) -> TokenStore:
    """Get the token store from app state."""
    return request.app.state.token_store


def get_event_publisher(request: Request) -> EventPublisher:
    """Get the shared event publisher from app state."""
    return request.app.state.events


def get_notifier() -> Notifier:
    """Get console notifier (singleton)."""
    return _notifier


def get_token_service(
    store: TokenStore = Depends(get_token_store),
    settings: Settings = Depends(get_settings),
) -> ConfirmationTokenService:
    return ConfirmationTokenService(
        store=store,
        ttl=timedelta(seconds=settings.token_ttl_seconds),
        secret_bytes=settings.token_bytes,
    )


def get_registration_service(
    accounts: AccountStore = Depends(get_account_store),
    tokens: ConfirmationTokenService = Depends(get_token_service),
    notifier: Notifier = Depends(get_notifier),
    events: EventPublisher = Depends(get_event_publisher),
    settings: Settings = Depends(get_settings),
) -> RegistrationService:
    """
    Create registration service with injected dependencies.

    Wires together the stores, token service and notifier for the domain service.
    """
    return RegistrationService(
        accounts=accounts,
        tokens=tokens,
        notifier=notifier,
        confirm_base_link=settings.confirm_base_link,
        events=events,
        bcrypt_cost=settings.bcrypt_cost,
        password_min_length=settings.password_min_length,
        notification_timeout=settings.notification_timeout_seconds,
    )


def get_confirmation_service(
    accounts: AccountStore = Depends(get_account_store),
    tokens: ConfirmationTokenService = Depends(get_token_service),
    events: EventPublisher = Depends(get_event_publisher),
    settings: Settings = Depends(get_settings),
) -> ConfirmationService:
    destinations = DestinationPolicy(
        change_password_url=settings.change_password_url,
        default_register_dest=settings.default_register_dest,
    )
    return ConfirmationService(
        accounts=accounts,
        tokens=tokens,
        destinations=destinations,
        registration_entry_url=settings.registration_entry_url,
        events=events,
    )


def get_authentication_service(
    accounts: AccountStore = Depends(get_account_store),
) -> AuthenticationService:
    return AuthenticationService(accounts=accounts)


def get_session_manager(request: Request) -> StarletteSessionManager:
    return StarletteSessionManager(request)


# HTTP BASIC AUTH security scheme for OpenAPI documentation
http_basic = HTTPBasic()


def get_basic_auth_credentials(
    credentials: HTTPBasicCredentials = Depends(http_basic),
) -> tuple[str, str]:
    """
    Extract and normalize credentials from HTTP BASIC AUTH header.

    FastAPI's HTTPBasic automatically:
    - Returns 401 for missing Authorization header
    - Returns 401 for malformed base64 encoding
    - Parses base64(email:password) format

    Args:
        credentials: HTTPBasicCredentials from FastAPI's HTTPBasic

    Returns:
        Tuple of (normalized_email, password)
        Email is stripped and lowercased for consistency.
    """
    email = credentials.username.strip().lower()
    password = credentials.password
    return email, password
