"""
Session collaborator backed by Starlette's signed cookie session.

Requires SessionMiddleware on the application.
"""

import logging

from fastapi import Request

from registrar.domain.ports import Account

logger = logging.getLogger(__name__)

SESSION_ACCOUNT_KEY = "account_id"
SESSION_FLASH_KEY = "flash"


class StarletteSessionManager:
    """
    Implements SessionManager protocol on request.session.

    Uses structural subtyping - no explicit inheritance from Protocol.
    Logging in the same account twice simply rewrites the same keys.
    """

    def __init__(self, request: Request) -> None:
        self._request = request

    def log_in(self, account: Account, remember: bool = False) -> None:
        """
        Bind the account to the current session.

        Raises:
            PermissionError: If the account is not allowed to log in
        """
        if not account.can_log_in():
            raise PermissionError(f"Account {account.id} is not active")
        self._request.session[SESSION_ACCOUNT_KEY] = account.id
        self._request.session["remember"] = remember
        logger.info("Session established for account %s", account.id)

    def flash(self, message: str) -> None:
        """Store a one-off message for the next page."""
        self._request.session[SESSION_FLASH_KEY] = message
