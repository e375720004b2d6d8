"""
Console notifier adapter - Implements Notifier protocol.

This module provides a console-based implementation of the domain's
notifier port, logging confirmation links for demo purposes.
"""

import logging
from typing import Any

logger = logging.getLogger(__name__)


class ConsoleNotifier:
    """
    Implements Notifier protocol via console logging.

    Uses structural subtyping - no explicit inheritance from Protocol.
    For demo/development purposes - prints confirmation links to stdout.
    """

    def send(self, to_address: str, subject: str, data: dict[str, Any]) -> bool:
        """
        Log the message to console (simulates email delivery).

        In production, this would be replaced with an SMTP adapter.
        The link is logged at INFO level to be visible in docker-compose logs.

        Args:
            to_address: Recipient email address (normalized by domain layer)
            subject: Message subject
            data: Template data; RegisterLink carries the confirmation link

        Returns:
            Always True - the console never rejects a message
        """
        logger.info(
            "[CONFIRMATION] To: %s Subject: %s Link: %s",
            to_address,
            subject,
            data.get("RegisterLink"),
        )
        return True
