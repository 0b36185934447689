"""Best-effort delivery of subscription notices to account holders.

Services that change subscription state return a ``Notification`` after
committing; delivery happens afterwards (inline or through the arq worker) and
its failure is logged and dropped, never affecting the committed state.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any

from app.services.email_service import EmailService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    address: str
    subject: str
    body: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class NotificationService:
    """Sends notices through email without propagating delivery errors."""

    def __init__(self, email_service: EmailService | None = None):
        self.email_service = email_service or EmailService()

    async def notify(self, address: str, subject: str, body: str) -> bool:
        """Send one notice. Returns False when delivery failed or was skipped."""
        if not address:
            logger.warning("No address for notice %r, skipping", subject)
            return False
        try:
            return await self.email_service.send_email(to=address, subject=subject, body=body)
        except Exception:
            logger.exception("Failed to deliver notice %r to %s", subject, address)
            return False

    async def deliver(self, notification: Notification | None) -> bool:
        if notification is None:
            return False
        return await self.notify(notification.address, notification.subject, notification.body)
