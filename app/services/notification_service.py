"""
Notification Service

Fire-and-forget delivery of workflow notifications. A failed notification
is logged and dropped; it never fails the transition that triggered it.
"""

import asyncio
import enum
import logging
from typing import Any, Protocol

from app.config import settings
from app.services.email_service import EmailService

logger = logging.getLogger(__name__)


class NotificationKind(str, enum.Enum):
    DRAFT_SUBMITTED = "draft_submitted"
    REVISION_REQUESTED = "revision_requested"
    DRAFT_APPROVED = "draft_approved"
    DRAFT_REJECTED = "draft_rejected"
    DRAFT_PUBLISHED = "draft_published"
    IDEA_REVIEWED = "idea_reviewed"


class Notifier(Protocol):
    async def notify(self, kind: NotificationKind, recipient: str, payload: dict[str, Any]) -> None: ...


class NotificationService:
    """Email-backed notifier."""

    def __init__(self, email_service: EmailService | None = None, enabled: bool | None = None):
        self.email_service = email_service or EmailService()
        self.enabled = settings.enable_email_notifications if enabled is None else enabled

    async def notify(self, kind: NotificationKind, recipient: str, payload: dict[str, Any]) -> None:
        if not self.enabled:
            logger.debug("Notification %s to %s skipped: email notifications disabled", kind.value, recipient)
            return
        try:
            # smtplib is blocking
            sent = await asyncio.to_thread(self.email_service.send_notification, kind.value, recipient, payload)
        except Exception:
            logger.exception("Notification %s to %s failed", kind.value, recipient)
            return
        if sent:
            logger.info("Notification %s sent to %s", kind.value, recipient)
        else:
            logger.warning("Notification %s to %s was not delivered", kind.value, recipient)


class NullNotifier:
    """Notifier that drops everything; used when notifications are not wired."""

    async def notify(self, kind: NotificationKind, recipient: str, payload: dict[str, Any]) -> None:
        logger.debug("Dropping notification %s to %s", kind.value, recipient)


def get_notifier() -> Notifier:
    """FastAPI dependency for the notifier."""
    return NotificationService()
