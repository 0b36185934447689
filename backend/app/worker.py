import logging
from typing import Any

from app.core.database import SessionLocal
from app.services.notification_service import NotificationService
from app.services.payment_provider import get_payment_provider
from app.services.subscription_lifecycle import SubscriptionLifecycleService
from app.services.webhook_events import dispatch_event
from app.tasks import redis_settings

logger = logging.getLogger(__name__)


async def deliver_notification_task(
    ctx: dict[str, Any], address: str, subject: str, body: str
) -> bool:
    """Background task: deliver one subscription notice by email.

    Delivery failures are logged by the notification service and reported as
    False; the job itself does not fail.
    """
    return await NotificationService().notify(address, subject, body)


async def process_webhook_event_task(ctx: dict[str, Any], event: dict[str, Any]) -> str | None:
    """Background task: apply a verified provider event and deliver its notice.

    Returns the resulting local status, or None when nothing was applied.
    """
    db = SessionLocal()
    try:
        lifecycle = SubscriptionLifecycleService(db, provider=get_payment_provider())
        result = dispatch_event(lifecycle, event)
    finally:
        db.close()

    if result.error is not None:
        logger.warning(
            "Event %s (%s) not applied: %s",
            event.get("id"),
            event.get("type"),
            result.error.message,
        )
        return None

    outcome = result.value
    if outcome is None or outcome.subscription_status is None:
        return None

    await NotificationService().deliver(outcome.notification)
    return outcome.subscription_status.value


class WorkerSettings:
    functions = [
        deliver_notification_task,
        process_webhook_event_task,
    ]
    redis_settings = redis_settings
