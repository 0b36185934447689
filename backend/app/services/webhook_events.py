"""Dispatch of verified provider webhook events to lifecycle handlers.

The caller is responsible for verifying the event signature; this module only
routes the event's object to the matching ``SubscriptionLifecycleService``
handler after converting it into provider facts.
"""

import logging
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import ValidationError

from app.core.errors import ErrorKind, Result
from app.services.payment_provider import (
    invoice_facts_from_object,
    payment_facts_from_object,
    subscription_facts_from_object,
)
from app.services.subscription_lifecycle import LifecycleOutcome, SubscriptionLifecycleService

logger = logging.getLogger(__name__)

# event type -> (object converter, handler name on SubscriptionLifecycleService)
EVENT_HANDLERS: dict[str, tuple[Callable[[Mapping[str, Any]], Any], str]] = {
    "customer.subscription.created": (
        subscription_facts_from_object,
        "handle_subscription_created",
    ),
    "customer.subscription.updated": (
        subscription_facts_from_object,
        "handle_subscription_updated",
    ),
    "customer.subscription.deleted": (
        subscription_facts_from_object,
        "handle_subscription_deleted",
    ),
    "invoice.payment_succeeded": (invoice_facts_from_object, "handle_invoice_paid"),
    "invoice.paid": (invoice_facts_from_object, "handle_invoice_paid"),
    "invoice_payment.paid": (invoice_facts_from_object, "handle_invoice_paid"),
    "invoice.payment_failed": (invoice_facts_from_object, "handle_invoice_failed"),
    "invoice.voided": (invoice_facts_from_object, "handle_invoice_voided"),
    "charge.succeeded": (payment_facts_from_object, "handle_charge_succeeded"),
    "payment_intent.succeeded": (payment_facts_from_object, "handle_payment_intent_succeeded"),
    "payment_intent.canceled": (payment_facts_from_object, "handle_payment_intent_canceled"),
}


def dispatch_event(
    lifecycle: SubscriptionLifecycleService, event: Mapping[str, Any]
) -> Result[LifecycleOutcome | None]:
    """Route one ``{"type": ..., "data": {"object": ...}}`` envelope.

    Unhandled event types succeed with no outcome. Objects that cannot be
    converted (unknown status, missing id, non-numeric timestamps, wrongly
    shaped items) yield a ``VALIDATION`` error.
    """
    event_type = event.get("type")
    obj = (event.get("data") or {}).get("object")
    if not event_type or not isinstance(obj, Mapping):
        return Result.failure(ErrorKind.VALIDATION, "Malformed event envelope")

    entry = EVENT_HANDLERS.get(str(event_type))
    if entry is None:
        logger.info("Unhandled event type: %s", event_type)
        return Result.success(None)

    converter, handler_name = entry
    try:
        facts = converter(obj)
    except (ValidationError, KeyError, ValueError, TypeError, AttributeError, OverflowError) as e:
        logger.warning("Rejected %s event %s: %s", event_type, event.get("id"), e)
        return Result.failure(ErrorKind.VALIDATION, f"Invalid {event_type} payload: {e}")

    result: Result[LifecycleOutcome] = getattr(lifecycle, handler_name)(facts)
    return Result(value=result.value, error=result.error)
