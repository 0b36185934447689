"""Mapping of provider subscription state onto the local status and entitlement."""

from datetime import datetime
from typing import NamedTuple

from app.models.account import SubscriptionStatus
from app.schemas.provider import ProviderSubscriptionStatus, SubscriptionFacts

_PAST_DUE_STATUSES = frozenset(
    {ProviderSubscriptionStatus.PAST_DUE, ProviderSubscriptionStatus.UNPAID}
)
_INCOMPLETE_STATUSES = frozenset(
    {ProviderSubscriptionStatus.INCOMPLETE, ProviderSubscriptionStatus.INCOMPLETE_EXPIRED}
)


class MappedStatus(NamedTuple):
    status: SubscriptionStatus
    has_premium: bool
    subscription_end: datetime | None


def _first(*values: datetime | None) -> datetime | None:
    for value in values:
        if value is not None:
            return value
    return None


def map_subscription_status(
    status: ProviderSubscriptionStatus,
    cancel_at_period_end: bool,
    trial_end: datetime | None,
    cancel_at: datetime | None,
    ended_at: datetime | None,
) -> MappedStatus:
    """Derive (local status, premium entitlement, end date) from provider fields.

    Rules are evaluated top to bottom, first match wins:

    1. canceled: hard cancellation, no premium.
    2. cancel_at_period_end: scheduled cancellation keeps premium until the end date.
    3. trialing: premium, time-boxed by the trial end.
    4. past_due / unpaid: no premium.
    5. incomplete / incomplete_expired: no premium.
    6. anything else: active with premium.
    """
    if status == ProviderSubscriptionStatus.CANCELED:
        return MappedStatus(
            SubscriptionStatus.CANCELED, False, _first(ended_at, cancel_at, trial_end)
        )

    if cancel_at_period_end:
        return MappedStatus(
            SubscriptionStatus.PENDING_CANCEL, True, _first(cancel_at, ended_at, trial_end)
        )

    if status == ProviderSubscriptionStatus.TRIALING:
        return MappedStatus(SubscriptionStatus.TRIAL, True, _first(trial_end, ended_at, cancel_at))

    if status in _PAST_DUE_STATUSES:
        return MappedStatus(
            SubscriptionStatus.PAST_DUE, False, _first(ended_at, cancel_at, trial_end)
        )

    if status in _INCOMPLETE_STATUSES:
        return MappedStatus(
            SubscriptionStatus.INCOMPLETE, False, _first(ended_at, cancel_at, trial_end)
        )

    return MappedStatus(SubscriptionStatus.ACTIVE, True, _first(ended_at, cancel_at, trial_end))


def map_subscription_facts(facts: SubscriptionFacts) -> MappedStatus:
    return map_subscription_status(
        facts.status,
        facts.cancel_at_period_end,
        facts.trial_end,
        facts.cancel_at,
        facts.ended_at,
    )
