"""Service applying provider lifecycle events to local accounts.

Every handler recomputes the account's target state from the facts carried by
the event, so redelivered events leave the account unchanged. Events for
customers this system does not know are ignored.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.errors import ProviderError, Result
from app.models.account import Account, SubscriptionStatus
from app.repositories.account_repository import AccountRepository
from app.repositories.plan_repository import PlanRepository
from app.schemas.account import AccountState
from app.schemas.provider import (
    BillingReason,
    InvoiceFacts,
    PaymentFacts,
    ProviderSubscriptionStatus,
    SubscriptionFacts,
)
from app.services.notification_service import Notification
from app.services.payment_provider import PaymentProviderBase
from app.services.status_mapper import map_subscription_facts

logger = logging.getLogger(__name__)


class LifecycleEvent(str, Enum):
    SUBSCRIPTION_CREATED = "subscription_created"
    SUBSCRIPTION_UPDATED = "subscription_updated"
    SUBSCRIPTION_DELETED = "subscription_deleted"
    INVOICE_PAID = "invoice_paid"
    INVOICE_FAILED = "invoice_failed"
    INVOICE_VOIDED = "invoice_voided"
    CHARGE_SUCCEEDED = "charge_succeeded"
    PAYMENT_INTENT_SUCCEEDED = "payment_intent_succeeded"
    PAYMENT_INTENT_CANCELED = "payment_intent_canceled"


@dataclass
class LifecycleOutcome:
    event: LifecycleEvent
    applied: bool = False
    account_id: UUID | None = None
    subscription_status: SubscriptionStatus | None = None
    notification: Notification | None = None


_PENDING_CANCEL_NOTICE = (
    "Subscription Cancellation Scheduled",
    "Your subscription is scheduled to cancel on {end}. "
    "Premium features stay active until then.",
)

# (subject, body) by resulting status; bodies accept {plan}, {end} and {provider_status}
_CREATED_NOTICES: dict[SubscriptionStatus, tuple[str, str]] = {
    SubscriptionStatus.ACTIVE: (
        "Subscription Created",
        "Your subscription has been created. Status: {provider_status}, plan: {plan}.",
    ),
    SubscriptionStatus.TRIAL: (
        "Trial Started",
        "You are now in your trial period. It ends on {end}.",
    ),
    SubscriptionStatus.CANCELED: (
        "Subscription Cancelled",
        "Your subscription has been cancelled. End date: {end}.",
    ),
    SubscriptionStatus.PAST_DUE: (
        "Payment Required",
        "Payment is required to finish activating your subscription.",
    ),
    SubscriptionStatus.INCOMPLETE: (
        "Subscription Incomplete",
        "Your subscription is not complete yet. Please finish the payment.",
    ),
    SubscriptionStatus.PENDING_CANCEL: _PENDING_CANCEL_NOTICE,
}

_UPDATED_NOTICES: dict[SubscriptionStatus, tuple[str, str]] = {
    SubscriptionStatus.ACTIVE: (
        "Subscription Updated",
        "Your subscription has been updated. Current plan: {plan}.",
    ),
    SubscriptionStatus.TRIAL: (
        "Trial Active",
        "You are in your trial period. It ends on {end}.",
    ),
    SubscriptionStatus.CANCELED: (
        "Subscription Cancelled",
        "Your subscription has been cancelled and premium features are disabled. "
        "End date: {end}.",
    ),
    SubscriptionStatus.PAST_DUE: (
        "Payment Overdue",
        "Your invoice is overdue or unpaid. "
        "Premium features are paused until payment is made.",
    ),
    SubscriptionStatus.INCOMPLETE: (
        "Subscription Incomplete",
        "There is a problem setting up your subscription. "
        "Please update your payment method or try again.",
    ),
    SubscriptionStatus.PENDING_CANCEL: _PENDING_CANCEL_NOTICE,
}


def _format_date(dt: datetime | None) -> str:
    if dt is None:
        return "an unspecified date"
    return dt.strftime("%Y-%m-%d")


class SubscriptionLifecycleService:
    """Service reconciling accounts with provider subscription, invoice and payment events."""

    def __init__(self, db: Session, provider: PaymentProviderBase | None = None):
        self.db = db
        self.provider = provider
        self.account_repo = AccountRepository(db)
        self.plan_repo = PlanRepository(db)

    # --- Subscription events ---

    def handle_subscription_created(self, facts: SubscriptionFacts) -> Result[LifecycleOutcome]:
        return self._reconcile_subscription(
            LifecycleEvent.SUBSCRIPTION_CREATED, facts, _CREATED_NOTICES
        )

    def handle_subscription_updated(self, facts: SubscriptionFacts) -> Result[LifecycleOutcome]:
        return self._reconcile_subscription(
            LifecycleEvent.SUBSCRIPTION_UPDATED, facts, _UPDATED_NOTICES
        )

    def handle_subscription_deleted(self, facts: SubscriptionFacts) -> Result[LifecycleOutcome]:
        return self._reconcile_subscription(
            LifecycleEvent.SUBSCRIPTION_DELETED, facts, _UPDATED_NOTICES
        )

    def _reconcile_subscription(
        self,
        event: LifecycleEvent,
        facts: SubscriptionFacts,
        notices: dict[SubscriptionStatus, tuple[str, str]],
    ) -> Result[LifecycleOutcome]:
        account = self._find_account(facts.customer_id)
        if account is None:
            return self._ignored(event, facts.customer_id)

        plan = self.plan_repo.get_by_price_id(facts.price_id) if facts.price_id else None
        mapped = map_subscription_facts(facts)
        state = AccountState(
            subscription_status=mapped.status,
            has_premium_features=mapped.has_premium,
            subscription_end_date=mapped.subscription_end,
            plan=plan.name if plan else None,
            provider_subscription_id=None if account.provider_subscription_id else facts.id,
        )
        account = self.account_repo.save_state(account, state)

        subject, template = notices[mapped.status]
        body = template.format(
            plan=account.plan,
            end=_format_date(mapped.subscription_end),
            provider_status=facts.status.value,
        )
        return self._applied(event, account, Notification(str(account.email), subject, body))

    # --- Invoice events ---

    def handle_invoice_paid(self, invoice: InvoiceFacts) -> Result[LifecycleOutcome]:
        """Activate on payment, or keep the account in trial for a trial-start invoice.

        The provider issues a zero-amount invoice when a trial starts; that
        invoice must not end the trial or reset usage. Usage is reset only for
        renewal invoices (billing reason ``subscription_cycle``).
        """
        event = LifecycleEvent.INVOICE_PAID
        account = self._find_account(invoice.customer_id)
        if account is None:
            return self._ignored(event, invoice.customer_id)

        subscription: SubscriptionFacts | None = None
        subscription_id = account.provider_subscription_id or invoice.subscription_id
        if self.provider is not None and subscription_id:
            try:
                subscription = self.provider.get_subscription(str(subscription_id))
            except ProviderError as e:
                logger.warning(
                    "Could not load subscription %s for paid invoice %s: %s",
                    subscription_id,
                    invoice.id,
                    e.message,
                )
                return Result.provider_failure(e)

        is_trialing = (
            subscription is not None
            and subscription.status == ProviderSubscriptionStatus.TRIALING
        )
        is_trial_invoice = (
            invoice.billing_reason == BillingReason.SUBSCRIPTION_CREATE
            and invoice.amount_paid == 0
        )

        if is_trialing or is_trial_invoice:
            trial_end = subscription.trial_end if subscription is not None else None
            state = AccountState(
                subscription_status=SubscriptionStatus.TRIAL,
                has_premium_features=True,
                subscription_end_date=trial_end or account.subscription_end_date,
            )
            account = self.account_repo.save_state(account, state)
            return self._applied(event, account, None)

        state = AccountState(
            subscription_status=SubscriptionStatus.ACTIVE,
            has_premium_features=True,
            subscription_end_date=account.subscription_end_date,
            reset_usage=invoice.billing_reason == BillingReason.SUBSCRIPTION_CYCLE,
        )
        account = self.account_repo.save_state(account, state)
        return self._applied(
            event,
            account,
            Notification(
                str(account.email),
                "Payment Succeeded",
                "Your invoice has been paid and premium features are active.",
            ),
        )

    def handle_invoice_failed(self, invoice: InvoiceFacts) -> Result[LifecycleOutcome]:
        return self._set_status(
            LifecycleEvent.INVOICE_FAILED,
            invoice.customer_id,
            SubscriptionStatus.PAST_DUE,
            has_premium=False,
            subject="Payment Failed",
            body="Your invoice payment failed. Premium features are paused.",
        )

    def handle_invoice_voided(self, invoice: InvoiceFacts) -> Result[LifecycleOutcome]:
        return self._set_status(
            LifecycleEvent.INVOICE_VOIDED,
            invoice.customer_id,
            SubscriptionStatus.CANCELED,
            has_premium=False,
            subject="Invoice Voided",
            body="Your invoice was voided and premium features are disabled.",
            end_date=invoice.voided_at,
            replace_end_date=True,
        )

    # --- Payment events ---

    def handle_charge_succeeded(self, payment: PaymentFacts) -> Result[LifecycleOutcome]:
        return self._set_status(
            LifecycleEvent.CHARGE_SUCCEEDED,
            payment.customer_id,
            SubscriptionStatus.ACTIVE,
            has_premium=True,
            subject="Charge Succeeded",
            body="Your payment went through and premium features are active.",
        )

    def handle_payment_intent_succeeded(self, payment: PaymentFacts) -> Result[LifecycleOutcome]:
        return self._set_status(
            LifecycleEvent.PAYMENT_INTENT_SUCCEEDED,
            payment.customer_id,
            SubscriptionStatus.ACTIVE,
            has_premium=True,
            subject="Payment Intent Succeeded",
            body="Your payment was confirmed and premium features are active.",
        )

    def handle_payment_intent_canceled(self, payment: PaymentFacts) -> Result[LifecycleOutcome]:
        return self._set_status(
            LifecycleEvent.PAYMENT_INTENT_CANCELED,
            payment.customer_id,
            SubscriptionStatus.CANCELED,
            has_premium=False,
            subject="Payment Intent Cancelled",
            body="Your payment attempt was cancelled and premium features are disabled.",
        )

    # --- Helpers ---

    def _set_status(
        self,
        event: LifecycleEvent,
        customer_id: str | None,
        status: SubscriptionStatus,
        has_premium: bool,
        subject: str,
        body: str,
        end_date: datetime | None = None,
        replace_end_date: bool = False,
    ) -> Result[LifecycleOutcome]:
        account = self._find_account(customer_id)
        if account is None:
            return self._ignored(event, customer_id)

        state = AccountState(
            subscription_status=status,
            has_premium_features=has_premium,
            subscription_end_date=end_date if replace_end_date else account.subscription_end_date,
        )
        account = self.account_repo.save_state(account, state)
        return self._applied(event, account, Notification(str(account.email), subject, body))

    def _find_account(self, customer_id: str | None) -> Account | None:
        if not customer_id:
            return None
        return self.account_repo.get_by_customer_id(customer_id)

    def _ignored(self, event: LifecycleEvent, customer_id: str | None) -> Result[LifecycleOutcome]:
        logger.info("Ignoring %s for unknown customer %s", event.value, customer_id)
        return Result.success(LifecycleOutcome(event=event))

    def _applied(
        self, event: LifecycleEvent, account: Account, notification: Notification | None
    ) -> Result[LifecycleOutcome]:
        status = SubscriptionStatus(account.subscription_status)
        logger.info("Applied %s to account %s: status=%s", event.value, account.id, status.value)
        return Result.success(
            LifecycleOutcome(
                event=event,
                applied=True,
                account_id=account.id,  # type: ignore[arg-type]
                subscription_status=status,
                notification=notification,
            )
        )
