"""Service for plan changes (upgrades/downgrades) on provider subscriptions.

Callers must not run a change and a preview concurrently for the same
subscription: both read the provider's current item id before writing.
"""

import logging
from datetime import UTC, datetime

from sqlalchemy.orm import Session

from app.core.errors import ErrorKind, ProviderError, Result
from app.models.account import SubscriptionStatus
from app.repositories.account_repository import AccountRepository
from app.repositories.plan_repository import PlanRepository
from app.schemas.account import AccountState
from app.schemas.plan_change import ChangePlanResult, PlanChangePreview
from app.schemas.provider import (
    BillingCycleAnchor,
    InvoicePreviewFacts,
    ProrationBehavior,
    SubscriptionFacts,
)
from app.services.payment_provider import PaymentProviderBase
from app.services.proration import add_months
from app.services.status_mapper import map_subscription_facts

logger = logging.getLogger(__name__)


def resolve_proration_behavior(
    requested: ProrationBehavior, is_upgrade: bool
) -> ProrationBehavior:
    """Upgrades requested with standard prorations are invoiced immediately.

    Downgrades keep the requested behavior, so credits wait for the next invoice.
    """
    if is_upgrade and requested == ProrationBehavior.CREATE_PRORATIONS:
        return ProrationBehavior.ALWAYS_INVOICE
    return requested


def split_preview_lines(preview: InvoicePreviewFacts) -> tuple[int, int]:
    """Return (credits, charges): sums of negative and positive line amounts."""
    credits = sum(line.amount for line in preview.line_items if line.amount < 0)
    charges = sum(line.amount for line in preview.line_items if line.amount > 0)
    return credits, charges


class PlanChangeService:
    """Service for switching a subscription to another price and previewing the cost."""

    def __init__(self, db: Session, provider: PaymentProviderBase):
        self.db = db
        self.provider = provider
        self.account_repo = AccountRepository(db)
        self.plan_repo = PlanRepository(db)

    def change_plan(
        self,
        subscription_id: str,
        new_price_id: str,
        proration_behavior: ProrationBehavior = ProrationBehavior.CREATE_PRORATIONS,
        reset_billing_cycle: bool = False,
    ) -> Result[ChangePlanResult]:
        """Swap the subscription's item to ``new_price_id`` and reconcile the account.

        1. Resolve the local account and the target catalog plan
        2. Compare current and new price amounts to classify the change
        3. Escalate upgrades to immediate invoicing, keep the anchor unless a reset was asked
        4. Apply the swap at the provider
        5. Map the returned subscription and commit plan, status and end date together
        """
        if not subscription_id:
            return Result.failure(ErrorKind.VALIDATION, "Subscription ID is required")
        if not new_price_id:
            return Result.failure(ErrorKind.VALIDATION, "New price ID is required")

        account = self.account_repo.get_by_subscription_id(subscription_id)
        if account is None:
            return Result.failure(
                ErrorKind.NOT_FOUND, f"No account for subscription {subscription_id}"
            )

        new_plan = self.plan_repo.get_by_price_id(new_price_id)
        if new_plan is None:
            return Result.failure(ErrorKind.NOT_FOUND, f"No plan for price {new_price_id}")

        try:
            current = self.provider.get_subscription(subscription_id)
            if current.item_id is None:
                return Result.failure(
                    ErrorKind.NOT_FOUND, f"Subscription {subscription_id} has no items"
                )
            new_price = self.provider.get_price(new_price_id)

            old_amount = current.price_amount or 0
            is_upgrade = new_price.amount > old_amount
            is_downgrade = new_price.amount < old_amount
            behavior = resolve_proration_behavior(proration_behavior, is_upgrade)
            anchor = BillingCycleAnchor.NOW if reset_billing_cycle else BillingCycleAnchor.UNCHANGED

            updated = self.provider.update_subscription_item(
                subscription_id, current.item_id, new_price_id, behavior, anchor
            )
        except ProviderError as e:
            logger.warning("Plan change for %s failed at provider: %s", subscription_id, e.message)
            return Result.provider_failure(e)

        mapped = map_subscription_facts(updated)
        state = AccountState(
            subscription_status=mapped.status,
            has_premium_features=mapped.has_premium,
            subscription_end_date=mapped.subscription_end or updated.current_period_end,
            plan=str(new_plan.name),
        )
        account = self.account_repo.save_state(account, state)

        old_plan = (
            self.plan_repo.get_by_price_id(current.price_id) if current.price_id else None
        )
        now = datetime.now(UTC)
        if reset_billing_cycle:
            effective_date = now
        else:
            effective_date = updated.current_period_end or add_months(now, 1)

        logger.info(
            "Changed subscription %s from %s to %s (%s, proration=%s)",
            subscription_id,
            current.price_id,
            new_price_id,
            "upgrade" if is_upgrade else "downgrade" if is_downgrade else "same price",
            behavior.value,
        )

        return Result.success(
            ChangePlanResult(
                old_price_id=current.price_id,
                new_price_id=new_price_id,
                old_plan=str(old_plan.name) if old_plan else None,
                new_plan=str(new_plan.name),
                is_upgrade=is_upgrade,
                is_downgrade=is_downgrade,
                proration_behavior=behavior,
                effective_date=effective_date,
                current_period_end=updated.current_period_end,
                subscription_status=SubscriptionStatus(account.subscription_status),
                has_premium_features=bool(account.has_premium_features),
                provider_status=updated.status.value,
                prorated_amount_due=self._prorated_amount_due(updated, behavior),
            )
        )

    def preview_plan_change(
        self, subscription_id: str, new_price_id: str
    ) -> Result[PlanChangePreview]:
        """Quote a plan change without modifying anything.

        Falls back to the plain price difference, flagged with ``is_estimate``,
        when the provider cannot build a preview invoice.
        """
        if not subscription_id:
            return Result.failure(ErrorKind.VALIDATION, "Subscription ID is required")
        if not new_price_id:
            return Result.failure(ErrorKind.VALIDATION, "New price ID is required")

        try:
            current = self.provider.get_subscription(subscription_id)
            if current.item_id is None:
                return Result.failure(
                    ErrorKind.NOT_FOUND, f"Subscription {subscription_id} has no items"
                )
            new_price = self.provider.get_price(new_price_id)
        except ProviderError as e:
            return Result.provider_failure(e)

        old_amount = current.price_amount or 0
        new_amount = new_price.amount
        currency = new_price.currency
        is_estimate = False

        preview: InvoicePreviewFacts | None = None
        if current.customer_id:
            try:
                preview = self.provider.create_invoice_preview(
                    current.customer_id, current.item_id, new_price_id
                )
            except ProviderError as e:
                logger.warning(
                    "Invoice preview for %s unavailable, estimating from price difference: %s",
                    subscription_id,
                    e.message,
                )
        else:
            logger.warning(
                "Subscription %s has no customer to preview against, estimating", subscription_id
            )

        if preview is not None:
            credits, charges = split_preview_lines(preview)
            immediate_amount_due = preview.amount_due
            currency = preview.currency
        else:
            is_estimate = True
            difference = new_amount - old_amount
            charges = difference if difference > 0 else 0
            credits = difference if difference < 0 else 0
            immediate_amount_due = max(0, difference)

        old_plan = self.plan_repo.get_by_price_id(current.price_id) if current.price_id else None
        new_plan = self.plan_repo.get_by_price_id(new_price_id)

        return Result.success(
            PlanChangePreview(
                old_price_id=current.price_id,
                new_price_id=new_price_id,
                old_plan=str(old_plan.name) if old_plan else None,
                new_plan=str(new_plan.name) if new_plan else None,
                old_price_amount=old_amount,
                new_price_amount=new_amount,
                is_upgrade=new_amount > old_amount,
                is_downgrade=new_amount < old_amount,
                prorated_credits=credits,
                prorated_charges=charges,
                immediate_amount_due=immediate_amount_due,
                next_billing_date=current.current_period_end,
                currency=currency,
                is_estimate=is_estimate,
            )
        )

    def _prorated_amount_due(
        self, updated: SubscriptionFacts, behavior: ProrationBehavior
    ) -> int | None:
        # Only an immediate invoice reflects the proration; otherwise it is unknown here
        if behavior == ProrationBehavior.ALWAYS_INVOICE:
            return updated.latest_invoice_amount_due
        return None
