"""Annual subscriptions that start mid-year and align to a fixed period end."""

import logging
from datetime import UTC, datetime
from enum import Enum

from sqlalchemy.orm import Session

from app.core.errors import ErrorKind, ProviderError, Result
from app.repositories.account_repository import AccountRepository
from app.repositories.plan_repository import PlanRepository
from app.schemas.account import AccountState
from app.schemas.provider import PriceFacts, ProrationBehavior, SubscriptionCreateOptions
from app.schemas.subscription import AnnualSubscriptionResult
from app.services.payment_provider import PaymentProviderBase
from app.services.proration import (
    annual_days_remaining,
    calc_addon_proration,
    calculate_annual_prorated_amount,
)
from app.services.status_mapper import map_subscription_facts

logger = logging.getLogger(__name__)


class BillingPeriod(str, Enum):
    MONTHLY = "monthly"
    ANNUAL = "annual"
    WEEKLY = "weekly"
    DAILY = "daily"
    OTHER = "other"


def classify_price(price: PriceFacts) -> BillingPeriod:
    """Classify a price by its recurring interval.

    An ``is_annual`` metadata flag overrides the interval. Twelve monthly
    intervals count as annual.
    """
    if price.metadata.get("is_annual", "").lower() == "true":
        return BillingPeriod.ANNUAL

    interval = price.recurring_interval
    count = price.recurring_interval_count or 1
    if interval == "year":
        return BillingPeriod.ANNUAL
    if interval == "month":
        if count == 12:
            return BillingPeriod.ANNUAL
        if count == 1:
            return BillingPeriod.MONTHLY
        return BillingPeriod.OTHER
    if interval == "week":
        return BillingPeriod.WEEKLY
    if interval == "day":
        return BillingPeriod.DAILY
    return BillingPeriod.OTHER


def _as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken as UTC, like stored timestamps."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class AnnualSubscriptionService:
    def __init__(self, db: Session, provider: PaymentProviderBase):
        self.db = db
        self.provider = provider
        self.account_repo = AccountRepository(db)
        self.plan_repo = PlanRepository(db)

    def create_annual_subscription(
        self,
        email: str,
        price_id: str,
        payment_method_id: str,
        period_end: datetime,
        start_date: datetime | None = None,
    ) -> Result[AnnualSubscriptionResult]:
        """Subscribe an account to an annual price, billing only the months left until ``period_end``.

        The subscription is created with a backdated start so the provider's
        12-month cycle charges the remaining billable months, and the billing
        anchor is placed after ``period_end`` to absorb leftover days.
        """
        if not price_id:
            return Result.failure(ErrorKind.VALIDATION, "Price ID is required")
        if not payment_method_id:
            return Result.failure(ErrorKind.VALIDATION, "Payment method ID is required")

        now = _as_utc(start_date) if start_date else datetime.now(UTC)
        period_end = _as_utc(period_end)
        if period_end <= now:
            return Result.failure(
                ErrorKind.VALIDATION, "Period end must be after the subscription start"
            )

        account = self.account_repo.get_by_email(email)
        if account is None:
            return Result.failure(ErrorKind.NOT_FOUND, f"No account for {email}")
        if not account.provider_customer_id:
            return Result.failure(
                ErrorKind.VALIDATION, f"Account {email} has no provider customer"
            )

        proration = calc_addon_proration(now, period_end)
        options = SubscriptionCreateOptions(
            backdate_start_date=proration.backdate_start,
            billing_cycle_anchor=proration.billing_anchor,
            proration_behavior=ProrationBehavior.CREATE_PRORATIONS,
        )

        try:
            price = self.provider.get_price(price_id)
            if classify_price(price) != BillingPeriod.ANNUAL:
                return Result.failure(ErrorKind.VALIDATION, f"Price {price_id} is not annual")
            subscription = self.provider.create_subscription(
                str(account.provider_customer_id), price_id, payment_method_id, options
            )
        except ProviderError as e:
            logger.warning("Annual subscription for %s failed at provider: %s", email, e.message)
            return Result.provider_failure(e)

        plan = self.plan_repo.get_by_price_id(price_id)
        mapped = map_subscription_facts(subscription)
        self.account_repo.save_state(
            account,
            AccountState(
                subscription_status=mapped.status,
                has_premium_features=mapped.has_premium,
                subscription_end_date=mapped.subscription_end or period_end,
                plan=str(plan.name) if plan else None,
                provider_subscription_id=subscription.id,
            ),
        )

        logger.info(
            "Created annual subscription %s for %s: %d months, %d extra days",
            subscription.id,
            email,
            proration.billable_months,
            proration.extra_days,
        )
        return Result.success(
            AnnualSubscriptionResult(
                subscription=subscription,
                plan=str(plan.name) if plan else None,
                billable_months=proration.billable_months,
                extra_days=proration.extra_days,
                backdate_start=proration.backdate_start,
                billing_anchor=proration.billing_anchor,
                period_end=period_end,
                days_remaining=annual_days_remaining(now, period_end),
                prorated_amount=calculate_annual_prorated_amount(price.amount, now, period_end),
            )
        )
