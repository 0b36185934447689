"""Account registration and subscription management against the payment provider."""

import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import ErrorKind, ProviderError, Result
from app.models.account import Account, SubscriptionStatus
from app.repositories.account_repository import AccountRepository
from app.repositories.plan_repository import PlanRepository
from app.schemas.account import AccountCreate, AccountState
from app.schemas.provider import SubscriptionFacts
from app.schemas.subscription import AvailablePlan, SubscriptionDetails
from app.services.payment_provider import PaymentProviderBase
from app.services.status_mapper import map_subscription_facts

logger = logging.getLogger(__name__)


class AccountService:
    def __init__(self, db: Session, provider: PaymentProviderBase):
        self.db = db
        self.provider = provider
        self.account_repo = AccountRepository(db)
        self.plan_repo = PlanRepository(db)

    def register_account(self, email: str) -> Result[Account]:
        """Register ``email`` with the provider and start the free trial.

        An account that already has a provider customer is returned unchanged.
        An account without one only gets the customer reference attached.
        """
        if not email or not email.strip():
            return Result.failure(ErrorKind.VALIDATION, "Email is required")

        existing = self.account_repo.get_by_email(email)
        if existing is not None and existing.provider_customer_id:
            return Result.success(existing)

        try:
            customer_id = self.provider.create_customer(email)
        except ProviderError as e:
            return Result.provider_failure(e)

        if existing is not None:
            return Result.success(self.account_repo.set_customer_id(existing, customer_id))

        trial_plan = self.plan_repo.get_by_name(settings.FREE_TRIAL_PLAN)
        account = self.account_repo.create(
            AccountCreate(
                email=email,
                provider_customer_id=customer_id,
                plan=str(trial_plan.name) if trial_plan else settings.FREE_TRIAL_PLAN,
                subscription_status=SubscriptionStatus.TRIAL,
                has_premium_features=True,
                subscription_end_date=datetime.now(UTC) + timedelta(days=settings.FREE_TRIAL_DAYS),
            )
        )
        logger.info("Registered account %s with customer %s", account.id, customer_id)
        return Result.success(account)

    def create_subscription(
        self, email: str, price_id: str, payment_method_id: str
    ) -> Result[SubscriptionFacts]:
        """Create a provider subscription and record its reference.

        The account status is left to the subscription/invoice events that follow.
        """
        if not email or not price_id:
            return Result.failure(ErrorKind.VALIDATION, "Email and price ID are required")
        if not payment_method_id:
            return Result.failure(ErrorKind.VALIDATION, "Payment method ID is required")

        account = self.account_repo.get_by_email(email)
        if account is None:
            return Result.failure(ErrorKind.NOT_FOUND, f"No account for {email}")
        if not account.provider_customer_id:
            return Result.failure(
                ErrorKind.VALIDATION, f"Account {email} has no provider customer"
            )

        try:
            subscription = self.provider.create_subscription(
                str(account.provider_customer_id), price_id, payment_method_id
            )
        except ProviderError as e:
            return Result.provider_failure(e)

        plan = self.plan_repo.get_by_price_id(price_id)
        self.account_repo.update_subscription_ref(
            account, subscription.id, plan=str(plan.name) if plan else None
        )
        logger.info(
            "Created subscription %s for account %s (provider status %s)",
            subscription.id,
            account.id,
            subscription.status.value,
        )
        return Result.success(subscription)

    def cancel_subscription(
        self, subscription_id: str, at_period_end: bool = False
    ) -> Result[SubscriptionFacts]:
        """Cancel now or at period end, then reconcile the account from the provider's answer."""
        if not subscription_id:
            return Result.failure(ErrorKind.VALIDATION, "Subscription ID is required")

        try:
            subscription = self.provider.cancel_subscription(subscription_id, at_period_end)
        except ProviderError as e:
            return Result.provider_failure(e)

        account = self.account_repo.get_by_subscription_id(subscription_id)
        if account is not None:
            mapped = map_subscription_facts(subscription)
            self.account_repo.save_state(
                account,
                AccountState(
                    subscription_status=mapped.status,
                    has_premium_features=mapped.has_premium,
                    subscription_end_date=mapped.subscription_end,
                ),
            )
        return Result.success(subscription)

    def get_subscription_details(self, email: str) -> Result[SubscriptionDetails]:
        if not email:
            return Result.failure(ErrorKind.VALIDATION, "Email is required")

        account = self.account_repo.get_by_email(email)
        if account is None:
            return Result.failure(ErrorKind.NOT_FOUND, f"No account for {email}")

        details = SubscriptionDetails(
            email=str(account.email),
            plan=str(account.plan),
            subscription_status=SubscriptionStatus(account.subscription_status),
            has_premium_features=bool(account.has_premium_features),
            subscription_end_date=account.subscription_end_date,  # type: ignore[arg-type]
            usage_count=int(account.usage_count),
        )
        if not account.provider_subscription_id:
            plan = self.plan_repo.get_by_name(str(account.plan))
            if plan is not None:
                details.monthly_usage_limit = int(plan.monthly_usage_limit)
            return Result.success(details)

        try:
            subscription = self.provider.get_subscription(str(account.provider_subscription_id))
        except ProviderError as e:
            return Result.provider_failure(e)

        current_plan = (
            self.plan_repo.get_by_price_id(subscription.price_id) if subscription.price_id else None
        )
        if current_plan is not None:
            details.plan = str(current_plan.name)
            details.monthly_usage_limit = int(current_plan.monthly_usage_limit)
        details.current_price_id = subscription.price_id
        details.current_period_end = subscription.current_period_end
        details.trial_end = subscription.trial_end
        details.cancel_at_period_end = subscription.cancel_at_period_end
        details.provider_status = subscription.status.value
        details.available_plans = [
            AvailablePlan(
                name=str(plan.name),
                provider_price_id=str(plan.provider_price_id),
                monthly_usage_limit=int(plan.monthly_usage_limit),
            )
            for plan in self.plan_repo.get_purchasable(exclude_price_id=subscription.price_id)
        ]
        return Result.success(details)
