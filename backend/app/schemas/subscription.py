from datetime import datetime

from pydantic import BaseModel, Field

from app.models.account import SubscriptionStatus
from app.schemas.provider import SubscriptionFacts


class AvailablePlan(BaseModel):
    name: str
    provider_price_id: str
    monthly_usage_limit: int


class SubscriptionDetails(BaseModel):
    email: str
    plan: str
    subscription_status: SubscriptionStatus
    has_premium_features: bool
    subscription_end_date: datetime | None = None
    usage_count: int
    monthly_usage_limit: int | None = None
    current_price_id: str | None = None
    current_period_end: datetime | None = None
    trial_end: datetime | None = None
    cancel_at_period_end: bool = False
    provider_status: str | None = None
    available_plans: list[AvailablePlan] = Field(default_factory=list)


class AnnualSubscriptionResult(BaseModel):
    subscription: SubscriptionFacts
    plan: str | None = None
    billable_months: int
    extra_days: int
    backdate_start: datetime
    billing_anchor: datetime
    period_end: datetime
    days_remaining: int
    prorated_amount: int
