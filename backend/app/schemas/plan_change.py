from datetime import datetime

from pydantic import BaseModel

from app.models.account import SubscriptionStatus
from app.schemas.provider import ProrationBehavior


class ChangePlanResult(BaseModel):
    old_price_id: str | None
    new_price_id: str
    old_plan: str | None = None
    new_plan: str
    is_upgrade: bool
    is_downgrade: bool
    proration_behavior: ProrationBehavior
    effective_date: datetime
    current_period_end: datetime | None = None
    subscription_status: SubscriptionStatus
    has_premium_features: bool
    provider_status: str
    # None means the provider did not report it, not zero
    prorated_amount_due: int | None = None


class PlanChangePreview(BaseModel):
    old_price_id: str | None
    new_price_id: str
    old_plan: str | None = None
    new_plan: str | None = None
    old_price_amount: int
    new_price_amount: int
    is_upgrade: bool
    is_downgrade: bool
    prorated_credits: int
    prorated_charges: int
    immediate_amount_due: int
    next_billing_date: datetime | None = None
    currency: str
    # True when the provider could not quote and the figures are a price-difference estimate
    is_estimate: bool = False
