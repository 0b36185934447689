from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from app.models.account import SubscriptionStatus


class AccountCreate(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    provider_customer_id: str | None = Field(default=None, max_length=255)
    plan: str = Field(..., min_length=1, max_length=255)
    subscription_status: SubscriptionStatus = SubscriptionStatus.TRIAL
    has_premium_features: bool = False
    subscription_end_date: datetime | None = None


class AccountState(BaseModel):
    """Reconciled subscription fields committed together for one account."""

    subscription_status: SubscriptionStatus
    has_premium_features: bool
    subscription_end_date: datetime | None = None
    plan: str | None = None
    provider_subscription_id: str | None = None
    reset_usage: bool = False


class AccountResponse(BaseModel):
    id: UUID
    email: str
    provider_customer_id: str | None
    provider_subscription_id: str | None
    plan: str
    subscription_status: SubscriptionStatus
    has_premium_features: bool
    subscription_end_date: datetime | None
    usage_count: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
