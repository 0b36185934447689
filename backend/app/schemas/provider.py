"""Snapshots of payment provider objects, validated once on ingestion."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class ProviderSubscriptionStatus(str, Enum):
    ACTIVE = "active"
    TRIALING = "trialing"
    CANCELED = "canceled"
    PAST_DUE = "past_due"
    UNPAID = "unpaid"
    INCOMPLETE = "incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired"
    PAUSED = "paused"


class ProrationBehavior(str, Enum):
    CREATE_PRORATIONS = "create_prorations"
    ALWAYS_INVOICE = "always_invoice"
    NONE = "none"


class BillingCycleAnchor(str, Enum):
    NOW = "now"
    UNCHANGED = "unchanged"


class BillingReason(str, Enum):
    AUTOMATIC_PENDING_INVOICE_ITEM_INVOICE = "automatic_pending_invoice_item_invoice"
    MANUAL = "manual"
    QUOTE_ACCEPT = "quote_accept"
    SUBSCRIPTION = "subscription"
    SUBSCRIPTION_CREATE = "subscription_create"
    SUBSCRIPTION_CYCLE = "subscription_cycle"
    SUBSCRIPTION_THRESHOLD = "subscription_threshold"
    SUBSCRIPTION_UPDATE = "subscription_update"
    UPCOMING = "upcoming"


class SubscriptionFacts(BaseModel):
    """Provider subscription snapshot reduced to the fields reconciliation needs."""

    id: str
    customer_id: str | None = None
    status: ProviderSubscriptionStatus
    cancel_at_period_end: bool = False
    trial_end: datetime | None = None
    cancel_at: datetime | None = None
    ended_at: datetime | None = None
    # First (and only) line item
    item_id: str | None = None
    price_id: str | None = None
    price_amount: int | None = None
    current_period_end: datetime | None = None
    latest_invoice_amount_due: int | None = None


class PriceFacts(BaseModel):
    id: str
    amount: int = 0
    currency: str = "usd"
    recurring_interval: str | None = None
    recurring_interval_count: int | None = None
    metadata: dict[str, str] = Field(default_factory=dict)


class InvoiceFacts(BaseModel):
    id: str | None = None
    customer_id: str | None = None
    subscription_id: str | None = None
    billing_reason: BillingReason | None = None
    amount_paid: int = 0
    voided_at: datetime | None = None


class PaymentFacts(BaseModel):
    """Charge or payment intent snapshot."""

    id: str | None = None
    customer_id: str | None = None


class InvoicePreviewLine(BaseModel):
    amount: int
    description: str | None = None


class InvoicePreviewFacts(BaseModel):
    line_items: list[InvoicePreviewLine] = Field(default_factory=list)
    amount_due: int = 0
    currency: str = "usd"


class SubscriptionCreateOptions(BaseModel):
    backdate_start_date: datetime | None = None
    billing_cycle_anchor: datetime | None = None
    proration_behavior: ProrationBehavior | None = None
    trial_end: datetime | None = None
