from app.schemas.account import AccountCreate, AccountResponse, AccountState
from app.schemas.plan import PlanCreate, PlanResponse
from app.schemas.plan_change import ChangePlanResult, PlanChangePreview
from app.schemas.provider import (
    BillingCycleAnchor,
    BillingReason,
    InvoiceFacts,
    InvoicePreviewFacts,
    InvoicePreviewLine,
    PaymentFacts,
    PriceFacts,
    ProrationBehavior,
    ProviderSubscriptionStatus,
    SubscriptionCreateOptions,
    SubscriptionFacts,
)
from app.schemas.subscription import AnnualSubscriptionResult, AvailablePlan, SubscriptionDetails

__all__ = [
    "AccountCreate",
    "AccountResponse",
    "AccountState",
    "AnnualSubscriptionResult",
    "AvailablePlan",
    "BillingCycleAnchor",
    "BillingReason",
    "ChangePlanResult",
    "InvoiceFacts",
    "InvoicePreviewFacts",
    "InvoicePreviewLine",
    "PaymentFacts",
    "PlanChangePreview",
    "PlanCreate",
    "PlanResponse",
    "PriceFacts",
    "ProrationBehavior",
    "ProviderSubscriptionStatus",
    "SubscriptionCreateOptions",
    "SubscriptionDetails",
    "SubscriptionFacts",
]
