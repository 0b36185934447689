from app.models.account import Account, SubscriptionStatus
from app.models.plan import Plan

__all__ = [
    "Account",
    "Plan",
    "SubscriptionStatus",
]
