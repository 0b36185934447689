from app.repositories.account_repository import AccountRepository
from app.repositories.plan_repository import PlanRepository

__all__ = [
    "AccountRepository",
    "PlanRepository",
]
