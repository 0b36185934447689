"""Monthly usage metering against the account's plan limit."""

import logging

from sqlalchemy.orm import Session

from app.core.errors import ErrorKind, Result
from app.models.account import Account
from app.models.plan import Plan
from app.repositories.account_repository import AccountRepository
from app.repositories.plan_repository import PlanRepository
from app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


class UsageService:
    def __init__(self, db: Session, notifications: NotificationService | None = None):
        self.db = db
        self.notifications = notifications
        self.account_repo = AccountRepository(db)
        self.plan_repo = PlanRepository(db)

    def remaining(self, account: Account) -> Result[int]:
        plan = self._plan_for(account)
        if plan is None:
            return Result.failure(ErrorKind.NOT_FOUND, f"Unknown plan {account.plan}")
        return Result.success(max(0, int(plan.monthly_usage_limit) - int(account.usage_count)))

    def can_consume(self, account: Account, amount: int = 1) -> Result[bool]:
        remaining = self.remaining(account)
        if not remaining.ok:
            return Result(error=remaining.error)
        return Result.success(amount <= (remaining.value or 0))

    def record_usage(self, email: str, amount: int = 1) -> Result[Account]:
        """Count ``amount`` units against the current month, refusing past the plan limit."""
        if amount < 1:
            return Result.failure(ErrorKind.VALIDATION, "Usage amount must be positive")

        account = self.account_repo.get_by_email(email)
        if account is None:
            return Result.failure(ErrorKind.NOT_FOUND, f"No account for {email}")

        allowed = self.can_consume(account, amount)
        if not allowed.ok:
            return Result(error=allowed.error)
        if not allowed.value:
            logger.info("Account %s reached its monthly limit on plan %s", account.id, account.plan)
            return Result.failure(ErrorKind.LIMIT_REACHED, "Monthly usage limit reached")

        return Result.success(self.account_repo.increment_usage(account, amount))

    async def send_metered_email(
        self, email: str, to: str, subject: str, body: str
    ) -> Result[Account]:
        """Send an email on behalf of the account, counting it as one unit of usage.

        Usage is recorded only when delivery succeeded.
        """
        account = self.account_repo.get_by_email(email)
        if account is None:
            return Result.failure(ErrorKind.NOT_FOUND, f"No account for {email}")

        allowed = self.can_consume(account)
        if not allowed.ok:
            return Result(error=allowed.error)
        if not allowed.value:
            return Result.failure(ErrorKind.LIMIT_REACHED, "Monthly usage limit reached")

        notifications = self.notifications or NotificationService()
        if not await notifications.notify(to, subject, body):
            return Result.failure(ErrorKind.DELIVERY, f"Email to {to} was not delivered")
        return Result.success(self.account_repo.increment_usage(account))

    def _plan_for(self, account: Account) -> Plan | None:
        return self.plan_repo.get_by_name(str(account.plan))
