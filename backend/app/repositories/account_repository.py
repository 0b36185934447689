from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.account import Account
from app.schemas.account import AccountCreate, AccountState


class AccountRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, account_id: UUID) -> Account | None:
        return self.db.query(Account).filter(Account.id == account_id).first()

    def get_by_email(self, email: str) -> Account | None:
        return self.db.query(Account).filter(Account.email == email).first()

    def get_by_customer_id(self, provider_customer_id: str) -> Account | None:
        return (
            self.db.query(Account)
            .filter(Account.provider_customer_id == provider_customer_id)
            .first()
        )

    def get_by_subscription_id(self, provider_subscription_id: str) -> Account | None:
        return (
            self.db.query(Account)
            .filter(Account.provider_subscription_id == provider_subscription_id)
            .first()
        )

    def create(self, data: AccountCreate) -> Account:
        values = data.model_dump()
        values["subscription_status"] = data.subscription_status.value
        account = Account(**values)
        self.db.add(account)
        self.db.commit()
        self.db.refresh(account)
        return account

    def set_customer_id(self, account: Account, provider_customer_id: str) -> Account:
        account.provider_customer_id = provider_customer_id  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(account)
        return account

    def save_state(self, account: Account, state: AccountState) -> Account:
        """Commit every reconciled field of one account in a single transaction."""
        account.subscription_status = state.subscription_status.value  # type: ignore[assignment]
        account.has_premium_features = state.has_premium_features  # type: ignore[assignment]
        account.subscription_end_date = state.subscription_end_date  # type: ignore[assignment]
        if state.plan is not None:
            account.plan = state.plan  # type: ignore[assignment]
        if state.provider_subscription_id is not None:
            account.provider_subscription_id = state.provider_subscription_id  # type: ignore[assignment]
        if state.reset_usage:
            account.usage_count = 0  # type: ignore[assignment]

        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self.db.refresh(account)
        return account

    def update_subscription_ref(
        self, account: Account, provider_subscription_id: str, plan: str | None = None
    ) -> Account:
        account.provider_subscription_id = provider_subscription_id  # type: ignore[assignment]
        if plan is not None:
            account.plan = plan  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(account)
        return account

    def increment_usage(self, account: Account, amount: int = 1) -> Account:
        account.usage_count = int(account.usage_count) + amount  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(account)
        return account
