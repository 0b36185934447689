from sqlalchemy.orm import Session

from app.models.plan import Plan
from app.schemas.plan import PlanCreate

DEFAULT_PLANS = [
    PlanCreate(name="Basic", monthly_usage_limit=1000, provider_price_id="price_basic_placeholder"),
    PlanCreate(
        name="Premium", monthly_usage_limit=10000, provider_price_id="price_premium_placeholder"
    ),
    PlanCreate(name="FreeTrial", monthly_usage_limit=200, provider_price_id=None),
]


class PlanRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_all(self) -> list[Plan]:
        return self.db.query(Plan).order_by(Plan.name).all()

    def get_by_name(self, name: str) -> Plan | None:
        return self.db.query(Plan).filter(Plan.name == name).first()

    def get_by_price_id(self, provider_price_id: str) -> Plan | None:
        return self.db.query(Plan).filter(Plan.provider_price_id == provider_price_id).first()

    def get_purchasable(self, exclude_price_id: str | None = None) -> list[Plan]:
        """Plans backed by a provider price, optionally excluding the current one."""
        query = self.db.query(Plan).filter(Plan.provider_price_id.isnot(None))
        if exclude_price_id is not None:
            query = query.filter(Plan.provider_price_id != exclude_price_id)
        return query.order_by(Plan.name).all()

    def create(self, data: PlanCreate) -> Plan:
        plan = Plan(**data.model_dump())
        self.db.add(plan)
        self.db.commit()
        self.db.refresh(plan)
        return plan

    def seed_defaults(self) -> list[Plan]:
        """Insert the default catalog entries that are missing. Returns created plans."""
        created: list[Plan] = []
        for data in DEFAULT_PLANS:
            if self.get_by_name(data.name) is None:
                created.append(self.create(data))
        return created
