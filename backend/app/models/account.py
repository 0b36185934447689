from enum import Enum

from sqlalchemy import Boolean, Column, Integer, String

from app.core.database import Base
from app.models.shared import UTCDateTime, UUIDType, generate_uuid, utc_now


class SubscriptionStatus(str, Enum):
    ACTIVE = "Active"
    TRIAL = "Trial"
    PENDING_CANCEL = "PendingCancel"
    PAST_DUE = "PastDue"
    INCOMPLETE = "Incomplete"
    CANCELED = "Canceled"


class Account(Base):
    __tablename__ = "accounts"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, index=True, nullable=False)
    provider_customer_id = Column(String(255), unique=True, index=True, nullable=True)
    provider_subscription_id = Column(String(255), index=True, nullable=True)
    plan = Column(String(255), nullable=False)
    subscription_status = Column(
        String(20), nullable=False, default=SubscriptionStatus.TRIAL.value, index=True
    )
    has_premium_features = Column(Boolean, nullable=False, default=False)
    subscription_end_date = Column(UTCDateTime, nullable=True)
    usage_count = Column(Integer, nullable=False, default=0)
    created_at = Column(UTCDateTime, default=utc_now)
    updated_at = Column(UTCDateTime, default=utc_now, onupdate=utc_now)
