from sqlalchemy import Column, Integer, String

from app.core.database import Base
from app.models.shared import UTCDateTime, UUIDType, generate_uuid, utc_now


class Plan(Base):
    __tablename__ = "plans"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    name = Column(String(255), unique=True, index=True, nullable=False)
    monthly_usage_limit = Column(Integer, nullable=False, default=0)
    # Trial-only plans have no provider price
    provider_price_id = Column(String(255), unique=True, index=True, nullable=True)
    created_at = Column(UTCDateTime, default=utc_now)
    updated_at = Column(UTCDateTime, default=utc_now, onupdate=utc_now)
