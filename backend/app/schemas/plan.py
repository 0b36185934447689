from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class PlanCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    monthly_usage_limit: int = Field(default=0, ge=0)
    provider_price_id: str | None = Field(default=None, max_length=255)


class PlanResponse(BaseModel):
    id: UUID
    name: str
    monthly_usage_limit: int
    provider_price_id: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
