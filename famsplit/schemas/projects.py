from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from famsplit.schemas.money import Money


class ProjectCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    budget: Money | None = Field(default=None, ge=0)
    description: str | None = None


class ProjectUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    budget: Money | None = Field(default=None, ge=0)
    description: str | None = None


class ProjectResponse(BaseModel):
    id: int
    family_id: int
    name: str
    budget: Decimal | None = None
    description: str | None = None
    created_at: datetime
    total_spent: Decimal


class ProjectListResponse(BaseModel):
    items: list[ProjectResponse]
