from __future__ import annotations

import datetime as dt
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from famsplit.schemas.money import Money


class SplitDetailPayload(BaseModel):
    member_id: int
    percentage: Money | None = Field(default=None, ge=0, le=100)
    amount_owed: Money | None = Field(default=None, ge=0)


class ExpenseCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    amount: Money = Field(gt=0)
    date: dt.date | None = None
    category: str | None = Field(default=None, max_length=100)
    paid_by_member_id: int
    project_id: int | None = None
    split_type: str
    split_details: list[SplitDetailPayload] | None = None


class ExpenseUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    amount: Money | None = Field(default=None, gt=0)
    date: dt.date | None = None
    category: str | None = Field(default=None, min_length=1, max_length=100)
    paid_by_member_id: int | None = None
    project_id: int | None = None
    split_type: str | None = None
    split_details: list[SplitDetailPayload] | None = None


class SplitLineResponse(BaseModel):
    member_id: int
    user_id: int
    name: str
    email: str
    amount_owed: Decimal
    split_type: str
    percentage: Decimal | None = None


class ExpenseResponse(BaseModel):
    id: int
    family_id: int
    title: str
    amount: Decimal
    date: dt.date
    category: str
    paid_by_member_id: int
    paid_by_name: str
    paid_by_email: str
    project_id: int | None = None
    project_name: str | None = None
    created_at: datetime
    splits: list[SplitLineResponse]


class ExpenseListResponse(BaseModel):
    items: list[ExpenseResponse]
