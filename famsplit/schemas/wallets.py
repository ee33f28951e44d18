from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel

from famsplit.schemas.money import Money


class SettlementCreate(BaseModel):
    payer_member_id: int | None = None
    receiver_member_id: int | None = None
    amount: Money | None = None


class SettlementResponse(BaseModel):
    payer_member_id: int
    receiver_member_id: int
    amount: Decimal
    payer_balance: Decimal
    receiver_balance: Decimal
    sent_transaction_id: int
    received_transaction_id: int


class MemberBalanceResponse(BaseModel):
    family_member_id: int
    user_id: int
    member_name: str
    member_email: str
    role: str
    balance: Decimal


class BalanceListResponse(BaseModel):
    items: list[MemberBalanceResponse]


class TransactionResponse(BaseModel):
    id: int
    type: str
    amount: Decimal
    description: str
    created_at: datetime
    related_expense_id: int | None = None
    expense_title: str | None = None
    related_member_id: int | None = None
    related_member_name: str | None = None
    related_member_email: str | None = None


class TransactionListResponse(BaseModel):
    items: list[TransactionResponse]
