import datetime as dt
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum as SqlEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from famsplit.models.base import Base

MONEY = Numeric(12, 2)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RoleEnum(str, Enum):
    admin = "admin"
    member = "member"


class MemberStatusEnum(str, Enum):
    pending = "pending"
    active = "active"
    inactive = "inactive"


class SplitTypeEnum(str, Enum):
    equal = "equal"
    percentage = "percentage"
    manual = "manual"


class TransactionTypeEnum(str, Enum):
    settlement_sent = "settlement_sent"
    settlement_received = "settlement_received"
    expense_paid = "expense_paid"
    expense_owed = "expense_owed"


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    avatar_url: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)


class Family(Base):
    __tablename__ = "families"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_by_user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)


class FamilyMember(Base):
    __tablename__ = "family_members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    family_id: Mapped[int] = mapped_column(ForeignKey("families.id"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    role: Mapped[RoleEnum] = mapped_column(SqlEnum(RoleEnum), nullable=False, default=RoleEnum.member)
    status: Mapped[MemberStatusEnum] = mapped_column(
        SqlEnum(MemberStatusEnum), nullable=False, default=MemberStatusEnum.pending
    )
    invited_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"))
    joined_at: Mapped[datetime | None] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    __table_args__ = (UniqueConstraint("family_id", "user_id", name="uq_family_members_family_user"),)


class Wallet(Base):
    __tablename__ = "wallets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    family_member_id: Mapped[int] = mapped_column(
        ForeignKey("family_members.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    # Positive: the family owes this member. Negative: this member owes the family.
    balance: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0.00"))
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)


class Project(Base):
    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    family_id: Mapped[int] = mapped_column(ForeignKey("families.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    budget: Mapped[Decimal | None] = mapped_column(MONEY)
    description: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    __table_args__ = (CheckConstraint("budget IS NULL OR budget >= 0", name="ck_projects_budget_non_negative"),)


class Expense(Base):
    __tablename__ = "expenses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    family_id: Mapped[int] = mapped_column(ForeignKey("families.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False, default="other")
    paid_by_member_id: Mapped[int] = mapped_column(ForeignKey("family_members.id"), nullable=False)
    project_id: Mapped[int | None] = mapped_column(ForeignKey("projects.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (CheckConstraint("amount > 0", name="ck_expenses_amount_positive"),)


class ExpenseSplit(Base):
    __tablename__ = "expense_splits"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    expense_id: Mapped[int] = mapped_column(ForeignKey("expenses.id", ondelete="CASCADE"), nullable=False)
    member_id: Mapped[int] = mapped_column(ForeignKey("family_members.id"), nullable=False)
    amount_owed: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    split_type: Mapped[SplitTypeEnum] = mapped_column(SqlEnum(SplitTypeEnum), nullable=False)
    percentage: Mapped[Decimal | None] = mapped_column(Numeric(7, 4))

    __table_args__ = (UniqueConstraint("expense_id", "member_id", name="uq_expense_splits_expense_member"),)


class Transaction(Base):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    wallet_id: Mapped[int] = mapped_column(ForeignKey("wallets.id", ondelete="CASCADE"), nullable=False)
    type: Mapped[TransactionTypeEnum] = mapped_column(SqlEnum(TransactionTypeEnum), nullable=False)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    related_expense_id: Mapped[int | None] = mapped_column(ForeignKey("expenses.id", ondelete="CASCADE"))
    related_member_id: Mapped[int | None] = mapped_column(ForeignKey("family_members.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    __table_args__ = (CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),)


Index("ix_family_members_family_status", FamilyMember.family_id, FamilyMember.status)
Index("ix_expenses_family_date", Expense.family_id, Expense.date)
Index("ix_expense_splits_expense", ExpenseSplit.expense_id)
Index("ix_transactions_wallet_created", Transaction.wallet_id, Transaction.created_at)
Index("ix_transactions_related_expense", Transaction.related_expense_id)
Index("ix_projects_family", Project.family_id)
