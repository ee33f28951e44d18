from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any

import structlog
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from famsplit.core.errors import InvalidSplitInput, NoActiveMembers, NotFoundError, PayerNotActiveMember
from famsplit.models.entities import (
    Expense,
    ExpenseSplit,
    FamilyMember,
    MemberStatusEnum,
    Project,
    SplitTypeEnum,
    User,
)
from famsplit.services.access import Action, authorize
from famsplit.services.splits import SplitDetail, SplitShare, compute_splits, to_money
from famsplit.services.wallets import post_expense, reverse_expense

logger = structlog.get_logger(__name__)

DEFAULT_CATEGORY = "other"


@dataclass(frozen=True)
class ExpenseFilters:
    start_date: date | None = None
    end_date: date | None = None
    category: str | None = None
    paid_by_member_id: int | None = None
    project_id: int | None = None


@dataclass(frozen=True)
class SplitLine:
    member_id: int
    user_id: int
    name: str
    email: str
    amount_owed: Decimal
    split_type: str
    percentage: Decimal | None


@dataclass(frozen=True)
class ExpenseView:
    id: int
    family_id: int
    title: str
    amount: Decimal
    date: date
    category: str
    paid_by_member_id: int
    paid_by_name: str
    paid_by_email: str
    project_id: int | None
    project_name: str | None
    created_at: datetime
    splits: list[SplitLine] = field(default_factory=list)


def active_member_ids(db: Session, family_id: int) -> list[int]:
    return list(
        db.execute(
            select(FamilyMember.id)
            .where(FamilyMember.family_id == family_id, FamilyMember.status == MemberStatusEnum.active)
            .order_by(FamilyMember.id.asc())
        ).scalars()
    )


def _require_active_payer(db: Session, family_id: int, member_id: int) -> FamilyMember:
    member = db.get(FamilyMember, member_id)
    if member is None or member.family_id != family_id or member.status != MemberStatusEnum.active:
        raise PayerNotActiveMember()
    return member


def _require_project(db: Session, family_id: int, project_id: int) -> Project:
    project = db.get(Project, project_id)
    if project is None or project.family_id != family_id:
        raise NotFoundError("project not found in this family")
    return project


def require_expense(db: Session, family_id: int, expense_id: int) -> Expense:
    expense = db.get(Expense, expense_id)
    if expense is None or expense.family_id != family_id:
        raise NotFoundError("expense not found in this family")
    return expense


def _coerce_details(items: Iterable[SplitDetail | Mapping[str, Any]] | None) -> list[SplitDetail] | None:
    if items is None:
        return None
    details: list[SplitDetail] = []
    for item in items:
        if isinstance(item, SplitDetail):
            details.append(item)
        else:
            details.append(
                SplitDetail(
                    member_id=item.get("member_id"),
                    percentage=item.get("percentage"),
                    amount_owed=item.get("amount_owed"),
                )
            )
    return details


def _calculate(db: Session, family_id: int, amount: Decimal, split_type, split_details) -> list[SplitShare]:
    member_ids = active_member_ids(db, family_id)
    if not member_ids:
        raise NoActiveMembers()
    return compute_splits(amount, member_ids, split_type, _coerce_details(split_details))


def _store_splits(db: Session, expense_id: int, shares: Sequence[SplitShare]) -> list[ExpenseSplit]:
    rows = [
        ExpenseSplit(
            expense_id=expense_id,
            member_id=share.member_id,
            amount_owed=share.amount_owed,
            split_type=share.split_type,
            percentage=share.percentage,
        )
        for share in shares
    ]
    db.add_all(rows)
    db.flush()
    return rows


def _current_splits(db: Session, expense_id: int) -> list[ExpenseSplit]:
    return list(
        db.execute(
            select(ExpenseSplit).where(ExpenseSplit.expense_id == expense_id).order_by(ExpenseSplit.id.asc())
        ).scalars()
    )


def create_expense(
    db: Session,
    family_id: int,
    actor: FamilyMember,
    *,
    title: str,
    amount: Decimal,
    paid_by_member_id: int,
    split_type: SplitTypeEnum | str,
    split_details: Iterable[SplitDetail | Mapping[str, Any]] | None = None,
    expense_date: date | None = None,
    category: str | None = None,
    project_id: int | None = None,
) -> Expense:
    amount = to_money(amount)
    _require_active_payer(db, family_id, paid_by_member_id)
    if project_id is not None:
        _require_project(db, family_id, project_id)
    shares = _calculate(db, family_id, amount, split_type, split_details)

    expense = Expense(
        family_id=family_id,
        title=title,
        amount=amount,
        date=expense_date or date.today(),
        category=category or DEFAULT_CATEGORY,
        paid_by_member_id=paid_by_member_id,
        project_id=project_id,
    )
    db.add(expense)
    db.flush()
    splits = _store_splits(db, expense.id, shares)
    post_expense(db, expense, splits)

    logger.info(
        "expense_created",
        family_id=family_id,
        expense_id=expense.id,
        amount=str(amount),
        split_type=shares[0].split_type.value,
        actor_member_id=actor.id,
    )
    return expense


def update_expense(
    db: Session,
    family_id: int,
    expense_id: int,
    actor: FamilyMember,
    changes: Mapping[str, Any],
) -> Expense:
    """
    Apply a merge-patch to an expense.

    Keys missing from ``changes`` keep their stored value; ``project_id: None``
    clears the project. A ``split_type`` replaces every split; ``split_details``
    without a ``split_type`` is rejected. Changing the amount alone re-runs the
    stored policy (equal or percentage); manual splits cannot be rescaled and
    must be resubmitted.
    """
    expense = require_expense(db, family_id, expense_id)
    authorize(
        actor,
        Action.manage_expense,
        [expense.paid_by_member_id],
        detail="you must be the payer or a family admin to update this expense",
    )

    payer_id = changes.get("paid_by_member_id")
    if payer_id is not None:
        _require_active_payer(db, family_id, payer_id)
    if changes.get("project_id") is not None:
        _require_project(db, family_id, changes["project_id"])

    amount = to_money(changes["amount"]) if changes.get("amount") is not None else expense.amount
    split_type = changes.get("split_type")
    split_details = changes.get("split_details")
    if split_type is None and split_details is not None:
        raise InvalidSplitInput("split_details can only be sent together with split_type")

    shares: list[SplitShare] | None = None
    if split_type is not None:
        shares = _calculate(db, family_id, amount, split_type, split_details)
    elif amount != expense.amount:
        existing = _current_splits(db, expense.id)
        policy = existing[0].split_type if existing else SplitTypeEnum.equal
        if policy == SplitTypeEnum.manual:
            raise InvalidSplitInput("manual splits must be resubmitted when the amount changes")
        details = None
        if policy == SplitTypeEnum.percentage:
            details = [SplitDetail(member_id=row.member_id, percentage=row.percentage) for row in existing]
        shares = _calculate(db, family_id, amount, policy, details)

    repost = shares is not None or (payer_id is not None and payer_id != expense.paid_by_member_id)
    if repost:
        reverse_expense(db, expense.id)

    if changes.get("title") is not None:
        expense.title = changes["title"]
    if changes.get("date") is not None:
        expense.date = changes["date"]
    if changes.get("category") is not None:
        expense.category = changes["category"]
    if payer_id is not None:
        expense.paid_by_member_id = payer_id
    if "project_id" in changes:
        expense.project_id = changes["project_id"]
    expense.amount = amount

    if shares is not None:
        db.execute(delete(ExpenseSplit).where(ExpenseSplit.expense_id == expense.id))
        _store_splits(db, expense.id, shares)
    db.flush()
    if repost:
        post_expense(db, expense, _current_splits(db, expense.id))

    logger.info(
        "expense_updated",
        family_id=family_id,
        expense_id=expense.id,
        fields=sorted(changes),
        splits_recomputed=shares is not None,
        actor_member_id=actor.id,
    )
    return expense


def delete_expense(db: Session, family_id: int, expense_id: int, actor: FamilyMember) -> None:
    expense = require_expense(db, family_id, expense_id)
    authorize(
        actor,
        Action.manage_expense,
        [expense.paid_by_member_id],
        detail="you must be the payer or a family admin to delete this expense",
    )
    reverse_expense(db, expense.id)
    db.execute(delete(ExpenseSplit).where(ExpenseSplit.expense_id == expense.id))
    db.delete(expense)
    db.flush()
    logger.info("expense_deleted", family_id=family_id, expense_id=expense_id, actor_member_id=actor.id)


def describe_expenses(db: Session, expenses: Sequence[Expense]) -> list[ExpenseView]:
    if not expenses:
        return []
    expense_ids = [expense.id for expense in expenses]

    payer_rows = db.execute(
        select(FamilyMember.id, User.name, User.email)
        .join(User, User.id == FamilyMember.user_id)
        .where(FamilyMember.id.in_({expense.paid_by_member_id for expense in expenses}))
    ).all()
    payers = {member_id: (name, email) for member_id, name, email in payer_rows}

    project_ids = {expense.project_id for expense in expenses if expense.project_id is not None}
    projects: dict[int, str] = {}
    if project_ids:
        projects = dict(db.execute(select(Project.id, Project.name).where(Project.id.in_(project_ids))).all())

    split_rows = db.execute(
        select(ExpenseSplit, FamilyMember.user_id, User.name, User.email)
        .join(FamilyMember, FamilyMember.id == ExpenseSplit.member_id)
        .join(User, User.id == FamilyMember.user_id)
        .where(ExpenseSplit.expense_id.in_(expense_ids))
        .order_by(ExpenseSplit.expense_id.asc(), ExpenseSplit.id.asc())
    ).all()
    splits_by_expense: dict[int, list[SplitLine]] = {expense_id: [] for expense_id in expense_ids}
    for split, user_id, name, email in split_rows:
        splits_by_expense[split.expense_id].append(
            SplitLine(
                member_id=split.member_id,
                user_id=user_id,
                name=name,
                email=email,
                amount_owed=split.amount_owed,
                split_type=split.split_type.value,
                percentage=split.percentage,
            )
        )

    views: list[ExpenseView] = []
    for expense in expenses:
        payer_name, payer_email = payers.get(expense.paid_by_member_id, ("", ""))
        views.append(
            ExpenseView(
                id=expense.id,
                family_id=expense.family_id,
                title=expense.title,
                amount=expense.amount,
                date=expense.date,
                category=expense.category,
                paid_by_member_id=expense.paid_by_member_id,
                paid_by_name=payer_name,
                paid_by_email=payer_email,
                project_id=expense.project_id,
                project_name=projects.get(expense.project_id) if expense.project_id is not None else None,
                created_at=expense.created_at,
                splits=splits_by_expense[expense.id],
            )
        )
    return views


def list_expenses(db: Session, family_id: int, filters: ExpenseFilters | None = None) -> list[ExpenseView]:
    filters = filters or ExpenseFilters()
    query = select(Expense).where(Expense.family_id == family_id)
    if filters.start_date is not None:
        query = query.where(Expense.date >= filters.start_date)
    if filters.end_date is not None:
        query = query.where(Expense.date <= filters.end_date)
    if filters.category is not None:
        query = query.where(Expense.category == filters.category)
    if filters.paid_by_member_id is not None:
        query = query.where(Expense.paid_by_member_id == filters.paid_by_member_id)
    if filters.project_id is not None:
        query = query.where(Expense.project_id == filters.project_id)
    expenses = db.execute(
        query.order_by(Expense.date.desc(), Expense.created_at.desc(), Expense.id.desc())
    ).scalars().all()
    return describe_expenses(db, expenses)


def get_expense(db: Session, family_id: int, expense_id: int) -> ExpenseView:
    return describe_expenses(db, [require_expense(db, family_id, expense_id)])[0]
