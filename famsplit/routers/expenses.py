from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from famsplit.core.auth import get_current_user
from famsplit.core.db import get_db
from famsplit.models.entities import User
from famsplit.schemas.expenses import ExpenseCreate, ExpenseListResponse, ExpenseResponse, ExpenseUpdate
from famsplit.services import ledger
from famsplit.services.access import require_family, require_family_member
from famsplit.services.splits import SplitDetail

router = APIRouter(prefix="/v1/families/{family_id}/expenses", tags=["expenses"])


def _to_expense_response(view: ledger.ExpenseView) -> ExpenseResponse:
    return ExpenseResponse.model_validate(view, from_attributes=True)


@router.get("", response_model=ExpenseListResponse)
def list_expenses(
    family_id: int,
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    category: str | None = Query(default=None),
    paid_by_member_id: int | None = Query(default=None),
    project_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    require_family(db, family_id)
    require_family_member(db, family_id, user.id)
    filters = ledger.ExpenseFilters(
        start_date=start_date,
        end_date=end_date,
        category=category,
        paid_by_member_id=paid_by_member_id,
        project_id=project_id,
    )
    return ExpenseListResponse(items=[_to_expense_response(view) for view in ledger.list_expenses(db, family_id, filters)])


@router.get("/{expense_id}", response_model=ExpenseResponse)
def get_expense(
    family_id: int,
    expense_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    require_family(db, family_id)
    require_family_member(db, family_id, user.id)
    return _to_expense_response(ledger.get_expense(db, family_id, expense_id))


@router.post("", response_model=ExpenseResponse, status_code=201)
def create_expense(
    family_id: int,
    payload: ExpenseCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    require_family(db, family_id)
    actor = require_family_member(db, family_id, user.id)
    details = None
    if payload.split_details is not None:
        details = [
            SplitDetail(member_id=item.member_id, percentage=item.percentage, amount_owed=item.amount_owed)
            for item in payload.split_details
        ]
    expense = ledger.create_expense(
        db,
        family_id,
        actor,
        title=payload.title,
        amount=payload.amount,
        paid_by_member_id=payload.paid_by_member_id,
        split_type=payload.split_type,
        split_details=details,
        expense_date=payload.date,
        category=payload.category,
        project_id=payload.project_id,
    )
    db.commit()
    return _to_expense_response(ledger.get_expense(db, family_id, expense.id))


@router.patch("/{expense_id}", response_model=ExpenseResponse)
def update_expense(
    family_id: int,
    expense_id: int,
    payload: ExpenseUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    require_family(db, family_id)
    actor = require_family_member(db, family_id, user.id)
    expense = ledger.update_expense(db, family_id, expense_id, actor, payload.model_dump(exclude_unset=True))
    db.commit()
    return _to_expense_response(ledger.get_expense(db, family_id, expense.id))


@router.delete("/{expense_id}", status_code=204)
def delete_expense(
    family_id: int,
    expense_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    require_family(db, family_id)
    actor = require_family_member(db, family_id, user.id)
    ledger.delete_expense(db, family_id, expense_id, actor)
    db.commit()
