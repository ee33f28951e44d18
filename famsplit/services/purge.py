from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from famsplit.models.entities import (
    Expense,
    ExpenseSplit,
    Family,
    FamilyMember,
    Project,
    Transaction,
    Wallet,
)


def purge_member(db: Session, member_id: int) -> None:
    """Delete a member together with its wallet and that wallet's transactions."""
    wallet_ids = [row[0] for row in db.execute(select(Wallet.id).where(Wallet.family_member_id == member_id)).all()]
    if wallet_ids:
        db.execute(delete(Transaction).where(Transaction.wallet_id.in_(wallet_ids)))
        db.execute(delete(Wallet).where(Wallet.id.in_(wallet_ids)))
    db.execute(delete(FamilyMember).where(FamilyMember.id == member_id))


def purge_family(db: Session, family_id: int) -> None:
    """
    Hard-delete a family and all dependent records.

    We do this explicitly (instead of relying on ON DELETE CASCADE) so the same
    code path works on SQLite, where foreign keys are not enforced by default.
    """
    member_ids = [
        row[0]
        for row in db.execute(select(FamilyMember.id).where(FamilyMember.family_id == family_id)).all()
    ]
    expense_ids = [
        row[0] for row in db.execute(select(Expense.id).where(Expense.family_id == family_id)).all()
    ]
    wallet_ids = []
    if member_ids:
        wallet_ids = [
            row[0] for row in db.execute(select(Wallet.id).where(Wallet.family_member_id.in_(member_ids))).all()
        ]

    # Ledger children
    if wallet_ids:
        db.execute(delete(Transaction).where(Transaction.wallet_id.in_(wallet_ids)))
        db.execute(delete(Wallet).where(Wallet.id.in_(wallet_ids)))

    # Expense children
    if expense_ids:
        db.execute(delete(ExpenseSplit).where(ExpenseSplit.expense_id.in_(expense_ids)))

    # Family-scoped tables
    db.execute(delete(Expense).where(Expense.family_id == family_id))
    db.execute(delete(Project).where(Project.family_id == family_id))
    db.execute(delete(FamilyMember).where(FamilyMember.family_id == family_id))
    db.execute(delete(Family).where(Family.id == family_id))
