from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session, aliased

from famsplit.core.errors import InvalidSettlement, MemberNotActive, NotFoundError, SelfSettlement
from famsplit.models.entities import (
    Expense,
    ExpenseSplit,
    FamilyMember,
    MemberStatusEnum,
    Transaction,
    TransactionTypeEnum,
    User,
    Wallet,
)
from famsplit.services.access import Action, authorize
from famsplit.services.splits import to_money

logger = structlog.get_logger(__name__)

# Transaction amounts are stored unsigned; the type decides the direction.
_CREDIT_TYPES = {TransactionTypeEnum.settlement_sent, TransactionTypeEnum.expense_paid}
_EXPENSE_TYPES = (TransactionTypeEnum.expense_paid, TransactionTypeEnum.expense_owed)


@dataclass(frozen=True)
class MemberBalance:
    family_member_id: int
    user_id: int
    member_name: str
    member_email: str
    role: str
    balance: Decimal


@dataclass(frozen=True)
class TransactionEntry:
    id: int
    type: str
    amount: Decimal
    description: str
    created_at: datetime
    related_expense_id: int | None
    expense_title: str | None
    related_member_id: int | None
    related_member_name: str | None
    related_member_email: str | None


@dataclass(frozen=True)
class SettlementResult:
    payer_member_id: int
    receiver_member_id: int
    amount: Decimal
    payer_balance: Decimal
    receiver_balance: Decimal
    sent_transaction_id: int
    received_transaction_id: int


def signed_amount(txn_type: TransactionTypeEnum, amount: Decimal) -> Decimal:
    return amount if txn_type in _CREDIT_TYPES else -amount


def get_wallet(db: Session, member_id: int, lock: bool = False) -> Wallet | None:
    query = select(Wallet).where(Wallet.family_member_id == member_id)
    if lock:
        query = query.with_for_update()
    return db.execute(query).scalar_one_or_none()


def open_wallet(db: Session, member_id: int) -> Wallet:
    wallet = get_wallet(db, member_id)
    if wallet is not None:
        return wallet
    wallet = Wallet(family_member_id=member_id, balance=Decimal("0.00"))
    db.add(wallet)
    db.flush()
    return wallet


def _apply_delta(db: Session, wallet_id: int, delta: Decimal) -> None:
    # Incrementing in SQL keeps concurrent postings to one wallet from overwriting each other.
    db.execute(update(Wallet).where(Wallet.id == wallet_id).values(balance=Wallet.balance + delta))


def post_transaction(
    db: Session,
    wallet: Wallet,
    txn_type: TransactionTypeEnum,
    amount: Decimal,
    description: str,
    related_expense_id: int | None = None,
    related_member_id: int | None = None,
) -> Transaction:
    amount = to_money(amount)
    _apply_delta(db, wallet.id, signed_amount(txn_type, amount))
    txn = Transaction(
        wallet_id=wallet.id,
        type=txn_type,
        amount=amount,
        description=description,
        related_expense_id=related_expense_id,
        related_member_id=related_member_id,
    )
    db.add(txn)
    db.flush()
    return txn


def post_expense(db: Session, expense: Expense, splits: Iterable[ExpenseSplit]) -> None:
    """
    Reflect an expense in the wallets of everyone involved.

    The payer is credited with what the others owe them (the amount minus the
    payer's own share); every other split member is debited their share.
    Zero postings are skipped.
    """
    splits = list(splits)
    payer_share = sum((s.amount_owed for s in splits if s.member_id == expense.paid_by_member_id), Decimal("0"))
    credited = expense.amount - payer_share
    if credited > 0:
        post_transaction(
            db,
            open_wallet(db, expense.paid_by_member_id),
            TransactionTypeEnum.expense_paid,
            credited,
            f"Paid for {expense.title}",
            related_expense_id=expense.id,
        )
    for split in splits:
        if split.member_id == expense.paid_by_member_id or split.amount_owed <= 0:
            continue
        post_transaction(
            db,
            open_wallet(db, split.member_id),
            TransactionTypeEnum.expense_owed,
            split.amount_owed,
            f"Share of {expense.title}",
            related_expense_id=expense.id,
            related_member_id=expense.paid_by_member_id,
        )


def reverse_expense(db: Session, expense_id: int) -> None:
    """Undo the balance effect of an expense and drop its postings."""
    postings = db.execute(
        select(Transaction).where(
            Transaction.related_expense_id == expense_id,
            Transaction.type.in_(_EXPENSE_TYPES),
        )
    ).scalars().all()
    for txn in postings:
        _apply_delta(db, txn.wallet_id, -signed_amount(txn.type, txn.amount))
    db.execute(delete(Transaction).where(Transaction.related_expense_id == expense_id))
    db.flush()


def _family_member(db: Session, family_id: int, member_id: int) -> FamilyMember:
    member = db.get(FamilyMember, member_id)
    if member is None or member.family_id != family_id:
        raise NotFoundError("family member not found in this family")
    return member


def _member_name(db: Session, member: FamilyMember) -> str:
    user = db.get(User, member.user_id)
    return user.name if user is not None else str(member.id)


def settle(
    db: Session,
    family_id: int,
    actor: FamilyMember,
    payer_member_id: int | None,
    receiver_member_id: int | None,
    amount: Decimal | None,
) -> SettlementResult:
    if not payer_member_id or not receiver_member_id or amount is None or amount <= 0:
        raise InvalidSettlement()
    if payer_member_id == receiver_member_id:
        raise SelfSettlement()
    amount = to_money(amount)
    if amount <= 0:
        raise InvalidSettlement()

    members = db.execute(
        select(FamilyMember).where(
            FamilyMember.id.in_([payer_member_id, receiver_member_id]),
            FamilyMember.family_id == family_id,
            FamilyMember.status == MemberStatusEnum.active,
        )
    ).scalars().all()
    if len(members) != 2:
        raise MemberNotActive()
    by_id = {member.id: member for member in members}
    payer, receiver = by_id[payer_member_id], by_id[receiver_member_id]

    authorize(
        actor,
        Action.settle,
        [payer.id, receiver.id],
        detail="you must be part of the settlement or a family admin to record it",
    )

    # Lock in a stable order so two opposite settlements cannot deadlock.
    wallets = {}
    for member_id in sorted(by_id):
        wallet = get_wallet(db, member_id, lock=True)
        if wallet is None:
            raise NotFoundError("wallet not found for one or both members")
        wallets[member_id] = wallet

    sent = post_transaction(
        db,
        wallets[payer.id],
        TransactionTypeEnum.settlement_sent,
        amount,
        f"Payment to {_member_name(db, receiver)}",
        related_member_id=receiver.id,
    )
    received = post_transaction(
        db,
        wallets[receiver.id],
        TransactionTypeEnum.settlement_received,
        amount,
        f"Payment from {_member_name(db, payer)}",
        related_member_id=payer.id,
    )
    for wallet in wallets.values():
        db.refresh(wallet)

    logger.info(
        "settlement_recorded",
        family_id=family_id,
        payer_member_id=payer.id,
        receiver_member_id=receiver.id,
        amount=str(amount),
        actor_member_id=actor.id,
    )
    return SettlementResult(
        payer_member_id=payer.id,
        receiver_member_id=receiver.id,
        amount=amount,
        payer_balance=wallets[payer.id].balance,
        receiver_balance=wallets[receiver.id].balance,
        sent_transaction_id=sent.id,
        received_transaction_id=received.id,
    )


def get_balance(db: Session, family_id: int, member_id: int, actor: FamilyMember) -> MemberBalance:
    member = _family_member(db, family_id, member_id)
    authorize(
        actor,
        Action.view_wallet,
        [member.id],
        detail="you can only view your own wallet unless you are a family admin",
    )
    row = db.execute(
        select(Wallet, User)
        .join(FamilyMember, FamilyMember.id == Wallet.family_member_id)
        .join(User, User.id == FamilyMember.user_id)
        .where(Wallet.family_member_id == member.id)
    ).first()
    if row is None:
        raise NotFoundError("wallet not found for this member")
    wallet, user = row
    return MemberBalance(
        family_member_id=member.id,
        user_id=user.id,
        member_name=user.name,
        member_email=user.email,
        role=member.role.value,
        balance=wallet.balance,
    )


def list_balances(db: Session, family_id: int) -> list[MemberBalance]:
    rows = db.execute(
        select(FamilyMember, User, Wallet)
        .join(User, User.id == FamilyMember.user_id)
        .join(Wallet, Wallet.family_member_id == FamilyMember.id)
        .where(FamilyMember.family_id == family_id, FamilyMember.status == MemberStatusEnum.active)
        .order_by(User.name.asc(), FamilyMember.id.asc())
    ).all()
    return [
        MemberBalance(
            family_member_id=member.id,
            user_id=user.id,
            member_name=user.name,
            member_email=user.email,
            role=member.role.value,
            balance=wallet.balance,
        )
        for member, user, wallet in rows
    ]


def list_transactions(db: Session, family_id: int, member_id: int, actor: FamilyMember) -> list[TransactionEntry]:
    member = _family_member(db, family_id, member_id)
    authorize(
        actor,
        Action.view_wallet,
        [member.id],
        detail="you can only view your own transactions unless you are a family admin",
    )
    related_member = aliased(FamilyMember)
    related_user = aliased(User)
    rows = db.execute(
        select(Transaction, Expense.title, related_user.name, related_user.email)
        .join(Wallet, Wallet.id == Transaction.wallet_id)
        .outerjoin(Expense, Expense.id == Transaction.related_expense_id)
        .outerjoin(related_member, related_member.id == Transaction.related_member_id)
        .outerjoin(related_user, related_user.id == related_member.user_id)
        .where(Wallet.family_member_id == member.id)
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
    ).all()
    return [
        TransactionEntry(
            id=txn.id,
            type=txn.type.value,
            amount=txn.amount,
            description=txn.description,
            created_at=txn.created_at,
            related_expense_id=txn.related_expense_id,
            expense_title=expense_title,
            related_member_id=txn.related_member_id,
            related_member_name=related_name,
            related_member_email=related_email,
        )
        for txn, expense_title, related_name, related_email in rows
    ]
