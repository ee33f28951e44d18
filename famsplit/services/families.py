from __future__ import annotations

from datetime import datetime, timezone

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from famsplit.core.errors import (
    ConflictError,
    Forbidden,
    LastAdminRemoval,
    NotFoundError,
    ValidationError,
)
from famsplit.models.entities import (
    Expense,
    ExpenseSplit,
    Family,
    FamilyMember,
    MemberStatusEnum,
    RoleEnum,
    Transaction,
    User,
    Wallet,
)
from famsplit.services.access import Action, authorize
from famsplit.services.purge import purge_family, purge_member
from famsplit.services.wallets import open_wallet

logger = structlog.get_logger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def active_admin_count(db: Session, family_id: int) -> int:
    return db.execute(
        select(func.count(FamilyMember.id)).where(
            FamilyMember.family_id == family_id,
            FamilyMember.role == RoleEnum.admin,
            FamilyMember.status == MemberStatusEnum.active,
        )
    ).scalar_one()


def _is_active_admin(member: FamilyMember) -> bool:
    return member.role == RoleEnum.admin and member.status == MemberStatusEnum.active


def require_member_in_family(db: Session, family_id: int, member_id: int) -> FamilyMember:
    member = db.get(FamilyMember, member_id)
    if member is None or member.family_id != family_id:
        raise NotFoundError("family member not found in this family")
    return member


def create_family(db: Session, user: User, name: str) -> tuple[Family, FamilyMember]:
    family = Family(name=name, created_by_user_id=user.id)
    db.add(family)
    db.flush()
    # Creator becomes the initial admin member.
    member = FamilyMember(
        family_id=family.id,
        user_id=user.id,
        role=RoleEnum.admin,
        status=MemberStatusEnum.active,
        joined_at=_now(),
    )
    db.add(member)
    db.flush()
    open_wallet(db, member.id)
    logger.info("family_created", family_id=family.id, user_id=user.id)
    return family, member


def delete_family(db: Session, family: Family, actor: FamilyMember) -> None:
    authorize(actor, Action.administer)
    purge_family(db, family.id)
    logger.info("family_purged", family_id=family.id, actor_member_id=actor.id)


def invite_member(db: Session, family_id: int, actor: FamilyMember, email: str, role: RoleEnum) -> FamilyMember:
    authorize(actor, Action.administer)
    invited = db.execute(select(User).where(User.email == email.strip().lower())).scalar_one_or_none()
    if invited is None:
        raise NotFoundError("no user with this email; ask them to sign in once before inviting")

    existing = db.execute(
        select(FamilyMember.id).where(FamilyMember.family_id == family_id, FamilyMember.user_id == invited.id)
    ).first()
    if existing is not None:
        raise ConflictError("user is already a member or has a pending invite for this family")

    member = FamilyMember(
        family_id=family_id,
        user_id=invited.id,
        role=role,
        status=MemberStatusEnum.pending,
        invited_by_user_id=actor.user_id,
    )
    db.add(member)
    db.flush()
    logger.info("member_invited", family_id=family_id, member_id=member.id, actor_member_id=actor.id)
    return member


def accept_invite(db: Session, member_id: int, user: User) -> FamilyMember:
    member = db.get(FamilyMember, member_id)
    if member is None:
        raise NotFoundError("invite not found")
    if member.user_id != user.id:
        raise Forbidden("you can only accept your own invites")
    if member.status != MemberStatusEnum.pending:
        raise ConflictError("invite is not pending")

    member.status = MemberStatusEnum.active
    member.joined_at = _now()
    db.flush()
    open_wallet(db, member.id)
    logger.info("invite_accepted", family_id=member.family_id, member_id=member.id)
    return member


def update_member(
    db: Session,
    family_id: int,
    member_id: int,
    actor: FamilyMember,
    role: RoleEnum | None = None,
    status: MemberStatusEnum | None = None,
) -> FamilyMember:
    authorize(actor, Action.administer)
    if role is None and status is None:
        raise ValidationError("at least one of role, status is required")
    member = require_member_in_family(db, family_id, member_id)

    next_role = role or member.role
    next_status = status or member.status
    loses_admin = _is_active_admin(member) and (
        next_role != RoleEnum.admin or next_status != MemberStatusEnum.active
    )
    if loses_admin and active_admin_count(db, family_id) <= 1:
        raise LastAdminRemoval("the family must keep at least one active admin")

    member.role = next_role
    member.status = next_status
    if next_status == MemberStatusEnum.active:
        if member.joined_at is None:
            member.joined_at = _now()
        db.flush()
        open_wallet(db, member.id)
    db.flush()
    return member


def _has_ledger_history(db: Session, member_id: int) -> bool:
    in_expense = db.execute(
        select(Expense.id)
        .outerjoin(ExpenseSplit, ExpenseSplit.expense_id == Expense.id)
        .where(or_(Expense.paid_by_member_id == member_id, ExpenseSplit.member_id == member_id))
        .limit(1)
    ).first()
    if in_expense is not None:
        return True
    in_transactions = db.execute(
        select(Transaction.id)
        .outerjoin(Wallet, Wallet.id == Transaction.wallet_id)
        .where(or_(Wallet.family_member_id == member_id, Transaction.related_member_id == member_id))
        .limit(1)
    ).first()
    return in_transactions is not None


def remove_member(db: Session, family_id: int, member_id: int, actor: FamilyMember) -> None:
    """
    Take a member out of the family.

    Members with no ledger history are deleted together with their wallet. A
    member who appears in expenses or transactions is retired instead: the
    membership becomes inactive and drops out of balance listings, while their
    wallet and postings stay so every other wallet still matches its history.
    """
    authorize(actor, Action.administer)
    member = require_member_in_family(db, family_id, member_id)
    if _is_active_admin(member) and active_admin_count(db, family_id) <= 1:
        raise LastAdminRemoval()

    if _has_ledger_history(db, member.id):
        member.status = MemberStatusEnum.inactive
        db.flush()
        logger.info("member_retired", family_id=family_id, member_id=member_id, actor_member_id=actor.id)
        return

    purge_member(db, member.id)
    logger.info("member_removed", family_id=family_id, member_id=member_id, actor_member_id=actor.id)
