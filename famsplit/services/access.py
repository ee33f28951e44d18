from __future__ import annotations

from collections.abc import Iterable
from enum import Enum

from sqlalchemy import select
from sqlalchemy.orm import Session

from famsplit.core.errors import Forbidden, NotAMember, NotFoundError
from famsplit.models.entities import Family, FamilyMember, MemberStatusEnum, RoleEnum


class Action(str, Enum):
    administer = "administer"
    manage_expense = "manage_expense"
    view_wallet = "view_wallet"
    settle = "settle"


# Non-admins may perform these only on records tied to their own membership.
_RELATIONAL_ACTIONS = {Action.manage_expense, Action.view_wallet, Action.settle}


def get_member_by_user(db: Session, family_id: int, user_id: int) -> FamilyMember | None:
    return db.execute(
        select(FamilyMember).where(FamilyMember.family_id == family_id, FamilyMember.user_id == user_id)
    ).scalar_one_or_none()


def require_family(db: Session, family_id: int) -> Family:
    family = db.get(Family, family_id)
    if family is None:
        raise NotFoundError("family not found")
    return family


def require_family_member(
    db: Session,
    family_id: int,
    user_id: int,
    roles: Iterable[RoleEnum] = (RoleEnum.admin, RoleEnum.member),
) -> FamilyMember:
    member = get_member_by_user(db, family_id, user_id)
    if member is None:
        raise NotAMember()
    if member.status != MemberStatusEnum.active:
        raise Forbidden("membership is not active")
    allowed = set(roles)
    if member.role not in allowed:
        raise Forbidden(f"{' or '.join(sorted(role.value for role in allowed))} role required")
    return member


def require_family_admin(db: Session, family_id: int, user_id: int) -> FamilyMember:
    return require_family_member(db, family_id, user_id, roles=(RoleEnum.admin,))


def can(actor: FamilyMember, action: Action, subject_member_ids: Iterable[int | None] = ()) -> bool:
    """
    Single authorization rule for family-scoped operations.

    Admins may do anything in their family. The relational actions (editing an
    expense, reading a wallet, recording a settlement) are allowed when the
    actor is one of the subject members: the expense's payer, the wallet's
    owner, or either settlement party. Plain read access is checked by
    require_family_member.
    """
    if actor.status != MemberStatusEnum.active:
        return False
    if actor.role == RoleEnum.admin:
        return True
    if action in _RELATIONAL_ACTIONS:
        return actor.id in set(subject_member_ids)
    return False


def authorize(
    actor: FamilyMember,
    action: Action,
    subject_member_ids: Iterable[int | None] = (),
    detail: str | None = None,
) -> None:
    if not can(actor, action, subject_member_ids):
        raise Forbidden(detail)
