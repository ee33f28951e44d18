from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from famsplit.core.auth import get_current_user
from famsplit.core.db import get_db
from famsplit.core.errors import ValidationError
from famsplit.models.entities import Family, FamilyMember, User
from famsplit.schemas.users import MembershipResponse, UserResponse, UserUpdate

router = APIRouter(prefix="/v1", tags=["auth"])


def _user_response(db: Session, user: User) -> UserResponse:
    memberships = db.execute(
        select(FamilyMember, Family)
        .join(Family, Family.id == FamilyMember.family_id)
        .where(FamilyMember.user_id == user.id)
        .order_by(Family.id.asc())
    ).all()
    return UserResponse(
        id=user.id,
        email=user.email,
        name=user.name,
        avatar_url=user.avatar_url,
        created_at=user.created_at,
        memberships=[
            MembershipResponse(
                family_id=family.id,
                family_name=family.name,
                member_id=member.id,
                role=member.role.value,
                status=member.status.value,
            )
            for member, family in memberships
        ],
    )


@router.get("/me", response_model=UserResponse)
def get_me(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """
    Returns the authenticated user's profile and family memberships.

    The first call from a new email provisions the user, which is also how an
    invitee becomes invitable.
    """
    return _user_response(db, user)


@router.patch("/me", response_model=UserResponse)
def update_me(
    payload: UserUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("at least one of name, avatar_url is required")
    if changes.get("name") is not None:
        user.name = changes["name"]
    if "avatar_url" in changes:
        user.avatar_url = changes["avatar_url"]
    db.commit()
    db.refresh(user)
    return _user_response(db, user)
