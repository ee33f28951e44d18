from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from famsplit.core.auth import get_current_user
from famsplit.core.db import get_db
from famsplit.models.entities import Family, FamilyMember, MemberStatusEnum, RoleEnum, User
from famsplit.schemas.families import (
    FamilyCreate,
    FamilyCreateResponse,
    FamilyListResponse,
    FamilyMemberInvite,
    FamilyMemberListResponse,
    FamilyMemberResponse,
    FamilyMemberUpdate,
    FamilyResponse,
    FamilySummaryResponse,
    FamilyUpdate,
)
from famsplit.services import families as family_service
from famsplit.services.access import require_family, require_family_admin, require_family_member

router = APIRouter(prefix="/v1/families", tags=["families"])


def _to_member_response(member: FamilyMember, user: User) -> FamilyMemberResponse:
    return FamilyMemberResponse(
        id=member.id,
        family_id=member.family_id,
        user_id=user.id,
        name=user.name,
        email=user.email,
        avatar_url=user.avatar_url,
        role=member.role.value,
        status=member.status.value,
        joined_at=member.joined_at,
    )


def _member_response(db: Session, member: FamilyMember) -> FamilyMemberResponse:
    return _to_member_response(member, db.get(User, member.user_id))


@router.get("", response_model=FamilyListResponse)
def list_families(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    rows = db.execute(
        select(Family, FamilyMember)
        .join(FamilyMember, FamilyMember.family_id == Family.id)
        .where(FamilyMember.user_id == user.id)
        .order_by(Family.id.asc())
    ).all()
    return FamilyListResponse(
        items=[
            FamilySummaryResponse(
                id=family.id,
                name=family.name,
                member_id=member.id,
                role=member.role.value,
                status=member.status.value,
            )
            for family, member in rows
        ]
    )


@router.post("", response_model=FamilyCreateResponse, status_code=201)
def create_family(
    payload: FamilyCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    family, member = family_service.create_family(db, user, payload.name)
    db.commit()
    db.refresh(family)
    db.refresh(member)
    return FamilyCreateResponse(
        family=FamilyResponse.model_validate(family, from_attributes=True),
        member=_to_member_response(member, user),
    )


@router.get("/{family_id}", response_model=FamilyResponse)
def get_family(
    family_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    family = require_family(db, family_id)
    require_family_member(db, family_id, user.id)
    return FamilyResponse.model_validate(family, from_attributes=True)


@router.patch("/{family_id}", response_model=FamilyResponse)
def update_family(
    family_id: int,
    payload: FamilyUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    family = require_family(db, family_id)
    require_family_admin(db, family_id, user.id)
    family.name = payload.name
    db.commit()
    db.refresh(family)
    return FamilyResponse.model_validate(family, from_attributes=True)


@router.delete("/{family_id}", status_code=204)
def delete_family(
    family_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    family = require_family(db, family_id)
    actor = require_family_admin(db, family_id, user.id)
    family_service.delete_family(db, family, actor)
    db.commit()


@router.get("/{family_id}/members", response_model=FamilyMemberListResponse)
def list_family_members(
    family_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    require_family(db, family_id)
    require_family_member(db, family_id, user.id)

    rows = db.execute(
        select(FamilyMember, User)
        .join(User, User.id == FamilyMember.user_id)
        .where(FamilyMember.family_id == family_id)
        .order_by(FamilyMember.id.asc())
    ).all()
    return FamilyMemberListResponse(items=[_to_member_response(member, member_user) for member, member_user in rows])


@router.post("/{family_id}/members/invite", response_model=FamilyMemberResponse, status_code=201)
def invite_family_member(
    family_id: int,
    payload: FamilyMemberInvite,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    require_family(db, family_id)
    actor = require_family_admin(db, family_id, user.id)
    member = family_service.invite_member(db, family_id, actor, str(payload.email), RoleEnum(payload.role))
    db.commit()
    db.refresh(member)
    return _member_response(db, member)


@router.post("/members/{member_id}/accept", response_model=FamilyMemberResponse)
def accept_family_invite(
    member_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    member = family_service.accept_invite(db, member_id, user)
    db.commit()
    db.refresh(member)
    return _to_member_response(member, user)


@router.get("/{family_id}/members/{member_id}", response_model=FamilyMemberResponse)
def get_family_member(
    family_id: int,
    member_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    require_family(db, family_id)
    require_family_member(db, family_id, user.id)
    member = family_service.require_member_in_family(db, family_id, member_id)
    return _member_response(db, member)


@router.patch("/{family_id}/members/{member_id}", response_model=FamilyMemberResponse)
def update_family_member(
    family_id: int,
    member_id: int,
    payload: FamilyMemberUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    require_family(db, family_id)
    actor = require_family_admin(db, family_id, user.id)
    member = family_service.update_member(
        db,
        family_id,
        member_id,
        actor,
        role=RoleEnum(payload.role) if payload.role is not None else None,
        status=MemberStatusEnum(payload.status) if payload.status is not None else None,
    )
    db.commit()
    db.refresh(member)
    return _member_response(db, member)


@router.delete("/{family_id}/members/{member_id}", status_code=204)
def delete_family_member(
    family_id: int,
    member_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    require_family(db, family_id)
    actor = require_family_admin(db, family_id, user.id)
    family_service.remove_member(db, family_id, member_id, actor)
    db.commit()
