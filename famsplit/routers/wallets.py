from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from famsplit.core.auth import get_current_user
from famsplit.core.db import get_db
from famsplit.models.entities import User
from famsplit.schemas.wallets import (
    BalanceListResponse,
    MemberBalanceResponse,
    SettlementCreate,
    SettlementResponse,
    TransactionListResponse,
    TransactionResponse,
)
from famsplit.services import wallets as wallet_service
from famsplit.services.access import require_family, require_family_member

router = APIRouter(prefix="/v1/families/{family_id}/wallets", tags=["wallets"])


@router.get("/balances", response_model=BalanceListResponse)
def list_balances(
    family_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    require_family(db, family_id)
    require_family_member(db, family_id, user.id)
    return BalanceListResponse(
        items=[
            MemberBalanceResponse.model_validate(balance, from_attributes=True)
            for balance in wallet_service.list_balances(db, family_id)
        ]
    )


@router.get("/{member_id}/balance", response_model=MemberBalanceResponse)
def get_balance(
    family_id: int,
    member_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    require_family(db, family_id)
    actor = require_family_member(db, family_id, user.id)
    balance = wallet_service.get_balance(db, family_id, member_id, actor)
    return MemberBalanceResponse.model_validate(balance, from_attributes=True)


@router.get("/{member_id}/transactions", response_model=TransactionListResponse)
def list_transactions(
    family_id: int,
    member_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    require_family(db, family_id)
    actor = require_family_member(db, family_id, user.id)
    entries = wallet_service.list_transactions(db, family_id, member_id, actor)
    return TransactionListResponse(
        items=[TransactionResponse.model_validate(entry, from_attributes=True) for entry in entries]
    )


@router.post("/settle", response_model=SettlementResponse)
def settle(
    family_id: int,
    payload: SettlementCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    require_family(db, family_id)
    actor = require_family_member(db, family_id, user.id)
    result = wallet_service.settle(
        db,
        family_id,
        actor,
        payer_member_id=payload.payer_member_id,
        receiver_member_id=payload.receiver_member_id,
        amount=payload.amount,
    )
    db.commit()
    return SettlementResponse.model_validate(result, from_attributes=True)
