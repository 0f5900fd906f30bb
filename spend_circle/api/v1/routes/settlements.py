from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from spend_circle.api.deps import get_current_profile
from spend_circle.api.v1.routes.circles import require_membership
from spend_circle.db.database import get_db
from spend_circle.schemas.profile_schema import UserProfile
from spend_circle.schemas.settlement_schema import (
    MemberBalance, SettlementOut, SettlementRequestCreate, SimplifiedTransfer, UserBalanceSummary
)
from spend_circle.services.balance_service import (
    get_circle_balances, get_simplified_debts, summarize_for_user
)
from spend_circle.services.settlement_service import (
    accept_settlement_request, get_circle_settlements, reject_settlement_request, request_settlement
)

router = APIRouter(prefix="/settlements", tags=["settlements"])


@router.get("/circles/{circle_id}", response_model=List[SettlementOut])
def get_circle_settlements_list(
    circle_id: str,
    user: UserProfile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    """Get all settlements for a circle"""
    require_membership(db, circle_id, user.uid)
    return get_circle_settlements(db, circle_id)


@router.get("/circles/{circle_id}/balances", response_model=List[MemberBalance])
def get_member_balances(
    circle_id: str,
    user: UserProfile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    """Net balance of every member"""
    require_membership(db, circle_id, user.uid)
    return get_circle_balances(db, circle_id)


@router.get("/circles/{circle_id}/simplified", response_model=List[SimplifiedTransfer])
def get_simplified_transfers(
    circle_id: str,
    user: UserProfile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    """Fewest-ish transfers that would settle the circle"""
    require_membership(db, circle_id, user.uid)
    return get_simplified_debts(db, circle_id)


@router.get("/circles/{circle_id}/summary", response_model=UserBalanceSummary)
def get_my_balance_summary(
    circle_id: str,
    user: UserProfile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    require_membership(db, circle_id, user.uid)
    return summarize_for_user(get_simplified_debts(db, circle_id), user.uid)


@router.post("/circles/{circle_id}/requests", response_model=SettlementOut)
def create_settlement_request(
    circle_id: str,
    request: SettlementRequestCreate,
    user: UserProfile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    """Tell another member you paid them back"""
    require_membership(db, circle_id, user.uid)
    return request_settlement(db, circle_id, user, request.to_user, request.amount)


@router.post("/{settlement_id}/accept", response_model=SettlementOut)
def accept_settlement(
    settlement_id: str,
    user: UserProfile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    return accept_settlement_request(db, settlement_id, user)


@router.post("/{settlement_id}/reject", response_model=SettlementOut)
def reject_settlement(
    settlement_id: str,
    user: UserProfile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    return reject_settlement_request(db, settlement_id, user)
