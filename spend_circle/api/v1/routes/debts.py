from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from spend_circle.api.deps import get_current_profile
from spend_circle.api.v1.routes.circles import require_membership
from spend_circle.db.database import get_db
from spend_circle.schemas.debt_schema import DebtOut
from spend_circle.schemas.profile_schema import UserProfile
from spend_circle.services.debt_service import delete_debt, get_debts_for_circle, get_debts_for_user
from spend_circle.services.settlement_service import (
    cancel_settlement, confirm_settlement, initiate_settlement,
    log_settled_debt_as_expense, reject_settlement
)

router = APIRouter(prefix="/debts", tags=["debts"])


@router.get("/circles/{circle_id}", response_model=List[DebtOut])
def get_circle_debts(
    circle_id: str,
    user: UserProfile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    """Debts of a circle that involve the current user"""
    require_membership(db, circle_id, user.uid)
    return get_debts_for_circle(db, circle_id, user.uid)


@router.get("/me", response_model=List[DebtOut])
def get_my_debts(
    user: UserProfile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    return get_debts_for_user(db, user.uid)


@router.post("/{debt_id}/initiate", response_model=DebtOut)
def mark_debt_paid(
    debt_id: str,
    user: UserProfile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    """Debtor marks the debt as paid"""
    return initiate_settlement(db, debt_id, user)


@router.post("/{debt_id}/cancel", response_model=DebtOut)
def cancel_debt_payment(
    debt_id: str,
    user: UserProfile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    return cancel_settlement(db, debt_id, user)


@router.post("/{debt_id}/reject", response_model=DebtOut)
def reject_debt_payment(
    debt_id: str,
    user: UserProfile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    return reject_settlement(db, debt_id, user)


@router.post("/{debt_id}/confirm", response_model=DebtOut)
def confirm_debt_payment(
    debt_id: str,
    user: UserProfile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    """Creditor confirms they received the payment"""
    return confirm_settlement(db, debt_id, user)


@router.post("/{debt_id}/log", response_model=DebtOut)
def log_debt_as_expense(
    debt_id: str,
    user: UserProfile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    return log_settled_debt_as_expense(db, debt_id, user)


@router.delete("/{debt_id}")
def delete_existing_debt(
    debt_id: str,
    user: UserProfile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    delete_debt(db, debt_id, user.uid)
    return {"message": "Debt deleted successfully"}
