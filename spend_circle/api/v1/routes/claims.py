from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from spend_circle.api.deps import get_current_profile
from spend_circle.db.database import get_db
from spend_circle.schemas.claim_schema import ExpenseClaimCreate, ExpenseClaimOut
from spend_circle.schemas.profile_schema import UserProfile
from spend_circle.schemas.transaction_schema import SplitExpenseOut
from spend_circle.services.claim_service import (
    accept_expense_claim, create_expense_claim, get_pending_claims_for_payer, reject_expense_claim
)

router = APIRouter(prefix="/claims", tags=["claims"])


@router.post("", response_model=ExpenseClaimOut)
def create_claim(
    claim_data: ExpenseClaimCreate,
    user: UserProfile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    """Log an expense someone else paid for; they have to accept it"""
    return create_expense_claim(db, user, claim_data.payer_id, claim_data.expense_details)


@router.get("/pending", response_model=List[ExpenseClaimOut])
def get_pending_claims(
    user: UserProfile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    return get_pending_claims_for_payer(db, user.uid)


@router.post("/{claim_id}/accept", response_model=SplitExpenseOut)
def accept_claim(
    claim_id: str,
    user: UserProfile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    transaction_id = accept_expense_claim(db, claim_id, user)
    return SplitExpenseOut(transaction_id=transaction_id)


@router.post("/{claim_id}/reject", response_model=ExpenseClaimOut)
def reject_claim(
    claim_id: str,
    user: UserProfile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    return reject_expense_claim(db, claim_id, user)
