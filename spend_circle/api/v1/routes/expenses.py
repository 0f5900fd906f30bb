from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from spend_circle.api.deps import get_current_profile
from spend_circle.api.v1.routes.circles import require_membership
from spend_circle.db.database import get_db
from spend_circle.schemas.profile_schema import SplitDetails, UserProfile
from spend_circle.schemas.transaction_schema import (
    ExpenseCreate, ExpenseOut, SplitBuildRequest, SplitExpenseCreate, SplitExpenseOut
)
from spend_circle.services.transaction_service import (
    add_transaction, build_custom_split, build_equal_split, delete_transaction,
    get_circle_transactions, record_split_expense, remove_transaction_from_circle
)

router = APIRouter(prefix="/expenses", tags=["expenses"])


@router.post("/split/build", response_model=SplitDetails)
def build_split(
    request: SplitBuildRequest,
    user: UserProfile = Depends(get_current_profile)
):
    """Preview a split: equal when no shares are given, custom otherwise"""
    if request.shares is None:
        return build_equal_split(request.total, request.payer, request.members)
    return build_custom_split(request.total, request.payer, request.members, request.shares)


@router.post("/split", response_model=SplitExpenseOut)
def create_split_expense(
    expense_data: SplitExpenseCreate,
    user: UserProfile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    """Record a split expense paid by the current user"""
    expense = expense_data.expense.model_copy(update={"user_id": user.uid})
    transaction_id = record_split_expense(db, expense, expense_data.split_details)
    return SplitExpenseOut(transaction_id=transaction_id)


@router.post("", response_model=ExpenseOut)
def create_personal_expense(
    expense_data: ExpenseCreate,
    user: UserProfile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    expense = expense_data.model_copy(update={"user_id": user.uid})
    return add_transaction(db, expense)


@router.get("/circles/{circle_id}", response_model=List[ExpenseOut])
def get_circle_expenses(
    circle_id: str,
    user: UserProfile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    """All transactions of a circle, newest first"""
    require_membership(db, circle_id, user.uid)
    return get_circle_transactions(db, circle_id)


@router.post("/{transaction_id}/remove-from-circle", response_model=ExpenseOut)
def remove_expense_from_circle(
    transaction_id: str,
    user: UserProfile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    return remove_transaction_from_circle(db, transaction_id, user)


@router.delete("/{transaction_id}")
def delete_expense(
    transaction_id: str,
    user: UserProfile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    delete_transaction(db, transaction_id, user.uid)
    return {"message": "Expense deleted successfully"}
