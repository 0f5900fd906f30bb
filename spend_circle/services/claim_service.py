import logging
from sqlalchemy.orm import Session
from typing import List, Optional

from spend_circle.models._columns import new_id
from spend_circle.models.expense_claims import ExpenseClaim
from spend_circle.schemas.claim_schema import ClaimStatus, ExpenseDetails
from spend_circle.schemas.profile_schema import UserProfile
from spend_circle.services.debt_service import add_debt_creation_to_session
from spend_circle.services.errors import (
    InvalidStateError, NotFoundError, PermissionDeniedError, ValidationError, commit_batch
)
from spend_circle.services.notification_service import (
    circle_link, create_notification, delete_notification_by_related_id, format_amount
)
from spend_circle.services.transaction_service import (
    check_circle_membership, new_split_transaction, validate_split_details
)

logger = logging.getLogger(__name__)


def _history_link(circle_id: Optional[str]) -> str:
    return circle_link(circle_id, "history") if circle_id else "/history"


def get_claim(db: Session, claim_id: str) -> Optional[ExpenseClaim]:
    """Get an expense claim by ID"""
    return db.query(ExpenseClaim).filter(ExpenseClaim.id == claim_id).first()


def get_pending_claims_for_payer(db: Session, payer_id: str) -> List[ExpenseClaim]:
    """Claims waiting for ``payer_id`` to accept or reject, newest first"""
    return db.query(ExpenseClaim)\
        .filter(ExpenseClaim.payer_id == payer_id,
                ExpenseClaim.status == ClaimStatus.pending.value)\
        .order_by(ExpenseClaim.created_at.desc())\
        .all()


def create_expense_claim(
    db: Session,
    claimer_profile: UserProfile,
    payer_id: str,
    expense_details: ExpenseDetails,
) -> ExpenseClaim:
    """
    Record an expense someone else paid for, pending the payer's approval.

    No transaction or debt exists until the payer accepts.
    """
    split = expense_details.split_details
    if payer_id not in {member.uid for member in split.members} or split.payer_id != payer_id:
        raise ValidationError("The payer must be part of the split")
    if claimer_profile.uid == payer_id:
        raise ValidationError("You paid for this expense; record it directly instead of sending a claim")
    validate_split_details(split, amount=expense_details.amount)
    if expense_details.circle_id:
        check_circle_membership(db, expense_details.circle_id, split)

    claim = ExpenseClaim(
        id=new_id(),
        claimer_id=claimer_profile.uid,
        claimer_profile=claimer_profile.model_dump(mode="json"),
        payer_id=payer_id,
        expense_details=expense_details.model_dump(mode="json"),
        status=ClaimStatus.pending.value,
    )
    db.add(claim)
    commit_batch(db, "create expense claim")
    db.refresh(claim)
    logger.info(f"Expense claim {claim.id} created by {claimer_profile.uid} for payer {payer_id}")

    create_notification(
        user_id=payer_id,
        from_user=claimer_profile,
        type="expense-claim-request",
        message=f"{claimer_profile.display_name} logged an expense of "
                f"{format_amount(expense_details.amount)} that they said you paid for.",
        link="/notifications",
        related_id=claim.id,
    )
    return claim


def _require_payer(db: Session, claim_id: str, actor: UserProfile) -> ExpenseClaim:
    claim = get_claim(db, claim_id)
    if not claim:
        raise NotFoundError("Expense claim not found")
    if claim.payer_id != actor.uid:
        raise PermissionDeniedError("Only the payer can respond to this claim")
    return claim


def _claim_transition(db: Session, claim: ExpenseClaim, target: ClaimStatus) -> None:
    updated = db.query(ExpenseClaim)\
        .filter(ExpenseClaim.id == claim.id, ExpenseClaim.status == ClaimStatus.pending.value)\
        .update({ExpenseClaim.status: target.value}, synchronize_session=False)
    if updated == 0:
        db.rollback()
        db.expire(claim)
        logger.warning(f"Claim {claim.id} is {claim.status}, cannot move to {target.value}")
        raise InvalidStateError(f"This claim has already been {claim.status}")


def accept_expense_claim(db: Session, claim_id: str, actor: UserProfile) -> str:
    """
    Payer accepts: the claim, the payer-owned split transaction and its debts
    are written in one commit.

    Returns:
        The new transaction's id
    """
    claim = _require_payer(db, claim_id, actor)
    details = ExpenseDetails.model_validate(claim.expense_details)
    split = details.split_details

    # Members may have left the circle since the claim was sent
    if details.circle_id:
        check_circle_membership(db, details.circle_id, split)

    _claim_transition(db, claim, ClaimStatus.accepted)
    transaction = new_split_transaction(details, claim.payer_id, split)
    db.add(transaction)
    add_debt_creation_to_session(db, transaction.id, split, details.circle_id, details.description)
    commit_batch(db, "accept expense claim")
    logger.info(f"Expense claim {claim_id} accepted; transaction {transaction.id} recorded")

    delete_notification_by_related_id(claim_id)
    create_notification(
        user_id=claim.claimer_id,
        from_user=actor,
        type="expense-claim-accepted",
        message=f'{actor.display_name} accepted your expense claim for "{details.description}".',
        link=_history_link(details.circle_id),
        related_id=claim_id,
    )
    return transaction.id


def reject_expense_claim(db: Session, claim_id: str, actor: UserProfile) -> ExpenseClaim:
    claim = _require_payer(db, claim_id, actor)
    description = claim.expense_details.get("description", "")

    _claim_transition(db, claim, ClaimStatus.rejected)
    commit_batch(db, "reject expense claim")
    db.refresh(claim)
    logger.info(f"Expense claim {claim_id} rejected by {actor.uid}")

    delete_notification_by_related_id(claim_id)
    create_notification(
        user_id=claim.claimer_id,
        from_user=actor,
        type="expense-claim-rejected",
        message=f'{actor.display_name} declined your expense claim for "{description}".',
        link="/notifications",
        related_id=claim_id,
    )
    return claim
