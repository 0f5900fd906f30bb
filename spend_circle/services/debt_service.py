import logging
from sqlalchemy.orm import Session
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from typing import List, Optional

from spend_circle.models._columns import new_id
from spend_circle.models.debts import Debt
from spend_circle.models.settlements import Settlement
from spend_circle.schemas.debt_schema import DebtOut, SettlementStatus
from spend_circle.schemas.profile_schema import SplitDetails, UserProfile
from spend_circle.services.errors import (
    NotFoundError, PermissionDeniedError, ValidationError, commit_batch, translate_store_error
)
from spend_circle.utils.min_cash_flow import round_decimal

logger = logging.getLogger(__name__)


def add_debt_creation_to_session(
    db: Session,
    transaction_id: str,
    split: SplitDetails,
    circle_id: Optional[str],
    transaction_description: str,
) -> List[Debt]:
    """
    Stage one Debt per non-payer member with a positive share.

    Nothing is committed; the caller commits the debts together with the
    transaction they belong to.
    """
    payer = split.payer()
    if not payer:
        raise ValidationError("Payer could not be found in the provided split members list.")
    creditor = payer.profile().model_dump(mode="json")

    debts = []
    for member in split.non_payers():
        amount = round_decimal(member.share)
        if amount <= 0:
            continue

        debt = Debt(
            id=new_id(),
            circle_id=circle_id or None,
            transaction_id=transaction_id,
            transaction_description=transaction_description,
            debtor_id=member.uid,
            debtor=member.profile().model_dump(mode="json"),
            creditor_id=payer.uid,
            creditor=creditor,
            amount=amount,
            settlement_status=SettlementStatus.unsettled.value,
            involved_uids=[member.uid, payer.uid],
        )
        db.add(debt)
        debts.append(debt)

    return debts


def normalize_status(debt: Debt) -> SettlementStatus:
    """Current status, mapping legacy ``is_settled`` rows onto the state machine."""
    if debt.settlement_status:
        return SettlementStatus(debt.settlement_status)
    if debt.is_settled:
        return SettlementStatus.confirmed
    return SettlementStatus.unsettled


def debt_to_schema(debt: Debt) -> DebtOut:
    return DebtOut(
        id=debt.id,
        circle_id=debt.circle_id,
        transaction_id=debt.transaction_id,
        transaction_description=debt.transaction_description,
        debtor_id=debt.debtor_id,
        debtor=UserProfile(**debt.debtor),
        creditor_id=debt.creditor_id,
        creditor=UserProfile(**debt.creditor),
        amount=debt.amount,
        settlement_status=normalize_status(debt),
        involved_uids=list(debt.involved_uids or [debt.debtor_id, debt.creditor_id]),
        created_at=debt.created_at,
    )


def get_debt(db: Session, debt_id: str) -> Optional[Debt]:
    """Get a debt by ID"""
    return db.query(Debt).filter(Debt.id == debt_id).first()


def require_debt(db: Session, debt_id: str) -> Debt:
    debt = get_debt(db, debt_id)
    if not debt:
        raise NotFoundError("Debt not found")
    return debt


def _involving(user_id: str):
    return or_(Debt.debtor_id == user_id, Debt.creditor_id == user_id)


def get_debts_for_circle(db: Session, circle_id: str, user_id: str) -> List[DebtOut]:
    """Debts of a circle involving ``user_id``, newest first, legacy status normalized"""
    try:
        debts = db.query(Debt)\
            .filter(Debt.circle_id == circle_id, _involving(user_id))\
            .order_by(Debt.created_at.desc())\
            .all()
    except SQLAlchemyError as e:
        logger.error(f"Error loading debts for circle {circle_id}: {e}")
        raise translate_store_error(e, "load circle debts") from e

    return [debt_to_schema(debt) for debt in debts]


def get_debts_for_user(db: Session, user_id: str) -> List[DebtOut]:
    """Every debt involving ``user_id`` across circles, newest first"""
    try:
        debts = db.query(Debt)\
            .filter(_involving(user_id))\
            .order_by(Debt.created_at.desc())\
            .all()
    except SQLAlchemyError as e:
        logger.error(f"Error loading debts for user {user_id}: {e}")
        raise translate_store_error(e, "load user debts") from e

    return [debt_to_schema(debt) for debt in debts]


def delete_debt(db: Session, debt_id: str, actor_id: str) -> None:
    """Delete a debt outright (circle owner only, re-checked at call time)"""
    from spend_circle.services.circle_service import get_circle

    debt = require_debt(db, debt_id)
    circle = get_circle(db, debt.circle_id) if debt.circle_id else None
    if not circle or circle.owner_id != actor_id:
        raise PermissionDeniedError("Only the circle owner can delete debts")

    _delete_repayments_of(db, [debt.id])
    db.delete(debt)
    commit_batch(db, "delete debt")
    logger.info(f"Circle owner {actor_id} deleted debt {debt_id}")


def delete_debts_for_circle(db: Session, circle_id: str) -> int:
    """Stage deletion of every debt in a circle. The caller commits."""
    return db.query(Debt).filter(Debt.circle_id == circle_id).delete(synchronize_session=False)


def _delete_repayments_of(db: Session, debt_ids: List[str]) -> None:
    if debt_ids:
        db.query(Settlement).filter(Settlement.debt_id.in_(debt_ids)).delete(synchronize_session=False)


def delete_debts_for_transaction(db: Session, transaction_id: str) -> int:
    """
    Stage deletion of a transaction's debts and of the confirmed repayments
    projected from them, so circle balances drop the expense entirely.
    The caller commits.
    """
    debt_ids = [row.id for row in db.query(Debt.id).filter(Debt.transaction_id == transaction_id)]
    _delete_repayments_of(db, debt_ids)
    return db.query(Debt).filter(Debt.transaction_id == transaction_id).delete(synchronize_session=False)
