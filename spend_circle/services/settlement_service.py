"""
Settlement workflows.

Debts move through ``unsettled -> pending_confirmation -> confirmed -> logged``
(and back from ``pending_confirmation`` to ``unsettled`` on cancel or reject).
Every transition is a conditional UPDATE on the expected status, so two
concurrent callers can never both win the same transition.

Circle members can also settle a simplified balance directly with a
settlement request, which the receiver accepts or rejects.
"""
import logging
from decimal import Decimal
from sqlalchemy import and_, case, or_
from sqlalchemy.orm import Session
from typing import List, Optional

from spend_circle.core.config import ledger_settings
from spend_circle.models._columns import new_id, utcnow
from spend_circle.models.debts import Debt
from spend_circle.models.settlements import Settlement
from spend_circle.models.transactions import Transaction
from spend_circle.schemas.category_schema import SystemCategory
from spend_circle.schemas.debt_schema import DebtOut, SettlementStatus
from spend_circle.schemas.profile_schema import UserProfile
from spend_circle.schemas.settlement_schema import SettlementRequestStatus
from spend_circle.services.debt_service import debt_to_schema, normalize_status, require_debt
from spend_circle.services.errors import (
    InvalidStateError, NotFoundError, PermissionDeniedError, ValidationError, commit_batch
)
from spend_circle.services.notification_service import (
    circle_link, create_notification, delete_notification_by_related_id, format_amount
)
from spend_circle.utils.min_cash_flow import round_decimal

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Debt state machine
# ---------------------------------------------------------------------------

def _status_clause(expected: SettlementStatus):
    """Match ``expected``, including legacy rows that only carry ``is_settled``."""
    clause = Debt.settlement_status == expected.value
    if expected == SettlementStatus.unsettled:
        legacy = and_(
            Debt.settlement_status.is_(None),
            or_(Debt.is_settled.is_(None), Debt.is_settled == False),  # noqa: E712
        )
        return or_(clause, legacy)
    if expected == SettlementStatus.confirmed:
        return or_(clause, and_(Debt.settlement_status.is_(None), Debt.is_settled == True))  # noqa: E712
    return clause


def _transition(db: Session, debt: Debt, expected: SettlementStatus, target: SettlementStatus) -> None:
    """
    Stage a compare-and-swap of the debt's status.

    Raises:
        InvalidStateError: The debt is not in ``expected`` (wrong state or a
            concurrent caller got there first). The session is rolled back.
    """
    updated = db.query(Debt)\
        .filter(Debt.id == debt.id, _status_clause(expected))\
        .update({
            Debt.settlement_status: target.value,
            Debt.is_settled: target in (SettlementStatus.confirmed, SettlementStatus.logged),
            Debt.updated_at: utcnow(),
        }, synchronize_session=False)

    if updated == 0:
        db.rollback()
        db.expire(debt)
        current = normalize_status(debt)
        logger.warning(f"Rejected {expected.value} -> {target.value} on debt {debt.id}: it is {current.value}")
        raise InvalidStateError(
            f"This debt is {current.value.replace('_', ' ')} and cannot move to {target.value.replace('_', ' ')}"
        )


def _require_debtor(debt: Debt, actor: UserProfile) -> None:
    if debt.debtor_id != actor.uid:
        raise PermissionDeniedError("Only the debtor can perform this action")


def _require_creditor(debt: Debt, actor: UserProfile) -> None:
    if debt.creditor_id != actor.uid:
        raise PermissionDeniedError("Only the creditor can perform this action")


def _circle_suffix(db: Session, circle_id: Optional[str]) -> str:
    from spend_circle.services.circle_service import get_circle

    circle = get_circle(db, circle_id) if circle_id else None
    return f' in "{circle.name}"' if circle else ""


def initiate_settlement(db: Session, debt_id: str, actor: UserProfile) -> DebtOut:
    """Debtor marks the debt as paid; the creditor is asked to confirm."""
    debt = require_debt(db, debt_id)
    _require_debtor(debt, actor)

    _transition(db, debt, SettlementStatus.unsettled, SettlementStatus.pending_confirmation)
    commit_batch(db, "initiate settlement")
    db.refresh(debt)
    logger.info(f"Debt {debt_id} marked as paid by {actor.uid}")

    create_notification(
        user_id=debt.creditor_id,
        from_user=actor,
        type="settlement-request",
        message=f"{actor.display_name} marked a payment of {format_amount(debt.amount)} to you"
                f"{_circle_suffix(db, debt.circle_id)}.",
        link=circle_link(debt.circle_id, "balances"),
        related_id=debt.id,
    )
    return debt_to_schema(debt)


def cancel_settlement(db: Session, debt_id: str, actor: UserProfile) -> DebtOut:
    """Debtor withdraws a payment they marked by mistake"""
    debt = require_debt(db, debt_id)
    _require_debtor(debt, actor)

    _transition(db, debt, SettlementStatus.pending_confirmation, SettlementStatus.unsettled)
    commit_batch(db, "cancel settlement")
    db.refresh(debt)
    logger.info(f"Debtor {actor.uid} cancelled settlement of debt {debt_id}")

    delete_notification_by_related_id(debt.id)
    return debt_to_schema(debt)


def reject_settlement(db: Session, debt_id: str, actor: UserProfile) -> DebtOut:
    """Creditor says the payment never arrived; the debt is open again"""
    debt = require_debt(db, debt_id)
    _require_creditor(debt, actor)

    _transition(db, debt, SettlementStatus.pending_confirmation, SettlementStatus.unsettled)
    commit_batch(db, "reject settlement")
    db.refresh(debt)
    logger.info(f"Creditor {actor.uid} rejected settlement of debt {debt_id}")

    delete_notification_by_related_id(debt.id)
    create_notification(
        user_id=debt.debtor_id,
        from_user=actor,
        type="settlement-rejected",
        message=f"{actor.display_name} declined your payment claim of {format_amount(debt.amount)}.",
        link=circle_link(debt.circle_id, "balances"),
        related_id=debt.id,
    )
    return debt_to_schema(debt)


def confirm_settlement(db: Session, debt_id: str, actor: UserProfile) -> DebtOut:
    """
    Creditor confirms receipt.

    One commit covers the status change, the decrement of the originating
    transaction's amount (floored at zero) and, for circle debts, a confirmed
    Settlement row that the balance aggregator folds in.
    """
    debt = require_debt(db, debt_id)
    _require_creditor(debt, actor)
    amount = round_decimal(debt.amount)

    _transition(db, debt, SettlementStatus.pending_confirmation, SettlementStatus.confirmed)

    updated = db.query(Transaction)\
        .filter(Transaction.id == debt.transaction_id)\
        .update({
            Transaction.amount: case(
                (Transaction.amount > amount, Transaction.amount - amount),
                else_=Decimal("0"),
            )
        }, synchronize_session=False)
    if updated == 0:
        logger.warning(f"Transaction {debt.transaction_id} of debt {debt_id} no longer exists")

    if debt.circle_id:
        db.add(Settlement(
            id=new_id(),
            circle_id=debt.circle_id,
            from_user_id=debt.debtor_id,
            to_user_id=debt.creditor_id,
            from_user=debt.debtor,
            to_user=debt.creditor,
            amount=amount,
            status=SettlementRequestStatus.confirmed.value,
            debt_id=debt.id,
            processed_at=utcnow(),
        ))

    commit_batch(db, "confirm settlement")
    db.refresh(debt)
    logger.info(f"Creditor {actor.uid} confirmed settlement of debt {debt_id}")

    delete_notification_by_related_id(debt.id)
    create_notification(
        user_id=debt.debtor_id,
        from_user=actor,
        type="settlement-confirmed",
        message=f"{actor.display_name} confirmed your payment of {format_amount(amount)}.",
        link=circle_link(debt.circle_id, "balances"),
        related_id=debt.id,
    )
    return debt_to_schema(debt)


def log_settled_debt_as_expense(db: Session, debt_id: str, actor: UserProfile) -> DebtOut:
    """Debtor records the repayment in their own history. Terminal."""
    debt = require_debt(db, debt_id)
    _require_debtor(debt, actor)

    _transition(db, debt, SettlementStatus.confirmed, SettlementStatus.logged)
    db.add(Transaction(
        id=new_id(),
        user_id=debt.debtor_id,
        description=f"Paid back {debt.creditor.get('display_name', 'creditor')}",
        amount=round_decimal(debt.amount),
        category=SystemCategory.settlement.value,
        date=utcnow(),
        is_split=False,
    ))
    commit_batch(db, "log settled debt")
    db.refresh(debt)
    logger.info(f"Debt {debt_id} logged as an expense for {actor.uid}")
    return debt_to_schema(debt)


# ---------------------------------------------------------------------------
# Settlement requests
# ---------------------------------------------------------------------------

def get_settlement(db: Session, settlement_id: str) -> Optional[Settlement]:
    """Get a settlement by ID"""
    return db.query(Settlement).filter(Settlement.id == settlement_id).first()


def get_circle_settlements(db: Session, circle_id: str) -> List[Settlement]:
    """All settlements of a circle, newest first"""
    return db.query(Settlement)\
        .filter(Settlement.circle_id == circle_id)\
        .order_by(Settlement.created_at.desc())\
        .all()


def request_settlement(
    db: Session,
    circle_id: str,
    from_user: UserProfile,
    to_user: UserProfile,
    amount: Decimal,
) -> Settlement:
    """Ask ``to_user`` to confirm a payment against the simplified circle balance"""
    from spend_circle.services.balance_service import amount_owed
    from spend_circle.services.circle_service import is_circle_member, require_circle

    circle = require_circle(db, circle_id)
    amount = round_decimal(amount)
    if amount <= 0:
        raise ValidationError("Amount must be greater than zero")
    if from_user.uid == to_user.uid:
        raise ValidationError("You cannot settle up with yourself")
    for profile in (from_user, to_user):
        if not is_circle_member(db, circle_id, profile.uid):
            raise ValidationError(f"{profile.display_name} is not a member of this circle")

    owed = amount_owed(db, circle_id, from_user.uid, to_user.uid)
    if amount > owed + ledger_settings.tolerance:
        raise ValidationError("You can't pay back more than you owe")

    settlement = Settlement(
        id=new_id(),
        circle_id=circle_id,
        from_user_id=from_user.uid,
        to_user_id=to_user.uid,
        from_user=from_user.model_dump(mode="json"),
        to_user=to_user.model_dump(mode="json"),
        amount=amount,
        status=SettlementRequestStatus.pending.value,
    )
    db.add(settlement)
    commit_batch(db, "request settlement")
    db.refresh(settlement)
    logger.info(f"Settlement request {settlement.id} of {amount} from {from_user.uid} to {to_user.uid}")

    create_notification(
        user_id=to_user.uid,
        from_user=from_user,
        type="settlement-request",
        message=f'{from_user.display_name} marked a payment of {format_amount(amount)} to you in "{circle.name}".',
        link=circle_link(circle_id, "balances"),
        related_id=settlement.id,
    )
    return settlement


def _require_pending_receiver(db: Session, settlement_id: str, actor: UserProfile) -> Settlement:
    settlement = get_settlement(db, settlement_id)
    if not settlement:
        raise NotFoundError("Settlement not found")
    if settlement.to_user_id != actor.uid:
        raise PermissionDeniedError("Only the receiver can respond to this settlement")
    return settlement


def _settlement_transition(db: Session, settlement: Settlement, target: SettlementRequestStatus) -> None:
    updated = db.query(Settlement)\
        .filter(Settlement.id == settlement.id,
                Settlement.status == SettlementRequestStatus.pending.value)\
        .update({Settlement.status: target.value, Settlement.processed_at: utcnow()},
                synchronize_session=False)
    if updated == 0:
        db.rollback()
        db.expire(settlement)
        logger.warning(f"Settlement {settlement.id} is {settlement.status}, cannot move to {target.value}")
        raise InvalidStateError(f"This settlement has already been {settlement.status}")


def accept_settlement_request(db: Session, settlement_id: str, actor: UserProfile) -> Settlement:
    """Receiver confirms the payment; the payer gets a Settlement expense in the same commit."""
    settlement = _require_pending_receiver(db, settlement_id, actor)

    _settlement_transition(db, settlement, SettlementRequestStatus.confirmed)
    to_name = settlement.to_user.get("display_name", actor.display_name)
    db.add(Transaction(
        id=new_id(),
        user_id=settlement.from_user_id,
        description=f"Paid back {to_name}",
        amount=round_decimal(settlement.amount),
        category=SystemCategory.settlement.value,
        date=utcnow(),
        is_split=False,
        circle_id=settlement.circle_id,
    ))
    commit_batch(db, "accept settlement request")
    db.refresh(settlement)
    logger.info(f"Settlement {settlement_id} confirmed by {actor.uid}")

    delete_notification_by_related_id(settlement.id)
    create_notification(
        user_id=settlement.from_user_id,
        from_user=actor,
        type="settlement-confirmed",
        message=f"{actor.display_name} confirmed your payment of {format_amount(settlement.amount)}.",
        link=circle_link(settlement.circle_id, "balances"),
        related_id=settlement.id,
    )
    return settlement


def reject_settlement_request(db: Session, settlement_id: str, actor: UserProfile) -> Settlement:
    settlement = _require_pending_receiver(db, settlement_id, actor)

    _settlement_transition(db, settlement, SettlementRequestStatus.rejected)
    commit_batch(db, "reject settlement request")
    db.refresh(settlement)
    logger.info(f"Settlement {settlement_id} rejected by {actor.uid}")

    delete_notification_by_related_id(settlement.id)
    create_notification(
        user_id=settlement.from_user_id,
        from_user=actor,
        type="settlement-rejected",
        message=f"{actor.display_name} declined your payment claim of {format_amount(settlement.amount)}.",
        link=circle_link(settlement.circle_id, "balances"),
        related_id=settlement.id,
    )
    return settlement
