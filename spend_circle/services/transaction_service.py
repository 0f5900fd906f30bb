import logging
from decimal import Decimal, ROUND_DOWN
from sqlalchemy.orm import Session
from typing import Dict, List, Optional

from spend_circle.core.config import ledger_settings
from spend_circle.models._columns import new_id
from spend_circle.models.transactions import Transaction
from spend_circle.schemas.profile_schema import SplitDetails, SplitMember, UserProfile
from spend_circle.schemas.transaction_schema import ExpenseCreate
from spend_circle.services.errors import (
    NotFoundError, PermissionDeniedError, ValidationError, commit_batch
)
from spend_circle.services.notification_service import create_notification
from spend_circle.utils.min_cash_flow import CENT, round_decimal

logger = logging.getLogger(__name__)

PROFILE_FIELDS = set(UserProfile.model_fields)


def build_equal_split(total: Decimal, payer: UserProfile, members: List[UserProfile]) -> SplitDetails:
    """
    Divide ``total`` equally among ``members`` (payer included).

    Shares are whole cents; the rounding remainder goes to the payer so every
    debt is the same amount.
    """
    total = round_decimal(total)
    _check_members(payer, members)

    base = (total / len(members)).quantize(CENT, rounding=ROUND_DOWN)
    remainder = total - base * len(members)

    split_members = [
        SplitMember(
            **member.model_dump(include=PROFILE_FIELDS),
            share=base + remainder if member.uid == payer.uid else base,
            is_payer=member.uid == payer.uid,
        )
        for member in members
    ]
    return SplitDetails(type="equally", total=total, payer_id=payer.uid, members=split_members)


def build_custom_split(
    total: Decimal,
    payer: UserProfile,
    members: List[UserProfile],
    shares: Dict[str, Decimal],
) -> SplitDetails:
    """Build an unequal split from explicit per-member shares that must add up to ``total``."""
    total = round_decimal(total)
    _check_members(payer, members)

    rounded = {member.uid: round_decimal(shares.get(member.uid, Decimal("0"))) for member in members}
    if any(share < 0 for share in rounded.values()):
        raise ValidationError("Shares cannot be negative")
    if abs(sum(rounded.values(), Decimal("0")) - total) > ledger_settings.tolerance:
        raise ValidationError("The sum of custom shares must equal the total amount.")

    split_members = [
        SplitMember(**member.model_dump(include=PROFILE_FIELDS), share=rounded[member.uid], is_payer=member.uid == payer.uid)
        for member in members
    ]
    return SplitDetails(type="unequally", total=total, payer_id=payer.uid, members=split_members)


def _check_members(payer: UserProfile, members: List[UserProfile]) -> None:
    if not members:
        raise ValidationError("Select at least one participant to split with")
    if payer.uid not in {member.uid for member in members}:
        raise ValidationError("The payer must be one of the split participants")


def validate_split_details(split: SplitDetails, amount: Optional[Decimal] = None) -> None:
    """
    Check a split before anything is written.

    Raises:
        ValidationError: no participants, not exactly one payer, duplicate
            members, or shares exceeding the total
    """
    tolerance = ledger_settings.tolerance

    if not split.members:
        raise ValidationError("Select at least one participant to split with")

    uids = [member.uid for member in split.members]
    if len(uids) != len(set(uids)):
        raise ValidationError("A member appears more than once in the split")

    payers = [member for member in split.members if member.is_payer]
    if len(payers) != 1 or payers[0].uid != split.payer_id:
        raise ValidationError("The split must name exactly one payer, matching payer_id")

    owed = sum((member.share for member in split.non_payers()), Decimal("0"))
    if owed > split.total + tolerance:
        raise ValidationError("Shares owed by other members exceed the expense total")

    if amount is not None and abs(split.total - amount) > tolerance:
        raise ValidationError("The split total must equal the expense amount")


def check_circle_membership(db: Session, circle_id: str, split: SplitDetails) -> None:
    from spend_circle.services.circle_service import get_circle_members, require_circle

    require_circle(db, circle_id)
    member_ids = {member.user_id for member in get_circle_members(db, circle_id)}
    for member in split.members:
        if member.uid not in member_ids:
            raise ValidationError(f"{member.display_name} is not a member of this circle")


def new_split_transaction(expense_data, user_id: str, split: SplitDetails) -> Transaction:
    """Build (but do not add) a split Transaction with a pre-assigned id."""
    return Transaction(
        id=new_id(),
        user_id=user_id,
        description=expense_data.description,
        amount=round_decimal(expense_data.amount),
        category=expense_data.category,
        date=expense_data.date,
        recurring_expense_id=getattr(expense_data, "recurring_expense_id", None),
        is_split=True,
        circle_id=expense_data.circle_id,
        split_details=split.model_dump(mode="json"),
    )


def record_split_expense(db: Session, expense_data: ExpenseCreate, split_details: SplitDetails) -> str:
    """
    Record a split expense and its debts in one commit.

    The logger must be the payer; mismatched payers go through expense claims.

    Returns:
        The new transaction's id
    """
    from spend_circle.services.debt_service import add_debt_creation_to_session

    if split_details.payer_id != expense_data.user_id:
        raise ValidationError(
            "Only the payer can record a split expense directly; send an expense claim instead"
        )
    validate_split_details(split_details, amount=expense_data.amount)
    if expense_data.circle_id:
        check_circle_membership(db, expense_data.circle_id, split_details)

    transaction = new_split_transaction(expense_data, expense_data.user_id, split_details)
    db.add(transaction)
    debts = add_debt_creation_to_session(
        db, transaction.id, split_details, expense_data.circle_id, expense_data.description
    )

    commit_batch(db, "record split expense")
    logger.info(f"Recorded split expense {transaction.id} with {len(debts)} debts")
    return transaction.id


def add_transaction(db: Session, expense_data: ExpenseCreate) -> Transaction:
    """Record a personal, non-split transaction"""
    transaction = Transaction(
        user_id=expense_data.user_id,
        description=expense_data.description,
        amount=round_decimal(expense_data.amount),
        category=expense_data.category,
        date=expense_data.date,
        recurring_expense_id=expense_data.recurring_expense_id,
        is_split=False,
        circle_id=expense_data.circle_id,
    )
    db.add(transaction)
    commit_batch(db, "add transaction")
    db.refresh(transaction)
    return transaction


def get_transaction(db: Session, transaction_id: str) -> Optional[Transaction]:
    """Get a transaction by ID"""
    return db.query(Transaction).filter(Transaction.id == transaction_id).first()


def get_circle_transactions(db: Session, circle_id: str) -> List[Transaction]:
    """All transactions of a circle, newest first"""
    return db.query(Transaction)\
        .filter(Transaction.circle_id == circle_id)\
        .order_by(Transaction.date.desc(), Transaction.created_at.desc())\
        .all()


def remove_transaction_from_circle(db: Session, transaction_id: str, actor: UserProfile) -> Transaction:
    """
    Detach an expense from its circle (circle owner only).

    The expense stays in its owner's history as a personal expense; the debts
    it created, and any repayments confirmed against them, are removed in the
    same commit.
    """
    from spend_circle.services.circle_service import require_circle
    from spend_circle.services.debt_service import delete_debts_for_transaction

    transaction = get_transaction(db, transaction_id)
    if not transaction:
        raise NotFoundError("Transaction not found")
    if not transaction.circle_id:
        raise ValidationError("This expense is not part of a circle")

    circle = require_circle(db, transaction.circle_id)
    if circle.owner_id != actor.uid:
        raise PermissionDeniedError("Only the circle owner can perform this action.")

    delete_debts_for_transaction(db, transaction_id)
    transaction.is_split = False
    transaction.circle_id = None
    transaction.split_details = None
    commit_batch(db, "remove transaction from circle")
    db.refresh(transaction)

    create_notification(
        user_id=transaction.user_id,
        from_user=actor,
        type="circle-expense-removed-by-owner",
        message=f'{actor.display_name} removed your expense "{transaction.description}" from the circle "{circle.name}".',
        link="/history",
        related_id=transaction_id,
    )
    return transaction


def delete_transaction(db: Session, transaction_id: str, actor_id: str) -> None:
    """Delete a transaction (owner only) together with its debts and their repayments"""
    from spend_circle.services.debt_service import delete_debts_for_transaction

    transaction = get_transaction(db, transaction_id)
    if not transaction:
        raise NotFoundError("Transaction not found")
    if transaction.user_id != actor_id:
        raise PermissionDeniedError("You can only delete your own transactions")

    delete_debts_for_transaction(db, transaction_id)
    db.delete(transaction)
    commit_batch(db, "delete transaction")
    logger.info(f"Deleted transaction {transaction_id}")
