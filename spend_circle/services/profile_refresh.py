import logging
from sqlalchemy import String, cast, or_
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified
from typing import List

from spend_circle.models.circles import CircleMember
from spend_circle.models.debts import Debt
from spend_circle.models.expense_claims import ExpenseClaim
from spend_circle.models.settlements import Settlement
from spend_circle.models.transactions import Transaction
from spend_circle.schemas.profile_schema import UserProfile
from spend_circle.services.errors import commit_batch

logger = logging.getLogger(__name__)


def _mentions(column, uid: str):
    """Coarse SQL match on the serialized JSON; _refresh_split does the exact check."""
    return cast(column, String).contains(f'"{uid}"', autoescape=True)


def get_claims_mentioning(db: Session, uid: str) -> List[ExpenseClaim]:
    """Claims filed by ``uid`` or whose split names ``uid``"""
    return db.query(ExpenseClaim)\
        .filter(or_(ExpenseClaim.claimer_id == uid, _mentions(ExpenseClaim.expense_details, uid)))\
        .all()


def _refresh_split(split: dict, snapshot: dict) -> bool:
    changed = False
    for member in split.get("members", []):
        if member.get("uid") == snapshot["uid"]:
            member.update(snapshot)
            changed = True
    return changed


def refresh_profile_snapshots(db: Session, profile: UserProfile) -> int:
    """
    Rewrite every embedded copy of ``profile`` in one commit.

    Profiles are stored by value on member rows, debts, settlements, claims
    and split members, so a display name change has to be pushed out.

    Returns:
        Number of rows touched
    """
    uid = profile.uid
    snapshot = profile.model_dump(mode="json")
    touched = 0

    for member in db.query(CircleMember).filter(CircleMember.user_id == uid).all():
        member.profile = snapshot
        touched += 1

    for debt in db.query(Debt).filter(or_(Debt.debtor_id == uid, Debt.creditor_id == uid)).all():
        if debt.debtor_id == uid:
            debt.debtor = snapshot
        if debt.creditor_id == uid:
            debt.creditor = snapshot
        touched += 1

    settlements = db.query(Settlement)\
        .filter(or_(Settlement.from_user_id == uid, Settlement.to_user_id == uid))\
        .all()
    for settlement in settlements:
        if settlement.from_user_id == uid:
            settlement.from_user = snapshot
        if settlement.to_user_id == uid:
            settlement.to_user = snapshot
        touched += 1

    for claim in get_claims_mentioning(db, uid):
        changed = False
        if claim.claimer_id == uid:
            claim.claimer_profile = snapshot
            changed = True
        details = dict(claim.expense_details)
        split = dict(details.get("split_details") or {})
        if _refresh_split(split, snapshot):
            details["split_details"] = split
            claim.expense_details = details
            flag_modified(claim, "expense_details")
            changed = True
        touched += changed

    split_transactions = db.query(Transaction).filter(
        Transaction.is_split == True,  # noqa: E712
        _mentions(Transaction.split_details, uid),
    ).all()
    for transaction in split_transactions:
        split = dict(transaction.split_details or {})
        if _refresh_split(split, snapshot):
            transaction.split_details = split
            flag_modified(transaction, "split_details")
            touched += 1

    commit_batch(db, "refresh profile snapshots")
    logger.info(f"Refreshed {touched} profile snapshots for {uid}")
    return touched
