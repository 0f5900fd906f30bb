"""
Balance aggregation and debt simplification for circles.

Sign convention: a positive balance means the member is owed money by the
circle, a negative balance means the member owes money.

Confirmed settlements mirror a reverse split payment: the sender
(``from_user_id``) is credited and the receiver (``to_user_id``) is debited.
"""
import logging
from decimal import Decimal
from sqlalchemy.orm import Session
from typing import Dict, Iterable, List, Mapping

from spend_circle.core.config import ledger_settings
from spend_circle.models.settlements import Settlement
from spend_circle.models.transactions import Transaction
from spend_circle.schemas.profile_schema import SplitDetails, UserProfile
from spend_circle.schemas.settlement_schema import (
    MemberBalance, SettlementRequestStatus, SimplifiedTransfer, UserBalanceSummary
)
from spend_circle.utils.min_cash_flow import is_zero, min_cash_flow, round_decimal

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def _split_of(transaction) -> SplitDetails:
    split = transaction.split_details
    if isinstance(split, SplitDetails):
        return split
    return SplitDetails.model_validate(split)


def compute_net_balances(
    members: Iterable[UserProfile],
    transactions: Iterable,
    confirmed_settlements: Iterable,
) -> Dict[str, Decimal]:
    """
    Fold split expenses and confirmed settlements into one balance per member.

    Args:
        members: Circle members; each starts at zero, in this order
        transactions: Transactions (ORM rows or objects with ``is_split``,
            ``split_details`` and ``amount``); non-split ones are ignored
        confirmed_settlements: Settlements; anything not confirmed is ignored

    Returns:
        Ordered mapping uid -> balance rounded to cents, with
        anything within the tolerance reported as zero
    """
    balances: Dict[str, Decimal] = {member.uid: ZERO for member in members}

    for transaction in transactions:
        if not transaction.is_split or not transaction.split_details:
            continue
        split = _split_of(transaction)

        # The payer fronted the whole expense; Transaction.amount shrinks as
        # debts are confirmed, so the split total is the credited figure.
        # The payer's own share is implied, whatever the payer entry stores.
        total = split.total if split.total is not None else Decimal(transaction.amount)
        non_payers = split.non_payers()
        owed = sum((member.share for member in non_payers), ZERO)
        payer_share = total - owed
        balances[split.payer_id] = balances.get(split.payer_id, ZERO) + total - payer_share

        for member in non_payers:
            balances[member.uid] = balances.get(member.uid, ZERO) - member.share

    for settlement in confirmed_settlements:
        status = getattr(settlement, "status", SettlementRequestStatus.confirmed.value)
        if status != SettlementRequestStatus.confirmed.value:
            continue
        amount = Decimal(settlement.amount)
        balances[settlement.from_user_id] = balances.get(settlement.from_user_id, ZERO) + amount
        balances[settlement.to_user_id] = balances.get(settlement.to_user_id, ZERO) - amount

    rounded = {uid: round_decimal(balance) for uid, balance in balances.items()}
    return {
        uid: round_decimal(ZERO) if is_zero(balance, ledger_settings.tolerance) else balance
        for uid, balance in rounded.items()
    }


def simplify(balances: Mapping[str, Decimal], members: Mapping[str, UserProfile]) -> List[SimplifiedTransfer]:
    """
    Net balances into pairwise transfers with the greedy min-cash-flow pass.

    Users missing from ``members`` get a placeholder profile so a transfer is
    never dropped.
    """
    transfers = min_cash_flow(dict(balances), tolerance=ledger_settings.tolerance)
    return [
        SimplifiedTransfer(
            from_user=_profile_for(members, transfer["from"]),
            to_user=_profile_for(members, transfer["to"]),
            amount=transfer["amount"],
        )
        for transfer in transfers
    ]


def _profile_for(members: Mapping[str, UserProfile], uid: str) -> UserProfile:
    profile = members.get(uid)
    if profile is None:
        logger.warning(f"Balance for {uid} who is no longer a circle member")
        profile = UserProfile(uid=uid, display_name="Former member", email="")
    return profile


def summarize_for_user(transfers: Iterable[SimplifiedTransfer], user_id: str) -> UserBalanceSummary:
    """Split the simplified transfers into what ``user_id`` owes and is owed"""
    transfers = list(transfers)
    return UserBalanceSummary(
        you_owe=[t for t in transfers if t.from_user.uid == user_id],
        owes_you=[t for t in transfers if t.to_user.uid == user_id],
    )


def get_confirmed_settlements(db: Session, circle_id: str) -> List[Settlement]:
    return db.query(Settlement).filter(
        Settlement.circle_id == circle_id,
        Settlement.status == SettlementRequestStatus.confirmed.value,
    ).all()


def get_split_transactions(db: Session, circle_id: str) -> List[Transaction]:
    return db.query(Transaction).filter(
        Transaction.circle_id == circle_id,
        Transaction.is_split == True,  # noqa: E712
    ).order_by(Transaction.created_at).all()


def get_circle_balances(db: Session, circle_id: str) -> List[MemberBalance]:
    """Net balance of every member of a circle"""
    from spend_circle.services.circle_service import get_member_profiles, require_circle

    require_circle(db, circle_id)
    profiles = get_member_profiles(db, circle_id)
    balances = compute_net_balances(
        profiles, get_split_transactions(db, circle_id), get_confirmed_settlements(db, circle_id)
    )
    by_uid = {p.uid: p for p in profiles}
    return [
        MemberBalance(user=_profile_for(by_uid, uid), net_balance=balance)
        for uid, balance in balances.items()
    ]


def get_simplified_debts(db: Session, circle_id: str) -> List[SimplifiedTransfer]:
    """Simplified transfers that would settle a circle"""
    member_balances = get_circle_balances(db, circle_id)
    balances = {mb.user.uid: mb.net_balance for mb in member_balances}
    members = {mb.user.uid: mb.user for mb in member_balances}
    return simplify(balances, members)


def amount_owed(db: Session, circle_id: str, from_user_id: str, to_user_id: str) -> Decimal:
    """What ``from_user_id`` owes ``to_user_id`` in the circle's simplified transfers"""
    return sum(
        (t.amount for t in get_simplified_debts(db, circle_id)
         if t.from_user.uid == from_user_id and t.to_user.uid == to_user_id),
        ZERO,
    )
