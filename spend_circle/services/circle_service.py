import logging
from datetime import timedelta
from sqlalchemy.orm import Session
from sqlalchemy import and_
from typing import List, Optional

from spend_circle.models._columns import utcnow
from spend_circle.models.circles import Circle, CircleMember
from spend_circle.models.settlements import Settlement
from spend_circle.models.transactions import Transaction
from spend_circle.schemas.circle_schema import CircleOut
from spend_circle.schemas.profile_schema import UserProfile
from spend_circle.services.errors import (
    NotFoundError, PermissionDeniedError, ValidationError, commit_batch
)

logger = logging.getLogger(__name__)


def create_circle(db: Session, name: str, owner: UserProfile, members: List[UserProfile]) -> Circle:
    """Create a circle. The owner is always a member."""
    if not name or not name.strip():
        raise ValidationError("Circle name is required")

    profiles = {owner.uid: owner}
    for profile in members:
        profiles.setdefault(profile.uid, profile)

    circle = Circle(name=name.strip(), owner_id=owner.uid)
    db.add(circle)
    db.flush()

    # Listed order is join order
    joined_at = utcnow()
    for position, profile in enumerate(profiles.values()):
        db.add(CircleMember(
            circle_id=circle.id,
            user_id=profile.uid,
            profile=profile.model_dump(mode="json"),
            joined_at=joined_at + timedelta(microseconds=position),
        ))

    commit_batch(db, "create circle")
    db.refresh(circle)
    logger.info(f"Created circle {circle.id} with {len(profiles)} members")
    return circle


def get_circle(db: Session, circle_id: str) -> Optional[Circle]:
    """Get a circle by ID"""
    return db.query(Circle).filter(Circle.id == circle_id).first()


def require_circle(db: Session, circle_id: str) -> Circle:
    circle = get_circle(db, circle_id)
    if not circle:
        raise NotFoundError("Circle not found")
    return circle


def get_circle_members(db: Session, circle_id: str) -> List[CircleMember]:
    """Member rows in join order"""
    return db.query(CircleMember)\
        .filter(CircleMember.circle_id == circle_id)\
        .order_by(CircleMember.joined_at, CircleMember.id)\
        .all()


def get_member_profiles(db: Session, circle_id: str) -> List[UserProfile]:
    return [UserProfile(**member.profile) for member in get_circle_members(db, circle_id)]


def is_circle_member(db: Session, circle_id: str, user_id: str) -> bool:
    member = db.query(CircleMember).filter(
        and_(CircleMember.circle_id == circle_id, CircleMember.user_id == user_id)
    ).first()
    return member is not None


def get_circles_for_user(db: Session, user_id: str) -> List[Circle]:
    """Circles the user belongs to, newest first"""
    return db.query(Circle)\
        .join(CircleMember, CircleMember.circle_id == Circle.id)\
        .filter(CircleMember.user_id == user_id)\
        .order_by(Circle.created_at.desc())\
        .all()


def get_circle_view(db: Session, circle_id: str) -> CircleOut:
    """Circle with ``member_ids`` and ``members`` projected from the same member rows."""
    circle = require_circle(db, circle_id)
    profiles = get_member_profiles(db, circle_id)
    return CircleOut(
        id=circle.id,
        name=circle.name,
        owner_id=circle.owner_id,
        member_ids=[p.uid for p in profiles],
        members={p.uid: p for p in profiles},
        created_at=circle.created_at,
        last_message_at=circle.last_message_at,
        last_read=circle.last_read,
        unread_counts=circle.unread_counts,
    )


def add_member(db: Session, circle_id: str, profile: UserProfile, actor_id: str) -> CircleMember:
    """Add a member. Any current member may invite."""
    require_circle(db, circle_id)
    if not is_circle_member(db, circle_id, actor_id):
        raise PermissionDeniedError("Only circle members can add members")
    if is_circle_member(db, circle_id, profile.uid):
        raise ValidationError(f"{profile.display_name} is already a member of this circle")

    member = CircleMember(circle_id=circle_id, user_id=profile.uid, profile=profile.model_dump(mode="json"))
    db.add(member)
    commit_batch(db, "add circle member")
    db.refresh(member)
    logger.info(f"Added {profile.uid} to circle {circle_id}")
    return member


def remove_member(db: Session, circle_id: str, user_id: str, actor_id: str) -> None:
    """Remove another member (owner only)"""
    circle = require_circle(db, circle_id)
    if circle.owner_id != actor_id:
        raise PermissionDeniedError("Only the circle owner can remove members")
    if user_id == circle.owner_id:
        raise ValidationError("The owner cannot be removed; leave the circle instead")

    member = db.query(CircleMember).filter(
        and_(CircleMember.circle_id == circle_id, CircleMember.user_id == user_id)
    ).first()
    if not member:
        raise NotFoundError("Member not found")

    db.delete(member)
    commit_batch(db, "remove circle member")
    logger.info(f"Owner {actor_id} removed {user_id} from circle {circle_id}")


def leave_circle(db: Session, circle_id: str, user_id: str) -> Optional[Circle]:
    """
    Leave a circle.

    If the owner leaves, ownership passes to the earliest-joined remaining
    member. If nobody remains, the circle and everything scoped to it is
    deleted and None is returned.
    """
    circle = require_circle(db, circle_id)
    members = get_circle_members(db, circle_id)
    leaving = next((m for m in members if m.user_id == user_id), None)
    if not leaving:
        raise NotFoundError("You are not a member of this circle")

    remaining = [m for m in members if m.user_id != user_id]
    db.delete(leaving)

    if not remaining:
        _delete_circle_contents(db, circle_id)
        db.delete(circle)
        commit_batch(db, "leave circle")
        logger.info(f"Last member {user_id} left; circle {circle_id} deleted")
        return None

    if circle.owner_id == user_id:
        circle.owner_id = remaining[0].user_id
        logger.info(f"Ownership of circle {circle_id} passed to {circle.owner_id}")

    commit_batch(db, "leave circle")
    db.refresh(circle)
    return circle


def delete_circle(db: Session, circle_id: str, actor_id: str) -> None:
    """Delete a circle with its members, debts, settlements and transactions (owner only)"""
    circle = require_circle(db, circle_id)
    if circle.owner_id != actor_id:
        raise PermissionDeniedError("Only the circle owner can delete the circle")

    _delete_circle_contents(db, circle_id)
    db.query(CircleMember).filter(CircleMember.circle_id == circle_id).delete(synchronize_session=False)
    db.delete(circle)
    commit_batch(db, "delete circle")
    logger.info(f"Circle {circle_id} deleted by owner {actor_id}")


def _delete_circle_contents(db: Session, circle_id: str) -> None:
    from spend_circle.services.debt_service import delete_debts_for_circle

    delete_debts_for_circle(db, circle_id)
    db.query(Settlement).filter(Settlement.circle_id == circle_id).delete(synchronize_session=False)
    db.query(Transaction).filter(Transaction.circle_id == circle_id).delete(synchronize_session=False)
