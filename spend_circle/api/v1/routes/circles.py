from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List
from spend_circle.api.deps import get_current_profile
from spend_circle.db.database import get_db
from spend_circle.schemas.circle_schema import CircleCreate, CircleMemberAdd, CircleOut
from spend_circle.schemas.profile_schema import UserProfile
from spend_circle.services.circle_service import (
    add_member, create_circle, delete_circle, get_circle_view, get_circles_for_user,
    is_circle_member, leave_circle, remove_member, require_circle
)

router = APIRouter(prefix="/circles", tags=["circles"])


def require_membership(db: Session, circle_id: str, user_id: str) -> None:
    require_circle(db, circle_id)
    if not is_circle_member(db, circle_id, user_id):
        raise HTTPException(status_code=403, detail="You are not a member of this circle")


@router.post("", response_model=CircleOut)
def create_new_circle(
    circle_data: CircleCreate,
    user: UserProfile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    """Create a circle owned by the current user"""
    circle = create_circle(db, circle_data.name, user, circle_data.members)
    return get_circle_view(db, circle.id)


@router.get("", response_model=List[CircleOut])
def list_my_circles(
    user: UserProfile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    return [get_circle_view(db, circle.id) for circle in get_circles_for_user(db, user.uid)]


@router.get("/{circle_id}", response_model=CircleOut)
def get_circle_details(
    circle_id: str,
    user: UserProfile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    require_membership(db, circle_id, user.uid)
    return get_circle_view(db, circle_id)


@router.post("/{circle_id}/members", response_model=CircleOut)
def add_circle_member(
    circle_id: str,
    member_data: CircleMemberAdd,
    user: UserProfile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    """Invite someone into the circle"""
    add_member(db, circle_id, member_data.profile, user.uid)
    return get_circle_view(db, circle_id)


@router.delete("/{circle_id}/members/{member_id}")
def remove_circle_member(
    circle_id: str,
    member_id: str,
    user: UserProfile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    remove_member(db, circle_id, member_id, user.uid)
    return {"message": "Member removed successfully"}


@router.post("/{circle_id}/leave")
def leave(
    circle_id: str,
    user: UserProfile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    """Leave a circle; the last member out deletes it"""
    circle = leave_circle(db, circle_id, user.uid)
    if circle is None:
        return {"message": "Left circle successfully", "circle_deleted": True}
    return {"message": "Left circle successfully", "circle_deleted": False}


@router.delete("/{circle_id}")
def delete_existing_circle(
    circle_id: str,
    user: UserProfile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    delete_circle(db, circle_id, user.uid)
    return {"message": "Circle deleted successfully"}
