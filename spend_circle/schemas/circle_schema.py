from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import datetime

from spend_circle.schemas.profile_schema import UserProfile


class CircleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    members: List[UserProfile] = []


class CircleMemberAdd(BaseModel):
    profile: UserProfile


class CircleOut(BaseModel):
    id: str
    name: str
    owner_id: str
    member_ids: List[str]
    members: Dict[str, UserProfile]
    created_at: datetime
    last_message_at: Optional[datetime] = None
    last_read: Optional[Dict[str, datetime]] = None
    unread_counts: Optional[Dict[str, int]] = None
