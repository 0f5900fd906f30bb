import enum
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

from spend_circle.schemas.profile_schema import UserProfile


class SettlementRequestStatus(str, enum.Enum):
    pending = "pending"
    confirmed = "confirmed"
    rejected = "rejected"


class SettlementRequestCreate(BaseModel):
    to_user: UserProfile
    amount: Decimal = Field(..., gt=0)


class SettlementOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    circle_id: str
    from_user_id: str
    to_user_id: str
    from_user: UserProfile
    to_user: UserProfile
    amount: Decimal
    status: SettlementRequestStatus
    debt_id: Optional[str] = None
    created_at: datetime
    processed_at: Optional[datetime] = None


class SimplifiedTransfer(BaseModel):
    from_user: UserProfile
    to_user: UserProfile
    amount: Decimal


class MemberBalance(BaseModel):
    user: UserProfile
    net_balance: Decimal


class UserBalanceSummary(BaseModel):
    """The per-user projection of the simplified transfers."""
    you_owe: List[SimplifiedTransfer] = []
    owes_you: List[SimplifiedTransfer] = []
