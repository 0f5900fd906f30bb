import enum
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import datetime
from decimal import Decimal

from spend_circle.schemas.profile_schema import SplitDetails, UserProfile


class ClaimStatus(str, enum.Enum):
    pending = "pending"
    accepted = "accepted"
    rejected = "rejected"


class ExpenseDetails(BaseModel):
    description: str = Field(..., max_length=200)
    amount: Decimal = Field(..., gt=0)
    category: str
    date: datetime
    circle_id: Optional[str] = None
    split_details: SplitDetails


class ExpenseClaimCreate(BaseModel):
    payer_id: str
    expense_details: ExpenseDetails


class ExpenseClaimOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    claimer_id: str
    claimer_profile: UserProfile
    payer_id: str
    expense_details: ExpenseDetails
    status: ClaimStatus
    created_at: datetime
