import enum
from pydantic import BaseModel, ConfigDict
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

from spend_circle.schemas.profile_schema import UserProfile


class SettlementStatus(str, enum.Enum):
    unsettled = "unsettled"
    pending_confirmation = "pending_confirmation"
    confirmed = "confirmed"
    logged = "logged"


class DebtOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    circle_id: Optional[str] = None
    transaction_id: str
    transaction_description: str
    debtor_id: str
    debtor: UserProfile
    creditor_id: str
    creditor: UserProfile
    amount: Decimal
    settlement_status: SettlementStatus
    involved_uids: List[str]
    created_at: datetime
