from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Literal
from decimal import Decimal


class UserProfile(BaseModel):
    """Identity snapshot embedded by value into circles, debts and claims."""
    model_config = ConfigDict(frozen=True)

    uid: str
    display_name: str
    email: str
    photo_url: Optional[str] = None
    username: Optional[str] = None


class SplitMember(UserProfile):
    share: Decimal = Field(..., ge=0)
    is_payer: bool = False

    def profile(self) -> UserProfile:
        return UserProfile(**self.model_dump(include=set(UserProfile.model_fields)))


class SplitDetails(BaseModel):
    type: Literal["equally", "unequally"] = "equally"
    total: Decimal = Field(..., ge=0)
    payer_id: str
    members: List[SplitMember]

    def payer(self) -> Optional[SplitMember]:
        return next((m for m in self.members if m.uid == self.payer_id), None)

    def non_payers(self) -> List[SplitMember]:
        return [m for m in self.members if m.uid != self.payer_id]
