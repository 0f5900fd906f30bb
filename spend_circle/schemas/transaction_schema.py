from pydantic import BaseModel, Field, ConfigDict, computed_field, model_validator
from typing import Optional, List, Dict
from datetime import datetime
from decimal import Decimal

from spend_circle.schemas.category_schema import CustomCategory, category_name, color_for_name, resolve_category
from spend_circle.schemas.profile_schema import SplitDetails, UserProfile


class ExpenseBase(BaseModel):
    description: str = Field(..., max_length=200)
    amount: Decimal = Field(..., ge=0)
    category: str
    date: datetime
    recurring_expense_id: Optional[str] = None
    circle_id: Optional[str] = None


class ExpenseCreate(ExpenseBase):
    user_id: str = ""
    custom_categories: List[CustomCategory] = Field(default_factory=list, exclude=True)

    @model_validator(mode="after")
    def normalize_category(self):
        self.category = category_name(resolve_category(self.category, self.custom_categories))
        return self


class SplitExpenseCreate(BaseModel):
    """Request body for recording a split expense."""
    expense: ExpenseCreate
    split_details: SplitDetails


class SplitExpenseOut(BaseModel):
    transaction_id: str


class ExpenseOut(ExpenseBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    is_split: bool
    split_details: Optional[SplitDetails] = None
    created_at: datetime

    @computed_field
    @property
    def category_color(self) -> str:
        return color_for_name(self.category)


class SplitBuildRequest(BaseModel):
    """Builds a SplitDetails from a member list and (for custom splits) explicit shares."""
    total: Decimal = Field(..., gt=0)
    payer: UserProfile
    members: List[UserProfile]
    shares: Optional[Dict[str, Decimal]] = None
