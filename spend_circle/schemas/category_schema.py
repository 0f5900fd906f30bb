import enum
import re
from typing import Iterable, Optional, Union
from pydantic import BaseModel, Field


class DefaultCategory(str, enum.Enum):
    groceries = "Groceries"
    food = "Food"
    entertainment = "Entertainment"
    utilities = "Utilities"
    transport = "Transport"
    housing = "Housing"
    shopping = "Shopping"
    college = "College"
    others = "Others"


class SystemCategory(str, enum.Enum):
    """Categories written by the ledger itself, never picked by users."""
    settlement = "Settlement"


DEFAULT_COLORS = {
    DefaultCategory.groceries: "#22c55e",
    DefaultCategory.food: "#ef4444",
    DefaultCategory.entertainment: "#a855f7",
    DefaultCategory.utilities: "#eab308",
    DefaultCategory.transport: "#f97316",
    DefaultCategory.housing: "#3b82f6",
    DefaultCategory.shopping: "#ec4899",
    DefaultCategory.college: "#8b5cf6",
    DefaultCategory.others: "#6b7280",
}


class CustomCategory(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    color: str = Field("#6b7280", pattern=r"^#[0-9a-fA-F]{6}$")


Category = Union[DefaultCategory, SystemCategory, CustomCategory]


def resolve_category(name: str, custom_categories: Optional[Iterable[CustomCategory]] = None) -> Category:
    """
    Resolve a category name to its typed variant.

    Known names match case-insensitively. Anything else must be one of the
    user's custom categories.

    Raises:
        ValueError: If the name matches nothing
    """
    cleaned = re.sub(r"\s+", " ", (name or "").strip())
    if not cleaned:
        raise ValueError("Category is required")

    for enum_cls in (DefaultCategory, SystemCategory):
        for member in enum_cls:
            if member.value.lower() == cleaned.lower():
                return member

    for custom in custom_categories or []:
        if custom.name.lower() == cleaned.lower():
            return custom

    raise ValueError(f"Unknown category '{cleaned}'")


def category_name(category: Category) -> str:
    if isinstance(category, CustomCategory):
        return category.name
    return category.value


def category_color(category: Category) -> str:
    """Display colour; system categories share the neutral colour."""
    if isinstance(category, CustomCategory):
        return category.color
    return DEFAULT_COLORS.get(category, DEFAULT_COLORS[DefaultCategory.others])


def color_for_name(name: str, custom_categories: Optional[Iterable[CustomCategory]] = None) -> str:
    """Colour for a stored category name; names that no longer resolve get the "Others" colour."""
    try:
        return category_color(resolve_category(name, custom_categories))
    except ValueError:
        return DEFAULT_COLORS[DefaultCategory.others]
