"""
Menu cycle, meal and ingredient models
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from .base import BaseEntity, TimestampMixin


class MealSlot(str, Enum):
    """Delivery slot"""
    LUNCH = "lunch"
    DINNER = "dinner"


class MenuCycle(BaseEntity, TimestampMixin):
    """A repeating sequence of cycle_length_days menu days"""
    id: int
    name: str
    cycle_length_days: int = Field(..., gt=0)
    is_active: bool = False


class MenuCycleDay(BaseEntity):
    id: int
    cycle_id: int
    day_index: int = Field(..., ge=0)
    label: Optional[str] = None


class MenuDayAssignment(BaseEntity, TimestampMixin):
    """Meal served in one slot of one cycle day"""
    id: int
    cycle_day_id: int
    meal_id: int
    slot: MealSlot
    day_index: Optional[int] = None  # filled by joined queries


class Meal(BaseEntity, TimestampMixin):
    id: int
    name: str
    description: Optional[str] = None
    is_active: bool = True


class Ingredient(BaseEntity, TimestampMixin):
    id: int
    name: str
    unit_base: str = "g"


class MealIngredient(BaseEntity):
    """Per-serving weight of one ingredient in one meal"""
    id: Optional[int] = None
    meal_id: int
    ingredient_id: int
    weight_g: float = Field(..., ge=0)
    notes: Optional[str] = None


class ScheduleEntry(BaseModel):
    """One slot of a menu schedule save"""
    day_index: int = Field(..., ge=0)
    slot: MealSlot
    meal_id: int


class CycleSchedule(BaseModel):
    """A cycle with its days and assignments, ordered by day index"""
    cycle: MenuCycle
    days: List[MenuCycleDay]
    assignments: List[MenuDayAssignment]
