"""
Kitchen demand models: daily preparation lists and the month calendar
"""

from datetime import date
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, computed_field

from .menu import MealSlot


class DataFaultKind(str, Enum):
    """Data-quality problems that degrade, but do not abort, aggregation"""
    MISSING_MEAL = "missing_meal"
    MISSING_INGREDIENT = "missing_ingredient"
    MISSING_PLAN = "missing_plan"
    DUPLICATE_ASSIGNMENT = "duplicate_assignment"


class DataFault(BaseModel):
    kind: DataFaultKind
    message: str
    assignment_id: Optional[int] = None
    meal_id: Optional[int] = None
    ingredient_id: Optional[int] = None
    plan_id: Optional[int] = None


class PlanAllocation(BaseModel):
    """How one plan's subscribers are spread over the day's slots"""
    plan_id: int
    plan_code: str
    meals_per_day: int
    subscribers: int
    delivers: bool
    slots: List[MealSlot] = Field(default_factory=list)
    lunch_count: int = 0
    dinner_count: int = 0


class MealToPrepare(BaseModel):
    meal_id: int
    meal_name: str
    slots: List[MealSlot]
    count: int


class RawMaterial(BaseModel):
    name: str
    quantity: float
    unit: str


class DailyDemand(BaseModel):
    """Kitchen preparation list for one date"""
    date: date
    cycle_day_index: int
    lunch_count: int = 0
    dinner_count: int = 0
    total_meals: int = 0
    meals_to_prepare: List[MealToPrepare] = Field(default_factory=list)
    raw_materials: List[RawMaterial] = Field(default_factory=list)
    plan_breakdown: List[PlanAllocation] = Field(default_factory=list)
    faults: List[DataFault] = Field(default_factory=list)

    @computed_field
    @property
    def is_complete(self) -> bool:
        """False when some meals or ingredients had to be skipped"""
        return not self.faults


class CalendarDay(BaseModel):
    date: date
    day_name: str
    day_number: int
    lunch_count: int = 0
    dinner_count: int = 0
    total_meals: int = 0
    is_current_month: bool = True


class MonthCalendar(BaseModel):
    """Sunday-first 6x7 grid of meal counts"""
    year: int
    month: int
    days: List[CalendarDay]
