"""
Daily diagnostics report models
"""

from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .demand import DataFault
from .menu import MealSlot

DAY_INDEX_METHOD = "(day_of_month - 1) mod cycle_length_days"
DAY_INDEX_CAVEAT = (
    "The cycle day index is derived from the calendar day of month, not from "
    "days elapsed since the menu cycle started. The menu restarts at index 0 "
    "on the 1st of every month regardless of where the cycle was on the last "
    "day of the previous month."
)


class ActiveCycleInfo(BaseModel):
    cycle_id: int
    name: str
    cycle_length_days: int


class DayAssignmentInfo(BaseModel):
    assignment_id: int
    cycle_day_id: int
    day_index: int
    slot: MealSlot
    meal_id: int
    meal_found: bool
    meal_name: Optional[str] = None


class OrphanedIngredientLine(BaseModel):
    meal_id: int
    ingredient_id: int
    weight_g: float


class PlanSubscriberBreakdown(BaseModel):
    plan_id: int
    plan_code: Optional[str] = None
    plan_found: bool = True
    meals_per_day: Optional[int] = None
    delivery_pattern: List[int] = Field(default_factory=list)
    subscribers: int
    status_counts: Dict[str, int] = Field(default_factory=dict)
    delivers_today: bool = False
    slots: List[MealSlot] = Field(default_factory=list)
    lunch_count: int = 0
    dinner_count: int = 0


class PlanConfigIssue(BaseModel):
    plan_id: int
    plan_code: str
    message: str


class CountMismatch(BaseModel):
    """Calendar demand that the kitchen view will not cover"""
    slot: MealSlot
    calendar_count: int
    kitchen_servings: int
    reason: str


class DailyDiagnostics(BaseModel):
    """Why a given day produced its counts"""
    date: date
    weekday: int
    day_of_month: int
    is_sunday: bool

    has_active_menu_cycle: bool
    active_cycle_count: int
    multiple_active_cycles: bool = False
    active_cycle: Optional[ActiveCycleInfo] = None
    active_cycles: List[ActiveCycleInfo] = Field(default_factory=list)

    has_cycle_days: bool = False
    cycle_day_count: int = 0
    missing_day_indices: List[int] = Field(default_factory=list)
    duplicate_day_indices: List[int] = Field(default_factory=list)
    cycle_length_mismatch: bool = False

    cycle_day_index: Optional[int] = None
    day_index_method: str = DAY_INDEX_METHOD
    day_index_caveat: str = DAY_INDEX_CAVEAT

    has_assignments_for_day: bool = False
    assignments_by_day_index: Dict[int, int] = Field(default_factory=dict)
    day_assignments: List[DayAssignmentInfo] = Field(default_factory=list)
    duplicate_slot_assignments: List[DayAssignmentInfo] = Field(default_factory=list)
    orphaned_assignments: List[DayAssignmentInfo] = Field(default_factory=list)
    orphaned_ingredient_lines: List[OrphanedIngredientLine] = Field(default_factory=list)

    eligible_subscription_count: int = 0
    subscribers_by_plan: List[PlanSubscriberBreakdown] = Field(default_factory=list)
    plan_config_issues: List[PlanConfigIssue] = Field(default_factory=list)
    count_mismatches: List[CountMismatch] = Field(default_factory=list)

    faults: List[DataFault] = Field(default_factory=list)
