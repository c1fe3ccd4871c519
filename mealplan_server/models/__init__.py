"""
Domain models.
"""

from .demand import (
    CalendarDay,
    DailyDemand,
    DataFault,
    DataFaultKind,
    MealToPrepare,
    MonthCalendar,
    PlanAllocation,
    RawMaterial,
)
from .diagnostics import DailyDiagnostics
from .menu import (
    CycleSchedule,
    Ingredient,
    Meal,
    MealIngredient,
    MealSlot,
    MenuCycle,
    MenuCycleDay,
    MenuDayAssignment,
    ScheduleEntry,
)
from .pipeline import PipelineStage, PipelineSummary, PlanSegment
from .plan import BillingCycle, Plan, PlanCreate, PlanStatus
from .subscription import (
    Actor,
    ActorKind,
    PaymentMethod,
    StateHistoryEntry,
    Subscription,
    SubscriptionCreate,
    SubscriptionStatus,
    TransitionResult,
)

__all__ = [
    "Actor",
    "ActorKind",
    "BillingCycle",
    "CalendarDay",
    "CycleSchedule",
    "DailyDemand",
    "DailyDiagnostics",
    "DataFault",
    "DataFaultKind",
    "Ingredient",
    "Meal",
    "MealIngredient",
    "MealSlot",
    "MealToPrepare",
    "MenuCycle",
    "MenuCycleDay",
    "MenuDayAssignment",
    "MonthCalendar",
    "PaymentMethod",
    "PipelineStage",
    "PipelineSummary",
    "Plan",
    "PlanAllocation",
    "PlanCreate",
    "PlanSegment",
    "PlanStatus",
    "RawMaterial",
    "ScheduleEntry",
    "StateHistoryEntry",
    "Subscription",
    "SubscriptionCreate",
    "SubscriptionStatus",
    "TransitionResult",
]
