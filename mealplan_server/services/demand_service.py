"""
Daily demand aggregation.
Turns eligible subscriptions, plan rules and the active menu cycle into the
kitchen's meal counts and raw material quantities for a date.

Data problems that only affect part of the output (missing meals, missing
ingredients, duplicate slot assignments, subscriptions on deleted plans) are
recorded as DataFault entries on the result instead of aborting the call.
"""

import logging
from collections import OrderedDict
from datetime import MAXYEAR, MINYEAR, date, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from ..config.settings import Settings, settings as default_settings
from ..core.clock import Clock
from ..core.database import DatabaseManager
from ..core.exceptions import AmbiguousMenuCycleError, NoActiveMenuCycleError, ValidationError
from ..models.demand import (
    CalendarDay,
    DailyDemand,
    DataFault,
    DataFaultKind,
    MealToPrepare,
    MonthCalendar,
    PlanAllocation,
    RawMaterial,
)
from ..models.menu import MealSlot, MenuCycle, MenuDayAssignment
from ..models.plan import Plan
from ..models.subscription import MEAL_ELIGIBLE_STATES, Subscription
from ..stores.catalog_store import IngredientStore, MealIngredientStore, MealStore, PlanStore
from ..stores.menu_store import MenuStore
from ..stores.subscription_store import SubscriptionStore
from .delivery_rules import cycle_day_index, slots_for_plan

logger = logging.getLogger(__name__)

CALENDAR_CELLS = 42
DAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


def group_by_plan(subscriptions: Iterable[Subscription]) -> "OrderedDict[int, List[Subscription]]":
    """Group subscriptions by plan id, ascending"""
    groups: Dict[int, List[Subscription]] = {}
    for subscription in subscriptions:
        groups.setdefault(subscription.plan_id, []).append(subscription)
    return OrderedDict(sorted(groups.items()))


def allocate_subscribers(target: date, groups: Dict[int, List[Subscription]],
                         plans: Dict[int, Plan]) -> Tuple[List[PlanAllocation], List[DataFault]]:
    """
    Spread each plan's subscribers over the slots it receives on target.

    Subscriptions whose plan no longer exists are reported as missing_plan
    faults and contribute nothing.
    """
    allocations = []
    faults = []
    for plan_id, members in groups.items():
        plan = plans.get(plan_id)
        if plan is None:
            faults.append(DataFault(
                kind=DataFaultKind.MISSING_PLAN,
                message=f"{len(members)} eligible subscriptions reference missing plan {plan_id}",
                plan_id=plan_id,
            ))
            continue

        slots = slots_for_plan(plan, target)
        count = len(members)
        allocations.append(PlanAllocation(
            plan_id=plan.id,
            plan_code=plan.code,
            meals_per_day=plan.meals_per_day,
            subscribers=count,
            delivers=bool(slots),
            slots=list(slots),
            lunch_count=count if MealSlot.LUNCH in slots else 0,
            dinner_count=count if MealSlot.DINNER in slots else 0,
        ))
    return allocations, faults


def select_slot_assignments(
        assignments: Iterable[MenuDayAssignment]
) -> Tuple[Dict[MealSlot, MenuDayAssignment], List[MenuDayAssignment]]:
    """First assignment per slot by id wins; the rest are returned as duplicates"""
    chosen: Dict[MealSlot, MenuDayAssignment] = {}
    duplicates = []
    for assignment in sorted(assignments, key=lambda a: a.id):
        if assignment.slot in chosen:
            duplicates.append(assignment)
        else:
            chosen[assignment.slot] = assignment
    return chosen, duplicates


class DailyDemandService:
    """Kitchen demand for one day, a range of days, or a month calendar"""

    def __init__(self, db: DatabaseManager, subscription_store: SubscriptionStore,
                 plan_store: PlanStore, menu_store: MenuStore, meal_store: MealStore,
                 ingredient_store: IngredientStore, meal_ingredient_store: MealIngredientStore,
                 clock: Clock, app_settings: Optional[Settings] = None):
        self.db = db
        self.subscriptions = subscription_store
        self.plans = plan_store
        self.menus = menu_store
        self.meals = meal_store
        self.ingredients = ingredient_store
        self.meal_ingredients = meal_ingredient_store
        self.clock = clock
        self.settings = app_settings or default_settings

    def resolve_active_cycle(self) -> MenuCycle:
        """
        The single active menu cycle.

        Raises:
            NoActiveMenuCycleError: none is active
            AmbiguousMenuCycleError: more than one is active
        """
        cycles = self.menus.list_active_cycles()
        if not cycles:
            raise NoActiveMenuCycleError()
        if len(cycles) > 1:
            raise AmbiguousMenuCycleError([c.id for c in cycles])
        return cycles[0]

    def eligible_groups(self) -> Tuple["OrderedDict[int, List[Subscription]]", Dict[int, Plan]]:
        """Active and Frozen subscriptions grouped by plan, with their plans"""
        groups = group_by_plan(self.subscriptions.list(statuses=MEAL_ELIGIBLE_STATES))
        return groups, self.plans.get_many(groups.keys())

    def compute_daily_demand(self, target_date: Optional[date] = None) -> DailyDemand:
        """
        Meals and raw materials the kitchen prepares on target_date.

        Args:
            target_date: defaults to the clock's today

        Raises:
            NoActiveMenuCycleError: no active menu cycle
            AmbiguousMenuCycleError: several active menu cycles
        """
        target = target_date or self.clock.today()
        with self.db.snapshot():
            cycle = self.resolve_active_cycle()
            groups, plans = self.eligible_groups()
            return self._demand_for(cycle, target, groups, plans)

    def compute_upcoming_demand(self, days: Optional[int] = None,
                                start: Optional[date] = None) -> List[DailyDemand]:
        """Daily demand for the next `days` dates, read from one snapshot"""
        days = self.settings.upcoming_days if days is None else days
        if days <= 0:
            raise ValidationError("days must be positive", details={"days": days})

        first = start or self.clock.today()
        with self.db.snapshot():
            cycle = self.resolve_active_cycle()
            groups, plans = self.eligible_groups()
            return [self._demand_for(cycle, first + timedelta(days=offset), groups, plans)
                    for offset in range(days)]

    def compute_month_calendar(self, year: int, month: int) -> MonthCalendar:
        """
        Sunday-first 6-week grid of lunch and dinner counts.

        Counts depend only on subscriptions and plans, so the calendar is
        available even without an active menu cycle.
        """
        if not 1 <= month <= 12:
            raise ValidationError("month must be between 1 and 12", details={"month": month})
        if not MINYEAR < year < MAXYEAR:
            raise ValidationError(
                f"year must be between {MINYEAR + 1} and {MAXYEAR - 1}", details={"year": year}
            )

        first = date(year, month, 1)
        grid_start = first - timedelta(days=first.isoweekday() % 7)

        with self.db.snapshot():
            groups, plans = self.eligible_groups()

            cells = []
            for offset in range(CALENDAR_CELLS):
                day = grid_start + timedelta(days=offset)
                cell = CalendarDay(
                    date=day,
                    day_name=DAY_NAMES[day.weekday()],
                    day_number=day.day,
                    is_current_month=(day.month == month),
                )
                if cell.is_current_month:
                    allocations, _ = allocate_subscribers(day, groups, plans)
                    cell.lunch_count = sum(a.lunch_count for a in allocations)
                    cell.dinner_count = sum(a.dinner_count for a in allocations)
                    cell.total_meals = cell.lunch_count + cell.dinner_count
                cells.append(cell)

        return MonthCalendar(year=year, month=month, days=cells)

    def _demand_for(self, cycle: MenuCycle, target: date,
                    groups: Dict[int, List[Subscription]], plans: Dict[int, Plan]) -> DailyDemand:
        day_index = cycle_day_index(target, cycle.cycle_length_days)
        allocations, faults = allocate_subscribers(target, groups, plans)

        servings = {
            MealSlot.LUNCH: sum(a.lunch_count for a in allocations),
            MealSlot.DINNER: sum(a.dinner_count for a in allocations),
        }

        assignments = self.menus.list_assignments_for_day_index(cycle.id, day_index)
        chosen, duplicates = select_slot_assignments(assignments)
        for duplicate in duplicates:
            faults.append(DataFault(
                kind=DataFaultKind.DUPLICATE_ASSIGNMENT,
                message=(f"Assignment {duplicate.id} duplicates the {duplicate.slot.value} slot "
                         f"of cycle day {day_index}; assignment {chosen[duplicate.slot].id} is used"),
                assignment_id=duplicate.id,
                meal_id=duplicate.meal_id,
            ))

        meals_to_prepare = self._meals_to_prepare(chosen, servings, faults)
        raw_materials = self._raw_materials(meals_to_prepare, faults)

        for fault in faults:
            logger.warning("Demand for %s: %s", target.isoformat(), fault.message)

        return DailyDemand(
            date=target,
            cycle_day_index=day_index,
            lunch_count=servings[MealSlot.LUNCH],
            dinner_count=servings[MealSlot.DINNER],
            total_meals=servings[MealSlot.LUNCH] + servings[MealSlot.DINNER],
            meals_to_prepare=meals_to_prepare,
            raw_materials=raw_materials,
            plan_breakdown=allocations,
            faults=faults,
        )

    def _meals_to_prepare(self, chosen: Dict[MealSlot, MenuDayAssignment],
                          servings: Dict[MealSlot, int],
                          faults: List[DataFault]) -> List[MealToPrepare]:
        meals = self.meals.get_many(a.meal_id for a in chosen.values())
        entries: "OrderedDict[int, MealToPrepare]" = OrderedDict()

        for slot in (MealSlot.LUNCH, MealSlot.DINNER):
            assignment = chosen.get(slot)
            if assignment is None:
                continue
            meal = meals.get(assignment.meal_id)
            if meal is None:
                faults.append(DataFault(
                    kind=DataFaultKind.MISSING_MEAL,
                    message=f"Assignment {assignment.id} references missing meal {assignment.meal_id}",
                    assignment_id=assignment.id,
                    meal_id=assignment.meal_id,
                ))
                continue
            if servings[slot] == 0:
                continue

            entry = entries.get(meal.id)
            if entry is None:
                entries[meal.id] = MealToPrepare(meal_id=meal.id, meal_name=meal.name,
                                                 slots=[slot], count=servings[slot])
            else:
                entry.slots.append(slot)
                entry.count += servings[slot]

        return list(entries.values())

    def _raw_materials(self, meals_to_prepare: List[MealToPrepare],
                       faults: List[DataFault]) -> List[RawMaterial]:
        totals: "OrderedDict[Tuple[str, str], float]" = OrderedDict()

        for entry in meals_to_prepare:
            lines = self.meal_ingredients.list_by_meal(entry.meal_id)
            ingredients = self.ingredients.get_many(line.ingredient_id for line in lines)
            for line in lines:
                ingredient = ingredients.get(line.ingredient_id)
                if ingredient is None:
                    faults.append(DataFault(
                        kind=DataFaultKind.MISSING_INGREDIENT,
                        message=(f"Meal {entry.meal_id} references missing ingredient "
                                 f"{line.ingredient_id}"),
                        meal_id=entry.meal_id,
                        ingredient_id=line.ingredient_id,
                    ))
                    continue
                key = (ingredient.name, ingredient.unit_base)
                totals[key] = totals.get(key, 0.0) + line.weight_g * entry.count

        return [RawMaterial(name=name, quantity=quantity, unit=unit)
                for (name, unit), quantity in totals.items()]
