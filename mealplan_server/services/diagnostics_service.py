"""
Diagnostics reporter.
Explains how a day's kitchen numbers were produced: which menu cycle and day
index were used, what is assigned, who is subscribed, and every data problem
found along the way. Read-only; data problems are reported, never raised.
"""

import logging
from collections import Counter
from datetime import date
from typing import Dict, Optional, Set

from ..core.clock import Clock
from ..core.database import DatabaseManager
from ..models.demand import DataFault, DataFaultKind
from ..models.diagnostics import (
    ActiveCycleInfo,
    CountMismatch,
    DailyDiagnostics,
    DayAssignmentInfo,
    OrphanedIngredientLine,
    PlanConfigIssue,
    PlanSubscriberBreakdown,
)
from ..models.menu import Meal, MealSlot, MenuCycle, MenuDayAssignment
from ..models.subscription import MEAL_ELIGIBLE_STATES
from ..stores.catalog_store import IngredientStore, MealIngredientStore, MealStore, PlanStore
from ..stores.menu_store import MenuStore
from ..stores.subscription_store import SubscriptionStore
from .delivery_rules import cycle_day_index, is_sunday
from .demand_service import allocate_subscribers, group_by_plan, select_slot_assignments
from .plan_catalog import PlanCatalog

logger = logging.getLogger(__name__)


def _assignment_info(assignment: MenuDayAssignment, meals: Dict[int, Meal]) -> DayAssignmentInfo:
    meal = meals.get(assignment.meal_id)
    return DayAssignmentInfo(
        assignment_id=assignment.id,
        cycle_day_id=assignment.cycle_day_id,
        day_index=assignment.day_index,
        slot=assignment.slot,
        meal_id=assignment.meal_id,
        meal_found=meal is not None,
        meal_name=meal.name if meal else None,
    )


class DiagnosticsService:
    """Builds DailyDiagnostics reports"""

    def __init__(self, db: DatabaseManager, subscription_store: SubscriptionStore,
                 plan_store: PlanStore, menu_store: MenuStore, meal_store: MealStore,
                 ingredient_store: IngredientStore, meal_ingredient_store: MealIngredientStore,
                 clock: Clock):
        self.db = db
        self.subscriptions = subscription_store
        self.plans = plan_store
        self.menus = menu_store
        self.meals = meal_store
        self.ingredients = ingredient_store
        self.meal_ingredients = meal_ingredient_store
        self.clock = clock

    def compute_daily_diagnostics(self, target_date: Optional[date] = None) -> DailyDiagnostics:
        target = target_date or self.clock.today()
        with self.db.snapshot():
            report = self._build(target)

        logger.info("Diagnostics for %s: %d faults, %d count mismatches",
                    target.isoformat(), len(report.faults), len(report.count_mismatches))
        return report

    def _build(self, target: date) -> DailyDiagnostics:
        cycles = self.menus.list_active_cycles()
        report = DailyDiagnostics(
            date=target,
            weekday=target.isoweekday(),
            day_of_month=target.day,
            is_sunday=is_sunday(target),
            has_active_menu_cycle=bool(cycles),
            active_cycle_count=len(cycles),
            multiple_active_cycles=len(cycles) > 1,
            active_cycles=[ActiveCycleInfo(cycle_id=c.id, name=c.name,
                                           cycle_length_days=c.cycle_length_days)
                           for c in cycles],
        )

        # Demand refuses to pick among several active cycles, so the menu
        # sections stay empty in that case too
        served_slots = set()
        if len(cycles) == 1:
            report.active_cycle = report.active_cycles[0]
            served_slots = self._describe_cycle(report, cycles[0], target)

        self._describe_subscribers(report, target)
        self._describe_plans(report)
        self._compare_counts(report, served_slots)
        return report

    def _describe_cycle(self, report: DailyDiagnostics, cycle: MenuCycle, target: date) -> Set[MealSlot]:
        days = self.menus.list_days(cycle.id)
        index_counts = Counter(day.day_index for day in days)
        expected = set(range(cycle.cycle_length_days))

        report.has_cycle_days = bool(days)
        report.cycle_day_count = len(days)
        report.missing_day_indices = sorted(expected - set(index_counts))
        report.duplicate_day_indices = sorted(i for i, n in index_counts.items() if n > 1)
        report.cycle_length_mismatch = set(index_counts) != expected or len(days) != len(expected)

        day_index = cycle_day_index(target, cycle.cycle_length_days)
        report.cycle_day_index = day_index

        assignments = self.menus.list_assignments(cycle.id)
        meals = self.meals.get_many(a.meal_id for a in assignments)
        report.assignments_by_day_index = dict(sorted(Counter(a.day_index for a in assignments).items()))
        report.orphaned_assignments = [_assignment_info(a, meals) for a in assignments
                                       if a.meal_id not in meals]

        day_assignments = [a for a in assignments if a.day_index == day_index]
        report.day_assignments = [_assignment_info(a, meals) for a in day_assignments]
        report.has_assignments_for_day = bool(day_assignments)

        chosen, duplicates = select_slot_assignments(day_assignments)
        report.duplicate_slot_assignments = [_assignment_info(a, meals) for a in duplicates]
        for duplicate in duplicates:
            report.faults.append(DataFault(
                kind=DataFaultKind.DUPLICATE_ASSIGNMENT,
                message=(f"Assignment {duplicate.id} duplicates the {duplicate.slot.value} slot; "
                         f"assignment {chosen[duplicate.slot].id} is used"),
                assignment_id=duplicate.id,
                meal_id=duplicate.meal_id,
            ))

        for assignment in chosen.values():
            if assignment.meal_id not in meals:
                report.faults.append(DataFault(
                    kind=DataFaultKind.MISSING_MEAL,
                    message=f"Assignment {assignment.id} references missing meal {assignment.meal_id}",
                    assignment_id=assignment.id,
                    meal_id=assignment.meal_id,
                ))
                continue
            self._describe_ingredients(report, assignment.meal_id)

        return {slot for slot, assignment in chosen.items() if assignment.meal_id in meals}

    def _describe_ingredients(self, report: DailyDiagnostics, meal_id: int):
        lines = self.meal_ingredients.list_by_meal(meal_id)
        ingredients = self.ingredients.get_many(line.ingredient_id for line in lines)
        for line in lines:
            if line.ingredient_id in ingredients:
                continue
            if any(o.meal_id == meal_id and o.ingredient_id == line.ingredient_id
                   for o in report.orphaned_ingredient_lines):
                continue
            report.orphaned_ingredient_lines.append(OrphanedIngredientLine(
                meal_id=meal_id, ingredient_id=line.ingredient_id, weight_g=line.weight_g
            ))
            report.faults.append(DataFault(
                kind=DataFaultKind.MISSING_INGREDIENT,
                message=f"Meal {meal_id} references missing ingredient {line.ingredient_id}",
                meal_id=meal_id,
                ingredient_id=line.ingredient_id,
            ))

    def _describe_subscribers(self, report: DailyDiagnostics, target: date):
        eligible = self.subscriptions.list(statuses=MEAL_ELIGIBLE_STATES)
        groups = group_by_plan(eligible)
        plans = self.plans.get_many(groups.keys())
        allocations, plan_faults = allocate_subscribers(target, groups, plans)
        by_plan = {a.plan_id: a for a in allocations}

        report.eligible_subscription_count = len(eligible)
        report.faults.extend(plan_faults)

        for plan_id, members in groups.items():
            status_counts = dict(sorted(Counter(m.status.value for m in members).items()))
            plan = plans.get(plan_id)
            allocation = by_plan.get(plan_id)
            if plan is None or allocation is None:
                report.subscribers_by_plan.append(PlanSubscriberBreakdown(
                    plan_id=plan_id, plan_found=False,
                    subscribers=len(members), status_counts=status_counts,
                ))
                continue
            report.subscribers_by_plan.append(PlanSubscriberBreakdown(
                plan_id=plan_id,
                plan_code=plan.code,
                meals_per_day=plan.meals_per_day,
                delivery_pattern=plan.delivery_pattern,
                subscribers=len(members),
                status_counts=status_counts,
                delivers_today=allocation.delivers,
                slots=allocation.slots,
                lunch_count=allocation.lunch_count,
                dinner_count=allocation.dinner_count,
            ))

    def _describe_plans(self, report: DailyDiagnostics):
        for plan in self.plans.list_all():
            for issue in PlanCatalog.plan_issues(plan):
                report.plan_config_issues.append(
                    PlanConfigIssue(plan_id=plan.id, plan_code=plan.code, message=issue)
                )

    def _compare_counts(self, report: DailyDiagnostics, served_slots: Set[MealSlot]):
        """Calendar demand per slot against what the kitchen list will serve"""
        calendar_counts = {
            MealSlot.LUNCH: sum(p.lunch_count for p in report.subscribers_by_plan),
            MealSlot.DINNER: sum(p.dinner_count for p in report.subscribers_by_plan),
        }
        for slot, demand in calendar_counts.items():
            kitchen = demand if slot in served_slots else 0
            if demand == kitchen:
                continue
            if report.cycle_day_index is None:
                reason = "no single active menu cycle"
            else:
                reason = f"no usable {slot.value} assignment for cycle day {report.cycle_day_index}"
            report.count_mismatches.append(CountMismatch(
                slot=slot, calendar_count=demand, kitchen_servings=kitchen, reason=reason
            ))
