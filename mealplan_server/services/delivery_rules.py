"""
Date rules shared by the kitchen aggregation and the diagnostics report.

All functions are pure: they depend only on their arguments.

- cycle_day_index: which menu day a calendar date maps to
- is_delivery_day: whether a plan delivers on a date (Sunday never does)
- one_meal_slot: which slot a one-meal plan receives on a date
"""

from datetime import date
from typing import Iterable, Tuple

from ..models.menu import MealSlot
from ..models.plan import LEGACY_SUNDAY, SUNDAY, Plan

BOTH_SLOTS = (MealSlot.LUNCH, MealSlot.DINNER)


def cycle_day_index(target: date, cycle_length_days: int) -> int:
    """
    Map a calendar date onto a menu cycle day.

    The index restarts on the 1st of every month; it does not track elapsed
    days since the cycle started. Kitchen quantities depend on this exact rule.
    """
    if cycle_length_days <= 0:
        raise ValueError("cycle_length_days must be positive")
    return (target.day - 1) % cycle_length_days


def is_sunday(target: date) -> bool:
    return target.isoweekday() == SUNDAY


def is_delivery_day(delivery_pattern: Iterable[int], target: date) -> bool:
    """Pattern membership by ISO weekday, with Sunday always excluded"""
    if is_sunday(target):
        return False
    return target.isoweekday() in set(delivery_pattern)


def plan_code_hash(code: str) -> int:
    """Sum of the first two character codes; shorter codes hash to 0"""
    if not code or len(code) < 2:
        return 0
    return ord(code[0]) + ord(code[1])


def one_meal_slot(plan_code: str, target: date) -> MealSlot:
    """
    Slot for every subscriber of a one-meal plan on a date.

    Decided per plan per day, not per subscriber, so each plan's kitchen
    batch stays in one slot.
    """
    combined = (plan_code_hash(plan_code) + target.isoweekday() + target.day) % 2
    return MealSlot.LUNCH if combined == 0 else MealSlot.DINNER


def slots_for_plan(plan: Plan, target: date) -> Tuple[MealSlot, ...]:
    """Slots a plan's subscribers receive on a date; empty when it does not deliver"""
    if not is_delivery_day(plan.delivery_pattern, target):
        return ()
    if plan.meals_per_day == 2:
        return BOTH_SLOTS
    if plan.meals_per_day == 1:
        return (one_meal_slot(plan.code, target),)
    return ()


def pattern_includes_sunday(delivery_pattern: Iterable[int]) -> bool:
    days = set(delivery_pattern)
    return SUNDAY in days or LEGACY_SUNDAY in days
