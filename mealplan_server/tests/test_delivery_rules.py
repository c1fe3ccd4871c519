"""
Pure date rule tests
"""

from datetime import date, datetime

import pytest

from ..models.menu import MealSlot
from ..models.plan import Plan
from ..services.delivery_rules import (
    cycle_day_index,
    is_delivery_day,
    one_meal_slot,
    plan_code_hash,
    slots_for_plan,
)
from .conftest import SUNDAY_19TH, WEDNESDAY_15TH


def _plan(code="P1", meals_per_day=1, pattern=(1, 2, 3, 4, 5, 6)):
    return Plan(id=1, code=code, meals_per_day=meals_per_day, delivery_days=6,
                delivery_pattern=list(pattern), base_price_cents=1000,
                created_at=datetime(2024, 1, 1))


class TestCycleDayIndex:

    def test_restarts_every_month(self):
        assert cycle_day_index(date(2024, 5, 1), 7) == 0
        assert cycle_day_index(date(2024, 5, 15), 7) == 0
        assert cycle_day_index(date(2024, 5, 31), 7) == 2
        assert cycle_day_index(date(2024, 6, 1), 7) == 0

    def test_longer_cycle_than_month(self):
        assert cycle_day_index(date(2024, 2, 29), 35) == 28

    def test_rejects_empty_cycle(self):
        with pytest.raises(ValueError):
            cycle_day_index(date(2024, 5, 1), 0)


class TestDeliveryDay:

    def test_pattern_membership(self):
        assert is_delivery_day([1, 2, 3, 4, 5], WEDNESDAY_15TH)
        assert not is_delivery_day([1, 2], WEDNESDAY_15TH)

    @pytest.mark.parametrize("pattern", [[0, 1, 2, 3, 4, 5, 6], [1, 2, 3, 4, 5, 6, 7]])
    def test_sunday_never_delivers(self, pattern):
        assert not is_delivery_day(pattern, SUNDAY_19TH)


class TestOneMealSlot:

    def test_plan_code_hash(self):
        assert plan_code_hash("P1") == 129
        assert plan_code_hash("P") == 0
        assert plan_code_hash("") == 0

    def test_p1_on_wednesday_15th_gets_dinner(self):
        # (129 + 3 + 15) % 2 == 1
        assert one_meal_slot("P1", WEDNESDAY_15TH) == MealSlot.DINNER

    def test_even_hash_gets_lunch(self):
        # "A1" hashes to 114; (114 + 3 + 15) % 2 == 0
        assert one_meal_slot("A1", WEDNESDAY_15TH) == MealSlot.LUNCH

    def test_slot_alternates_with_the_date(self):
        assert one_meal_slot("P1", date(2024, 5, 16)) == MealSlot.DINNER  # 129+4+16 odd
        assert one_meal_slot("P1", date(2024, 5, 14)) == MealSlot.DINNER  # 129+2+14 odd
        assert one_meal_slot("P1", date(2024, 5, 20)) == MealSlot.LUNCH   # 129+1+20 even

    def test_short_codes_hash_to_zero(self):
        # (0 + 3 + 15) % 2 == 0
        assert one_meal_slot("X", WEDNESDAY_15TH) == MealSlot.LUNCH


class TestSlotsForPlan:

    def test_two_meal_plan_gets_both(self):
        assert slots_for_plan(_plan(meals_per_day=2), WEDNESDAY_15TH) == (MealSlot.LUNCH, MealSlot.DINNER)

    def test_one_meal_plan_gets_hashed_slot(self):
        assert slots_for_plan(_plan(), WEDNESDAY_15TH) == (MealSlot.DINNER,)

    def test_non_delivery_day_is_empty(self):
        assert slots_for_plan(_plan(pattern=[1, 2]), WEDNESDAY_15TH) == ()
        assert slots_for_plan(_plan(pattern=[0, 7]), SUNDAY_19TH) == ()
