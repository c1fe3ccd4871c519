"""
Plan catalog and menu service tests
"""

import pydantic
import pytest

from ..core.exceptions import NotFoundError, ValidationError
from ..models.menu import MealSlot, ScheduleEntry
from ..models.plan import PlanCreate, PlanStatus
from ..stores import MenuStore


class TestPlanCatalog:

    @pytest.mark.parametrize("delivery_days, expected", [
        (4, [1, 2, 3, 4]),
        (6, [1, 2, 3, 4, 5, 6]),
    ])
    def test_default_pattern(self, make_plan, delivery_days, expected):
        plan = make_plan(delivery_days=delivery_days)
        assert plan.delivery_pattern == expected
        assert plan.status == PlanStatus.ACTIVE

    def test_pattern_is_normalized(self, make_plan):
        plan = make_plan(delivery_pattern=[5, 1, 3, 3, 2, 4, 6])
        assert plan.delivery_pattern == [1, 2, 3, 4, 5, 6]

    def test_pattern_string_forms(self):
        data = PlanCreate(code="F1", meals_per_day=1, delivery_days=4,
                          delivery_pattern="1,2,3,4", base_price_cents=500)
        assert data.delivery_pattern == [1, 2, 3, 4]
        data = PlanCreate(code="F2", meals_per_day=1, delivery_days=4,
                          delivery_pattern="[4, 3, 2, 1]", base_price_cents=500)
        assert data.delivery_pattern == [1, 2, 3, 4]

    def test_pattern_out_of_range(self):
        with pytest.raises(pydantic.ValidationError):
            PlanCreate(code="F3", meals_per_day=1, delivery_days=4,
                       delivery_pattern=[1, 8], base_price_cents=500)

    def test_delivery_days_must_be_four_or_six(self):
        with pytest.raises(pydantic.ValidationError):
            PlanCreate(code="F5", meals_per_day=1, delivery_days=5, base_price_cents=500)

    def test_duplicate_code(self, make_plan):
        make_plan(code="FOCUS")
        with pytest.raises(ValidationError):
            make_plan(code="FOCUS")

    def test_lookup(self, services, make_plan):
        plan = make_plan(code="FOCUS")
        assert services.plan_catalog.get_plan(plan.id).code == "FOCUS"
        assert services.plan_catalog.get_plan_by_code("FOCUS").id == plan.id
        assert [p.id for p in services.plan_catalog.list_plans(PlanStatus.ACTIVE)] == [plan.id]
        with pytest.raises(NotFoundError):
            services.plan_catalog.get_plan(plan.id + 1)

    def test_effective_price(self, services, make_plan):
        full = make_plan(code="FULL", base_price_cents=120000)
        promo = make_plan(code="PROMO", base_price_cents=120000, discounted_price_cents=99000)
        assert services.plan_catalog.effective_price_cents(full) == 120000
        assert services.plan_catalog.effective_price_cents(promo) == 99000

    def test_archived_plan_cannot_be_sold(self, services, make_plan, test_db):
        plan = make_plan()
        test_db.execute("UPDATE plans SET status='archived' WHERE id=?", [plan.id])
        with pytest.raises(ValidationError):
            services.plan_catalog.require_active_plan(plan.id)


class TestMenuService:

    def test_create_cycle_with_days(self, services):
        cycle = services.menu.create_cycle("Autumn", 5)
        schedule = services.menu.get_cycle_schedule(cycle.id)

        assert cycle.is_active is False
        assert [d.day_index for d in schedule.days] == [0, 1, 2, 3, 4]
        assert schedule.assignments == []

    def test_activate_keeps_single_active_cycle(self, services):
        first = services.menu.create_cycle("A", 7, activate=True)
        second = services.menu.create_cycle("B", 7)

        services.menu.activate_cycle(second.id)

        assert services.menu.get_cycle(first.id).is_active is False
        assert services.menu.get_cycle(second.id).is_active is True

    def test_assign_replaces_slot(self, services, kitchen, test_db):
        other = services.menu.register_meal("Fish Tacos")
        services.menu.assign_meal(kitchen["cycle"].id, 0, MealSlot.LUNCH, other.id)

        lunches = [a for a in MenuStore(test_db).list_assignments_for_day_index(kitchen["cycle"].id, 0)
                   if a.slot == MealSlot.LUNCH]
        assert [a.meal_id for a in lunches] == [other.id]

    def test_save_schedule_validates_all_meals_first(self, services, kitchen):
        cycle_id = kitchen["cycle"].id
        before = services.menu.get_cycle_schedule(cycle_id).assignments

        with pytest.raises(ValidationError) as exc_info:
            services.menu.save_schedule(cycle_id, [
                ScheduleEntry(day_index=1, slot=MealSlot.LUNCH, meal_id=kitchen["lunch_meal"].id),
                ScheduleEntry(day_index=2, slot=MealSlot.LUNCH, meal_id=404),
            ])

        assert exc_info.value.details["invalid_meal_ids"] == [404]
        assert services.menu.get_cycle_schedule(cycle_id).assignments == before

    def test_save_schedule_rejects_index_outside_cycle(self, services, kitchen):
        with pytest.raises(ValidationError):
            services.menu.assign_meal(kitchen["cycle"].id, 7, MealSlot.LUNCH, kitchen["lunch_meal"].id)

    def test_unknown_cycle(self, services):
        with pytest.raises(NotFoundError):
            services.menu.get_cycle_schedule(77)

    def test_meal_ingredient_requires_existing_rows(self, services, kitchen):
        with pytest.raises(NotFoundError):
            services.menu.add_meal_ingredient(kitchen["lunch_meal"].id, 999, 10)
        with pytest.raises(NotFoundError):
            services.menu.add_meal_ingredient(999, kitchen["rice"].id, 10)
