"""
Menu service.
Handles menu cycles, the per-day meal schedule, and meal/ingredient registration.
"""

import logging
from typing import Iterable, List, Optional

from ..core.database import DatabaseManager
from ..core.exceptions import NotFoundError, ValidationError
from ..models.menu import (
    CycleSchedule,
    Ingredient,
    Meal,
    MealIngredient,
    MealSlot,
    MenuCycle,
    MenuDayAssignment,
    ScheduleEntry,
)
from ..stores.catalog_store import IngredientStore, MealIngredientStore, MealStore
from ..stores.menu_store import MenuStore

logger = logging.getLogger(__name__)


class MenuService:
    """Menu cycle and schedule management"""

    def __init__(self, db: DatabaseManager, menu_store: MenuStore, meal_store: MealStore,
                 ingredient_store: IngredientStore, meal_ingredient_store: MealIngredientStore):
        self.db = db
        self.menus = menu_store
        self.meals = meal_store
        self.ingredients = ingredient_store
        self.meal_ingredients = meal_ingredient_store

    # cycles

    def create_cycle(self, name: str, cycle_length_days: int, activate: bool = False) -> MenuCycle:
        """Create a cycle with contiguous day rows 0..n-1"""
        if cycle_length_days <= 0:
            raise ValidationError("cycle_length_days must be positive",
                                  details={"cycle_length_days": cycle_length_days})

        with self.db.transaction():
            cycle = self.menus.create_cycle(name, cycle_length_days)
            for day_index in range(cycle_length_days):
                self.menus.create_day(cycle.id, day_index, label=f"Day {day_index + 1}")
            if activate:
                cycle = self.activate_cycle(cycle.id)

        logger.info("Created menu cycle %s (%s days)", cycle.id, cycle_length_days)
        return cycle

    def activate_cycle(self, cycle_id: int) -> MenuCycle:
        """Make one cycle the only active one"""
        with self.db.transaction():
            self.get_cycle(cycle_id)
            self.menus.deactivate_others(cycle_id)
            self.menus.set_active(cycle_id, True)
            cycle = self.menus.get_cycle(cycle_id)
        logger.info("Activated menu cycle %s", cycle_id)
        return cycle

    def get_cycle(self, cycle_id: int) -> MenuCycle:
        cycle = self.menus.get_cycle(cycle_id)
        if cycle is None:
            raise NotFoundError("Menu cycle", cycle_id)
        return cycle

    def get_cycle_schedule(self, cycle_id: int) -> CycleSchedule:
        with self.db.snapshot():
            cycle = self.get_cycle(cycle_id)
            return CycleSchedule(
                cycle=cycle,
                days=self.menus.list_days(cycle_id),
                assignments=self.menus.list_assignments(cycle_id),
            )

    # schedule

    def assign_meal(self, cycle_id: int, day_index: int, slot: MealSlot,
                    meal_id: int) -> MenuDayAssignment:
        """Put a meal in one slot, replacing whatever was there"""
        entry = ScheduleEntry(day_index=day_index, slot=slot, meal_id=meal_id)
        return self.save_schedule(cycle_id, [entry])[0]

    def save_schedule(self, cycle_id: int, entries: Iterable[ScheduleEntry]) -> List[MenuDayAssignment]:
        """
        Apply a batch of slot assignments atomically.

        Every meal id is validated before anything is written; a day row is
        created on demand when the cycle lacks one for the index.

        Raises:
            NotFoundError: unknown cycle
            ValidationError: day index outside the cycle or unknown meal ids
        """
        entries = list(entries)
        with self.db.transaction():
            cycle = self.get_cycle(cycle_id)

            bad_indices = sorted({e.day_index for e in entries
                                  if e.day_index >= cycle.cycle_length_days})
            if bad_indices:
                raise ValidationError(
                    f"Day index outside cycle of {cycle.cycle_length_days} days",
                    details={"day_indices": bad_indices}
                )

            self._validate_meal_ids(e.meal_id for e in entries)

            saved = []
            for entry in entries:
                day = self.menus.get_day(cycle_id, entry.day_index)
                if day is None:
                    day = self.menus.create_day(cycle_id, entry.day_index)
                self.menus.clear_slot(day.id, entry.slot)
                assignment = self.menus.add_assignment(day.id, entry.meal_id, entry.slot)
                saved.append(assignment.model_copy(update={"day_index": entry.day_index}))

        logger.info("Saved %d schedule entries for menu cycle %s", len(saved), cycle_id)
        return saved

    def _validate_meal_ids(self, meal_ids: Iterable[int]):
        wanted = sorted(set(meal_ids))
        found = self.meals.get_many(wanted)
        invalid = [meal_id for meal_id in wanted if meal_id not in found]
        if invalid:
            raise ValidationError(
                f"Invalid meal ids: {', '.join(str(i) for i in invalid)}",
                details={"invalid_meal_ids": invalid}
            )

    # meals and ingredients

    def register_meal(self, name: str, description: Optional[str] = None) -> Meal:
        return self.meals.create(name, description)

    def register_ingredient(self, name: str, unit_base: str = "g") -> Ingredient:
        return self.ingredients.create(name, unit_base)

    def add_meal_ingredient(self, meal_id: int, ingredient_id: int, weight_g: float,
                            notes: Optional[str] = None) -> MealIngredient:
        if self.meals.get(meal_id) is None:
            raise NotFoundError("Meal", meal_id)
        if self.ingredients.get(ingredient_id) is None:
            raise NotFoundError("Ingredient", ingredient_id)
        if weight_g < 0:
            raise ValidationError("weight_g must not be negative", details={"weight_g": weight_g})
        return self.meal_ingredients.create(meal_id, ingredient_id, weight_g, notes)
