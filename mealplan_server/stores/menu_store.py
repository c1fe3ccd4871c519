"""
Menu cycle persistence: cycles, cycle days and slot assignments
"""

from typing import List, Optional

from ..core.database import DatabaseManager
from ..models.menu import MealSlot, MenuCycle, MenuCycleDay, MenuDayAssignment

# "slot DESC" puts lunch before dinner
ASSIGNMENT_SELECT = """
    SELECT mda.id, mda.cycle_day_id, mda.meal_id, mda.slot, mda.created_at, mcd.day_index
    FROM menu_day_assignments mda
    JOIN menu_cycle_days mcd ON mda.cycle_day_id = mcd.id
"""


class MenuStore:
    """menu_cycles, menu_cycle_days and menu_day_assignments tables"""

    def __init__(self, db: DatabaseManager):
        self.db = db

    # cycles

    def get_cycle(self, cycle_id: int) -> Optional[MenuCycle]:
        row = self.db.fetch_dict(
            "SELECT id, name, cycle_length_days, is_active, created_at FROM menu_cycles WHERE id=?",
            [cycle_id]
        )
        return MenuCycle.model_validate(row) if row else None

    def list_active_cycles(self) -> List[MenuCycle]:
        rows = self.db.fetch_dicts(
            "SELECT id, name, cycle_length_days, is_active, created_at FROM menu_cycles "
            "WHERE is_active = TRUE ORDER BY id"
        )
        return [MenuCycle.model_validate(row) for row in rows]

    def create_cycle(self, name: str, cycle_length_days: int) -> MenuCycle:
        row = self.db.execute_one(
            "INSERT INTO menu_cycles(name, cycle_length_days, is_active) VALUES (?,?,FALSE) RETURNING id",
            [name, cycle_length_days]
        )
        return self.get_cycle(row[0])

    def set_active(self, cycle_id: int, is_active: bool):
        self.db.execute("UPDATE menu_cycles SET is_active=? WHERE id=?", [is_active, cycle_id])

    def deactivate_others(self, cycle_id: int):
        self.db.execute(
            "UPDATE menu_cycles SET is_active=FALSE WHERE id<>? AND is_active = TRUE", [cycle_id]
        )

    # cycle days

    def list_days(self, cycle_id: int) -> List[MenuCycleDay]:
        rows = self.db.fetch_dicts(
            "SELECT id, cycle_id, day_index, label FROM menu_cycle_days "
            "WHERE cycle_id=? ORDER BY day_index, id",
            [cycle_id]
        )
        return [MenuCycleDay.model_validate(row) for row in rows]

    def get_day(self, cycle_id: int, day_index: int) -> Optional[MenuCycleDay]:
        row = self.db.fetch_dict(
            "SELECT id, cycle_id, day_index, label FROM menu_cycle_days "
            "WHERE cycle_id=? AND day_index=? ORDER BY id LIMIT 1",
            [cycle_id, day_index]
        )
        return MenuCycleDay.model_validate(row) if row else None

    def create_day(self, cycle_id: int, day_index: int, label: Optional[str] = None) -> MenuCycleDay:
        row = self.db.execute_one(
            "INSERT INTO menu_cycle_days(cycle_id, day_index, label) VALUES (?,?,?) RETURNING id",
            [cycle_id, day_index, label]
        )
        return MenuCycleDay(id=row[0], cycle_id=cycle_id, day_index=day_index, label=label)

    # assignments

    def list_assignments(self, cycle_id: int) -> List[MenuDayAssignment]:
        """Every assignment of a cycle, ordered by day index, slot, id"""
        rows = self.db.fetch_dicts(
            ASSIGNMENT_SELECT + " WHERE mcd.cycle_id=? ORDER BY mcd.day_index, mda.slot DESC, mda.id",
            [cycle_id]
        )
        return [MenuDayAssignment.model_validate(row) for row in rows]

    def list_assignments_for_day_index(self, cycle_id: int, day_index: int) -> List[MenuDayAssignment]:
        rows = self.db.fetch_dicts(
            ASSIGNMENT_SELECT + " WHERE mcd.cycle_id=? AND mcd.day_index=? ORDER BY mda.slot DESC, mda.id",
            [cycle_id, day_index]
        )
        return [MenuDayAssignment.model_validate(row) for row in rows]

    def add_assignment(self, cycle_day_id: int, meal_id: int, slot: MealSlot) -> MenuDayAssignment:
        """Raw insert; callers that must keep one meal per slot clear the slot first"""
        row = self.db.execute_one(
            "INSERT INTO menu_day_assignments(cycle_day_id, meal_id, slot) VALUES (?,?,?) RETURNING id",
            [cycle_day_id, meal_id, slot.value]
        )
        return MenuDayAssignment(id=row[0], cycle_day_id=cycle_day_id, meal_id=meal_id, slot=slot)

    def clear_slot(self, cycle_day_id: int, slot: MealSlot) -> int:
        rows = self.db.execute_query(
            "DELETE FROM menu_day_assignments WHERE cycle_day_id=? AND slot=? RETURNING id",
            [cycle_day_id, slot.value]
        )
        return len(rows)
