"""
Plan, meal and ingredient persistence
"""

import json
from typing import Dict, Iterable, List, Optional

from ..core.database import DatabaseManager
from ..models.menu import Ingredient, Meal, MealIngredient
from ..models.plan import Plan, PlanCreate, PlanStatus

PLAN_COLUMNS = (
    "id, code, name, meals_per_day, delivery_days, delivery_pattern, billing_cycle, "
    "base_price_cents, discounted_price_cents, status, created_at"
)


def _placeholders(values) -> str:
    return ", ".join("?" for _ in values)


class PlanStore:
    """plans table"""

    def __init__(self, db: DatabaseManager):
        self.db = db

    def get(self, plan_id: int) -> Optional[Plan]:
        row = self.db.fetch_dict(f"SELECT {PLAN_COLUMNS} FROM plans WHERE id=?", [plan_id])
        return Plan.model_validate(row) if row else None

    def get_by_code(self, code: str) -> Optional[Plan]:
        row = self.db.fetch_dict(f"SELECT {PLAN_COLUMNS} FROM plans WHERE code=?", [code])
        return Plan.model_validate(row) if row else None

    def get_many(self, plan_ids: Iterable[int]) -> Dict[int, Plan]:
        ids = sorted(set(plan_ids))
        if not ids:
            return {}
        rows = self.db.fetch_dicts(
            f"SELECT {PLAN_COLUMNS} FROM plans WHERE id IN ({_placeholders(ids)})", ids
        )
        return {row["id"]: Plan.model_validate(row) for row in rows}

    def list_all(self, status: Optional[PlanStatus] = None) -> List[Plan]:
        if status is None:
            rows = self.db.fetch_dicts(f"SELECT {PLAN_COLUMNS} FROM plans ORDER BY id")
        else:
            rows = self.db.fetch_dicts(
                f"SELECT {PLAN_COLUMNS} FROM plans WHERE status=? ORDER BY id", [status.value]
            )
        return [Plan.model_validate(row) for row in rows]

    def create(self, data: PlanCreate, delivery_pattern: List[int]) -> Plan:
        row = self.db.execute_one(
            """
            INSERT INTO plans(code, name, meals_per_day, delivery_days, delivery_pattern,
                billing_cycle, base_price_cents, discounted_price_cents, status)
            VALUES (?,?,?,?,?,?,?,?,?) RETURNING id
            """,
            [data.code, data.name, data.meals_per_day, data.delivery_days,
             json.dumps(delivery_pattern), data.billing_cycle.value,
             data.base_price_cents, data.discounted_price_cents, PlanStatus.ACTIVE.value]
        )
        return self.get(row[0])


class MealStore:
    """meals table"""

    def __init__(self, db: DatabaseManager):
        self.db = db

    def get(self, meal_id: int) -> Optional[Meal]:
        row = self.db.fetch_dict(
            "SELECT id, name, description, is_active, created_at FROM meals WHERE id=?",
            [meal_id]
        )
        return Meal.model_validate(row) if row else None

    def get_many(self, meal_ids: Iterable[int]) -> Dict[int, Meal]:
        ids = sorted(set(meal_ids))
        if not ids:
            return {}
        rows = self.db.fetch_dicts(
            "SELECT id, name, description, is_active, created_at FROM meals "
            f"WHERE id IN ({_placeholders(ids)})",
            ids
        )
        return {row["id"]: Meal.model_validate(row) for row in rows}

    def create(self, name: str, description: Optional[str] = None) -> Meal:
        row = self.db.execute_one(
            "INSERT INTO meals(name, description) VALUES (?,?) RETURNING id",
            [name, description]
        )
        return self.get(row[0])


class IngredientStore:
    """ingredients table"""

    def __init__(self, db: DatabaseManager):
        self.db = db

    def get(self, ingredient_id: int) -> Optional[Ingredient]:
        row = self.db.fetch_dict(
            "SELECT id, name, unit_base, created_at FROM ingredients WHERE id=?",
            [ingredient_id]
        )
        return Ingredient.model_validate(row) if row else None

    def get_many(self, ingredient_ids: Iterable[int]) -> Dict[int, Ingredient]:
        ids = sorted(set(ingredient_ids))
        if not ids:
            return {}
        rows = self.db.fetch_dicts(
            "SELECT id, name, unit_base, created_at FROM ingredients "
            f"WHERE id IN ({_placeholders(ids)})",
            ids
        )
        return {row["id"]: Ingredient.model_validate(row) for row in rows}

    def create(self, name: str, unit_base: str = "g") -> Ingredient:
        row = self.db.execute_one(
            "INSERT INTO ingredients(name, unit_base) VALUES (?,?) RETURNING id",
            [name, unit_base]
        )
        return self.get(row[0])


class MealIngredientStore:
    """meal_ingredients table"""

    def __init__(self, db: DatabaseManager):
        self.db = db

    def list_by_meal(self, meal_id: int) -> List[MealIngredient]:
        rows = self.db.fetch_dicts(
            "SELECT id, meal_id, ingredient_id, weight_g, notes FROM meal_ingredients "
            "WHERE meal_id=? ORDER BY id",
            [meal_id]
        )
        return [MealIngredient.model_validate(row) for row in rows]

    def create(self, meal_id: int, ingredient_id: int, weight_g: float,
               notes: Optional[str] = None) -> MealIngredient:
        row = self.db.execute_one(
            """
            INSERT INTO meal_ingredients(meal_id, ingredient_id, weight_g, notes)
            VALUES (?,?,?,?) RETURNING id
            """,
            [meal_id, ingredient_id, weight_g, notes]
        )
        return MealIngredient(id=row[0], meal_id=meal_id, ingredient_id=ingredient_id,
                              weight_g=weight_g, notes=notes)
