"""
Persistence stores.
Each store wraps one or a few tables and is constructed with a DatabaseManager.
"""

from .catalog_store import IngredientStore, MealIngredientStore, MealStore, PlanStore
from .log_store import OperationLogStore
from .menu_store import MenuStore
from .subscription_store import HistoryStore, SubscriptionStore

__all__ = [
    "HistoryStore",
    "IngredientStore",
    "MealIngredientStore",
    "MealStore",
    "MenuStore",
    "OperationLogStore",
    "PlanStore",
    "SubscriptionStore",
]
