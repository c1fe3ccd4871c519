"""
Business logic services.
build_services wires stores, clock and settings into one registry;
nothing in this package keeps module-level store instances.
"""

from dataclasses import dataclass
from typing import Optional

from ..config.settings import Settings, settings as default_settings
from ..core.clock import Clock, SystemClock
from ..core.database import DatabaseManager
from ..stores import (
    HistoryStore,
    IngredientStore,
    MealIngredientStore,
    MealStore,
    MenuStore,
    OperationLogStore,
    PlanStore,
    SubscriptionStore,
)
from .demand_service import DailyDemandService
from .diagnostics_service import DiagnosticsService
from .menu_service import MenuService
from .pipeline_service import SubscriptionPipelineService
from .plan_catalog import PlanCatalog
from .subscription_state_service import SubscriptionStateService


@dataclass
class ServiceRegistry:
    db: DatabaseManager
    clock: Clock
    plan_catalog: PlanCatalog
    menu: MenuService
    subscriptions: SubscriptionStateService
    demand: DailyDemandService
    diagnostics: DiagnosticsService
    pipeline: SubscriptionPipelineService
    operation_log: OperationLogStore


def build_services(db: DatabaseManager, clock: Optional[Clock] = None,
                   app_settings: Optional[Settings] = None) -> ServiceRegistry:
    """Construct every service over one database"""
    clock = clock or SystemClock()
    app_settings = app_settings or default_settings

    subscription_store = SubscriptionStore(db)
    history_store = HistoryStore(db)
    plan_store = PlanStore(db)
    meal_store = MealStore(db)
    ingredient_store = IngredientStore(db)
    meal_ingredient_store = MealIngredientStore(db)
    menu_store = MenuStore(db)
    log_store = OperationLogStore(db)

    plan_catalog = PlanCatalog(plan_store)
    return ServiceRegistry(
        db=db,
        clock=clock,
        plan_catalog=plan_catalog,
        menu=MenuService(db, menu_store, meal_store, ingredient_store, meal_ingredient_store),
        subscriptions=SubscriptionStateService(
            db, subscription_store, history_store, log_store, plan_catalog, clock
        ),
        demand=DailyDemandService(
            db, subscription_store, plan_store, menu_store, meal_store,
            ingredient_store, meal_ingredient_store, clock, app_settings
        ),
        diagnostics=DiagnosticsService(
            db, subscription_store, plan_store, menu_store, meal_store,
            ingredient_store, meal_ingredient_store, clock
        ),
        pipeline=SubscriptionPipelineService(db, subscription_store, plan_store, clock, app_settings),
        operation_log=log_store,
    )


__all__ = [
    "DailyDemandService",
    "DiagnosticsService",
    "MenuService",
    "PlanCatalog",
    "ServiceRegistry",
    "SubscriptionPipelineService",
    "SubscriptionStateService",
    "build_services",
]
