"""
Test configuration.
Every test gets its own in-memory DuckDB and a clock pinned to
Wednesday 2024-05-15 09:00.
"""

from datetime import date, datetime

import pytest
from fastapi.testclient import TestClient

from ..app import create_app
from ..config.settings import Settings
from ..core.clock import FixedClock
from ..core.database import DatabaseManager
from ..models.menu import MealSlot, ScheduleEntry
from ..models.plan import PlanCreate
from ..models.subscription import PaymentMethod, SubscriptionCreate, SubscriptionStatus
from ..services import build_services
from ..stores import SubscriptionStore

WEDNESDAY_15TH = date(2024, 5, 15)
SUNDAY_19TH = date(2024, 5, 19)
NOW = datetime(2024, 5, 15, 9, 0)


@pytest.fixture
def test_settings():
    return Settings(
        database_url="duckdb:///:memory:",
        api_title="Meal Subscription API (Test)",
        api_version="1.0.0-test",
        log_level="WARNING",
    )


@pytest.fixture
def test_db():
    db_manager = DatabaseManager(":memory:")
    db_manager.init_database()
    yield db_manager
    db_manager.close()


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def services(test_db, clock, test_settings):
    return build_services(test_db, clock, test_settings)


@pytest.fixture
def client(test_settings, clock, test_db):
    app = create_app(test_settings, clock, test_db)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_plan(services):
    """Register a plan; delivery_pattern None means the default for delivery_days"""

    def _make(code="P2", meals_per_day=2, delivery_days=6, delivery_pattern=None,
              base_price_cents=100000, discounted_price_cents=None):
        return services.plan_catalog.register_plan(PlanCreate(
            code=code,
            name=f"Plan {code}",
            meals_per_day=meals_per_day,
            delivery_days=delivery_days,
            delivery_pattern=delivery_pattern,
            base_price_cents=base_price_cents,
            discounted_price_cents=discounted_price_cents,
        ))

    return _make


@pytest.fixture
def make_subscription(services, test_db):
    """
    Create a subscription through the state machine. Passing status forces
    the stored status afterwards, for seeding kitchen scenarios.
    """
    store = SubscriptionStore(test_db)

    def _make(plan, user_id="user-1", payment_method=PaymentMethod.CREDIT_CARD,
              auto_renewal=True, status=None, start_date=date(2024, 5, 1),
              end_date=date(2024, 6, 30), price_charged_cents=90000):
        subscription = services.subscriptions.create_subscription_with_state(SubscriptionCreate(
            user_id=user_id,
            plan_id=plan.id,
            start_date=start_date,
            end_date=end_date,
            price_charged_cents=price_charged_cents,
            payment_method=payment_method,
            auto_renewal=auto_renewal,
        ))
        if status is not None:
            store.update_status(subscription.id, SubscriptionStatus(status), NOW)
            subscription = store.get(subscription.id)
        return subscription

    return _make


@pytest.fixture
def kitchen(services):
    """
    Active 7-day menu cycle. Day index 0 (the 1st, 8th, 15th... of a month)
    serves Chicken Rice for lunch and Beef Stew for dinner.
    Rice is 100g per Chicken Rice and 150g per Beef Stew.
    """
    rice = services.menu.register_ingredient("Rice")
    chicken = services.menu.register_ingredient("Chicken")
    beef = services.menu.register_ingredient("Beef")

    lunch = services.menu.register_meal("Chicken Rice")
    dinner = services.menu.register_meal("Beef Stew")
    services.menu.add_meal_ingredient(lunch.id, rice.id, 100)
    services.menu.add_meal_ingredient(lunch.id, chicken.id, 120)
    services.menu.add_meal_ingredient(dinner.id, rice.id, 150)
    services.menu.add_meal_ingredient(dinner.id, beef.id, 200)

    cycle = services.menu.create_cycle("Spring menu", 7, activate=True)
    services.menu.save_schedule(cycle.id, [
        ScheduleEntry(day_index=0, slot=MealSlot.LUNCH, meal_id=lunch.id),
        ScheduleEntry(day_index=0, slot=MealSlot.DINNER, meal_id=dinner.id),
    ])
    return {
        "cycle": cycle,
        "lunch_meal": lunch,
        "dinner_meal": dinner,
        "rice": rice,
        "chicken": chicken,
        "beef": beef,
    }
