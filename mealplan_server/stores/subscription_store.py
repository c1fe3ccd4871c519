"""
Subscription and state-history persistence
"""

from datetime import date, datetime
from typing import Iterable, List, Optional

from ..core.database import DatabaseManager
from ..models.subscription import (
    StateHistoryEntry,
    Subscription,
    SubscriptionCreate,
    SubscriptionStatus,
)

SUBSCRIPTION_COLUMNS = (
    "id, user_id, plan_id, status, start_date, end_date, price_charged_cents, "
    "payment_method, auto_renewal, completed_cycles, notes, created_at, updated_at"
)


class SubscriptionStore:
    """subscriptions table"""

    def __init__(self, db: DatabaseManager):
        self.db = db

    def get(self, subscription_id: int) -> Optional[Subscription]:
        row = self.db.fetch_dict(
            f"SELECT {SUBSCRIPTION_COLUMNS} FROM subscriptions WHERE id=?",
            [subscription_id]
        )
        return Subscription.model_validate(row) if row else None

    def list(self, statuses: Optional[Iterable[SubscriptionStatus]] = None,
             user_id: Optional[str] = None,
             plan_id: Optional[int] = None) -> List[Subscription]:
        """Filtered listing ordered by id"""
        clauses = []
        params: list = []
        if statuses is not None:
            values = [SubscriptionStatus(s).value for s in statuses]
            if not values:
                return []
            clauses.append(f"status IN ({', '.join('?' for _ in values)})")
            params.extend(values)
        if user_id is not None:
            clauses.append("user_id=?")
            params.append(user_id)
        if plan_id is not None:
            clauses.append("plan_id=?")
            params.append(plan_id)

        query = f"SELECT {SUBSCRIPTION_COLUMNS} FROM subscriptions"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY id"
        return [Subscription.model_validate(row) for row in self.db.fetch_dicts(query, params)]

    def create(self, data: SubscriptionCreate, status: SubscriptionStatus,
               created_at: datetime) -> Subscription:
        row = self.db.execute_one(
            """
            INSERT INTO subscriptions(user_id, plan_id, status, start_date, end_date,
                price_charged_cents, payment_method, auto_renewal, completed_cycles,
                notes, created_at, updated_at)
            VALUES (?,?,?,?,?,?,?,?,0,?,?,?) RETURNING id
            """,
            [data.user_id, data.plan_id, status.value, data.start_date, data.end_date,
             data.price_charged_cents, data.payment_method.value, data.auto_renewal,
             data.notes, created_at, created_at]
        )
        return self.get(row[0])

    def update_status(self, subscription_id: int, status: SubscriptionStatus,
                      timestamp: datetime):
        self.db.execute(
            "UPDATE subscriptions SET status=?, updated_at=? WHERE id=?",
            [status.value, timestamp, subscription_id]
        )

    def increment_completed_cycles(self, subscription_id: int, timestamp: datetime) -> int:
        """Add one paid cycle and return the new total"""
        row = self.db.execute_one(
            """
            UPDATE subscriptions SET completed_cycles = completed_cycles + 1, updated_at=?
            WHERE id=? RETURNING completed_cycles
            """,
            [timestamp, subscription_id]
        )
        return row[0] if row else 0

    def list_new_joiners_ready(self, min_cycles: int) -> List[Subscription]:
        rows = self.db.fetch_dicts(
            f"SELECT {SUBSCRIPTION_COLUMNS} FROM subscriptions "
            "WHERE status=? AND completed_cycles >= ? ORDER BY id",
            [SubscriptionStatus.NEW_JOINER.value, min_cycles]
        )
        return [Subscription.model_validate(row) for row in rows]

    def list_exiting_ended(self, before: date) -> List[Subscription]:
        """Exiting subscriptions whose end_date is strictly before the given day"""
        rows = self.db.fetch_dicts(
            f"SELECT {SUBSCRIPTION_COLUMNS} FROM subscriptions "
            "WHERE status=? AND end_date < ? ORDER BY id",
            [SubscriptionStatus.EXITING.value, before]
        )
        return [Subscription.model_validate(row) for row in rows]


class HistoryStore:
    """subscription_state_history table; append only"""

    def __init__(self, db: DatabaseManager):
        self.db = db

    def append(self, entry: StateHistoryEntry) -> StateHistoryEntry:
        row = self.db.execute_one(
            """
            INSERT INTO subscription_state_history(subscription_id, previous_state, new_state,
                reason, changed_by, created_at)
            VALUES (?,?,?,?,?,?) RETURNING id
            """,
            [entry.subscription_id,
             entry.previous_state.value if entry.previous_state else None,
             entry.new_state.value, entry.reason, entry.changed_by, entry.created_at]
        )
        return entry.model_copy(update={"id": row[0]})

    def list_by_subscription(self, subscription_id: int) -> List[StateHistoryEntry]:
        """Newest first by insertion order; ids come from a monotonic sequence"""
        rows = self.db.fetch_dicts(
            """
            SELECT id, subscription_id, previous_state, new_state, reason, changed_by, created_at
            FROM subscription_state_history
            WHERE subscription_id=?
            ORDER BY id DESC
            """,
            [subscription_id]
        )
        return [StateHistoryEntry.model_validate(row) for row in rows]
