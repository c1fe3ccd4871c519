"""
Database connection and schema management.
Wraps a single DuckDB connection behind a re-entrant lock.

Tables:
- plans: subscription plans (meal count, delivery pattern, pricing)
- subscriptions: customer subscriptions and their lifecycle status
- subscription_state_history: append-only transition log
- menu_cycles / menu_cycle_days / menu_day_assignments: the repeating menu
- meals / ingredients / meal_ingredients: recipes for kitchen aggregation
- logs: operation log (sweeps, payments, unexpected errors)
"""

import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional

import duckdb

from .exceptions import BaseApplicationError, ConcurrencyError, DatabaseError
from ..config.settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)

# Sequences back every integer primary key
SCHEMA_SQL = r"""
CREATE SEQUENCE IF NOT EXISTS plans_id_seq;
CREATE TABLE IF NOT EXISTS plans (
  id INTEGER DEFAULT nextval('plans_id_seq') PRIMARY KEY,
  code TEXT UNIQUE NOT NULL,
  name TEXT,
  meals_per_day INTEGER CHECK(meals_per_day IN (1, 2)) NOT NULL,
  delivery_days INTEGER CHECK(delivery_days IN (4, 6)) NOT NULL,
  delivery_pattern TEXT NOT NULL,  -- JSON array of ISO weekdays
  billing_cycle TEXT CHECK(billing_cycle IN ('weekly','monthly')) NOT NULL,
  base_price_cents INTEGER NOT NULL,
  discounted_price_cents INTEGER,
  status TEXT CHECK(status IN ('active','archived')) DEFAULT 'active',
  created_at TIMESTAMP DEFAULT now()
);

CREATE SEQUENCE IF NOT EXISTS subscriptions_id_seq;
CREATE TABLE IF NOT EXISTS subscriptions (
  id INTEGER DEFAULT nextval('subscriptions_id_seq') PRIMARY KEY,
  user_id TEXT NOT NULL,
  plan_id INTEGER NOT NULL,
  status TEXT CHECK(status IN ('pending_payment','Pending_Approval','New_Joiner','Curious',
                               'Active','Frozen','Exiting','cancelled','expired')) NOT NULL,
  start_date DATE NOT NULL,
  end_date DATE NOT NULL,
  price_charged_cents INTEGER NOT NULL,
  payment_method TEXT CHECK(payment_method IN ('credit_card','wire_transfer','other')) NOT NULL,
  auto_renewal BOOLEAN DEFAULT TRUE,
  completed_cycles INTEGER DEFAULT 0 CHECK(completed_cycles >= 0),
  notes TEXT,
  created_at TIMESTAMP NOT NULL,
  updated_at TIMESTAMP NOT NULL
);

CREATE SEQUENCE IF NOT EXISTS subscription_state_history_id_seq;
CREATE TABLE IF NOT EXISTS subscription_state_history (
  id INTEGER DEFAULT nextval('subscription_state_history_id_seq') PRIMARY KEY,
  subscription_id INTEGER NOT NULL,
  previous_state TEXT,
  new_state TEXT NOT NULL,
  reason TEXT,
  changed_by TEXT NOT NULL,
  created_at TIMESTAMP NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_history_subscription ON subscription_state_history(subscription_id);

CREATE SEQUENCE IF NOT EXISTS meals_id_seq;
CREATE TABLE IF NOT EXISTS meals (
  id INTEGER DEFAULT nextval('meals_id_seq') PRIMARY KEY,
  name TEXT NOT NULL,
  description TEXT,
  is_active BOOLEAN DEFAULT TRUE,
  created_at TIMESTAMP DEFAULT now()
);

CREATE SEQUENCE IF NOT EXISTS ingredients_id_seq;
CREATE TABLE IF NOT EXISTS ingredients (
  id INTEGER DEFAULT nextval('ingredients_id_seq') PRIMARY KEY,
  name TEXT NOT NULL,
  unit_base TEXT DEFAULT 'g',
  created_at TIMESTAMP DEFAULT now()
);

CREATE SEQUENCE IF NOT EXISTS meal_ingredients_id_seq;
CREATE TABLE IF NOT EXISTS meal_ingredients (
  id INTEGER DEFAULT nextval('meal_ingredients_id_seq') PRIMARY KEY,
  meal_id INTEGER NOT NULL,
  ingredient_id INTEGER NOT NULL,
  weight_g DOUBLE NOT NULL,  -- grams per serving
  notes TEXT
);

CREATE INDEX IF NOT EXISTS idx_meal_ingredients_meal ON meal_ingredients(meal_id);

CREATE SEQUENCE IF NOT EXISTS menu_cycles_id_seq;
CREATE TABLE IF NOT EXISTS menu_cycles (
  id INTEGER DEFAULT nextval('menu_cycles_id_seq') PRIMARY KEY,
  name TEXT NOT NULL,
  cycle_length_days INTEGER CHECK(cycle_length_days > 0) NOT NULL,
  is_active BOOLEAN DEFAULT FALSE,
  created_at TIMESTAMP DEFAULT now()
);

CREATE SEQUENCE IF NOT EXISTS menu_cycle_days_id_seq;
CREATE TABLE IF NOT EXISTS menu_cycle_days (
  id INTEGER DEFAULT nextval('menu_cycle_days_id_seq') PRIMARY KEY,
  cycle_id INTEGER NOT NULL,
  day_index INTEGER CHECK(day_index >= 0) NOT NULL,
  label TEXT
);

CREATE INDEX IF NOT EXISTS idx_cycle_days_cycle ON menu_cycle_days(cycle_id);

-- No uniqueness on (cycle_day_id, slot): duplicates are reported by diagnostics
CREATE SEQUENCE IF NOT EXISTS menu_day_assignments_id_seq;
CREATE TABLE IF NOT EXISTS menu_day_assignments (
  id INTEGER DEFAULT nextval('menu_day_assignments_id_seq') PRIMARY KEY,
  cycle_day_id INTEGER NOT NULL,
  meal_id INTEGER NOT NULL,
  slot TEXT CHECK(slot IN ('lunch','dinner')) NOT NULL,
  created_at TIMESTAMP DEFAULT now()
);

CREATE INDEX IF NOT EXISTS idx_assignments_day ON menu_day_assignments(cycle_day_id);

CREATE SEQUENCE IF NOT EXISTS logs_id_seq;
CREATE TABLE IF NOT EXISTS logs (
  log_id INTEGER DEFAULT nextval('logs_id_seq') PRIMARY KEY,
  user_id TEXT,
  actor_id TEXT,
  action TEXT NOT NULL,
  detail_json TEXT,
  created_at TIMESTAMP DEFAULT now()
);

CREATE INDEX IF NOT EXISTS idx_logs_action ON logs(action);
"""


class DatabaseManager:
    """Owns the DuckDB connection, the schema and transaction scoping"""

    def __init__(self, db_path: Optional[str] = None, app_settings: Optional[Settings] = None):
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._lock = threading.RLock()
        self._tx_depth = 0
        self.db_path = db_path or (app_settings or default_settings).database_path

    @property
    def connection(self) -> duckdb.DuckDBPyConnection:
        """Lazily open the connection and create the schema"""
        with self._lock:
            if self._connection is None:
                if self.db_path != ":memory:":
                    Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
                self._connection = duckdb.connect(self.db_path)
                self._init_schema()
            return self._connection

    def get_connection(self) -> duckdb.DuckDBPyConnection:
        return self.connection

    def _init_schema(self):
        try:
            self._connection.execute(SCHEMA_SQL)
        except duckdb.Error as e:
            raise DatabaseError(f"Failed to initialize schema: {e}")

    def init_database(self):
        """Open the connection so the schema exists before the first request"""
        self.get_connection()
        logger.info("Database ready at %s", self.db_path)

    @contextmanager
    def transaction(self) -> Generator[duckdb.DuckDBPyConnection, None, None]:
        """
        Transaction scope. Re-entrant: nested scopes join the outermost one,
        which alone issues BEGIN / COMMIT / ROLLBACK.

        Application errors raised inside propagate unchanged after rollback;
        DuckDB errors are wrapped in DatabaseError (ConcurrencyError on conflicts).
        """
        with self._lock:
            conn = self.connection
            outermost = self._tx_depth == 0
            if outermost:
                conn.execute("BEGIN TRANSACTION")
            self._tx_depth += 1
            try:
                yield conn
            except BaseException as e:
                self._tx_depth -= 1
                if outermost:
                    self._rollback(conn)
                    if isinstance(e, duckdb.Error):
                        raise self._translate_error(e) from e
                raise
            else:
                self._tx_depth -= 1
                if outermost:
                    try:
                        conn.execute("COMMIT")
                    except duckdb.Error as e:
                        self._rollback(conn)
                        raise self._translate_error(e) from e

    @contextmanager
    def snapshot(self) -> Generator[duckdb.DuckDBPyConnection, None, None]:
        """
        Read scope: every query inside sees the same committed state.
        Implemented as a transaction so DuckDB's MVCC pins one snapshot.
        """
        with self.transaction() as conn:
            yield conn

    @staticmethod
    def _rollback(conn: duckdb.DuckDBPyConnection):
        try:
            conn.execute("ROLLBACK")
        except duckdb.Error:
            logger.warning("Rollback failed; transaction may already be closed")

    @staticmethod
    def _translate_error(error: duckdb.Error) -> BaseApplicationError:
        text = str(error).lower()
        if "conflict" in text or "serialization" in text:
            return ConcurrencyError("Concurrent update conflict, please retry")
        return DatabaseError(f"Database operation failed: {error}")

    def execute(self, query: str, params: Optional[list] = None) -> duckdb.DuckDBPyConnection:
        """Run a statement and return the cursor"""
        with self._lock:
            try:
                return self.connection.execute(query, params or [])
            except duckdb.Error as e:
                raise self._translate_error(e) from e

    def execute_query(self, query: str, params: Optional[list] = None) -> list:
        """Run a query and return all rows as tuples"""
        with self._lock:
            return self.execute(query, params).fetchall()

    def execute_one(self, query: str, params: Optional[list] = None) -> Optional[tuple]:
        """Run a query and return a single row"""
        with self._lock:
            return self.execute(query, params).fetchone()

    def fetch_dicts(self, query: str, params: Optional[list] = None) -> List[Dict[str, Any]]:
        """Run a query and return rows as column-name dicts"""
        with self._lock:
            cursor = self.execute(query, params)
            columns = [col[0] for col in cursor.description]
            return [dict(zip(columns, row)) for row in cursor.fetchall()]

    def fetch_dict(self, query: str, params: Optional[list] = None) -> Optional[Dict[str, Any]]:
        """Run a query and return the first row as a dict"""
        rows = self.fetch_dicts(query, params)
        return rows[0] if rows else None

    def close(self):
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None
