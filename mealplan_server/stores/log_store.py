"""
Operation log persistence
"""

import json
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..core.database import DatabaseManager


class OperationLogStore:
    """logs table: one row per notable operation"""

    def __init__(self, db: DatabaseManager):
        self.db = db

    def append(self, action: str, detail: Dict[str, Any], created_at: datetime,
               user_id: Optional[str] = None, actor_id: Optional[str] = None) -> int:
        row = self.db.execute_one(
            """
            INSERT INTO logs(user_id, actor_id, action, detail_json, created_at)
            VALUES (?,?,?,?,?) RETURNING log_id
            """,
            [user_id, actor_id, action, json.dumps(detail, default=str), created_at]
        )
        return row[0]

    def list_by_action(self, action: str) -> List[Dict[str, Any]]:
        rows = self.db.fetch_dicts(
            "SELECT log_id, user_id, actor_id, action, detail_json, created_at "
            "FROM logs WHERE action=? ORDER BY log_id",
            [action]
        )
        for row in rows:
            row["detail"] = json.loads(row.pop("detail_json") or "{}")
        return rows
