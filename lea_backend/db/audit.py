import json
import uuid
from typing import Any, Dict, List, Optional

from .base import Repository


class AuditLogRepository(Repository):
    """Append-only log of admin actions."""

    def log(
        self,
        action: str,
        actor_id: Optional[str],
        target_id: str,
        target_type: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        log_id = str(uuid.uuid4())
        self._execute(
            """
            INSERT INTO audit_logs (id, action, actor_id, target_id, target_type, metadata)
            VALUES (%s, %s, %s, %s, %s, %s)
            """,
            (log_id, action, actor_id, target_id, target_type, json.dumps(metadata) if metadata else None),
        )
        return log_id

    def list_entries(self, action: Optional[str] = None, limit: int = 50, offset: int = 0) -> List[Dict[str, Any]]:
        """Entries newest first, optionally restricted to one action."""
        where = "WHERE action = %s" if action else ""
        params = (action, limit, offset) if action else (limit, offset)
        return self._fetch_all(
            f"""
            SELECT id, action, actor_id, target_id, target_type, metadata, created_at
            FROM audit_logs
            {where}
            ORDER BY created_at DESC
            LIMIT %s OFFSET %s
            """,
            params,
        )
