from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

if TYPE_CHECKING:
    from lea_backend.services.connection_pool import DatabaseConnectionPool


def rows_to_dicts(cur) -> List[Dict[str, Any]]:
    column_names = [desc[0] for desc in cur.description]
    return [dict(zip(column_names, row)) for row in cur.fetchall()]


class Repository:
    """Raw SQL access to one group of tables through a connection pool."""

    def __init__(self, pool: "DatabaseConnectionPool"):
        self.pool = pool

    def _fetch_all(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        with self.pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, params)
                return rows_to_dicts(cur)

    def _fetch_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
        rows = self._fetch_all(sql, params)
        return rows[0] if rows else None

    def _execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Run a write statement and return the affected row count."""
        with self.pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, params)
                return cur.rowcount
