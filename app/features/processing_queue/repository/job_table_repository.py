"""
Postgres repository for table-backed job queues (e.g. video transcoding).

Reads only, except for ``delete_all`` which backs the operator's
"clear queue" action.
"""

from typing import Any

from psycopg import sql

from app.db.helpers import execute_query, fetch_all
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class JobTableRepository:
    """Persistence helpers for one job table."""

    def __init__(self, table_name: str):
        self.table_name = table_name
        self._table = sql.Identifier(table_name)

    async def fetch_statuses(self) -> list[str]:
        """Status of every row; the caller recounts from this full scan."""
        query = sql.SQL("SELECT status FROM {}").format(self._table)
        rows = await fetch_all(query)
        return [str(row["status"]) for row in rows]

    async def fetch_recent_jobs(self, limit: int) -> list[dict[str, Any]]:
        query = sql.SQL("SELECT * FROM {} ORDER BY created_at DESC LIMIT %s").format(self._table)
        return await fetch_all(query, (limit,))

    async def fetch_active_jobs(self, limit: int) -> list[dict[str, Any]]:
        query = sql.SQL(
            """
            SELECT * FROM {}
            WHERE status IN ('pending', 'processing')
            ORDER BY created_at ASC
            LIMIT %s
            """
        ).format(self._table)
        return await fetch_all(query, (limit,))

    async def delete_all(self) -> int:
        query = sql.SQL("DELETE FROM {}").format(self._table)
        deleted = await execute_query(query)
        logger.warning("Job table cleared", table=self.table_name, deleted=deleted)
        return deleted
