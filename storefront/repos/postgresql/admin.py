"""
PostgreSQL implementation of AdminRepository.
"""

import json
import logging
from typing import Any, List

from asyncpg import Connection, Pool

from storefront.domain import AdminActivityLog
from storefront.repositories import AdminRepository
from storefront.validation import validate_domain_model

logger = logging.getLogger(__name__)


async def insert_activity(conn: Connection, entry: AdminActivityLog) -> Any:
    """Insert one ``admin_activity_logs`` row on an open connection.

    Takes the connection rather than the pool so callers can run it inside
    their own transaction.
    """
    return await conn.fetchrow(
        """
        INSERT INTO admin_activity_logs (
            admin_user_id, action, resource_type, resource_id, details
        ) VALUES ($1, $2, $3, $4, $5::jsonb)
        RETURNING id, admin_user_id, action, resource_type,
                  resource_id, details, created_at
        """,
        entry.admin_user_id,
        entry.action,
        entry.resource_type,
        entry.resource_id,
        json.dumps(entry.details),
    )


def activity_from_row(row) -> AdminActivityLog:
    details = row["details"]
    if isinstance(details, str):
        details = json.loads(details)
    return validate_domain_model(
        {
            "log_id": str(row["id"]),
            "admin_user_id": str(row["admin_user_id"]),
            "action": row["action"],
            "resource_type": row["resource_type"],
            "resource_id": row["resource_id"],
            "details": details or {},
            "created_at": row["created_at"],
        },
        AdminActivityLog,
    )


class PostgreSQLAdminRepository(AdminRepository):
    """Reads ``admin_users`` and appends to ``admin_activity_logs``."""

    def __init__(self, pool: Pool):
        self.pool = pool
        logger.debug("Initialized PostgreSQLAdminRepository")

    async def is_active_admin(self, user_id: str) -> bool:
        async with self.pool.acquire() as conn:
            found = await conn.fetchval(
                """
                SELECT EXISTS (
                    SELECT 1 FROM admin_users
                    WHERE user_id = $1 AND is_active = true
                )
                """,
                user_id,
            )
        return bool(found)

    async def log_activity(
        self, entry: AdminActivityLog
    ) -> AdminActivityLog:
        async with self.pool.acquire() as conn:
            row = await insert_activity(conn, entry)

        logger.info(
            "Logged admin activity",
            extra={
                "action": entry.action,
                "resource_type": entry.resource_type,
                "resource_id": entry.resource_id,
            },
        )
        return activity_from_row(row)

    async def list_activity(
        self, resource_type: str, resource_id: str
    ) -> List[AdminActivityLog]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT id, admin_user_id, action, resource_type,
                       resource_id, details, created_at
                FROM admin_activity_logs
                WHERE resource_type = $1 AND resource_id = $2
                ORDER BY created_at
                """,
                resource_type,
                resource_id,
            )
        return [activity_from_row(row) for row in rows]
