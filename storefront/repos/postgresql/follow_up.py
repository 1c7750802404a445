"""
PostgreSQL implementation of FollowUpRepository.

Follow-ups are not part of the storefront schema, so this module also owns
the DDL for its ``order_follow_ups`` table.
"""

import logging
import uuid
from typing import List, Optional

from asyncpg import Pool

from storefront.domain import FollowUp
from storefront.repositories import FollowUpRepository
from storefront.validation import validate_domain_model

logger = logging.getLogger(__name__)

CREATE_TABLE = """
    CREATE TABLE IF NOT EXISTS order_follow_ups (
        id TEXT PRIMARY KEY,
        order_id TEXT NOT NULL,
        kind TEXT NOT NULL,
        product_id TEXT,
        quantity INTEGER,
        amount NUMERIC(12, 2),
        actor_id TEXT,
        status TEXT NOT NULL DEFAULT 'open',
        attempts INTEGER NOT NULL DEFAULT 0,
        last_error TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
"""

FOLLOW_UP_COLUMNS = """
    id, order_id, kind, product_id, quantity, amount, actor_id,
    status, attempts, last_error, created_at, updated_at
"""


def follow_up_from_row(row) -> FollowUp:
    data = dict(row)
    data["follow_up_id"] = data.pop("id")
    return validate_domain_model(data, FollowUp)


class PostgreSQLFollowUpRepository(FollowUpRepository):
    def __init__(self, pool: Pool):
        self.pool = pool
        logger.debug("Initialized PostgreSQLFollowUpRepository")

    async def ensure_schema(self) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(CREATE_TABLE)

    async def generate_id(self) -> str:
        return f"followup-{uuid.uuid4()}"

    async def save(self, follow_up: FollowUp) -> FollowUp:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO order_follow_ups (
                    id, order_id, kind, product_id, quantity, amount,
                    actor_id, status, attempts, last_error
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
                ON CONFLICT (id) DO UPDATE SET
                    status = EXCLUDED.status,
                    attempts = EXCLUDED.attempts,
                    last_error = EXCLUDED.last_error,
                    updated_at = now()
                RETURNING {FOLLOW_UP_COLUMNS}
                """,
                follow_up.follow_up_id,
                follow_up.order_id,
                follow_up.kind,
                follow_up.product_id,
                follow_up.quantity,
                follow_up.amount,
                follow_up.actor_id,
                follow_up.status,
                follow_up.attempts,
                follow_up.last_error,
            )

        logger.info(
            "Saved follow-up",
            extra={
                "follow_up_id": follow_up.follow_up_id,
                "order_id": follow_up.order_id,
                "kind": follow_up.kind,
                "status": follow_up.status,
            },
        )
        return follow_up_from_row(row)

    async def get(self, follow_up_id: str) -> Optional[FollowUp]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {FOLLOW_UP_COLUMNS} FROM order_follow_ups WHERE id = $1",
                follow_up_id,
            )
        return follow_up_from_row(row) if row is not None else None

    async def list_open(self) -> List[FollowUp]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {FOLLOW_UP_COLUMNS}
                FROM order_follow_ups
                WHERE status = 'open'
                ORDER BY created_at
                """
            )
        return [follow_up_from_row(row) for row in rows]
