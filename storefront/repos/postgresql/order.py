"""
PostgreSQL implementation of OrderRepository.

Works against the storefront's ``orders`` and ``order_items`` tables.
Status transitions are single conditional UPDATE statements, so two
concurrent cancellations of the same order cannot both report success.
A soft delete also inserts its ``admin_activity_logs`` row in the same
transaction.
"""

import logging
from typing import Any, Mapping, Optional, Sequence

from asyncpg import Pool

from storefront.domain import (
    NON_CANCELLABLE_STATUSES,
    AdminActivityLog,
    Order,
    RefundStateUpdate,
)
from storefront.errors import NotFoundError
from storefront.repos.postgresql.admin import insert_activity
from storefront.repositories import OrderRepository
from storefront.validation import validate_domain_model

logger = logging.getLogger(__name__)

ORDER_COLUMNS = """
    id, user_id, status, payment_status, total_amount,
    refund_status, refund_amount, refund_reference, refund_processed_at,
    cancelled_at, cancellation_reason, cancelled_by,
    deleted_at, deleted_by, deletion_reason,
    created_at, updated_at
"""

ORDER_ITEMS_QUERY = """
    SELECT product_id, quantity, price
    FROM order_items
    WHERE order_id = $1
    ORDER BY id
"""


def order_from_rows(
    row: Mapping[str, Any], item_rows: Sequence[Mapping[str, Any]]
) -> Order:
    """Build an Order from an ``orders`` row and its ``order_items`` rows."""
    data = dict(row)
    data["order_id"] = str(data.pop("id"))
    if data.get("user_id") is not None:
        data["user_id"] = str(data["user_id"])
    if data.get("cancelled_by") is not None:
        data["cancelled_by"] = str(data["cancelled_by"])
    if data.get("deleted_by") is not None:
        data["deleted_by"] = str(data["deleted_by"])
    # NULL columns mean "never set" in the storefront schema
    data["payment_status"] = data.get("payment_status") or "pending"
    if data.get("refund_status") in (None, "pending"):
        data["refund_status"] = "none"
    data["items"] = [
        {
            "product_id": str(item["product_id"]),
            "quantity": item["quantity"],
            "price": item["price"],
        }
        for item in item_rows
    ]
    return validate_domain_model(data, Order)


class PostgreSQLOrderRepository(OrderRepository):
    """
    PostgreSQL implementation of OrderRepository.
    """

    def __init__(self, pool: Pool):
        """
        Initialize with an asyncpg connection pool.

        Args:
            pool: asyncpg connection pool for database operations
        """
        self.pool = pool
        logger.debug("Initialized PostgreSQLOrderRepository")

    async def get_order(self, order_id: str) -> Optional[Order]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {ORDER_COLUMNS} FROM orders WHERE id = $1",
                order_id,
            )
            if row is None:
                logger.debug("Order not found", extra={"order_id": order_id})
                return None
            item_rows = await conn.fetch(ORDER_ITEMS_QUERY, order_id)

        order = order_from_rows(row, item_rows)
        logger.debug(
            "Retrieved order",
            extra={
                "order_id": order_id,
                "status": order.status,
                "item_count": len(order.items),
            },
        )
        return order

    async def mark_cancelled(
        self, order_id: str, reason: str, cancelled_by: str
    ) -> Optional[Order]:
        query = f"""
            UPDATE orders
            SET status = 'cancelled',
                cancelled_at = now(),
                cancellation_reason = $2,
                cancelled_by = $3,
                updated_at = now()
            WHERE id = $1
              AND deleted_at IS NULL
              AND status::text <> ALL($4::text[])
            RETURNING {ORDER_COLUMNS}
        """
        return await self._transition(
            query, order_id, reason, cancelled_by, list(NON_CANCELLABLE_STATUSES)
        )

    async def mark_deleted(
        self,
        order_id: str,
        reason: str,
        deleted_by: str,
        audit_entry: AdminActivityLog,
    ) -> Optional[Order]:
        query = f"""
            UPDATE orders
            SET status = 'deleted',
                deleted_at = now(),
                deleted_by = $3,
                deletion_reason = $2,
                updated_at = now()
            WHERE id = $1 AND deleted_at IS NULL
            RETURNING {ORDER_COLUMNS}
        """
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                row = await conn.fetchrow(query, order_id, reason, deleted_by)
                if row is None:
                    return None
                await insert_activity(conn, audit_entry)
                item_rows = await conn.fetch(ORDER_ITEMS_QUERY, order_id)

        order = order_from_rows(row, item_rows)
        logger.info(
            "Order soft deleted with audit entry",
            extra={"order_id": order_id, "deleted_by": deleted_by},
        )
        return order

    async def update_refund_state(
        self, order_id: str, update: RefundStateUpdate
    ) -> None:
        # COALESCE keeps the current value for fields the update leaves unset
        query = """
            UPDATE orders
            SET refund_status = $2,
                refund_amount = COALESCE($3, refund_amount),
                refund_reference = COALESCE($4, refund_reference),
                refund_processed_at = CASE WHEN $5 THEN now()
                                           ELSE refund_processed_at END,
                updated_at = now()
            WHERE id = $1
        """
        async with self.pool.acquire() as conn:
            result = await conn.execute(
                query,
                order_id,
                update.refund_status,
                update.refund_amount,
                update.refund_reference,
                update.mark_processed,
            )

        if result == "UPDATE 0":
            raise NotFoundError(f"Order not found: {order_id}")

        logger.info(
            "Updated order refund state",
            extra={"order_id": order_id, "refund_status": update.refund_status},
        )

    async def _transition(
        self, query: str, order_id: str, *args: Any
    ) -> Optional[Order]:
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                row = await conn.fetchrow(query, order_id, *args)
                if row is None:
                    return None
                item_rows = await conn.fetch(ORDER_ITEMS_QUERY, order_id)

        order = order_from_rows(row, item_rows)
        logger.info(
            "Order status changed",
            extra={"order_id": order_id, "status": order.status},
        )
        return order
