"""
Memory implementation of OrderRepository.

Orders are kept in a dictionary keyed by order_id. Status transitions check
the current status before writing, the same way the PostgreSQL
implementation does with a conditional UPDATE.

Deletion audit entries go to the admin repository passed in, so they show
up in its ``list_activity``.
"""

import logging
from typing import Dict, Iterable, Optional

from storefront.domain import (
    NON_CANCELLABLE_STATUSES,
    AdminActivityLog,
    Order,
    RefundStateUpdate,
    utcnow,
)
from storefront.errors import NotFoundError
from storefront.repositories import AdminRepository, OrderRepository

from .admin import MemoryAdminRepository

logger = logging.getLogger(__name__)


class MemoryOrderRepository(OrderRepository):
    """Dictionary-backed orders, for tests and local runs."""

    def __init__(
        self,
        orders: Optional[Iterable[Order]] = None,
        admin_repo: Optional[AdminRepository] = None,
    ) -> None:
        logger.debug("Initializing MemoryOrderRepository")
        self._orders: Dict[str, Order] = {}
        self.admin_repo = admin_repo or MemoryAdminRepository()
        for order in orders or []:
            self._orders[order.order_id] = order

    def add(self, order: Order) -> None:
        self._orders[order.order_id] = order

    async def get_order(self, order_id: str) -> Optional[Order]:
        order = self._orders.get(order_id)
        if order is None:
            logger.debug(
                "MemoryOrderRepository: Order not found",
                extra={"order_id": order_id},
            )
        return order

    async def mark_cancelled(
        self, order_id: str, reason: str, cancelled_by: str
    ) -> Optional[Order]:
        order = self._orders.get(order_id)
        if order is None or order.status in NON_CANCELLABLE_STATUSES:
            return None
        if order.is_deleted:
            return None

        now = utcnow()
        updated = order.model_copy(
            update={
                "status": "cancelled",
                "cancelled_at": now,
                "cancellation_reason": reason,
                "cancelled_by": cancelled_by,
                "updated_at": now,
            }
        )
        self._orders[order_id] = updated
        logger.info(
            "MemoryOrderRepository: Order cancelled",
            extra={"order_id": order_id, "previous_status": order.status},
        )
        return updated

    async def mark_deleted(
        self,
        order_id: str,
        reason: str,
        deleted_by: str,
        audit_entry: AdminActivityLog,
    ) -> Optional[Order]:
        order = self._orders.get(order_id)
        if order is None or order.is_deleted:
            return None

        # Audit first: if it raises, the order is left as it was
        await self.admin_repo.log_activity(audit_entry)

        now = utcnow()
        updated = order.model_copy(
            update={
                "status": "deleted",
                "deleted_at": now,
                "deleted_by": deleted_by,
                "deletion_reason": reason,
                "updated_at": now,
            }
        )
        self._orders[order_id] = updated
        logger.info(
            "MemoryOrderRepository: Order deleted",
            extra={"order_id": order_id, "previous_status": order.status},
        )
        return updated

    async def update_refund_state(
        self, order_id: str, update: RefundStateUpdate
    ) -> None:
        order = self._orders.get(order_id)
        if order is None:
            raise NotFoundError(f"Order not found: {order_id}")

        changes = update.model_dump(
            exclude={"mark_processed"}, exclude_none=True
        )
        now = utcnow()
        if update.mark_processed:
            changes["refund_processed_at"] = now
        changes["updated_at"] = now
        self._orders[order_id] = order.model_copy(update=changes)

        logger.debug(
            "MemoryOrderRepository: Refund state updated",
            extra={"order_id": order_id, "refund_status": update.refund_status},
        )
