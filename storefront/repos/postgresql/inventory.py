"""
PostgreSQL implementation of InventoryRepository.
"""

import logging
from typing import List, Optional

from asyncpg import Pool

from storefront.domain import InventoryMovement
from storefront.errors import NotFoundError
from storefront.repositories import InventoryRepository
from storefront.validation import validate_domain_model

logger = logging.getLogger(__name__)


class PostgreSQLInventoryRepository(InventoryRepository):
    """
    Stock lives in ``products.stock``; the ledger in ``inventory_movements``.
    """

    def __init__(self, pool: Pool):
        self.pool = pool
        logger.debug("Initialized PostgreSQLInventoryRepository")

    async def restore_stock(self, movement: InventoryMovement) -> int:
        """Increment stock in place and append the movement, atomically.

        The increment is computed by the database (``stock = stock + n``),
        never from a previously read value.
        """
        delta = (
            movement.quantity
            if movement.movement_type == "in"
            else -movement.quantity
        )
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                new_stock = await conn.fetchval(
                    """
                    UPDATE products
                    SET stock = stock + $2, updated_at = now()
                    WHERE id = $1
                    RETURNING stock
                    """,
                    movement.product_id,
                    delta,
                )
                if new_stock is None:
                    raise NotFoundError(
                        f"Product not found: {movement.product_id}"
                    )
                await conn.execute(
                    """
                    INSERT INTO inventory_movements (
                        product_id, movement_type, quantity, reason,
                        reference_id, reference_type, created_by
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7)
                    """,
                    movement.product_id,
                    movement.movement_type,
                    movement.quantity,
                    movement.reason,
                    movement.reference_id,
                    movement.reference_type,
                    movement.created_by,
                )

        logger.info(
            "Restored product stock",
            extra={
                "product_id": movement.product_id,
                "quantity": movement.quantity,
                "new_stock": new_stock,
                "reference_id": movement.reference_id,
            },
        )
        return new_stock

    async def get_stock(self, product_id: str) -> Optional[int]:
        async with self.pool.acquire() as conn:
            return await conn.fetchval(
                "SELECT stock FROM products WHERE id = $1", product_id
            )

    async def list_movements(
        self, reference_id: str
    ) -> List[InventoryMovement]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT product_id, movement_type, quantity, reason,
                       reference_id, reference_type, created_by, created_at
                FROM inventory_movements
                WHERE reference_id = $1
                ORDER BY created_at
                """,
                reference_id,
            )

        movements = []
        for row in rows:
            data = dict(row)
            for key in ("product_id", "reference_id", "created_by"):
                if data.get(key) is not None:
                    data[key] = str(data[key])
            movements.append(validate_domain_model(data, InventoryMovement))
        return movements
