"""
Memory implementation of InventoryRepository.

Stock levels live in a product_id -> quantity dictionary and movements in
an append-only list. ``restore_stock`` updates both or neither.
"""

import logging
from typing import Dict, List, Optional

from storefront.domain import InventoryMovement, utcnow
from storefront.errors import NotFoundError
from storefront.repositories import InventoryRepository

logger = logging.getLogger(__name__)


class MemoryInventoryRepository(InventoryRepository):
    def __init__(self, stock: Optional[Dict[str, int]] = None) -> None:
        logger.debug("Initializing MemoryInventoryRepository")
        self._stock: Dict[str, int] = dict(stock or {})
        self._movements: List[InventoryMovement] = []

    async def restore_stock(self, movement: InventoryMovement) -> int:
        if movement.product_id not in self._stock:
            raise NotFoundError(f"Product not found: {movement.product_id}")

        delta = (
            movement.quantity
            if movement.movement_type == "in"
            else -movement.quantity
        )
        new_stock = self._stock[movement.product_id] + delta
        self._stock[movement.product_id] = new_stock
        self._movements.append(
            movement.model_copy(update={"created_at": utcnow()})
        )

        logger.info(
            "MemoryInventoryRepository: Stock restored",
            extra={
                "product_id": movement.product_id,
                "quantity": movement.quantity,
                "new_stock": new_stock,
                "reference_id": movement.reference_id,
            },
        )
        return new_stock

    async def get_stock(self, product_id: str) -> Optional[int]:
        return self._stock.get(product_id)

    async def list_movements(
        self, reference_id: str
    ) -> List[InventoryMovement]:
        return [m for m in self._movements if m.reference_id == reference_id]
