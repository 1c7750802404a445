"""
Memory implementation of PaymentTransactionRepository.
"""

import logging
import time
import uuid
from typing import List

from storefront.domain import PaymentTransaction, utcnow
from storefront.repositories import PaymentTransactionRepository

logger = logging.getLogger(__name__)


class MemoryPaymentTransactionRepository(PaymentTransactionRepository):
    def __init__(self) -> None:
        logger.debug("Initializing MemoryPaymentTransactionRepository")
        self._transactions: List[PaymentTransaction] = []

    async def list_for_order(
        self, order_id: str
    ) -> List[PaymentTransaction]:
        return [t for t in self._transactions if t.order_id == order_id]

    async def add_transaction(
        self, transaction: PaymentTransaction
    ) -> PaymentTransaction:
        stored = transaction.model_copy(
            update={
                "transaction_id": transaction.transaction_id
                or f"txn-{uuid.uuid4()}",
                "created_at": transaction.created_at or utcnow(),
            }
        )
        self._transactions.append(stored)
        logger.info(
            "MemoryPaymentTransactionRepository: Transaction added",
            extra={
                "transaction_id": stored.transaction_id,
                "order_id": stored.order_id,
                "amount": str(stored.amount),
                "payment_method": stored.payment_method,
            },
        )
        return stored

    async def generate_merchant_transaction_id(self, prefix: str) -> str:
        return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"
