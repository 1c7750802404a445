"""
PostgreSQL implementation of PaymentTransactionRepository.

Gateway references are stored in the ``razorpay_*`` columns of
``payment_transactions``; the domain model calls them gateway fields.
"""

import json
import logging
import time
import uuid
from typing import List

from asyncpg import Pool

from storefront.domain import PaymentTransaction
from storefront.repositories import PaymentTransactionRepository
from storefront.validation import validate_domain_model

logger = logging.getLogger(__name__)

TRANSACTION_COLUMNS = """
    id, order_id, amount, status, payment_method, merchant_transaction_id,
    razorpay_order_id, razorpay_payment_id, razorpay_response, created_at
"""


def transaction_from_row(row) -> PaymentTransaction:
    response = row["razorpay_response"]
    if isinstance(response, str):
        response = json.loads(response)
    return validate_domain_model(
        {
            "transaction_id": str(row["id"]),
            "order_id": str(row["order_id"]),
            "amount": row["amount"],
            "status": row["status"],
            "payment_method": row["payment_method"],
            "merchant_transaction_id": row["merchant_transaction_id"],
            "gateway_order_id": row["razorpay_order_id"],
            "gateway_payment_id": row["razorpay_payment_id"],
            "gateway_response": response,
            "created_at": row["created_at"],
        },
        PaymentTransaction,
    )


class PostgreSQLPaymentTransactionRepository(PaymentTransactionRepository):
    def __init__(self, pool: Pool):
        self.pool = pool
        logger.debug("Initialized PostgreSQLPaymentTransactionRepository")

    async def list_for_order(
        self, order_id: str
    ) -> List[PaymentTransaction]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {TRANSACTION_COLUMNS}
                FROM payment_transactions
                WHERE order_id = $1
                ORDER BY created_at
                """,
                order_id,
            )
        return [transaction_from_row(row) for row in rows]

    async def add_transaction(
        self, transaction: PaymentTransaction
    ) -> PaymentTransaction:
        response = (
            json.dumps(transaction.gateway_response)
            if transaction.gateway_response is not None
            else None
        )
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO payment_transactions (
                    order_id, amount, status, payment_method,
                    merchant_transaction_id, razorpay_order_id,
                    razorpay_payment_id, razorpay_response
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8::jsonb)
                RETURNING {TRANSACTION_COLUMNS}
                """,
                transaction.order_id,
                transaction.amount,
                transaction.status,
                transaction.payment_method,
                transaction.merchant_transaction_id,
                transaction.gateway_order_id,
                transaction.gateway_payment_id,
                response,
            )

        stored = transaction_from_row(row)
        logger.info(
            "Inserted payment transaction",
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
