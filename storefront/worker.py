"""
Temporal worker that runs the follow-up retry workflow and its activities.
"""

import asyncio
import logging
from typing import Any, List

import asyncpg
import httpx
from temporalio.client import Client
from temporalio.contrib.pydantic import pydantic_data_converter
from temporalio.service import RPCError
from temporalio.worker import Worker

from storefront.config import Settings, setup_logging
from storefront.repos.temporal.activities import (
    TemporalPostgreSQLFollowUpRepository,
    TemporalPostgreSQLInventoryRepository,
    TemporalPostgreSQLOrderRepository,
    TemporalPostgreSQLPaymentTransactionRepository,
    TemporalRazorpayPaymentGateway,
)
from storefront.workflow import RetryFollowUpWorkflow

logger = logging.getLogger(__name__)


async def get_temporal_client_with_retries(
    endpoint: str, namespace: str, attempts: int = 10, delay: int = 5
) -> Client:
    """Attempt to connect to Temporal with retries."""
    for attempt in range(attempts):
        try:
            client = await Client.connect(
                endpoint,
                data_converter=pydantic_data_converter,
                namespace=namespace,
            )
            logger.info(
                "Successfully connected to Temporal",
                extra={"endpoint": endpoint, "attempt": attempt + 1},
            )
            return client
        except RPCError as e:
            logger.warning(
                "Failed to connect to Temporal",
                extra={
                    "endpoint": endpoint,
                    "attempt": attempt + 1,
                    "max_attempts": attempts,
                    "error": str(e),
                    "retry_in_seconds": delay,
                },
            )
            if attempt + 1 == attempts:
                logger.error(
                    "All connection attempts to Temporal failed",
                    extra={"endpoint": endpoint, "total_attempts": attempts},
                )
                raise
            await asyncio.sleep(delay)

    raise RuntimeError("Failed to connect to Temporal after all attempts")


def build_activities(
    pool: asyncpg.Pool, http_client: httpx.AsyncClient, settings: Settings
) -> List[Any]:
    """Instantiate the activity repositories and list their activities."""
    order_repo = TemporalPostgreSQLOrderRepository(pool)
    inventory_repo = TemporalPostgreSQLInventoryRepository(pool)
    payment_repo = TemporalPostgreSQLPaymentTransactionRepository(pool)
    follow_up_repo = TemporalPostgreSQLFollowUpRepository(pool)
    gateway = TemporalRazorpayPaymentGateway(
        http_client,
        settings.razorpay_key_id,
        settings.razorpay_key_secret,
        settings.razorpay_api_base,
    )

    return [
        order_repo.get_order,
        order_repo.mark_cancelled,
        order_repo.mark_deleted,
        order_repo.update_refund_state,
        inventory_repo.restore_stock,
        inventory_repo.get_stock,
        inventory_repo.list_movements,
        payment_repo.list_for_order,
        payment_repo.add_transaction,
        payment_repo.generate_merchant_transaction_id,
        follow_up_repo.generate_id,
        follow_up_repo.save,
        follow_up_repo.get,
        follow_up_repo.list_open,
        gateway.refund,
    ]


async def run_worker() -> None:
    """Run the Temporal worker"""
    settings = Settings.from_env()
    setup_logging(settings)

    logger.info(
        "Starting Temporal worker",
        extra={
            "temporal_endpoint": settings.temporal_endpoint,
            "task_queue": settings.task_queue,
        },
    )

    client = await get_temporal_client_with_retries(
        settings.temporal_endpoint, settings.temporal_namespace
    )
    pool = await asyncpg.create_pool(settings.database_url)
    http_client = httpx.AsyncClient(timeout=settings.http_timeout_seconds)

    try:
        await TemporalPostgreSQLFollowUpRepository(pool).ensure_schema()
        activities = build_activities(pool, http_client, settings)

        logger.info(
            "Creating Temporal worker",
            extra={
                "task_queue": settings.task_queue,
                "workflow_count": 1,
                "activity_count": len(activities),
            },
        )
        worker = Worker(
            client,
            task_queue=settings.task_queue,
            workflows=[RetryFollowUpWorkflow],
            activities=activities,
        )
        await worker.run()
    finally:
        await http_client.aclose()
        await pool.close()


if __name__ == "__main__":
    asyncio.run(run_worker())
