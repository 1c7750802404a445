"""
Dependency injection for FastAPI endpoints.
"""

import logging
from typing import Any, Dict, Optional

import asyncpg
import httpx
from fastapi import Depends, Header
from temporalio.client import Client
from temporalio.contrib.pydantic import pydantic_data_converter

from storefront.config import Settings
from storefront.domain import Identity
from storefront.errors import AuthenticationError
from storefront.repositories import (
    AdminRepository,
    FollowUpRepository,
    IdentityService,
    InventoryRepository,
    OrderRepository,
    PaymentGateway,
    PaymentTransactionRepository,
)
from storefront.repos.postgresql import (
    PostgreSQLAdminRepository,
    PostgreSQLFollowUpRepository,
    PostgreSQLInventoryRepository,
    PostgreSQLOrderRepository,
    PostgreSQLPaymentTransactionRepository,
)
from storefront.repos.razorpay import RazorpayPaymentGateway
from storefront.repos.supabase import SupabaseIdentityService
from storefront.usecase import (
    CancelOrderUseCase,
    DeleteOrderUseCase,
    ProcessRefundUseCase,
)
from storefront.validation import ensure_identity_service

logger = logging.getLogger(__name__)


class DependencyContainer:
    """
    Dependency injection container with singleton lifecycle management.
    Always creates real clients; mocks are provided by test overrides.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings
        self._instances: Dict[str, Any] = {}

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            self._settings = Settings.from_env()
        return self._settings

    async def get_or_create(self, key: str, factory: Any) -> Any:
        """Get or create a singleton instance."""
        if key not in self._instances:
            self._instances[key] = await factory()
        return self._instances[key]

    async def get_pool(self) -> asyncpg.Pool:
        return await self.get_or_create("pool", self._create_pool)  # type: ignore[no-any-return]

    async def get_http_client(self) -> httpx.AsyncClient:
        return await self.get_or_create(  # type: ignore[no-any-return]
            "http_client", self._create_http_client
        )

    async def get_temporal_client(self) -> Client:
        return await self.get_or_create(  # type: ignore[no-any-return]
            "temporal_client", self._create_temporal_client
        )

    async def close(self) -> None:
        """Release pooled connections; called on application shutdown."""
        http_client = self._instances.pop("http_client", None)
        if http_client is not None:
            await http_client.aclose()
        pool = self._instances.pop("pool", None)
        if pool is not None:
            await pool.close()
        self._instances.pop("temporal_client", None)

    async def _create_pool(self) -> asyncpg.Pool:
        logger.debug("Creating asyncpg pool")
        return await asyncpg.create_pool(self.settings.database_url)

    async def _create_http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.settings.http_timeout_seconds)

    async def _create_temporal_client(self) -> Client:
        """Create Temporal client with proper configuration."""
        settings = self.settings
        logger.debug(
            "Creating Temporal client",
            extra={
                "endpoint": settings.temporal_endpoint,
                "namespace": settings.temporal_namespace,
            },
        )
        return await Client.connect(
            settings.temporal_endpoint,
            namespace=settings.temporal_namespace,
            data_converter=pydantic_data_converter,
        )


# Global container instance
_container = DependencyContainer()


def get_container() -> DependencyContainer:
    return _container


def get_settings() -> Settings:
    return _container.settings


async def get_temporal_client() -> Client:
    """FastAPI dependency for Temporal client."""
    return await _container.get_temporal_client()


async def get_order_repository() -> OrderRepository:
    return PostgreSQLOrderRepository(await _container.get_pool())


async def get_inventory_repository() -> InventoryRepository:
    return PostgreSQLInventoryRepository(await _container.get_pool())


async def get_payment_transaction_repository() -> PaymentTransactionRepository:
    return PostgreSQLPaymentTransactionRepository(await _container.get_pool())


async def get_admin_repository() -> AdminRepository:
    return PostgreSQLAdminRepository(await _container.get_pool())


async def get_follow_up_repository() -> FollowUpRepository:
    return PostgreSQLFollowUpRepository(await _container.get_pool())


async def get_payment_gateway() -> PaymentGateway:
    settings = _container.settings
    return RazorpayPaymentGateway(
        await _container.get_http_client(),
        settings.razorpay_key_id,
        settings.razorpay_key_secret,
        settings.razorpay_api_base,
    )


async def get_identity_service() -> IdentityService:
    settings = _container.settings
    return SupabaseIdentityService(
        await _container.get_http_client(),
        settings.supabase_url,
        settings.supabase_service_role_key,
    )


async def get_current_identity(
    authorization: Optional[str] = Header(default=None),
    identity_service: IdentityService = Depends(get_identity_service),
) -> Identity:
    """Resolve the caller from the ``Authorization: Bearer`` header."""
    if not authorization:
        raise AuthenticationError("No authorization header provided")
    token = authorization.replace("Bearer ", "", 1).strip()
    service = ensure_identity_service(identity_service)
    return await service.resolve_token(token)  # type: ignore[no-any-return]


async def get_process_refund_use_case(
    order_repo: OrderRepository = Depends(get_order_repository),
    payment_repo: PaymentTransactionRepository = Depends(
        get_payment_transaction_repository
    ),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> ProcessRefundUseCase:
    return ProcessRefundUseCase(
        order_repo=order_repo, payment_repo=payment_repo, gateway=gateway
    )


async def get_cancel_order_use_case(
    order_repo: OrderRepository = Depends(get_order_repository),
    inventory_repo: InventoryRepository = Depends(get_inventory_repository),
    payment_repo: PaymentTransactionRepository = Depends(
        get_payment_transaction_repository
    ),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    follow_up_repo: FollowUpRepository = Depends(get_follow_up_repository),
) -> CancelOrderUseCase:
    return CancelOrderUseCase(
        order_repo=order_repo,
        inventory_repo=inventory_repo,
        payment_repo=payment_repo,
        gateway=gateway,
        follow_up_repo=follow_up_repo,
    )


async def get_delete_order_use_case(
    order_repo: OrderRepository = Depends(get_order_repository),
    admin_repo: AdminRepository = Depends(get_admin_repository),
) -> DeleteOrderUseCase:
    return DeleteOrderUseCase(order_repo=order_repo, admin_repo=admin_repo)


# Note: ResolveFollowUpUseCase runs inside RetryFollowUpWorkflow with
# workflow proxies, not here. The API only starts the workflow.
