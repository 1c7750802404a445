from typing import Dict, Iterator
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from storefront.api.app import app
from storefront.api.dependencies import (
    get_admin_repository,
    get_cancel_order_use_case,
    get_delete_order_use_case,
    get_follow_up_repository,
    get_identity_service,
    get_process_refund_use_case,
    get_settings,
    get_temporal_client,
)
from storefront.config import Settings
from storefront.domain import Identity
from storefront.errors import AuthenticationError
from storefront.repos.memory import (
    MemoryAdminRepository,
    MemoryFollowUpRepository,
    MemoryInventoryRepository,
    MemoryOrderRepository,
    MemoryPaymentTransactionRepository,
)
from storefront.tests.conftest import RecordingGateway
from storefront.usecase import (
    CancelOrderUseCase,
    DeleteOrderUseCase,
    ProcessRefundUseCase,
)

CUSTOMER_TOKEN = "customer-token"
ADMIN_TOKEN = "admin-token"
CUSTOMER = Identity(user_id="user-customer", email="customer@example.com")
ADMIN = Identity(user_id="user-admin", email="admin@example.com")


class TokenTableIdentityService:
    """Resolves a fixed set of bearer tokens."""

    def __init__(self, tokens: Dict[str, Identity]) -> None:
        self.tokens = tokens

    async def resolve_token(self, token: str) -> Identity:
        identity = self.tokens.get(token)
        if identity is None:
            raise AuthenticationError(
                "Authentication error: invalid or expired token"
            )
        return identity


class Backend:
    """Memory stores and doubles shared by one test's requests."""

    def __init__(self) -> None:
        self.admin_repo = MemoryAdminRepository([ADMIN.user_id])
        self.order_repo = MemoryOrderRepository(admin_repo=self.admin_repo)
        self.inventory_repo = MemoryInventoryRepository()
        self.payment_repo = MemoryPaymentTransactionRepository()
        self.follow_up_repo = MemoryFollowUpRepository()
        self.gateway = RecordingGateway()
        self.temporal_client = AsyncMock()
        self.identity_service = TokenTableIdentityService(
            {CUSTOMER_TOKEN: CUSTOMER, ADMIN_TOKEN: ADMIN}
        )


@pytest.fixture
def backend() -> Backend:
    return Backend()


@pytest.fixture
def client(backend: Backend) -> Iterator[TestClient]:
    overrides = {
        get_identity_service: lambda: backend.identity_service,
        get_admin_repository: lambda: backend.admin_repo,
        get_follow_up_repository: lambda: backend.follow_up_repo,
        get_temporal_client: lambda: backend.temporal_client,
        get_settings: lambda: Settings(task_queue="test-queue"),
        get_process_refund_use_case: lambda: ProcessRefundUseCase(
            backend.order_repo, backend.payment_repo, backend.gateway
        ),
        get_cancel_order_use_case: lambda: CancelOrderUseCase(
            backend.order_repo,
            backend.inventory_repo,
            backend.payment_repo,
            backend.gateway,
            backend.follow_up_repo,
        ),
        get_delete_order_use_case: lambda: DeleteOrderUseCase(
            backend.order_repo, backend.admin_repo
        ),
    }
    app.dependency_overrides.update(overrides)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides = {}


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
