from typing import Dict, List, Tuple
from unittest.mock import AsyncMock, MagicMock

import pytest

from storefront.domain import GatewayRefundOutcome
from storefront.repositories import PaymentGateway
from storefront.repos.memory import (
    MemoryAdminRepository,
    MemoryFollowUpRepository,
    MemoryInventoryRepository,
    MemoryOrderRepository,
    MemoryPaymentTransactionRepository,
)


class RecordingGateway(PaymentGateway):
    """Gateway double that records calls and answers ``refunded``."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, int, Dict[str, str]]] = []
        self.fail_with: str = ""

    async def refund(
        self, payment_id: str, amount_minor: int, notes: Dict[str, str]
    ) -> GatewayRefundOutcome:
        self.calls.append((payment_id, amount_minor, dict(notes)))
        if self.fail_with:
            return GatewayRefundOutcome(
                status="failed",
                reason=self.fail_with,
                raw_response={"error": {"description": self.fail_with}},
            )
        refund_id = f"rfnd_{len(self.calls)}"
        return GatewayRefundOutcome(
            status="refunded",
            refund_id=refund_id,
            raw_response={"id": refund_id, "amount": amount_minor},
        )


@pytest.fixture
def order_repo(admin_repo: MemoryAdminRepository) -> MemoryOrderRepository:
    return MemoryOrderRepository(admin_repo=admin_repo)


@pytest.fixture
def inventory_repo() -> MemoryInventoryRepository:
    return MemoryInventoryRepository()


@pytest.fixture
def payment_repo() -> MemoryPaymentTransactionRepository:
    return MemoryPaymentTransactionRepository()


@pytest.fixture
def admin_repo() -> MemoryAdminRepository:
    return MemoryAdminRepository()


@pytest.fixture
def follow_up_repo() -> MemoryFollowUpRepository:
    return MemoryFollowUpRepository()


@pytest.fixture
def gateway() -> RecordingGateway:
    return RecordingGateway()


@pytest.fixture
def mock_gateway() -> MagicMock:
    mock = MagicMock(spec=PaymentGateway)
    mock.refund = AsyncMock()
    return mock
