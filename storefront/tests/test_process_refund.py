from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import pytest_asyncio

from storefront.domain import GatewayRefundOutcome
from storefront.errors import (
    ConfigurationError,
    NoPaymentFoundError,
    NotFoundError,
    RefundFailedError,
    RequestValidationFailed,
    UpdateFailedError,
)
from storefront.repos.memory import (
    MemoryOrderRepository,
    MemoryPaymentTransactionRepository,
)
from storefront.tests.conftest import RecordingGateway
from storefront.tests.factories import OrderFactory, PaymentTransactionFactory
from storefront.usecase import ProcessRefundUseCase, to_minor_units


@pytest_asyncio.fixture
async def paid_order(
    order_repo: MemoryOrderRepository,
    payment_repo: MemoryPaymentTransactionRepository,
):  # type: ignore[no-untyped-def]
    order = OrderFactory(total_amount=Decimal("500.00"))
    order_repo.add(order)
    await payment_repo.add_transaction(
        PaymentTransactionFactory(
            order_id=order.order_id,
            amount=Decimal("500.00"),
            gateway_payment_id="pay_ABC123",
        )
    )
    return order


@pytest.mark.parametrize(
    "amount,expected",
    [
        (Decimal("500.00"), 50000),
        (Decimal("0.01"), 1),
        (Decimal("10.005"), 1001),
        (Decimal("19.994"), 1999),
    ],
)
def test_to_minor_units_rounds_half_up(amount: Decimal, expected: int) -> None:
    assert to_minor_units(amount) == expected


@pytest.mark.asyncio
async def test_successful_refund_updates_order_and_appends_transaction(
    paid_order,  # type: ignore[no-untyped-def]
    order_repo: MemoryOrderRepository,
    payment_repo: MemoryPaymentTransactionRepository,
    gateway: RecordingGateway,
) -> None:
    use_case = ProcessRefundUseCase(order_repo, payment_repo, gateway)

    result = await use_case.process_refund(
        paid_order.order_id, Decimal("200.00"), "Damaged in transit"
    )

    assert result.refund_id == "rfnd_1"
    assert result.amount == Decimal("200.00")
    assert gateway.calls == [
        (
            "pay_ABC123",
            20000,
            {"reason": "Damaged in transit", "order_id": paid_order.order_id},
        )
    ]

    stored = await order_repo.get_order(paid_order.order_id)
    assert stored is not None
    assert stored.refund_status == "completed"
    assert stored.refund_amount == Decimal("200.00")
    assert stored.refund_reference == "rfnd_1"
    assert stored.refund_processed_at is not None

    transactions = await payment_repo.list_for_order(paid_order.order_id)
    assert len(transactions) == 2
    original, refund = transactions
    assert original.amount == Decimal("500.00")
    assert refund.amount == Decimal("-200.00")
    assert refund.status == "completed"
    assert refund.payment_method == "razorpay_refund"
    assert refund.gateway_payment_id == "rfnd_1"
    assert refund.gateway_response == {"id": "rfnd_1", "amount": 20000}
    assert refund.merchant_transaction_id.startswith("refund_")


@pytest.mark.asyncio
async def test_two_refunds_produce_two_rows_and_two_gateway_calls(
    paid_order,  # type: ignore[no-untyped-def]
    order_repo: MemoryOrderRepository,
    payment_repo: MemoryPaymentTransactionRepository,
    gateway: RecordingGateway,
) -> None:
    use_case = ProcessRefundUseCase(order_repo, payment_repo, gateway)

    await use_case.process_refund(paid_order.order_id, Decimal("100.00"))
    await use_case.process_refund(paid_order.order_id, Decimal("100.00"))

    assert len(gateway.calls) == 2
    # The second call still targets the original capture, not refund 1
    assert {call[0] for call in gateway.calls} == {"pay_ABC123"}
    refunds = [
        t
        for t in await payment_repo.list_for_order(paid_order.order_id)
        if t.amount < 0
    ]
    assert len(refunds) == 2
    assert (
        refunds[0].merchant_transaction_id
        != refunds[1].merchant_transaction_id
    )


@pytest.mark.asyncio
async def test_gateway_rejection_marks_failed_and_raises(
    paid_order,  # type: ignore[no-untyped-def]
    order_repo: MemoryOrderRepository,
    payment_repo: MemoryPaymentTransactionRepository,
    gateway: RecordingGateway,
) -> None:
    gateway.fail_with = "The refund amount provided is greater than amount captured"
    use_case = ProcessRefundUseCase(order_repo, payment_repo, gateway)

    with pytest.raises(RefundFailedError) as exc_info:
        await use_case.process_refund(paid_order.order_id, Decimal("900.00"))

    assert exc_info.value.message == (
        "Refund failed: The refund amount provided is greater than amount "
        "captured"
    )
    stored = await order_repo.get_order(paid_order.order_id)
    assert stored is not None
    assert stored.refund_status == "failed"
    assert len(await payment_repo.list_for_order(paid_order.order_id)) == 1


@pytest.mark.asyncio
async def test_rejection_without_description_reports_unknown_error(
    paid_order,  # type: ignore[no-untyped-def]
    order_repo: MemoryOrderRepository,
    payment_repo: MemoryPaymentTransactionRepository,
    mock_gateway: MagicMock,
) -> None:
    mock_gateway.refund.return_value = GatewayRefundOutcome(status="failed")
    use_case = ProcessRefundUseCase(order_repo, payment_repo, mock_gateway)

    with pytest.raises(RefundFailedError, match="Unknown error"):
        await use_case.process_refund(paid_order.order_id, Decimal("1.00"))


@pytest.mark.asyncio
async def test_unknown_order_raises_not_found(
    order_repo: MemoryOrderRepository,
    payment_repo: MemoryPaymentTransactionRepository,
    gateway: RecordingGateway,
) -> None:
    use_case = ProcessRefundUseCase(order_repo, payment_repo, gateway)

    with pytest.raises(NotFoundError):
        await use_case.process_refund("nope", Decimal("1.00"))
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_order_without_gateway_payment_raises_no_payment_found(
    order_repo: MemoryOrderRepository,
    payment_repo: MemoryPaymentTransactionRepository,
    gateway: RecordingGateway,
) -> None:
    order = OrderFactory()
    order_repo.add(order)
    await payment_repo.add_transaction(
        PaymentTransactionFactory(
            order_id=order.order_id, gateway_payment_id=None
        )
    )
    use_case = ProcessRefundUseCase(order_repo, payment_repo, gateway)

    with pytest.raises(NoPaymentFoundError):
        await use_case.process_refund(order.order_id, Decimal("1.00"))

    stored = await order_repo.get_order(order.order_id)
    assert stored is not None
    assert stored.refund_status == "none"
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_missing_credentials_leave_processing_marker(
    paid_order,  # type: ignore[no-untyped-def]
    order_repo: MemoryOrderRepository,
    payment_repo: MemoryPaymentTransactionRepository,
    mock_gateway: MagicMock,
) -> None:
    mock_gateway.refund = AsyncMock(
        side_effect=ConfigurationError("Razorpay credentials not configured")
    )
    use_case = ProcessRefundUseCase(order_repo, payment_repo, mock_gateway)

    with pytest.raises(ConfigurationError):
        await use_case.process_refund(paid_order.order_id, Decimal("5.00"))

    stored = await order_repo.get_order(paid_order.order_id)
    assert stored is not None
    assert stored.refund_status == "processing"
    assert stored.refund_amount == Decimal("5.00")


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [Decimal("0.004"), Decimal("0.0001")])
async def test_amount_below_one_paisa_is_rejected_before_any_write(
    paid_order,  # type: ignore[no-untyped-def]
    order_repo: MemoryOrderRepository,
    payment_repo: MemoryPaymentTransactionRepository,
    gateway: RecordingGateway,
    amount: Decimal,
) -> None:
    use_case = ProcessRefundUseCase(order_repo, payment_repo, gateway)

    with pytest.raises(RequestValidationFailed, match="Invalid refund amount"):
        await use_case.process_refund(paid_order.order_id, amount)

    assert gateway.calls == []
    stored = await order_repo.get_order(paid_order.order_id)
    assert stored is not None
    assert stored.refund_status == "none"


@pytest.mark.asyncio
async def test_lost_completion_write_reports_gateway_refund_id(
    paid_order,  # type: ignore[no-untyped-def]
    order_repo: MemoryOrderRepository,
    payment_repo: MemoryPaymentTransactionRepository,
    gateway: RecordingGateway,
) -> None:
    use_case = ProcessRefundUseCase(order_repo, payment_repo, gateway)
    original_update = order_repo.update_refund_state

    async def fail_on_completed(order_id, update):  # type: ignore[no-untyped-def]
        if update.refund_status == "completed":
            raise RuntimeError("connection reset")
        await original_update(order_id, update)

    with patch.object(
        order_repo, "update_refund_state", AsyncMock(side_effect=fail_on_completed)
    ):
        with pytest.raises(UpdateFailedError, match="rfnd_1"):
            await use_case.process_refund(paid_order.order_id, Decimal("100"))

    stored = await order_repo.get_order(paid_order.order_id)
    assert stored is not None
    assert stored.refund_status == "processing"
    assert len(await payment_repo.list_for_order(paid_order.order_id)) == 1
