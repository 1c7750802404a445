from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from fastapi.testclient import TestClient

from storefront.api.app import app
from storefront.api.dependencies import get_cancel_order_use_case
from storefront.repos.memory import MemoryInventoryRepository
from storefront.tests.api.conftest import (
    ADMIN_TOKEN,
    CUSTOMER,
    CUSTOMER_TOKEN,
    Backend,
    bearer,
)
from storefront.tests.factories import (
    FollowUpFactory,
    OrderFactory,
    OrderItemFactory,
    PaymentTransactionFactory,
)
from storefront.workflow import RetryFollowUpWorkflow


def add_paid_order(backend: Backend, **overrides):  # type: ignore[no-untyped-def]
    order = OrderFactory(**overrides)
    backend.order_repo.add(order)
    backend.payment_repo._transactions.append(
        PaymentTransactionFactory(
            order_id=order.order_id, amount=order.total_amount
        )
    )
    return order


def test_health_check(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "version": "1.0.0"}


def test_cors_preflight_allows_storefront_headers(client: TestClient) -> None:
    response = client.options(
        "/functions/v1/cancel-order",
        headers={
            "Origin": "https://shop.example.com",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "authorization, content-type",
        },
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
    allowed = response.headers["access-control-allow-headers"].lower()
    assert "authorization" in allowed
    assert "apikey" in allowed


class TestCancelOrderEndpoint:
    def test_cancel_order_success(
        self, client: TestClient, backend: Backend
    ) -> None:
        backend.inventory_repo = MemoryInventoryRepository({"prod-x": 4})
        order = add_paid_order(
            backend,
            items=[OrderItemFactory(product_id="prod-x", quantity=2)],
            total_amount=Decimal("200.00"),
        )

        response = client.post(
            "/functions/v1/cancel-order",
            json={"orderId": order.order_id, "reason": "Changed my mind"},
            headers=bearer(CUSTOMER_TOKEN),
        )

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Order cancelled successfully",
            "orderId": order.order_id,
        }
        assert backend.inventory_repo._stock["prod-x"] == 6
        assert len(backend.gateway.calls) == 1
        stored = backend.order_repo._orders[order.order_id]
        assert stored.status == "cancelled"
        assert stored.cancellation_reason == "Changed my mind"
        assert stored.cancelled_by == CUSTOMER.user_id

    def test_missing_authorization_header_is_401(
        self, client: TestClient
    ) -> None:
        response = client.post(
            "/functions/v1/cancel-order", json={"orderId": "abc"}
        )

        assert response.status_code == 401
        assert response.json() == {"error": "No authorization header provided"}

    def test_unknown_token_is_401(self, client: TestClient) -> None:
        response = client.post(
            "/functions/v1/cancel-order",
            json={"orderId": "abc"},
            headers=bearer("stale-token"),
        )

        assert response.status_code == 401
        assert "invalid or expired token" in response.json()["error"]

    def test_missing_order_id_is_400(self, client: TestClient) -> None:
        response = client.post(
            "/functions/v1/cancel-order",
            json={"reason": "no id"},
            headers=bearer(CUSTOMER_TOKEN),
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Order ID is required"}

    def test_unknown_order_is_404(self, client: TestClient) -> None:
        response = client.post(
            "/functions/v1/cancel-order",
            json={"orderId": "does-not-exist"},
            headers=bearer(CUSTOMER_TOKEN),
        )

        assert response.status_code == 404

    def test_shipped_order_is_409(
        self, client: TestClient, backend: Backend
    ) -> None:
        order = OrderFactory(status="shipped")
        backend.order_repo.add(order)

        response = client.post(
            "/functions/v1/cancel-order",
            json={"orderId": order.order_id},
            headers=bearer(CUSTOMER_TOKEN),
        )

        assert response.status_code == 409
        assert response.json() == {
            "error": "Cannot cancel orders that have been shipped or delivered"
        }
        assert backend.gateway.calls == []

    def test_unexpected_error_is_500_with_message(
        self, client: TestClient
    ) -> None:
        failing = MagicMock()
        failing.cancel_order = AsyncMock(side_effect=RuntimeError("boom"))
        app.dependency_overrides[get_cancel_order_use_case] = lambda: failing

        response = client.post(
            "/functions/v1/cancel-order",
            json={"orderId": "abc"},
            headers=bearer(CUSTOMER_TOKEN),
        )

        assert response.status_code == 500
        assert response.json() == {"error": "boom"}


class TestDeleteOrderEndpoint:
    def test_admin_can_delete(
        self, client: TestClient, backend: Backend
    ) -> None:
        order = OrderFactory()
        backend.order_repo.add(order)

        response = client.post(
            "/functions/v1/delete-order",
            json={"orderId": order.order_id, "reason": "Duplicate"},
            headers=bearer(ADMIN_TOKEN),
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Order deleted successfully"
        assert backend.order_repo._orders[order.order_id].status == "deleted"
        [entry] = backend.admin_repo._activity
        assert entry.resource_id == order.order_id
        assert entry.details["deletion_reason"] == "Duplicate"

    def test_customer_cannot_delete(
        self, client: TestClient, backend: Backend
    ) -> None:
        order = OrderFactory()
        backend.order_repo.add(order)

        response = client.post(
            "/functions/v1/delete-order",
            json={"orderId": order.order_id},
            headers=bearer(CUSTOMER_TOKEN),
        )

        assert response.status_code == 403
        assert response.json() == {
            "error": "Only administrators can delete orders"
        }
        assert backend.order_repo._orders[order.order_id].status == "confirmed"


class TestProcessRefundEndpoint:
    def test_refund_success(
        self, client: TestClient, backend: Backend
    ) -> None:
        order = add_paid_order(backend)

        response = client.post(
            "/functions/v1/process-refund",
            json={"orderId": order.order_id, "amount": 125.5},
            headers=bearer(CUSTOMER_TOKEN),
        )

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Refund processed successfully",
            "refundId": "rfnd_1",
            "amount": 125.5,
        }
        payment_id, amount_minor, notes = backend.gateway.calls[0]
        assert amount_minor == 12550
        assert notes["reason"] == "Refund requested"

    def test_non_uuid_order_id_is_400(self, client: TestClient) -> None:
        response = client.post(
            "/functions/v1/process-refund",
            json={"orderId": "order-1", "amount": 10},
            headers=bearer(CUSTOMER_TOKEN),
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid order ID format"}

    def test_amount_limits_are_400(self, client: TestClient) -> None:
        order_id = "0b7e7dd2-8c2a-4a57-9d2e-5c3c1c7c6b1a"
        for amount, message in [
            (0, "Invalid refund amount"),
            (-5, "Invalid refund amount"),
            ("500", "Invalid refund amount"),
            (True, "Invalid refund amount"),
            (0.001, "Invalid refund amount"),
            (1000001, "Refund amount too large"),
        ]:
            response = client.post(
                "/functions/v1/process-refund",
                json={"orderId": order_id, "amount": amount},
                headers=bearer(CUSTOMER_TOKEN),
            )
            assert response.status_code == 400
            assert response.json() == {"error": message}

    def test_long_reason_is_400(self, client: TestClient) -> None:
        response = client.post(
            "/functions/v1/process-refund",
            json={
                "orderId": "0b7e7dd2-8c2a-4a57-9d2e-5c3c1c7c6b1a",
                "amount": 10,
                "reason": "x" * 501,
            },
            headers=bearer(CUSTOMER_TOKEN),
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Reason too long"}

    def test_order_without_payment_is_422(
        self, client: TestClient, backend: Backend
    ) -> None:
        order = OrderFactory()
        backend.order_repo.add(order)

        response = client.post(
            "/functions/v1/process-refund",
            json={"orderId": order.order_id, "amount": 10},
            headers=bearer(CUSTOMER_TOKEN),
        )

        assert response.status_code == 422
        assert response.json() == {
            "error": "No valid payment transaction found for refund"
        }

    def test_gateway_rejection_is_502(
        self, client: TestClient, backend: Backend
    ) -> None:
        order = add_paid_order(backend)
        backend.gateway.fail_with = "Payment already refunded"

        response = client.post(
            "/functions/v1/process-refund",
            json={"orderId": order.order_id, "amount": 10},
            headers=bearer(CUSTOMER_TOKEN),
        )

        assert response.status_code == 502
        assert response.json() == {
            "error": "Refund failed: Payment already refunded"
        }


class TestFollowUpAdminEndpoints:
    def test_customer_cannot_list_follow_ups(self, client: TestClient) -> None:
        response = client.get(
            "/admin/follow-ups", headers=bearer(CUSTOMER_TOKEN)
        )

        assert response.status_code == 403

    def test_admin_lists_open_follow_ups(
        self, client: TestClient, backend: Backend
    ) -> None:
        open_follow_up = FollowUpFactory()
        backend.follow_up_repo._follow_ups[open_follow_up.follow_up_id] = (
            open_follow_up
        )
        done = FollowUpFactory(status="resolved")
        backend.follow_up_repo._follow_ups[done.follow_up_id] = done

        response = client.get("/admin/follow-ups", headers=bearer(ADMIN_TOKEN))

        assert response.status_code == 200
        follow_ups = response.json()["follow_ups"]
        assert [f["follow_up_id"] for f in follow_ups] == [
            open_follow_up.follow_up_id
        ]

    def test_retry_starts_workflow(
        self, client: TestClient, backend: Backend
    ) -> None:
        follow_up = FollowUpFactory()
        backend.follow_up_repo._follow_ups[follow_up.follow_up_id] = follow_up

        response = client.post(
            f"/admin/follow-ups/{follow_up.follow_up_id}/retry",
            headers=bearer(ADMIN_TOKEN),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "RETRY_STARTED"
        assert body["workflow_id"].startswith(
            f"followup-retry-{follow_up.follow_up_id}-"
        )
        backend.temporal_client.start_workflow.assert_awaited_once()
        call = backend.temporal_client.start_workflow.call_args
        assert call.args == (RetryFollowUpWorkflow.run, follow_up.follow_up_id)
        assert call.kwargs["id"] == body["workflow_id"]
        assert call.kwargs["task_queue"] == "test-queue"

    def test_retry_unknown_follow_up_is_404(
        self, client: TestClient, backend: Backend
    ) -> None:
        response = client.post(
            "/admin/follow-ups/followup-missing/retry",
            headers=bearer(ADMIN_TOKEN),
        )

        assert response.status_code == 404
        backend.temporal_client.start_workflow.assert_not_called()
