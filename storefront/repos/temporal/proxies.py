"""
Workflow-side implementations of the store protocols.

Used *inside* Temporal workflows: every call becomes an activity, which
keeps the workflow deterministic. Errors that retrying cannot fix are
marked non-retryable; the gateway refund runs exactly once per call
because it moves money.
"""

from util.temporal.decorators import temporal_workflow_proxy
from storefront.repositories import (
    FollowUpRepository,
    InventoryRepository,
    OrderRepository,
    PaymentGateway,
    PaymentTransactionRepository,
)
from storefront.repos.temporal.activity_names import (
    FOLLOW_UP_ACTIVITY_BASE,
    INVENTORY_ACTIVITY_BASE,
    ORDER_ACTIVITY_BASE,
    PAYMENT_GATEWAY_ACTIVITY_BASE,
    PAYMENT_TRANSACTION_ACTIVITY_BASE,
)

NON_RETRYABLE_ERRORS = [
    "NotFoundError",
    "ConfigurationError",
    "DomainValidationError",
]


@temporal_workflow_proxy(
    ORDER_ACTIVITY_BASE,
    default_timeout_seconds=10,
    non_retryable_error_types=NON_RETRYABLE_ERRORS,
)
class WorkflowOrderRepositoryProxy(OrderRepository):
    pass


@temporal_workflow_proxy(
    INVENTORY_ACTIVITY_BASE,
    default_timeout_seconds=10,
    non_retryable_error_types=NON_RETRYABLE_ERRORS,
)
class WorkflowInventoryRepositoryProxy(InventoryRepository):
    pass


@temporal_workflow_proxy(
    PAYMENT_TRANSACTION_ACTIVITY_BASE,
    default_timeout_seconds=10,
    non_retryable_error_types=NON_RETRYABLE_ERRORS,
)
class WorkflowPaymentTransactionRepositoryProxy(PaymentTransactionRepository):
    pass


@temporal_workflow_proxy(
    FOLLOW_UP_ACTIVITY_BASE,
    default_timeout_seconds=10,
    non_retryable_error_types=NON_RETRYABLE_ERRORS,
)
class WorkflowFollowUpRepositoryProxy(FollowUpRepository):
    pass


@temporal_workflow_proxy(
    PAYMENT_GATEWAY_ACTIVITY_BASE,
    default_timeout_seconds=60,
    fail_fast_methods=["refund"],
)
class WorkflowPaymentGatewayProxy(PaymentGateway):
    pass


__all__ = [
    "WorkflowOrderRepositoryProxy",
    "WorkflowInventoryRepositoryProxy",
    "WorkflowPaymentTransactionRepositoryProxy",
    "WorkflowFollowUpRepositoryProxy",
    "WorkflowPaymentGatewayProxy",
]
