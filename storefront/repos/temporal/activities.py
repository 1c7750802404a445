"""
Temporal activity registrations for the store repositories.

Each class subclasses a production repository and registers its protocol
methods as activities named ``{base}.{method}``. Imported by the worker
only.
"""

from util.temporal.decorators import temporal_activity_registration
from storefront.repos.postgresql import (
    PostgreSQLFollowUpRepository,
    PostgreSQLInventoryRepository,
    PostgreSQLOrderRepository,
    PostgreSQLPaymentTransactionRepository,
)
from storefront.repos.razorpay import RazorpayPaymentGateway
from storefront.repos.temporal.activity_names import (
    FOLLOW_UP_ACTIVITY_BASE,
    INVENTORY_ACTIVITY_BASE,
    ORDER_ACTIVITY_BASE,
    PAYMENT_GATEWAY_ACTIVITY_BASE,
    PAYMENT_TRANSACTION_ACTIVITY_BASE,
)


@temporal_activity_registration(ORDER_ACTIVITY_BASE)
class TemporalPostgreSQLOrderRepository(PostgreSQLOrderRepository):
    pass


@temporal_activity_registration(INVENTORY_ACTIVITY_BASE)
class TemporalPostgreSQLInventoryRepository(PostgreSQLInventoryRepository):
    pass


@temporal_activity_registration(PAYMENT_TRANSACTION_ACTIVITY_BASE)
class TemporalPostgreSQLPaymentTransactionRepository(
    PostgreSQLPaymentTransactionRepository
):
    pass


@temporal_activity_registration(FOLLOW_UP_ACTIVITY_BASE)
class TemporalPostgreSQLFollowUpRepository(PostgreSQLFollowUpRepository):
    pass


@temporal_activity_registration(PAYMENT_GATEWAY_ACTIVITY_BASE)
class TemporalRazorpayPaymentGateway(RazorpayPaymentGateway):
    pass


__all__ = [
    "TemporalPostgreSQLOrderRepository",
    "TemporalPostgreSQLInventoryRepository",
    "TemporalPostgreSQLPaymentTransactionRepository",
    "TemporalPostgreSQLFollowUpRepository",
    "TemporalRazorpayPaymentGateway",
]
