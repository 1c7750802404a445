"""PostgreSQL implementations of the store repositories."""

from .admin import PostgreSQLAdminRepository
from .follow_up import PostgreSQLFollowUpRepository
from .inventory import PostgreSQLInventoryRepository
from .order import PostgreSQLOrderRepository
from .payment import PostgreSQLPaymentTransactionRepository

__all__ = [
    "PostgreSQLAdminRepository",
    "PostgreSQLFollowUpRepository",
    "PostgreSQLInventoryRepository",
    "PostgreSQLOrderRepository",
    "PostgreSQLPaymentTransactionRepository",
]
