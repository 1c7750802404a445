"""
Memory repository implementations.

Dictionary-backed versions of every store protocol, with the same async
interfaces as the PostgreSQL implementations. Used by the test suite and
for running the API without a database.
"""

from .admin import MemoryAdminRepository
from .follow_up import MemoryFollowUpRepository
from .inventory import MemoryInventoryRepository
from .order import MemoryOrderRepository
from .payment import MemoryPaymentTransactionRepository

__all__ = [
    "MemoryAdminRepository",
    "MemoryFollowUpRepository",
    "MemoryInventoryRepository",
    "MemoryOrderRepository",
    "MemoryPaymentTransactionRepository",
]
