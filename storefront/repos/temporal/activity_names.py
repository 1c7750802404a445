"""
Activity name bases shared by the worker registrations and the workflow
proxies.

Kept in their own module so that ``proxies`` can import them without
pulling asyncpg and httpx code into the workflow sandbox.
"""

ORDER_ACTIVITY_BASE = "storefront.order_repo"
INVENTORY_ACTIVITY_BASE = "storefront.inventory_repo"
PAYMENT_TRANSACTION_ACTIVITY_BASE = "storefront.payment_transaction_repo"
FOLLOW_UP_ACTIVITY_BASE = "storefront.follow_up_repo"
PAYMENT_GATEWAY_ACTIVITY_BASE = "storefront.payment_gateway"

__all__ = [
    "ORDER_ACTIVITY_BASE",
    "INVENTORY_ACTIVITY_BASE",
    "PAYMENT_TRANSACTION_ACTIVITY_BASE",
    "FOLLOW_UP_ACTIVITY_BASE",
    "PAYMENT_GATEWAY_ACTIVITY_BASE",
]
