"""
Repository interfaces defined as Protocols.

All repository operations in this module follow these principles:

- **Store owns the clock and the IDs**: timestamps (``cancelled_at``,
  ``deleted_at``, ``created_at``...) and generated identifiers are produced
  by the implementation, never by the use case. This keeps the use cases
  deterministic, so the same code runs inside a Temporal workflow (where
  these calls become activities) and in a plain request handler.

- **Conditional transitions**: status changes are expressed as conditional
  updates keyed on the current state. Zero rows affected is reported as
  ``None`` and the caller turns it into an invalid-state error.

- **Domain Objects**: Methods accept and return domain objects or primitives,
  never framework-specific types.

- **No idempotency**: unlike a saga step, most writes here are plain appends
  (movements, transactions, activity logs). Calling them twice writes twice.

Use case classes depend on these protocols, not concrete implementations.
"""

from typing import Dict, List, Optional, Protocol, runtime_checkable

from storefront.domain import (
    AdminActivityLog,
    FollowUp,
    GatewayRefundOutcome,
    Identity,
    InventoryMovement,
    Order,
    PaymentTransaction,
    RefundStateUpdate,
)


@runtime_checkable
class OrderRepository(Protocol):
    """Persisted order records with their line items."""

    async def get_order(self, order_id: str) -> Optional[Order]:
        """Retrieve an order, with its line items, by ID.

        Returns:
            The Order domain object if found, None otherwise.
        """
        ...

    async def mark_cancelled(
        self, order_id: str, reason: str, cancelled_by: str
    ) -> Optional[Order]:
        """Transition an order to ``cancelled``.

        The update only applies while the order is still cancellable
        (status not in shipped, delivered, cancelled, deleted). The store
        stamps ``cancelled_at``.

        Returns:
            The updated Order, or None when no row matched the condition
            (the order moved on since it was read).

        Raises:
            Any store error; the caller reports it as an update failure.
        """
        ...

    async def mark_deleted(
        self,
        order_id: str,
        reason: str,
        deleted_by: str,
        audit_entry: AdminActivityLog,
    ) -> Optional[Order]:
        """Soft delete an order: ``status=deleted`` and ``deleted_at=now``.

        Applies only while ``deleted_at`` is unset. ``audit_entry`` is
        appended to the admin activity log in the same store transaction:
        either both writes land or neither does.

        Returns:
            The updated Order, or None when the order was already deleted
            (no audit entry is written then).

        Raises:
            Any store error, with neither write applied.
        """
        ...

    async def update_refund_state(
        self, order_id: str, update: RefundStateUpdate
    ) -> None:
        """Write the refund fields of an order."""
        ...


@runtime_checkable
class InventoryRepository(Protocol):
    """Per-product stock counters and their movement ledger."""

    async def restore_stock(self, movement: InventoryMovement) -> int:
        """Increment a product's stock and append the paired movement.

        Both writes happen in one store transaction, so a stock change is
        never recorded without its ledger entry (or the reverse).

        Args:
            movement: an ``in`` movement naming product and quantity

        Returns:
            The product's stock level after the increment.

        Raises:
            NotFoundError: the product does not exist.
        """
        ...

    async def get_stock(self, product_id: str) -> Optional[int]:
        """Current stock level, or None for an unknown product."""
        ...

    async def list_movements(
        self, reference_id: str
    ) -> List[InventoryMovement]:
        """All movements recorded against a reference (an order ID)."""
        ...


@runtime_checkable
class PaymentTransactionRepository(Protocol):
    """Payment and refund rows. Rows are only ever inserted."""

    async def list_for_order(
        self, order_id: str
    ) -> List[PaymentTransaction]:
        """Transactions of an order, oldest first."""
        ...

    async def add_transaction(
        self, transaction: PaymentTransaction
    ) -> PaymentTransaction:
        """Insert a new transaction row and return it with its ID."""
        ...

    async def generate_merchant_transaction_id(self, prefix: str) -> str:
        """Generate a fresh internal transaction reference such as
        ``refund_1718000000000_3f2a9c1d``."""
        ...


@runtime_checkable
class AdminRepository(Protocol):
    """Admin-role lookups and the append-only admin activity log."""

    async def is_active_admin(self, user_id: str) -> bool:
        """True when the user holds an active admin-role record."""
        ...

    async def log_activity(
        self, entry: AdminActivityLog
    ) -> AdminActivityLog:
        """Append an activity log entry; the store stamps ``created_at``."""
        ...

    async def list_activity(
        self, resource_type: str, resource_id: str
    ) -> List[AdminActivityLog]:
        """Activity entries for one resource, oldest first."""
        ...


@runtime_checkable
class FollowUpRepository(Protocol):
    """Dead-letter list of secondary effects that failed during
    cancellation (stock restores and refunds)."""

    async def generate_id(self) -> str:
        """Generate a unique follow-up identifier."""
        ...

    async def save(self, follow_up: FollowUp) -> FollowUp:
        """Insert or update a follow-up; the store stamps timestamps."""
        ...

    async def get(self, follow_up_id: str) -> Optional[FollowUp]:
        ...

    async def list_open(self) -> List[FollowUp]:
        """Follow-ups still waiting to be resolved, oldest first."""
        ...


@runtime_checkable
class IdentityService(Protocol):
    """Resolves bearer tokens through the external auth service."""

    async def resolve_token(self, token: str) -> Identity:
        """Return the identity behind a bearer token.

        Raises:
            AuthenticationError: token missing, expired or rejected.
        """
        ...


@runtime_checkable
class PaymentGateway(Protocol):
    """The external payment processor's refund API."""

    async def refund(
        self, payment_id: str, amount_minor: int, notes: Dict[str, str]
    ) -> GatewayRefundOutcome:
        """Refund part or all of a captured payment.

        Args:
            payment_id: gateway payment reference of the original capture
            amount_minor: amount in the currency's minor unit (paise)
            notes: free-form tags stored gateway-side for traceability

        Returns:
            ``refunded`` with the gateway refund ID and the raw response, or
            ``failed`` with the gateway's error description.

        Raises:
            ConfigurationError: gateway credentials are not configured.
        """
        ...
