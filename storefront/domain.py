"""
Domain models defined as Pydantic models.
These are pure data structures with validation.
"""

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)
from typing import Any, Dict, Optional, List, Literal
from decimal import Decimal
from datetime import datetime, timezone


OrderStatus = Literal[
    "pending",
    "confirmed",
    "processing",
    "shipped",
    "delivered",
    "cancelled",
    "deleted",
]
PaymentStatus = Literal["pending", "completed", "failed"]
RefundStatus = Literal["none", "processing", "completed", "failed"]

# Orders in these states have left the warehouse
SHIPPED_STATUSES = ("shipped", "delivered")
# Statuses a cancellation may not start from
NON_CANCELLABLE_STATUSES = ("shipped", "delivered", "cancelled", "deleted")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderItem(BaseModel):
    """One product-quantity-price line of an order (historical record)."""

    model_config = ConfigDict(frozen=True)

    product_id: str
    quantity: int
    price: Decimal

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Quantity must be positive")
        return v

    @field_validator("price")
    @classmethod
    def price_must_not_be_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Price must not be negative")
        return v


class Order(BaseModel):
    order_id: str
    user_id: Optional[str] = None
    status: OrderStatus = "pending"
    payment_status: PaymentStatus = "pending"
    total_amount: Decimal
    items: List[OrderItem] = Field(default_factory=list)

    refund_status: RefundStatus = "none"
    refund_amount: Optional[Decimal] = None
    refund_reference: Optional[str] = None
    refund_processed_at: Optional[datetime] = None

    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[str] = None

    deleted_at: Optional[datetime] = None
    deleted_by: Optional[str] = None
    deletion_reason: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("total_amount")
    @classmethod
    def total_amount_must_not_be_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Total amount must not be negative")
        return v

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class InventoryMovement(BaseModel):
    """Append-only ledger entry recording a stock change and its cause."""

    model_config = ConfigDict(frozen=True)

    product_id: str
    movement_type: Literal["in", "out"]
    quantity: int
    reason: str
    reference_id: Optional[str] = None
    reference_type: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Movement quantity must be positive")
        return v


class PaymentTransaction(BaseModel):
    """A payment or refund row. Refunds carry a negative amount."""

    transaction_id: Optional[str] = None
    order_id: str
    amount: Decimal
    status: str
    payment_method: str
    merchant_transaction_id: str
    gateway_order_id: Optional[str] = None
    gateway_payment_id: Optional[str] = None
    gateway_response: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None


class AdminActivityLog(BaseModel):
    log_id: Optional[str] = None
    admin_user_id: str
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None


class Identity(BaseModel):
    """Caller resolved from a bearer token by the auth service."""

    user_id: str
    email: Optional[str] = None


class GatewayRefundOutcome(BaseModel):
    """Result of a refund call against the payment gateway."""

    status: Literal["refunded", "failed"]
    refund_id: Optional[str] = None
    reason: Optional[str] = None
    raw_response: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("refund_id")
    @classmethod
    def refund_id_must_be_present_if_refunded(
        cls, v: Optional[str], info
    ) -> Optional[str]:
        if info.data.get("status") == "refunded" and v is None:
            raise ValueError(
                "Refund ID must be present if status is 'refunded'"
            )
        return v


class RefundStateUpdate(BaseModel):
    """Partial update of an order's refund fields.

    ``mark_processed`` asks the store to stamp ``refund_processed_at``; the
    store owns the clock so that use cases stay deterministic.
    """

    refund_status: RefundStatus
    refund_amount: Optional[Decimal] = None
    refund_reference: Optional[str] = None
    mark_processed: bool = False


class RefundResult(BaseModel):
    order_id: str
    refund_id: str
    amount: Decimal


class CancellationResult(BaseModel):
    """Outcome of a cancellation once the status change has committed.

    Inventory and refund effects are best-effort; anything that failed is
    listed here and recorded as a follow-up.
    """

    order_id: str
    restored_product_ids: List[str] = Field(default_factory=list)
    failed_product_ids: List[str] = Field(default_factory=list)
    refund_attempted: bool = False
    refund_id: Optional[str] = None
    follow_up_ids: List[str] = Field(default_factory=list)


class DeletionResult(BaseModel):
    order_id: str
    previous_status: OrderStatus


class FollowUp(BaseModel):
    """Dead-letter entry for a secondary effect that failed during
    cancellation. Surfaced to admin tooling and retried on request."""

    follow_up_id: str
    order_id: str
    kind: Literal["inventory_restore", "refund"]
    product_id: Optional[str] = None
    quantity: Optional[int] = None
    amount: Optional[Decimal] = None
    actor_id: Optional[str] = None
    status: Literal["open", "resolved"] = "open"
    attempts: int = 0
    last_error: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v <= 0:
            raise ValueError("Quantity must be positive")
        return v
