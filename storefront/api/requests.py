"""
Pydantic models for API requests.
These define the contract between the API and the storefront clients, which
send camelCase JSON bodies.
"""

import re
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
MAX_REFUND_AMOUNT = Decimal("1000000")
MAX_REASON_LENGTH = 500
DEFAULT_REFUND_REASON = "Refund requested"


class _OrderRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_id: Optional[str] = Field(
        default=None, alias="orderId", validate_default=True
    )

    @field_validator("order_id")
    @classmethod
    def order_id_is_required(cls, v: Optional[str]) -> str:
        if not v:
            raise ValueError("Order ID is required")
        return v


class CancelOrderRequest(_OrderRequest):
    """Request model for cancelling an order."""

    reason: Optional[str] = None
    cancelled_by: Optional[str] = Field(default=None, alias="cancelledBy")


class DeleteOrderRequest(_OrderRequest):
    """Request model for the administrative soft delete."""

    reason: Optional[str] = None


class ProcessRefundRequest(BaseModel):
    """Request model for a direct refund.

    Stricter than the other bodies because it moves money: the order ID
    must be a UUID and the amount is capped.
    """

    model_config = ConfigDict(populate_by_name=True)

    order_id: Optional[str] = Field(
        default=None, alias="orderId", validate_default=True
    )
    amount: Optional[Decimal] = Field(default=None, validate_default=True)
    reason: Optional[str] = Field(default=None, validate_default=True)

    @field_validator("order_id")
    @classmethod
    def order_id_must_be_uuid(cls, v: Optional[str]) -> str:
        if not v:
            raise ValueError("Invalid order ID")
        if not UUID_PATTERN.match(v):
            raise ValueError("Invalid order ID format")
        return v

    @field_validator("amount", mode="before")
    @classmethod
    def amount_must_be_a_number(cls, v: Any) -> Any:
        # Lax Decimal parsing would accept "500"; clients must send a number
        if v is None:
            return v
        if isinstance(v, bool) or not isinstance(v, (int, float, Decimal)):
            raise ValueError("Invalid refund amount")
        return v

    @field_validator("amount")
    @classmethod
    def amount_must_be_in_range(cls, v: Optional[Decimal]) -> Decimal:
        if v is None or v <= 0:
            raise ValueError("Invalid refund amount")
        if v > MAX_REFUND_AMOUNT:
            raise ValueError("Refund amount too large")
        return v

    @field_validator("reason")
    @classmethod
    def reason_must_be_short(cls, v: Optional[str]) -> str:
        if v and len(v) > MAX_REASON_LENGTH:
            raise ValueError("Reason too long")
        return v or DEFAULT_REFUND_REASON
