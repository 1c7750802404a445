"""
Pydantic models for API responses.
Field names are snake_case in Python and camelCase on the wire.
"""

from typing import List

from pydantic import BaseModel, Field

from storefront.domain import FollowUp


class OrderActionResponse(BaseModel):
    """Response for cancel-order and delete-order."""

    success: bool = True
    message: str
    order_id: str = Field(serialization_alias="orderId")


class RefundResponse(BaseModel):
    success: bool = True
    message: str = "Refund processed successfully"
    refund_id: str = Field(serialization_alias="refundId")
    amount: float


class ErrorResponse(BaseModel):
    error: str


class HealthCheckResponse(BaseModel):
    status: str
    version: str


class FollowUpListResponse(BaseModel):
    follow_ups: List[FollowUp]


class RetryFollowUpResponse(BaseModel):
    follow_up_id: str
    workflow_id: str
    status: str
