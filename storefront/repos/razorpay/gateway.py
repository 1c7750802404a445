"""
Razorpay implementation of PaymentGateway.

Calls ``POST {api_base}/payments/{payment_id}/refund`` with HTTP basic auth
(key id / key secret). Gateway-level rejections come back as a ``failed``
outcome; transport failures raise, because the refund may or may not have
been applied on the gateway side.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from storefront.domain import GatewayRefundOutcome
from storefront.errors import ConfigurationError, RefundFailedError
from storefront.repositories import PaymentGateway

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.razorpay.com/v1"


class RazorpayPaymentGateway(PaymentGateway):
    def __init__(
        self,
        client: httpx.AsyncClient,
        key_id: Optional[str],
        key_secret: Optional[str],
        api_base: str = DEFAULT_API_BASE,
    ) -> None:
        self.client = client
        self.key_id = key_id
        self.key_secret = key_secret
        self.api_base = api_base.rstrip("/")
        logger.debug(
            "Initialized RazorpayPaymentGateway",
            extra={
                "api_base": self.api_base,
                "configured": bool(key_id and key_secret),
            },
        )

    async def refund(
        self, payment_id: str, amount_minor: int, notes: Dict[str, str]
    ) -> GatewayRefundOutcome:
        if not self.key_id or not self.key_secret:
            logger.error("Razorpay credentials not configured")
            raise ConfigurationError("Razorpay credentials not configured")

        url = f"{self.api_base}/payments/{payment_id}/refund"
        logger.info(
            "Requesting Razorpay refund",
            extra={"payment_id": payment_id, "amount_minor": amount_minor},
        )

        try:
            response = await self.client.post(
                url,
                json={"amount": amount_minor, "notes": notes},
                auth=(self.key_id, self.key_secret),
            )
        except httpx.HTTPError as e:
            logger.error(
                "Razorpay refund request failed",
                extra={
                    "payment_id": payment_id,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
            )
            raise RefundFailedError(
                f"Payment gateway unreachable: {e}"
            ) from e

        body = self._json_body(response)

        if response.is_success and body.get("id"):
            logger.info(
                "Razorpay refund created",
                extra={"payment_id": payment_id, "refund_id": body["id"]},
            )
            return GatewayRefundOutcome(
                status="refunded", refund_id=body["id"], raw_response=body
            )

        error = body.get("error") or {}
        reason = (
            error.get("description") if isinstance(error, dict) else None
        ) or "Unknown error"
        logger.warning(
            "Razorpay refund rejected",
            extra={
                "payment_id": payment_id,
                "http_status": response.status_code,
                "gateway_reason": reason,
            },
        )
        return GatewayRefundOutcome(
            status="failed", reason=reason, raw_response=body
        )

    @staticmethod
    def _json_body(response: httpx.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}
