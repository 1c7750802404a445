"""
usecase logic must be clean, without direct dependencies.
dependencies are injected via repository instances.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
import logging

from storefront.domain import (
    AdminActivityLog,
    CancellationResult,
    DeletionResult,
    FollowUp,
    Identity,
    InventoryMovement,
    Order,
    PaymentTransaction,
    RefundResult,
    RefundStateUpdate,
    SHIPPED_STATUSES,
)
from storefront.errors import (
    AuthorizationError,
    InvalidStateError,
    NoPaymentFoundError,
    NotFoundError,
    RefundFailedError,
    RequestValidationFailed,
    UpdateFailedError,
)
from storefront.repositories import (
    AdminRepository,
    FollowUpRepository,
    InventoryRepository,
    OrderRepository,
    PaymentGateway,
    PaymentTransactionRepository,
)
from storefront.validation import (
    ensure_admin_repository,
    ensure_follow_up_repository,
    ensure_inventory_repository,
    ensure_order_repository,
    ensure_payment_gateway,
    ensure_payment_transaction_repository,
)

logger = logging.getLogger(__name__)

CANCELLATION_REASON = "Order cancelled"
CANCELLATION_MOVEMENT_REASON = "Order cancellation"
CANCELLATION_REFERENCE_TYPE = "order_cancellation"
CANCELLATION_REFUND_REASON = "Order cancellation"
DELETION_REASON = "Administrative deletion"
REFUND_PAYMENT_METHOD = "razorpay_refund"
RETRYABLE_REFUND_STATUSES = ("none", "failed")


def to_minor_units(amount: Decimal) -> int:
    """Convert a rupee amount to paise, rounding half up."""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def cancellation_blocker(order: Order) -> Optional[InvalidStateError]:
    """Return the error that forbids cancelling ``order``, if any.

    Checked in order: shipped/delivered, already cancelled, deleted.
    """
    if order.status in SHIPPED_STATUSES:
        return InvalidStateError(
            "terminal-shipped",
            "Cannot cancel orders that have been shipped or delivered",
        )
    if order.status == "cancelled":
        return InvalidStateError(
            "already-cancelled", "Order is already cancelled"
        )
    if order.status == "deleted" or order.is_deleted:
        return InvalidStateError("already-deleted", "Order is deleted")
    return None


class ProcessRefundUseCase:
    """
    Use case for refunding a captured payment through the gateway.

    The refund is recorded in two places: the order's refund fields and a
    new negative-amount payment transaction. The original payment row is
    never touched.

    There is no idempotency guard: running it twice for the same order
    calls the gateway twice and writes two refund transactions. Callers are
    expected to invoke it at most once per refund they want.
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        payment_repo: PaymentTransactionRepository,
        gateway: PaymentGateway,
    ) -> None:
        self.order_repo = ensure_order_repository(order_repo)
        self.payment_repo = ensure_payment_transaction_repository(
            payment_repo
        )
        self.gateway = ensure_payment_gateway(gateway)

    async def process_refund(
        self, order_id: str, amount: Decimal, reason: Optional[str] = None
    ) -> RefundResult:
        """
        Refund ``amount`` of an order's captured payment.

        This method:
        1. Loads the order and its original gateway payment.
        2. Marks the order ``refund_status=processing`` before the gateway
           call, so an interrupted call leaves a visible marker.
        3. Calls the gateway with the amount in minor units.
        4. Records the outcome on the order and, on success, inserts the
           refund transaction.

        Raises:
            RequestValidationFailed: amount rounds to zero minor units
            NotFoundError: unknown order
            NoPaymentFoundError: no gateway payment to refund
            RefundFailedError: the gateway rejected the refund
            UpdateFailedError: the gateway refunded but the order update
                failed
            ConfigurationError: gateway credentials missing
        """
        logger.info(
            "Processing refund",
            extra={
                "order_id": order_id,
                "amount": str(amount),
                "reason": reason,
            },
        )

        amount_minor = to_minor_units(amount)
        if amount_minor <= 0:
            raise RequestValidationFailed("Invalid refund amount")

        order = await self.order_repo.get_order(order_id)
        if order is None:
            logger.warning(
                "Refund failed: order not found",
                extra={"order_id": order_id},
            )
            raise NotFoundError(f"Order not found: {order_id}")

        payment = await self._find_gateway_payment(order_id)
        if payment is None or payment.gateway_payment_id is None:
            logger.warning(
                "Refund failed: no gateway payment on order",
                extra={"order_id": order_id},
            )
            raise NoPaymentFoundError(
                "No valid payment transaction found for refund"
            )

        await self.order_repo.update_refund_state(
            order_id,
            RefundStateUpdate(refund_status="processing", refund_amount=amount),
        )

        logger.debug(
            "Calling payment gateway refund",
            extra={
                "order_id": order_id,
                "payment_id": payment.gateway_payment_id,
                "amount_minor": amount_minor,
            },
        )
        outcome = await self.gateway.refund(
            payment.gateway_payment_id,
            amount_minor,
            {"reason": reason or "Order refund", "order_id": order_id},
        )

        if outcome.status == "failed":
            logger.warning(
                "Gateway rejected refund",
                extra={
                    "order_id": order_id,
                    "gateway_reason": outcome.reason,
                },
            )
            await self.order_repo.update_refund_state(
                order_id, RefundStateUpdate(refund_status="failed")
            )
            raise RefundFailedError(
                f"Refund failed: {outcome.reason or 'Unknown error'}"
            )

        # refund_id is guaranteed by GatewayRefundOutcome validation
        refund_id = outcome.refund_id or ""
        try:
            await self.order_repo.update_refund_state(
                order_id,
                RefundStateUpdate(
                    refund_status="completed",
                    refund_reference=refund_id,
                    mark_processed=True,
                ),
            )
        except Exception as e:
            # Money has moved; the order stays 'processing' and the refund
            # ID only survives in this log line and the error message.
            logger.error(
                "Gateway refund succeeded but recording it failed",
                extra={
                    "order_id": order_id,
                    "refund_id": refund_id,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
                exc_info=True,
            )
            raise UpdateFailedError(
                f"Refund {refund_id} succeeded at the gateway but recording "
                f"it failed: {e}"
            ) from e

        merchant_transaction_id = (
            await self.payment_repo.generate_merchant_transaction_id("refund")
        )
        await self.payment_repo.add_transaction(
            PaymentTransaction(
                order_id=order_id,
                amount=-amount,
                status="completed",
                payment_method=REFUND_PAYMENT_METHOD,
                merchant_transaction_id=merchant_transaction_id,
                gateway_payment_id=refund_id,
                gateway_response=outcome.raw_response,
            )
        )

        logger.info(
            "Refund processed successfully",
            extra={"order_id": order_id, "refund_id": refund_id},
        )
        return RefundResult(order_id=order_id, refund_id=refund_id, amount=amount)

    async def _find_gateway_payment(
        self, order_id: str
    ) -> Optional[PaymentTransaction]:
        # Refund rows also carry a gateway id (the refund's), so only
        # positive-amount rows count as the original capture.
        transactions = await self.payment_repo.list_for_order(order_id)
        for transaction in transactions:
            if transaction.gateway_payment_id and transaction.amount > 0:
                return transaction
        return None


class CancelOrderUseCase:
    """
    Use case for cancelling an order and reversing its side effects.

    The status change is the only step that can fail the cancellation.
    Restoring stock and refunding are secondary effects: each failure is
    logged, recorded as a follow-up for admin tooling, and otherwise
    ignored. The order stays cancelled whatever happens afterwards.

    Architectural Notes:
    - The transition is a conditional update on the current status, so two
      racing cancellations cannot both succeed.
    - Each line item is restored on its own; one failed product does not
      stop the others.
    - The refund runs strictly after the status write, and only when the
      payment was captured.
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        inventory_repo: InventoryRepository,
        payment_repo: PaymentTransactionRepository,
        gateway: PaymentGateway,
        follow_up_repo: FollowUpRepository,
    ) -> None:
        self.order_repo = ensure_order_repository(order_repo)
        self.inventory_repo = ensure_inventory_repository(inventory_repo)
        self.follow_up_repo = ensure_follow_up_repository(follow_up_repo)
        self.refund_use_case = ProcessRefundUseCase(
            order_repo=order_repo,
            payment_repo=payment_repo,
            gateway=gateway,
        )

    async def cancel_order(
        self,
        order_id: str,
        actor: Identity,
        reason: Optional[str] = None,
        cancelled_by: Optional[str] = None,
    ) -> CancellationResult:
        """
        Cancel an order. This involves:
        1. Fetching the order and checking it may still be cancelled.
        2. Setting status to 'cancelled' (conditional on current status).
        3. Restoring stock for every line item, with a ledger entry each.
        4. Refunding the order total if the payment was completed.

        Raises:
            NotFoundError: unknown order
            InvalidStateError: shipped, delivered, cancelled or deleted
            UpdateFailedError: the status write was rejected by the store
        """
        logger.info(
            "Starting order cancellation",
            extra={
                "order_id": order_id,
                "reason": reason,
                "cancelled_by": cancelled_by,
                "actor_id": actor.user_id,
            },
        )

        order = await self.order_repo.get_order(order_id)
        if order is None:
            logger.warning(
                "Cancellation failed: order not found",
                extra={"order_id": order_id},
            )
            raise NotFoundError(f"Order not found: {order_id}")

        blocker = cancellation_blocker(order)
        if blocker is not None:
            logger.info(
                "Cancellation refused for order state",
                extra={
                    "order_id": order_id,
                    "current_status": order.status,
                    "refusal": blocker.reason,
                },
            )
            raise blocker

        try:
            cancelled = await self.order_repo.mark_cancelled(
                order_id,
                reason or CANCELLATION_REASON,
                cancelled_by or actor.user_id,
            )
        except Exception as e:
            logger.error(
                "Failed to write cancellation",
                extra={
                    "order_id": order_id,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
                exc_info=True,
            )
            raise UpdateFailedError(f"Failed to cancel order: {e}") from e

        if cancelled is None:
            # Lost a race: someone changed the order after we read it
            current = await self.order_repo.get_order(order_id)
            error = (
                cancellation_blocker(current) if current is not None else None
            )
            logger.warning(
                "Conditional cancellation matched no row",
                extra={
                    "order_id": order_id,
                    "current_status": current.status if current else None,
                },
            )
            raise error or InvalidStateError(
                "already-cancelled", "Order is already cancelled"
            )

        logger.info(
            "Order status set to cancelled", extra={"order_id": order_id}
        )

        result = CancellationResult(order_id=order_id)

        for item in order.items:
            movement = InventoryMovement(
                product_id=item.product_id,
                movement_type="in",
                quantity=item.quantity,
                reason=CANCELLATION_MOVEMENT_REASON,
                reference_id=order_id,
                reference_type=CANCELLATION_REFERENCE_TYPE,
                created_by=actor.user_id,
            )
            try:
                new_stock = await self.inventory_repo.restore_stock(movement)
                result.restored_product_ids.append(item.product_id)
                logger.debug(
                    "Inventory restored",
                    extra={
                        "order_id": order_id,
                        "product_id": item.product_id,
                        "quantity": item.quantity,
                        "new_stock": new_stock,
                    },
                )
            except Exception as e:
                logger.warning(
                    "Failed to restore inventory",
                    extra={
                        "order_id": order_id,
                        "product_id": item.product_id,
                        "error_type": type(e).__name__,
                        "error_message": str(e),
                    },
                )
                result.failed_product_ids.append(item.product_id)
                await self._record_follow_up(
                    result,
                    kind="inventory_restore",
                    order_id=order_id,
                    actor_id=actor.user_id,
                    error=e,
                    product_id=item.product_id,
                    quantity=item.quantity,
                )

        if order.payment_status == "completed":
            result.refund_attempted = True
            logger.info(
                "Processing refund for cancelled order",
                extra={
                    "order_id": order_id,
                    "amount": str(order.total_amount),
                },
            )
            try:
                refund = await self.refund_use_case.process_refund(
                    order_id, order.total_amount, CANCELLATION_REFUND_REASON
                )
                result.refund_id = refund.refund_id
            except Exception as e:
                # Cancellation stands; the refund needs manual follow-up
                logger.warning(
                    "Refund processing failed",
                    extra={
                        "order_id": order_id,
                        "error_type": type(e).__name__,
                        "error_message": str(e),
                    },
                )
                await self._record_follow_up(
                    result,
                    kind="refund",
                    order_id=order_id,
                    actor_id=actor.user_id,
                    error=e,
                    amount=order.total_amount,
                )

        logger.info(
            "Order cancelled successfully",
            extra={
                "order_id": order_id,
                "restored": len(result.restored_product_ids),
                "restore_failures": len(result.failed_product_ids),
                "refund_id": result.refund_id,
                "follow_ups": len(result.follow_up_ids),
            },
        )
        return result

    async def _record_follow_up(
        self,
        result: CancellationResult,
        kind: str,
        order_id: str,
        actor_id: str,
        error: Exception,
        product_id: Optional[str] = None,
        quantity: Optional[int] = None,
        amount: Optional[Decimal] = None,
    ) -> None:
        try:
            follow_up_id = await self.follow_up_repo.generate_id()
            follow_up = FollowUp(
                follow_up_id=follow_up_id,
                order_id=order_id,
                kind=kind,  # type: ignore[arg-type]
                product_id=product_id,
                quantity=quantity,
                amount=amount,
                actor_id=actor_id,
                last_error=str(error),
            )
            await self.follow_up_repo.save(follow_up)
            result.follow_up_ids.append(follow_up_id)
        except Exception as e:
            # Nothing else to fall back on; the log line is the record
            logger.error(
                "Failed to record cancellation follow-up",
                extra={
                    "order_id": order_id,
                    "kind": kind,
                    "product_id": product_id,
                    "original_error": str(error),
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
                exc_info=True,
            )


class DeleteOrderUseCase:
    """
    Use case for the administrative soft delete of an order.

    Deletion is independent of cancellation: it neither restores stock nor
    refunds. It flips the order to 'deleted' and, in the same store
    transaction, writes an audit entry that holds the full pre-deletion
    record, since no row is ever removed.
    """

    def __init__(
        self, order_repo: OrderRepository, admin_repo: AdminRepository
    ) -> None:
        self.order_repo = ensure_order_repository(order_repo)
        self.admin_repo = ensure_admin_repository(admin_repo)

    async def delete_order(
        self, order_id: str, actor: Identity, reason: Optional[str] = None
    ) -> DeletionResult:
        """
        Soft delete an order on behalf of an active admin.

        Raises:
            AuthorizationError: actor has no active admin role
            NotFoundError: unknown order
            InvalidStateError: order already deleted
            UpdateFailedError: the store rejected the delete or the audit
                entry; neither is written then
        """
        logger.info(
            "Starting order deletion",
            extra={
                "order_id": order_id,
                "reason": reason,
                "actor_id": actor.user_id,
            },
        )

        if not await self.admin_repo.is_active_admin(actor.user_id):
            logger.warning(
                "Order deletion refused: actor is not an admin",
                extra={"order_id": order_id, "actor_id": actor.user_id},
            )
            raise AuthorizationError("Only administrators can delete orders")

        order = await self.order_repo.get_order(order_id)
        if order is None:
            raise NotFoundError(f"Order not found: {order_id}")

        if order.is_deleted:
            raise InvalidStateError(
                "already-deleted", "Order is already deleted"
            )

        deletion_reason = reason or DELETION_REASON
        snapshot = order.model_dump(mode="json")
        entry = AdminActivityLog(
            admin_user_id=actor.user_id,
            action="delete_order",
            resource_type="order",
            resource_id=order_id,
            details={
                "order_total": snapshot["total_amount"],
                "order_status": order.status,
                "deletion_reason": deletion_reason,
                "original_order_data": snapshot,
            },
        )
        try:
            # Status flip and audit entry commit together
            deleted = await self.order_repo.mark_deleted(
                order_id, deletion_reason, actor.user_id, entry
            )
        except Exception as e:
            logger.error(
                "Failed to write order deletion",
                extra={
                    "order_id": order_id,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
                exc_info=True,
            )
            raise UpdateFailedError(f"Failed to delete order: {e}") from e

        if deleted is None:
            raise InvalidStateError(
                "already-deleted", "Order is already deleted"
            )

        logger.info(
            "Order deleted successfully",
            extra={"order_id": order_id, "previous_status": order.status},
        )
        return DeletionResult(order_id=order_id, previous_status=order.status)


class ResolveFollowUpUseCase:
    """
    Use case for retrying a secondary effect that failed during
    cancellation.

    In workflow contexts this runs with repository proxies that execute each
    call as a Temporal activity, so transient store or gateway failures are
    retried by the activity retry policy. A failure that survives the
    retries is counted on the follow-up and re-raised.
    """

    def __init__(
        self,
        follow_up_repo: FollowUpRepository,
        order_repo: OrderRepository,
        inventory_repo: InventoryRepository,
        payment_repo: PaymentTransactionRepository,
        gateway: PaymentGateway,
    ) -> None:
        self.follow_up_repo = ensure_follow_up_repository(follow_up_repo)
        self.order_repo = ensure_order_repository(order_repo)
        self.inventory_repo = ensure_inventory_repository(inventory_repo)
        self.refund_use_case = ProcessRefundUseCase(
            order_repo=order_repo,
            payment_repo=payment_repo,
            gateway=gateway,
        )

    async def resolve(self, follow_up_id: str) -> FollowUp:
        """
        Retry one follow-up.

        Resolved follow-ups are returned unchanged. A refund follow-up whose
        order already shows a completed refund is closed without calling
        the gateway again. The gateway is only called again while the
        order's refund is ``none`` or ``failed``; a ``processing`` refund
        may have gone through, so it raises InvalidStateError and stays
        open for manual reconciliation.
        """
        follow_up = await self.follow_up_repo.get(follow_up_id)
        if follow_up is None:
            raise NotFoundError(f"Follow-up not found: {follow_up_id}")

        if follow_up.status == "resolved":
            logger.info(
                "Follow-up already resolved",
                extra={"follow_up_id": follow_up_id},
            )
            return follow_up

        logger.info(
            "Retrying cancellation follow-up",
            extra={
                "follow_up_id": follow_up_id,
                "order_id": follow_up.order_id,
                "kind": follow_up.kind,
                "attempts": follow_up.attempts,
            },
        )

        try:
            if follow_up.kind == "inventory_restore":
                await self._restore(follow_up)
            else:
                await self._refund(follow_up)
        except Exception as e:
            logger.warning(
                "Follow-up retry failed",
                extra={
                    "follow_up_id": follow_up_id,
                    "order_id": follow_up.order_id,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
            )
            await self.follow_up_repo.save(
                follow_up.model_copy(
                    update={
                        "attempts": follow_up.attempts + 1,
                        "last_error": str(e),
                    }
                )
            )
            raise

        resolved = await self.follow_up_repo.save(
            follow_up.model_copy(
                update={
                    "status": "resolved",
                    "attempts": follow_up.attempts + 1,
                    "last_error": None,
                }
            )
        )
        logger.info(
            "Follow-up resolved",
            extra={"follow_up_id": follow_up_id, "order_id": follow_up.order_id},
        )
        return resolved

    async def _restore(self, follow_up: FollowUp) -> None:
        if follow_up.product_id is None or follow_up.quantity is None:
            raise ValueError(
                f"Follow-up {follow_up.follow_up_id} has no product/quantity"
            )
        await self.inventory_repo.restore_stock(
            InventoryMovement(
                product_id=follow_up.product_id,
                movement_type="in",
                quantity=follow_up.quantity,
                reason=CANCELLATION_MOVEMENT_REASON,
                reference_id=follow_up.order_id,
                reference_type=CANCELLATION_REFERENCE_TYPE,
                created_by=follow_up.actor_id,
            )
        )

    async def _refund(self, follow_up: FollowUp) -> None:
        order = await self.order_repo.get_order(follow_up.order_id)
        if order is None:
            raise NotFoundError(f"Order not found: {follow_up.order_id}")
        if order.refund_status == "completed":
            logger.info(
                "Refund already completed, closing follow-up",
                extra={
                    "follow_up_id": follow_up.follow_up_id,
                    "refund_reference": order.refund_reference,
                },
            )
            return
        if order.refund_status not in RETRYABLE_REFUND_STATUSES:
            # The gateway may already hold this refund
            logger.warning(
                "Refund outcome unknown, leaving follow-up for reconciliation",
                extra={
                    "follow_up_id": follow_up.follow_up_id,
                    "order_id": follow_up.order_id,
                    "refund_status": order.refund_status,
                    "refund_reference": order.refund_reference,
                },
            )
            raise InvalidStateError(
                "refund-in-progress",
                f"Refund for order {follow_up.order_id} is "
                f"{order.refund_status}; reconcile it with the payment "
                "gateway before retrying",
            )
        amount = (
            follow_up.amount
            if follow_up.amount is not None
            else order.total_amount
        )
        await self.refund_use_case.process_refund(
            follow_up.order_id, amount, CANCELLATION_REFUND_REASON
        )
