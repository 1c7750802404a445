"""
FastAPI application for the order back office.

Exposes the storefront's edge-function routes (cancel-order, delete-order,
process-refund) plus admin tooling for cancellation follow-ups.
"""

import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from temporalio.client import Client

from storefront.api.dependencies import (
    get_admin_repository,
    get_cancel_order_use_case,
    get_container,
    get_current_identity,
    get_delete_order_use_case,
    get_follow_up_repository,
    get_process_refund_use_case,
    get_settings,
    get_temporal_client,
)
from storefront.api.requests import (
    CancelOrderRequest,
    DeleteOrderRequest,
    ProcessRefundRequest,
)
from storefront.api.responses import (
    FollowUpListResponse,
    HealthCheckResponse,
    OrderActionResponse,
    RefundResponse,
    RetryFollowUpResponse,
)
from storefront.config import Settings, setup_logging
from storefront.domain import Identity
from storefront.errors import (
    AuthorizationError,
    NotFoundError,
    RequestValidationFailed,
    StorefrontError,
)
from storefront.repositories import AdminRepository, FollowUpRepository
from storefront.usecase import (
    CancelOrderUseCase,
    DeleteOrderUseCase,
    ProcessRefundUseCase,
)
from storefront.workflow import RetryFollowUpWorkflow

# Setup logging when module is imported
setup_logging()
logger = logging.getLogger(__name__)

ALLOWED_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    await get_container().close()


app = FastAPI(title="Storefront Order Back Office", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=ALLOWED_HEADERS,
)


@app.exception_handler(StorefrontError)
async def storefront_error_handler(
    request: Request, exc: StorefrontError
) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "Request failed",
        extra={
            "path": request.url.path,
            "error_kind": exc.kind,
            "status_code": exc.status_code,
            "error_message": exc.message,
        },
    )
    return JSONResponse(
        status_code=exc.status_code, content={"error": exc.message}
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    message = "Invalid request body"
    if errors:
        first = errors[0]
        ctx_error = (first.get("ctx") or {}).get("error")
        message = str(ctx_error) if ctx_error else str(first.get("msg"))
    return await storefront_error_handler(
        request, RequestValidationFailed(message)
    )


def _unexpected(action: str, e: Exception, **context: object) -> StorefrontError:
    logger.error(
        f"Unexpected error during {action}",
        extra={
            **context,
            "error_type": type(e).__name__,
            "error_message": str(e),
        },
        exc_info=True,
    )
    return StorefrontError(str(e) or f"Failed to {action}")


@app.get("/health", response_model=HealthCheckResponse)
async def health_check() -> HealthCheckResponse:
    """Health check endpoint"""
    logger.debug("Health check requested")
    return HealthCheckResponse(status="ok", version="1.0.0")


@app.post("/functions/v1/cancel-order", response_model=OrderActionResponse)
async def cancel_order(
    request: CancelOrderRequest,
    identity: Identity = Depends(get_current_identity),
    use_case: CancelOrderUseCase = Depends(get_cancel_order_use_case),
) -> OrderActionResponse:
    """Cancel an order, restore its stock and refund a captured payment."""
    order_id = request.order_id or ""
    logger.info(
        "Order cancellation requested",
        extra={
            "order_id": order_id,
            "reason": request.reason,
            "user_id": identity.user_id,
        },
    )
    try:
        await use_case.cancel_order(
            order_id,
            identity,
            request.reason,
            request.cancelled_by,
        )
    except StorefrontError:
        raise
    except Exception as e:
        raise _unexpected("cancel order", e, order_id=order_id)

    return OrderActionResponse(
        message="Order cancelled successfully", order_id=order_id
    )


@app.post("/functions/v1/delete-order", response_model=OrderActionResponse)
async def delete_order(
    request: DeleteOrderRequest,
    identity: Identity = Depends(get_current_identity),
    use_case: DeleteOrderUseCase = Depends(get_delete_order_use_case),
) -> OrderActionResponse:
    """Soft delete an order. Admins only."""
    order_id = request.order_id or ""
    logger.info(
        "Order deletion requested",
        extra={"order_id": order_id, "user_id": identity.user_id},
    )
    try:
        await use_case.delete_order(order_id, identity, request.reason)
    except StorefrontError:
        raise
    except Exception as e:
        raise _unexpected("delete order", e, order_id=order_id)

    return OrderActionResponse(
        message="Order deleted successfully", order_id=order_id
    )


@app.post("/functions/v1/process-refund", response_model=RefundResponse)
async def process_refund(
    request: ProcessRefundRequest,
    identity: Identity = Depends(get_current_identity),
    use_case: ProcessRefundUseCase = Depends(get_process_refund_use_case),
) -> RefundResponse:
    """Refund part or all of an order's captured payment."""
    order_id = request.order_id or ""
    logger.info(
        "Refund requested",
        extra={
            "order_id": order_id,
            "amount": str(request.amount),
            "user_id": identity.user_id,
        },
    )
    try:
        result = await use_case.process_refund(
            order_id, request.amount, request.reason
        )
    except StorefrontError:
        raise
    except Exception as e:
        raise _unexpected("process refund", e, order_id=order_id)

    return RefundResponse(refund_id=result.refund_id, amount=float(result.amount))


async def require_admin(
    identity: Identity = Depends(get_current_identity),
    admin_repo: AdminRepository = Depends(get_admin_repository),
) -> Identity:
    if not await admin_repo.is_active_admin(identity.user_id):
        raise AuthorizationError("Only administrators can manage follow-ups")
    return identity


@app.get("/admin/follow-ups", response_model=FollowUpListResponse)
async def list_follow_ups(
    admin: Identity = Depends(require_admin),
    follow_up_repo: FollowUpRepository = Depends(get_follow_up_repository),
) -> FollowUpListResponse:
    """List cancellation side effects that still need attention."""
    try:
        follow_ups = await follow_up_repo.list_open()
    except Exception as e:
        raise _unexpected("list follow-ups", e, user_id=admin.user_id)

    logger.debug(
        "Listed open follow-ups", extra={"count": len(follow_ups)}
    )
    return FollowUpListResponse(follow_ups=follow_ups)


@app.post(
    "/admin/follow-ups/{follow_up_id}/retry",
    response_model=RetryFollowUpResponse,
)
async def retry_follow_up(
    follow_up_id: str,
    admin: Identity = Depends(require_admin),
    follow_up_repo: FollowUpRepository = Depends(get_follow_up_repository),
    client: Client = Depends(get_temporal_client),
    settings: Settings = Depends(get_settings),
) -> RetryFollowUpResponse:
    """
    Start RetryFollowUpWorkflow for one follow-up. Returns immediately with
    the workflow id.
    """
    follow_up = await follow_up_repo.get(follow_up_id)
    if follow_up is None:
        raise NotFoundError(f"Follow-up not found: {follow_up_id}")

    workflow_id = f"followup-retry-{follow_up_id}-{uuid.uuid4()}"
    try:
        await client.start_workflow(
            RetryFollowUpWorkflow.run,
            follow_up_id,
            id=workflow_id,
            task_queue=settings.task_queue,
        )
    except Exception as e:
        raise _unexpected(
            "start follow-up retry", e, follow_up_id=follow_up_id
        )

    logger.info(
        "Follow-up retry workflow started",
        extra={
            "follow_up_id": follow_up_id,
            "workflow_id": workflow_id,
            "user_id": admin.user_id,
        },
    )
    return RetryFollowUpResponse(
        follow_up_id=follow_up_id,
        workflow_id=workflow_id,
        status="RETRY_STARTED",
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "storefront.api.app:app",
        host="0.0.0.0",
        port=8000,
        log_level="info",
    )
