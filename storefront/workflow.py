"""
The execution context is bound to the way execution works.
Follow-up retries run as Temporal workflows, so they use the workflow
proxies: every store and gateway call becomes an activity.
"""

from temporalio import workflow

from storefront.domain import FollowUp
from storefront.errors import StorefrontError
from storefront.repos.temporal.proxies import (
    WorkflowFollowUpRepositoryProxy,
    WorkflowInventoryRepositoryProxy,
    WorkflowOrderRepositoryProxy,
    WorkflowPaymentGatewayProxy,
    WorkflowPaymentTransactionRepositoryProxy,
)
from storefront.usecase import ResolveFollowUpUseCase


@workflow.defn(failure_exception_types=[StorefrontError])
class RetryFollowUpWorkflow:
    def __init__(self) -> None:
        self.current_step = "initialized"

    @workflow.query
    def get_current_step(self) -> str:
        """Query method to get the current workflow step"""
        return str(self.current_step)

    @workflow.run
    async def run(self, follow_up_id: str) -> FollowUp:
        """
        Retry one cancellation follow-up.
        This is a thin wrapper around ResolveFollowUpUseCase.
        """
        workflow.logger.info(
            "Starting follow-up retry workflow",
            extra={
                "follow_up_id": follow_up_id,
                "workflow_run_id": workflow.info().run_id,
            },
        )

        use_case = ResolveFollowUpUseCase(
            follow_up_repo=WorkflowFollowUpRepositoryProxy(),  # type: ignore[abstract]
            order_repo=WorkflowOrderRepositoryProxy(),  # type: ignore[abstract]
            inventory_repo=WorkflowInventoryRepositoryProxy(),  # type: ignore[abstract]
            payment_repo=WorkflowPaymentTransactionRepositoryProxy(),  # type: ignore[abstract]
            gateway=WorkflowPaymentGatewayProxy(),  # type: ignore[abstract]
        )

        self.current_step = "resolving"
        try:
            result = await use_case.resolve(follow_up_id)
        except Exception as e:
            self.current_step = "failed"
            workflow.logger.error(
                "Follow-up retry failed",
                extra={
                    "follow_up_id": follow_up_id,
                    "error_type": type(e).__name__,
                    "error": str(e),
                },
            )
            raise

        self.current_step = "completed"
        workflow.logger.info(
            "Follow-up retry workflow completed",
            extra={"follow_up_id": follow_up_id, "status": result.status},
        )
        return result
