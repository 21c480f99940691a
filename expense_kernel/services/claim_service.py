"""
expense_kernel.services.claim_service -- Claim submission and read-only
approval previews.

Responsibility:
    Create Pending claims bound to a workflow fixed at submission time, and
    evaluate stored claims without changing them ("X% approved" previews).

Architecture position:
    Kernel > Services.

Invariants enforced:
    - A claim's workflow belongs to the claim's company.
    - The workflow is attached once, at submission, and never swapped.
    - New claims start Pending, cursor 0, empty history, version 1.

Failure modes:
    - WorkflowNotFoundError for an explicit workflow id that does not resolve.
    - InvalidWorkflowError for an explicit workflow owned by another company.
    - ClaimNotFoundError from preview() for an unknown claim.
"""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from expense_engines.approval import evaluate
from expense_kernel.domain.approval import (
    ApprovalEvaluation,
    Claim,
    ClaimStatus,
    ProvisioningPolicy,
    SubmitterContext,
)
from expense_kernel.domain.clock import Clock, SystemClock
from expense_kernel.exceptions import InvalidWorkflowError
from expense_kernel.logging_config import LogContext, get_logger
from expense_kernel.services.base import BaseService
from expense_kernel.services.claim_repository import ClaimRepository
from expense_kernel.services.workflow_repository import WorkflowRepository

logger = get_logger("services.claim_service")


class ClaimService(BaseService):
    """Submits claims and previews their approval state."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: ProvisioningPolicy | None = None,
        claims: ClaimRepository | None = None,
        workflows: WorkflowRepository | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._policy = policy or ProvisioningPolicy()
        self._claims = claims or ClaimRepository(session)
        self._workflows = workflows or WorkflowRepository(session, self._clock)

    def submit_claim(
        self,
        company_id: UUID,
        submitter: SubmitterContext,
        workflow_id: UUID | None = None,
    ) -> Claim:
        """Create a Pending claim for ``submitter``.

        When ``workflow_id`` is None the workflow is provisioned by
        ``WorkflowRepository.ensure_default_workflow``.
        """
        with LogContext.bind(company_id=company_id, actor_id=submitter.submitter_id):
            if workflow_id is not None:
                workflow = self._workflows.load_workflow(workflow_id)
                if workflow.company_id != company_id:
                    raise InvalidWorkflowError(
                        f"workflow {workflow_id} belongs to another company",
                        field="workflow_id",
                    )
            else:
                workflow = self._workflows.ensure_default_workflow(
                    company_id, submitter, self._policy,
                )

            claim = self._claims.add_claim(
                Claim(
                    claim_id=uuid4(),
                    company_id=company_id,
                    submitted_by=submitter.submitter_id,
                    workflow_id=workflow.workflow_id,
                    status=ClaimStatus.PENDING,
                    current_approver_index=0,
                    created_at=self._clock.now(),
                )
            )

            logger.info(
                "claim_submitted",
                extra={
                    "claim_id": str(claim.claim_id),
                    "workflow_id": str(workflow.workflow_id),
                    "workflow_origin": workflow.origin.value,
                    "steps": len(workflow.steps),
                },
            )
            return claim

    def preview(self, claim_id: UUID) -> ApprovalEvaluation:
        """Evaluate a stored claim as it stands.  Read-only."""
        claim = self._claims.load_claim(claim_id)
        workflow = None
        if claim.workflow_id is not None:
            workflow = self._workflows.load_workflow(claim.workflow_id)
        return evaluate(workflow, claim.approval_history, claim.current_approver_index)
