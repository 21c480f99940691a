"""
Module: expense_kernel.selectors.claim_selector
Responsibility: Read-only listings of claims: by status, and the Pending
    claims currently waiting on a given approver.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Read-only: no mutations on any queried data.
    - "Waiting on" is decided by the evaluator's ``current_approvers``, so
      listings agree with what ``record_decision`` would do.
    - Results are newest first.

Failure modes:
    - Returns empty lists when nothing matches (never raises on absence).
    - WorkflowIntegrityError propagates if a stored workflow is corrupt.
"""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select

from expense_engines.approval import evaluate
from expense_kernel.domain.approval import (
    ApprovalEvaluation,
    Claim,
    ClaimStatus,
    WorkflowDefinition,
)
from expense_kernel.models.claim import ClaimModel
from expense_kernel.models.workflow import WorkflowModel
from expense_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class PendingApproval:
    """A Pending claim together with its current evaluation."""

    claim: Claim
    evaluation: ApprovalEvaluation


class ClaimSelector(BaseSelector):
    """Read-only claim queries scoped by company."""

    def get(self, claim_id: UUID) -> Claim | None:
        model = self.session.get(ClaimModel, claim_id)
        return model.to_dto() if model is not None else None

    def list_by_status(self, company_id: UUID, status: ClaimStatus) -> list[Claim]:
        """Claims of the company in ``status``, newest first."""
        models = self.session.execute(
            select(ClaimModel)
            .where(
                ClaimModel.company_id == company_id,
                ClaimModel.status == ClaimStatus(status).value,
            )
            .order_by(ClaimModel.created_at.desc())
        ).scalars().all()
        return [m.to_dto() for m in models]

    def pending_for_approver(
        self, company_id: UUID, approver_id: UUID,
    ) -> list[PendingApproval]:
        """Pending claims whose evaluation lists ``approver_id`` as a current approver."""
        workflows: dict[UUID, WorkflowDefinition] = {}
        results: list[PendingApproval] = []

        for claim in self.list_by_status(company_id, ClaimStatus.PENDING):
            workflow = None
            if claim.workflow_id is not None:
                workflow = workflows.get(claim.workflow_id)
                if workflow is None:
                    model = self.session.get(WorkflowModel, claim.workflow_id)
                    if model is None:
                        continue
                    workflow = workflows.setdefault(claim.workflow_id, model.to_dto())

            evaluation = evaluate(
                workflow, claim.approval_history, claim.current_approver_index,
            )
            if approver_id in evaluation.current_approvers:
                results.append(PendingApproval(claim=claim, evaluation=evaluation))

        return results
