"""
expense_kernel.services.workflow_service -- Admin-facing workflow creation.

Responsibility:
    Build, validate and store approval workflows for a company, and
    optionally make one the company default used at claim submission.

Architecture position:
    Kernel > Services.

Invariants enforced:
    - Nothing invalid is stored: thresholds, required approvers, step
      presence and company membership are checked before insert.
    - Steps are numbered 1..N in the order the approvers were given.

Failure modes:
    - InvalidWorkflowError on any validation failure.
    - TransientStorageError on storage I/O failure.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from expense_kernel.domain.approval import (
    ApprovalRule,
    WorkflowDefinition,
    WorkflowOrigin,
    WorkflowStep,
)
from expense_kernel.domain.clock import Clock, SystemClock
from expense_kernel.domain.workflow_validation import validate_workflow_definition
from expense_kernel.exceptions import InvalidWorkflowError
from expense_kernel.logging_config import get_logger
from expense_kernel.services.base import BaseService
from expense_kernel.services.workflow_repository import WorkflowRepository

logger = get_logger("services.workflow_service")


class WorkflowService(BaseService):
    """Creates and lists company approval workflows."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        workflows: WorkflowRepository | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._workflows = workflows or WorkflowRepository(session, self._clock)

    def create_workflow(
        self,
        company_id: UUID,
        name: str,
        approver_ids: Sequence[UUID],
        rule: ApprovalRule,
        company_member_ids: Iterable[UUID] | None = None,
        make_default: bool = False,
    ) -> WorkflowDefinition:
        """Validate and store a new workflow.

        Args:
            company_id: Owning company.
            name: Display name.
            approver_ids: Step approvers in evaluation order.
            rule: One of the four rule variants.
            company_member_ids: When given, every approver must be in it.
            make_default: Make this the workflow new claims are bound to.

        Raises:
            InvalidWorkflowError: If the definition fails validation.
        """
        workflow = WorkflowDefinition(
            workflow_id=uuid4(),
            company_id=company_id,
            name=(name or "").strip(),
            steps=tuple(
                WorkflowStep(step_number=i, approver_id=approver_id)
                for i, approver_id in enumerate(approver_ids, start=1)
            ),
            rule=rule,
            origin=WorkflowOrigin.CONFIGURED,
            created_at=self._clock.now(),
        )
        try:
            validate_workflow_definition(
                workflow, require_steps=True, company_member_ids=company_member_ids,
            )
        except InvalidWorkflowError as exc:
            logger.warning(
                "workflow_rejected",
                extra={"company_id": str(company_id), "reason": str(exc)},
            )
            raise

        created = self._workflows.add_workflow(workflow)
        if make_default:
            self._workflows.set_default(company_id, created.workflow_id)
            created = self._workflows.load_workflow(created.workflow_id)

        logger.info(
            "workflow_created",
            extra={
                "company_id": str(company_id),
                "workflow_id": str(created.workflow_id),
                "rule_type": rule.rule_type.value,
                "steps": len(created.steps),
                "is_default": created.is_default,
            },
        )
        return created

    def list_workflows(self, company_id: UUID) -> list[WorkflowDefinition]:
        """All workflows of the company, newest first."""
        return self._workflows.list_for_company(company_id)

    def get_workflow(self, workflow_id: UUID) -> WorkflowDefinition:
        return self._workflows.load_workflow(workflow_id)
