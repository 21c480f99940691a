"""
expense_kernel.services.workflow_repository -- Workflow persistence and
provisioning at claim submission.

Responsibility:
    Load and store approval workflows, and materialize the workflow a new
    claim is bound to when the caller does not pick one.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.

Provisioning precedence (``ensure_default_workflow``):
    1. The company's admin-designated default workflow.
    2. A reporting-line workflow (Sequential):
         Employee with a manager and an admin -> [manager, admin]
         Manager with an admin                -> [admin]
       An identical reporting-line workflow already stored for the company
       is reused; workflows are immutable so sharing one is safe.
    3. The company placeholder: Sequential with zero steps.  Claims bound
       to it approve on their first Approved decision.

Failure modes:
    - WorkflowNotFoundError if a workflow id does not resolve.
    - WorkflowIntegrityError if a stored workflow carries an unknown rule.
    - TransientStorageError on driver-level I/O failure.
"""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy import select

from expense_kernel.domain.approval import (
    ProvisioningPolicy,
    SequentialRule,
    SubmitterContext,
    SubmitterRole,
    WorkflowDefinition,
    WorkflowOrigin,
    WorkflowStep,
)
from expense_kernel.domain.clock import Clock, SystemClock
from expense_kernel.exceptions import WorkflowNotFoundError
from expense_kernel.logging_config import get_logger
from expense_kernel.models.workflow import WorkflowModel
from expense_kernel.services.base import BaseService, storage_operation

logger = get_logger("services.workflow_repository")


def reporting_line_approvers(submitter: SubmitterContext) -> tuple[UUID, ...]:
    """Approvers implied by the submitter's reporting line, or ``()``."""
    if submitter.admin_id is None:
        return ()
    if submitter.role == SubmitterRole.EMPLOYEE and submitter.manager_id is not None:
        return (submitter.manager_id, submitter.admin_id)
    if submitter.role == SubmitterRole.MANAGER:
        return (submitter.admin_id,)
    return ()


class WorkflowRepository(BaseService):
    """Workflow storage plus the provisioning collaborator."""

    def __init__(self, session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def load_workflow(self, workflow_id: UUID) -> WorkflowDefinition:
        """Raises WorkflowNotFoundError if the id does not resolve."""
        with storage_operation("load_workflow"):
            model = self.session.get(WorkflowModel, workflow_id)
        if model is None:
            raise WorkflowNotFoundError(str(workflow_id))
        return model.to_dto()

    def add_workflow(self, workflow: WorkflowDefinition) -> WorkflowDefinition:
        """Insert a workflow.  Callers validate it first."""
        model = WorkflowModel.from_dto(workflow)
        with storage_operation("add_workflow"):
            self.session.add(model)
            self.session.flush()
        return model.to_dto()

    def set_default(self, company_id: UUID, workflow_id: UUID) -> None:
        """Make ``workflow_id`` the company's only default workflow."""
        with storage_operation("set_default"):
            target = self.session.get(WorkflowModel, workflow_id)
        if target is None or target.company_id != company_id:
            raise WorkflowNotFoundError(str(workflow_id))

        with storage_operation("set_default"):
            current = self.session.execute(
                select(WorkflowModel).where(
                    WorkflowModel.company_id == company_id,
                    WorkflowModel.is_default.is_(True),
                )
            ).scalars().all()
            for model in current:
                if model.id != workflow_id:
                    model.is_default = False
            target.is_default = True
            self.session.flush()

    def find_default(self, company_id: UUID) -> WorkflowDefinition | None:
        """The admin-designated default workflow, if any."""
        with storage_operation("find_default"):
            model = self.session.execute(
                select(WorkflowModel)
                .where(
                    WorkflowModel.company_id == company_id,
                    WorkflowModel.is_default.is_(True),
                )
                .order_by(WorkflowModel.created_at.desc())
                .limit(1)
            ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def list_for_company(self, company_id: UUID) -> list[WorkflowDefinition]:
        """All workflows of a company, newest first."""
        with storage_operation("list_workflows"):
            models = self.session.execute(
                select(WorkflowModel)
                .where(WorkflowModel.company_id == company_id)
                .order_by(WorkflowModel.created_at.desc(), WorkflowModel.name)
            ).scalars().all()
        return [m.to_dto() for m in models]

    def ensure_default_workflow(
        self,
        company_id: UUID,
        submitter: SubmitterContext,
        policy: ProvisioningPolicy | None = None,
    ) -> WorkflowDefinition:
        """Return the workflow a new claim from ``submitter`` is bound to.

        Creates the reporting-line or placeholder workflow when needed.
        """
        policy = policy or ProvisioningPolicy()

        default = self.find_default(company_id)
        if default is not None:
            return default

        approvers = reporting_line_approvers(submitter)
        if approvers:
            name = (
                policy.hierarchy_workflow_name
                if len(approvers) > 1
                else policy.manager_workflow_name
            )
            return self._reuse_or_create(
                company_id, name, approvers, WorkflowOrigin.HIERARCHY,
            )

        return self._reuse_or_create(
            company_id, policy.placeholder_workflow_name, (), WorkflowOrigin.PLACEHOLDER,
        )

    def _reuse_or_create(
        self,
        company_id: UUID,
        name: str,
        approvers: tuple[UUID, ...],
        origin: WorkflowOrigin,
    ) -> WorkflowDefinition:
        with storage_operation("find_provisioned_workflow"):
            candidates = self.session.execute(
                select(WorkflowModel)
                .where(
                    WorkflowModel.company_id == company_id,
                    WorkflowModel.origin == origin.value,
                    WorkflowModel.name == name,
                )
                .order_by(WorkflowModel.created_at)
            ).scalars().all()
        for model in candidates:
            if tuple(step.approver_id for step in model.steps) == approvers:
                return model.to_dto()

        workflow = WorkflowDefinition(
            workflow_id=uuid4(),
            company_id=company_id,
            name=name,
            steps=tuple(
                WorkflowStep(step_number=i, approver_id=approver_id)
                for i, approver_id in enumerate(approvers, start=1)
            ),
            rule=SequentialRule(),
            origin=origin,
            created_at=self._clock.now(),
        )
        created = self.add_workflow(workflow)
        logger.info(
            "workflow_provisioned",
            extra={
                "company_id": str(company_id),
                "workflow_id": str(created.workflow_id),
                "origin": origin.value,
                "steps": len(approvers),
            },
        )
        return created
