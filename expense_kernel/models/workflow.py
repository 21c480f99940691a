"""
Module: expense_kernel.models.workflow
Responsibility: ORM persistence for approval workflows and their steps.

Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ (for DTO conversion) only.

Invariants enforced:
    - The rule tag is stored in ``rule_type``; its parameters live in
      nullable columns (threshold, specific_approver_id, hybrid_operator).
    - Thresholds outside [1, 100] are rejected by a check constraint.
    - Step numbers are unique per workflow and loaded in ascending order.
    - Workflows are configuration: only ``is_default`` may change after
      insert (db/immutability.py).

Failure modes:
    - WorkflowIntegrityError from to_dto() when the stored tag is unknown
      or a required rule parameter is missing.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from expense_kernel.db.base import Base, UUIDString
from expense_kernel.exceptions import WorkflowIntegrityError

if TYPE_CHECKING:
    from expense_kernel.domain.approval import ApprovalRule, WorkflowDefinition


class WorkflowModel(Base):
    """Persistent approval workflow owned by one company."""

    __tablename__ = "approval_workflows"

    __table_args__ = (
        CheckConstraint(
            "threshold IS NULL OR (threshold >= 1 AND threshold <= 100)",
            name="ck_approval_workflows_threshold_range",
        ),
        CheckConstraint(
            "hybrid_operator IS NULL OR hybrid_operator IN ('AND', 'OR')",
            name="ck_approval_workflows_hybrid_operator",
        ),
        Index("ix_approval_workflows_company_created", "company_id", "created_at"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    rule_type: Mapped[str] = mapped_column(String(30), nullable=False)
    threshold: Mapped[int | None] = mapped_column(nullable=True)
    specific_approver_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), nullable=True,
    )
    hybrid_operator: Mapped[str | None] = mapped_column(String(3), nullable=True)
    origin: Mapped[str] = mapped_column(String(20), nullable=False, default="configured")
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    steps: Mapped[list["WorkflowStepModel"]] = relationship(
        "WorkflowStepModel",
        back_populates="workflow",
        order_by="WorkflowStepModel.step_number",
        lazy="selectin",
        cascade="save-update, merge",
    )

    def __repr__(self) -> str:
        return (
            f"<Workflow {self.id} {self.name!r} "
            f"rule={self.rule_type} steps={len(self.steps)}>"
        )

    def _rule(self) -> ApprovalRule:
        from expense_kernel.domain.approval import (
            HybridOperator,
            HybridRule,
            PercentageRule,
            RuleType,
            SequentialRule,
            SpecificApproverRule,
        )

        try:
            rule_type = RuleType(self.rule_type)
        except ValueError:
            raise WorkflowIntegrityError(
                str(self.id), f"unknown rule type {self.rule_type!r}",
            ) from None

        if rule_type == RuleType.SEQUENTIAL:
            return SequentialRule()

        if rule_type in (RuleType.PERCENTAGE, RuleType.HYBRID) and self.threshold is None:
            raise WorkflowIntegrityError(
                str(self.id), f"{rule_type.value} rule stored without threshold",
            )
        if (
            rule_type in (RuleType.SPECIFIC_APPROVER, RuleType.HYBRID)
            and self.specific_approver_id is None
        ):
            raise WorkflowIntegrityError(
                str(self.id), f"{rule_type.value} rule stored without approver",
            )

        if rule_type == RuleType.PERCENTAGE:
            return PercentageRule(threshold=self.threshold)
        if rule_type == RuleType.SPECIFIC_APPROVER:
            return SpecificApproverRule(approver_id=self.specific_approver_id)
        return HybridRule(
            threshold=self.threshold,
            approver_id=self.specific_approver_id,
            operator=HybridOperator(self.hybrid_operator or HybridOperator.OR.value),
        )

    def to_dto(self) -> WorkflowDefinition:
        """Convert ORM model to frozen domain DTO."""
        from expense_kernel.domain.approval import (
            WorkflowDefinition as WorkflowDTO,
            WorkflowOrigin,
        )

        return WorkflowDTO(
            workflow_id=self.id,
            company_id=self.company_id,
            name=self.name,
            steps=tuple(step.to_dto() for step in self.steps),
            rule=self._rule(),
            origin=WorkflowOrigin(self.origin),
            is_default=self.is_default,
            created_at=self.created_at,
        )

    @classmethod
    def from_dto(cls, dto: WorkflowDefinition) -> WorkflowModel:
        """Create ORM model (with its steps) from a domain DTO."""
        rule = dto.rule
        operator = getattr(rule, "operator", None)
        return cls(
            id=dto.workflow_id,
            company_id=dto.company_id,
            name=dto.name,
            rule_type=rule.rule_type.value,
            threshold=getattr(rule, "threshold", None),
            specific_approver_id=getattr(rule, "approver_id", None),
            hybrid_operator=operator.value if operator is not None else None,
            origin=dto.origin.value,
            is_default=dto.is_default,
            created_at=dto.created_at,
            steps=[
                WorkflowStepModel(
                    step_number=step.step_number,
                    approver_id=step.approver_id,
                )
                for step in dto.steps
            ],
        )


class WorkflowStepModel(Base):
    """One approval step of a workflow.  Immutable once inserted."""

    __tablename__ = "approval_workflow_steps"

    __table_args__ = (
        UniqueConstraint(
            "workflow_id", "step_number",
            name="uq_approval_workflow_steps_number",
        ),
        CheckConstraint("step_number >= 1", name="ck_approval_workflow_steps_positive"),
        Index("ix_approval_workflow_steps_approver", "approver_id"),
    )

    workflow_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("approval_workflows.id"),
        nullable=False,
    )
    step_number: Mapped[int] = mapped_column(nullable=False)
    approver_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    workflow: Mapped["WorkflowModel"] = relationship(
        "WorkflowModel", back_populates="steps",
    )

    def __repr__(self) -> str:
        return f"<WorkflowStep {self.workflow_id}#{self.step_number} {self.approver_id}>"

    def to_dto(self):
        from expense_kernel.domain.approval import WorkflowStep

        return WorkflowStep(step_number=self.step_number, approver_id=self.approver_id)
