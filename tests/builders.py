"""Pure DTO builders shared by the engine, domain and property tests."""

from datetime import datetime, timezone
from uuid import UUID, uuid4

from expense_kernel.domain.approval import (
    ApprovalDecision,
    ApprovalHistoryEntry,
    SequentialRule,
    WorkflowDefinition,
    WorkflowStep,
)

FIXED_NOW = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_workflow(
    approver_ids=(),
    rule=None,
    *,
    company_id: UUID | None = None,
    name: str = "Test Workflow",
) -> WorkflowDefinition:
    """Build a WorkflowDefinition DTO with steps numbered from 1."""
    return WorkflowDefinition(
        workflow_id=uuid4(),
        company_id=company_id or uuid4(),
        name=name,
        steps=tuple(
            WorkflowStep(step_number=i, approver_id=a)
            for i, a in enumerate(approver_ids, start=1)
        ),
        rule=rule if rule is not None else SequentialRule(),
        created_at=FIXED_NOW,
    )


def approved(approver_id: UUID) -> ApprovalHistoryEntry:
    return ApprovalHistoryEntry(
        approver_id=approver_id,
        decision=ApprovalDecision.APPROVED,
        decided_at=FIXED_NOW,
    )


def rejected(approver_id: UUID, comment: str = "Not a business expense") -> ApprovalHistoryEntry:
    return ApprovalHistoryEntry(
        approver_id=approver_id,
        decision=ApprovalDecision.REJECTED,
        comment=comment,
        decided_at=FIXED_NOW,
    )
