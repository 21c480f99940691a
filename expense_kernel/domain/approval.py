"""
Approval domain types (``expense_kernel.domain.approval``).

Responsibility
--------------
Pure value objects for the claim approval kernel.  Defines the claim
lifecycle state machine, workflow definitions with their tagged rule
variants, append-only history entries, and evaluation results.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``models/``, ``services/``, ``selectors/`` or outer layers.

Invariants enforced
-------------------
* Claim lifecycle -- ``CLAIM_TRANSITIONS`` defines the only valid status
  transitions.  Approved and Rejected have no outgoing edges.
* Rule variants are a closed set; each variant carries exactly the
  parameters it needs and a ``rule_type`` tag.
* Workflows and history entries are frozen once built.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import ClassVar
from uuid import UUID, uuid4


# =========================================================================
# Claim Status Lifecycle
# =========================================================================


class ClaimStatus(str, Enum):
    """Expense claim lifecycle states."""

    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


CLAIM_TRANSITIONS: dict[ClaimStatus, frozenset[ClaimStatus]] = {
    ClaimStatus.PENDING: frozenset({
        ClaimStatus.PENDING,
        ClaimStatus.APPROVED,
        ClaimStatus.REJECTED,
    }),
    ClaimStatus.APPROVED: frozenset(),
    ClaimStatus.REJECTED: frozenset(),
}

TERMINAL_CLAIM_STATUSES: frozenset[ClaimStatus] = frozenset({
    ClaimStatus.APPROVED,
    ClaimStatus.REJECTED,
})


class ApprovalDecision(str, Enum):
    """Decision an approver records against a claim."""

    APPROVED = "Approved"
    REJECTED = "Rejected"


class EvaluationOutcome(str, Enum):
    """What the evaluator says should happen to a pending claim."""

    APPROVE = "approve"
    REJECT = "reject"
    PENDING = "pending"


# =========================================================================
# Workflow Rule Variants
# =========================================================================


class RuleType(str, Enum):
    """Tag of the approval rule variant."""

    SEQUENTIAL = "sequential"
    PERCENTAGE = "percentage"
    SPECIFIC_APPROVER = "specific_approver"
    HYBRID = "hybrid"


class HybridOperator(str, Enum):
    """How a hybrid rule combines its percentage and approver conditions."""

    AND = "AND"
    OR = "OR"


@dataclass(frozen=True)
class SequentialRule:
    """Every step approves, in the order the steps were defined."""

    rule_type: ClassVar[RuleType] = RuleType.SEQUENTIAL


@dataclass(frozen=True)
class PercentageRule:
    """Approve once ``threshold`` percent of the steps have approved."""

    threshold: int
    rule_type: ClassVar[RuleType] = RuleType.PERCENTAGE


@dataclass(frozen=True)
class SpecificApproverRule:
    """Approve as soon as the designated approver approves."""

    approver_id: UUID
    rule_type: ClassVar[RuleType] = RuleType.SPECIFIC_APPROVER


@dataclass(frozen=True)
class HybridRule:
    """Percentage quorum combined with a designated approver via AND / OR."""

    threshold: int
    approver_id: UUID
    operator: HybridOperator = HybridOperator.OR
    rule_type: ClassVar[RuleType] = RuleType.HYBRID


ApprovalRule = SequentialRule | PercentageRule | SpecificApproverRule | HybridRule


# =========================================================================
# Workflow Definition
# =========================================================================


class WorkflowOrigin(str, Enum):
    """How a workflow came to exist."""

    CONFIGURED = "configured"    # created by a company admin
    HIERARCHY = "hierarchy"      # derived from the submitter's reporting line
    PLACEHOLDER = "placeholder"  # empty company fallback


@dataclass(frozen=True)
class WorkflowStep:
    """One approval step.  ``step_number`` is 1-based."""

    step_number: int
    approver_id: UUID


@dataclass(frozen=True)
class WorkflowDefinition:
    """Immutable approval workflow configuration owned by one company.

    ``steps`` are kept in evaluation order.  An empty ``steps`` tuple is a
    valid (degenerate) workflow that approves immediately.
    """

    workflow_id: UUID
    company_id: UUID
    name: str
    steps: tuple[WorkflowStep, ...] = ()
    rule: ApprovalRule = field(default_factory=SequentialRule)
    origin: WorkflowOrigin = WorkflowOrigin.CONFIGURED
    is_default: bool = False
    created_at: datetime | None = None

    @property
    def approver_ids(self) -> tuple[UUID, ...]:
        return tuple(step.approver_id for step in self.steps)


# =========================================================================
# Claim and History Records
# =========================================================================


@dataclass(frozen=True)
class ApprovalHistoryEntry:
    """Record of a single approve/reject action. Immutable."""

    approver_id: UUID
    decision: ApprovalDecision
    comment: str = ""
    decided_at: datetime | None = None
    entry_id: UUID = field(default_factory=uuid4)


@dataclass(frozen=True)
class Claim:
    """Immutable snapshot of an expense claim's approval state.

    ``version`` is the optimistic concurrency counter the snapshot was
    read at; a save must present it back unchanged.
    """

    claim_id: UUID
    company_id: UUID
    submitted_by: UUID
    workflow_id: UUID | None = None
    status: ClaimStatus = ClaimStatus.PENDING
    current_approver_index: int = 0
    approval_history: tuple[ApprovalHistoryEntry, ...] = ()
    version: int = 1
    created_at: datetime | None = None
    resolved_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_CLAIM_STATUSES

    @property
    def rejection_comment(self) -> str | None:
        """Reason given by the first rejection, kept for audit."""
        for entry in self.approval_history:
            if entry.decision == ApprovalDecision.REJECTED:
                return entry.comment
        return None


# =========================================================================
# Evaluation Result
# =========================================================================


@dataclass(frozen=True)
class ApprovalEvaluation:
    """Result of evaluating a workflow against an approval history."""

    outcome: EvaluationOutcome
    reason: str
    approved_count: int = 0
    total_steps: int = 0
    current_approvers: tuple[UUID, ...] = ()

    @property
    def is_approved(self) -> bool:
        return self.outcome == EvaluationOutcome.APPROVE

    @property
    def is_rejected(self) -> bool:
        return self.outcome == EvaluationOutcome.REJECT

    @property
    def is_pending(self) -> bool:
        return self.outcome == EvaluationOutcome.PENDING


# =========================================================================
# Submitter identity and provisioning policy
# =========================================================================


class SubmitterRole(str, Enum):
    EMPLOYEE = "Employee"
    MANAGER = "Manager"
    ADMIN = "Admin"


@dataclass(frozen=True)
class SubmitterContext:
    """Caller-validated identity of the person submitting a claim.

    ``manager_id`` is the submitter's direct manager (if any) and
    ``admin_id`` a company admin able to sign off; both are resolved by the
    identity layer, not by the kernel.
    """

    submitter_id: UUID
    role: SubmitterRole
    manager_id: UUID | None = None
    admin_id: UUID | None = None


@dataclass(frozen=True)
class ProvisioningPolicy:
    """Names given to workflows materialized at claim submission."""

    hierarchy_workflow_name: str = "Hierarchical Approval"
    manager_workflow_name: str = "Manager to Admin"
    placeholder_workflow_name: str = "Default Approval Workflow"
