"""Pure domain layer: value objects, rule variants, validation and the clock."""

from expense_kernel.domain.approval import (
    CLAIM_TRANSITIONS,
    TERMINAL_CLAIM_STATUSES,
    ApprovalDecision,
    ApprovalEvaluation,
    ApprovalHistoryEntry,
    ApprovalRule,
    Claim,
    ClaimStatus,
    EvaluationOutcome,
    HybridOperator,
    HybridRule,
    PercentageRule,
    ProvisioningPolicy,
    RuleType,
    SequentialRule,
    SpecificApproverRule,
    SubmitterContext,
    SubmitterRole,
    WorkflowDefinition,
    WorkflowOrigin,
    WorkflowStep,
)
from expense_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from expense_kernel.domain.workflow_validation import (
    build_rule,
    validate_threshold,
    validate_workflow_definition,
)

__all__ = [
    "CLAIM_TRANSITIONS",
    "TERMINAL_CLAIM_STATUSES",
    "ApprovalDecision",
    "ApprovalEvaluation",
    "ApprovalHistoryEntry",
    "ApprovalRule",
    "Claim",
    "ClaimStatus",
    "EvaluationOutcome",
    "HybridOperator",
    "HybridRule",
    "PercentageRule",
    "ProvisioningPolicy",
    "RuleType",
    "SequentialRule",
    "SpecificApproverRule",
    "SubmitterContext",
    "SubmitterRole",
    "WorkflowDefinition",
    "WorkflowOrigin",
    "WorkflowStep",
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "build_rule",
    "validate_threshold",
    "validate_workflow_definition",
]
