"""
expense_engines.approval -- Pure approval workflow evaluation engine.

Responsibility:
    Given a workflow definition, the approval history recorded so far and
    the sequential cursor, decide whether a claim should be approved,
    rejected or left pending, and who may still move it forward.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import expense_kernel/domain/ types (plus exceptions/logging).

Invariants enforced:
    - Rejection is absolute: any Rejected entry short-circuits every rule.
    - A missing workflow, or one with no steps, approves immediately.
    - Sequential approves once approvals >= steps; the engine never moves
      the cursor (the coordinator does).
    - Percentage uses real division before comparing with the integer
      threshold.
    - Every Approved entry counts, including duplicates from the same
      approver and approvals given out of turn.
    - Purity: no clock access, no I/O, no database.

Failure modes:
    - WorkflowIntegrityError for a rule object outside the four known
      variants.  This means stored configuration is corrupt and is logged
      at ERROR before propagating.
"""

from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID

from expense_engines.tracer import traced_engine
from expense_kernel.domain.approval import (
    ApprovalDecision,
    ApprovalEvaluation,
    ApprovalHistoryEntry,
    EvaluationOutcome,
    HybridOperator,
    HybridRule,
    PercentageRule,
    SequentialRule,
    SpecificApproverRule,
    WorkflowDefinition,
    WorkflowStep,
)
from expense_kernel.exceptions import WorkflowIntegrityError
from expense_kernel.logging_config import get_logger

logger = get_logger("engines.approval")

NO_WORKFLOW_REASON = "No workflow configured"
NO_STEPS_REASON = "No approval steps configured"


@traced_engine("approval", "1.0", fingerprint_fields=("workflow", "current_approver_index"))
def evaluate(
    workflow: WorkflowDefinition | None,
    approval_history: Sequence[ApprovalHistoryEntry],
    current_approver_index: int = 0,
) -> ApprovalEvaluation:
    """Decide the state a claim should be in.

    Args:
        workflow: The claim's workflow, or None when no workflow governs it.
        approval_history: Every decision recorded so far, oldest first.
        current_approver_index: Sequential cursor into ``workflow.steps``.

    Returns:
        ApprovalEvaluation with ``outcome``, a human-readable ``reason``
        and the approvers who can still move the claim forward.

    Raises:
        WorkflowIntegrityError: If the workflow carries an unknown rule.
    """
    rejection = find_rejection(approval_history)
    if rejection is not None:
        reason = f"Rejected by {rejection.approver_id}"
        if rejection.comment:
            reason = f"{reason}: {rejection.comment}"
        return ApprovalEvaluation(
            outcome=EvaluationOutcome.REJECT,
            reason=reason,
            approved_count=len(approved_entries(approval_history)),
            total_steps=len(workflow.steps) if workflow is not None else 0,
        )

    if workflow is None:
        return ApprovalEvaluation(outcome=EvaluationOutcome.APPROVE, reason=NO_WORKFLOW_REASON)
    if not workflow.steps:
        return ApprovalEvaluation(outcome=EvaluationOutcome.APPROVE, reason=NO_STEPS_REASON)

    approvals = approved_entries(approval_history)
    rule = workflow.rule

    if isinstance(rule, SequentialRule):
        return check_sequential_rule(workflow.steps, approvals, current_approver_index)
    if isinstance(rule, PercentageRule):
        return check_percentage_rule(workflow.steps, rule.threshold, approvals)
    if isinstance(rule, SpecificApproverRule):
        return check_specific_approver_rule(workflow.steps, rule.approver_id, approvals)
    if isinstance(rule, HybridRule):
        return check_hybrid_rule(workflow.steps, rule, approvals)

    logger.error(
        "workflow_rule_unknown",
        extra={
            "workflow_id": str(workflow.workflow_id),
            "rule_class": type(rule).__name__,
        },
    )
    raise WorkflowIntegrityError(
        str(workflow.workflow_id), f"unknown rule {type(rule).__name__}",
    )


def find_rejection(
    approval_history: Sequence[ApprovalHistoryEntry],
) -> ApprovalHistoryEntry | None:
    """Return the first Rejected entry, if any."""
    for entry in approval_history:
        if entry.decision == ApprovalDecision.REJECTED:
            return entry
    return None


def approved_entries(
    approval_history: Sequence[ApprovalHistoryEntry],
) -> tuple[ApprovalHistoryEntry, ...]:
    """The Approved subset of a history, order preserved."""
    return tuple(
        entry for entry in approval_history
        if entry.decision == ApprovalDecision.APPROVED
    )


def check_sequential_rule(
    steps: Sequence[WorkflowStep],
    approvals: Sequence[ApprovalHistoryEntry],
    current_approver_index: int,
) -> ApprovalEvaluation:
    """Approve when every step has been approved."""
    total = len(steps)
    approved = len(approvals)

    if approved >= total:
        return ApprovalEvaluation(
            outcome=EvaluationOutcome.APPROVE,
            reason="All sequential approvals completed",
            approved_count=approved,
            total_steps=total,
        )

    current: tuple[UUID, ...] = ()
    if 0 <= current_approver_index < total:
        current = (steps[current_approver_index].approver_id,)

    return ApprovalEvaluation(
        outcome=EvaluationOutcome.PENDING,
        reason=f"{approved}/{total} sequential approvals completed",
        approved_count=approved,
        total_steps=total,
        current_approvers=current,
    )


def approval_percentage(approved: int, total: int) -> float:
    """Share of steps approved, as a percentage.  ``total`` must be > 0."""
    return 100 * approved / total


def check_percentage_rule(
    steps: Sequence[WorkflowStep],
    threshold: int,
    approvals: Sequence[ApprovalHistoryEntry],
) -> ApprovalEvaluation:
    """Approve when the approved share of steps reaches ``threshold``."""
    total = len(steps)
    approved = len(approvals)
    current_pct = approval_percentage(approved, total)

    if current_pct >= threshold:
        return ApprovalEvaluation(
            outcome=EvaluationOutcome.APPROVE,
            reason=f"{current_pct:.1f}% approval reached (required: {threshold:.1f}%)",
            approved_count=approved,
            total_steps=total,
        )

    return ApprovalEvaluation(
        outcome=EvaluationOutcome.PENDING,
        reason=f"{current_pct:.1f}% approval (required: {threshold:.1f}%)",
        approved_count=approved,
        total_steps=total,
        current_approvers=_undecided_step_approvers(steps, approvals),
    )


def check_specific_approver_rule(
    steps: Sequence[WorkflowStep],
    approver_id: UUID,
    approvals: Sequence[ApprovalHistoryEntry],
) -> ApprovalEvaluation:
    """Approve as soon as the designated approver has approved.

    Never rejects on its own: only an explicit Rejected entry does that.
    """
    if any(entry.approver_id == approver_id for entry in approvals):
        return ApprovalEvaluation(
            outcome=EvaluationOutcome.APPROVE,
            reason="Approved by specific approver",
            approved_count=len(approvals),
            total_steps=len(steps),
        )

    return ApprovalEvaluation(
        outcome=EvaluationOutcome.PENDING,
        reason="Waiting for specific approver",
        approved_count=len(approvals),
        total_steps=len(steps),
        current_approvers=(approver_id,),
    )


def check_hybrid_rule(
    steps: Sequence[WorkflowStep],
    rule: HybridRule,
    approvals: Sequence[ApprovalHistoryEntry],
) -> ApprovalEvaluation:
    """Combine the percentage and specific-approver results with AND / OR."""
    percentage = check_percentage_rule(steps, rule.threshold, approvals)
    specific = check_specific_approver_rule(steps, rule.approver_id, approvals)

    if rule.operator == HybridOperator.AND:
        approved = percentage.is_approved and specific.is_approved
        if approved:
            reason = "Both percentage and specific approver conditions met"
        else:
            reason = f"{percentage.reason} AND {specific.reason}"
    else:
        approved = percentage.is_approved or specific.is_approved
        if approved:
            reason = specific.reason if specific.is_approved else percentage.reason
        else:
            reason = f"{percentage.reason} OR {specific.reason}"

    if approved:
        return ApprovalEvaluation(
            outcome=EvaluationOutcome.APPROVE,
            reason=reason,
            approved_count=len(approvals),
            total_steps=len(steps),
        )

    current = list(percentage.current_approvers)
    for approver_id in specific.current_approvers:
        if approver_id not in current:
            current.append(approver_id)

    return ApprovalEvaluation(
        outcome=EvaluationOutcome.PENDING,
        reason=reason,
        approved_count=len(approvals),
        total_steps=len(steps),
        current_approvers=tuple(current),
    )


def _undecided_step_approvers(
    steps: Sequence[WorkflowStep],
    approvals: Sequence[ApprovalHistoryEntry],
) -> tuple[UUID, ...]:
    """Step approvers with no Approved entry yet, in step order, de-duplicated."""
    approved_by = {entry.approver_id for entry in approvals}
    pending: list[UUID] = []
    for step in steps:
        if step.approver_id not in approved_by and step.approver_id not in pending:
            pending.append(step.approver_id)
    return tuple(pending)
