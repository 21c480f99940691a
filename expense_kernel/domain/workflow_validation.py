"""
Workflow definition validation (``expense_kernel.domain.workflow_validation``).

Responsibility
--------------
Creation-time checks for approval workflows.  Thresholds, step ordering
and approver membership are rejected here so the evaluator never has to
second-guess a stored workflow.

Architecture position
---------------------
**Kernel domain layer** -- pure functions, zero I/O.

Failure modes
-------------
* ``InvalidWorkflowError`` carrying the offending ``field``.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from expense_kernel.domain.approval import (
    ApprovalRule,
    HybridOperator,
    HybridRule,
    PercentageRule,
    RuleType,
    SequentialRule,
    SpecificApproverRule,
    WorkflowDefinition,
    WorkflowStep,
)
from expense_kernel.exceptions import InvalidWorkflowError

MIN_THRESHOLD = 1
MAX_THRESHOLD = 100

# Rule types that cannot be satisfied without at least one step.
RULES_REQUIRING_STEPS: frozenset[RuleType] = frozenset({
    RuleType.SEQUENTIAL,
    RuleType.PERCENTAGE,
    RuleType.HYBRID,
})


def validate_threshold(threshold: object) -> int:
    """Return ``threshold`` if it is an integer in [1, 100]."""
    if isinstance(threshold, bool) or not isinstance(threshold, int):
        raise InvalidWorkflowError(
            f"threshold must be an integer, got {threshold!r}", field="threshold",
        )
    if not MIN_THRESHOLD <= threshold <= MAX_THRESHOLD:
        raise InvalidWorkflowError(
            f"threshold must be between {MIN_THRESHOLD} and {MAX_THRESHOLD}, "
            f"got {threshold}",
            field="threshold",
        )
    return threshold


def validate_rule(rule: ApprovalRule) -> None:
    """Check the parameters carried by a rule variant."""
    if isinstance(rule, SequentialRule):
        return
    if isinstance(rule, PercentageRule):
        validate_threshold(rule.threshold)
        return
    if isinstance(rule, SpecificApproverRule):
        if rule.approver_id is None:
            raise InvalidWorkflowError(
                "specific approver is required for this rule type",
                field="approver_id",
            )
        return
    if isinstance(rule, HybridRule):
        validate_threshold(rule.threshold)
        if rule.approver_id is None:
            raise InvalidWorkflowError(
                "specific approver is required for this rule type",
                field="approver_id",
            )
        if not isinstance(rule.operator, HybridOperator):
            raise InvalidWorkflowError(
                f"operator must be AND or OR, got {rule.operator!r}",
                field="operator",
            )
        return
    raise InvalidWorkflowError(
        f"unknown rule type {type(rule).__name__}", field="rule",
    )


def validate_steps(steps: tuple[WorkflowStep, ...]) -> None:
    """Step numbers are positive and strictly increasing."""
    previous = 0
    for step in steps:
        if step.step_number < 1:
            raise InvalidWorkflowError(
                f"step numbers must be positive, got {step.step_number}",
                field="steps",
            )
        if step.step_number <= previous:
            raise InvalidWorkflowError(
                f"step numbers must be strictly increasing "
                f"({step.step_number} after {previous})",
                field="steps",
            )
        if step.approver_id is None:
            raise InvalidWorkflowError(
                f"step {step.step_number} has no approver", field="steps",
            )
        previous = step.step_number


def validate_workflow_definition(
    definition: WorkflowDefinition,
    *,
    require_steps: bool = True,
    company_member_ids: Iterable[UUID] | None = None,
) -> None:
    """Validate a workflow before it is persisted.

    Args:
        definition: The workflow to check.
        require_steps: Reject empty step lists for rule types that need
            steps.  Provisioned placeholders pass ``False``.
        company_member_ids: When given, every approver (steps and the
            specific approver) must be a member of the owning company.

    Raises:
        InvalidWorkflowError: On the first failed check.
    """
    if not definition.name or not definition.name.strip():
        raise InvalidWorkflowError("workflow name is required", field="name")

    validate_rule(definition.rule)
    validate_steps(definition.steps)

    if (
        require_steps
        and not definition.steps
        and definition.rule.rule_type in RULES_REQUIRING_STEPS
    ):
        raise InvalidWorkflowError(
            f"{definition.rule.rule_type.value} workflow requires at least "
            "one approval step",
            field="steps",
        )

    if company_member_ids is not None:
        members = frozenset(company_member_ids)
        for step in definition.steps:
            if step.approver_id not in members:
                raise InvalidWorkflowError(
                    f"approver {step.approver_id} does not belong to company "
                    f"{definition.company_id}",
                    field="steps",
                )
        specific = getattr(definition.rule, "approver_id", None)
        if specific is not None and specific not in members:
            raise InvalidWorkflowError(
                f"specific approver {specific} does not belong to company "
                f"{definition.company_id}",
                field="approver_id",
            )


def build_rule(
    rule_type: RuleType | str,
    *,
    threshold: int | None = None,
    approver_id: UUID | None = None,
    operator: HybridOperator | str | None = None,
) -> ApprovalRule:
    """Construct and validate a rule variant from its tag and parameters.

    Used by the admin surface and the configuration templates, which both
    describe rules as flat records.
    """
    try:
        tag = RuleType(rule_type)
    except ValueError:
        raise InvalidWorkflowError(
            f"unknown rule type {rule_type!r}", field="rule_type",
        ) from None

    if tag == RuleType.SEQUENTIAL:
        rule: ApprovalRule = SequentialRule()
    elif tag == RuleType.PERCENTAGE:
        rule = PercentageRule(threshold=validate_threshold(threshold))
    elif tag == RuleType.SPECIFIC_APPROVER:
        rule = SpecificApproverRule(approver_id=approver_id)
    else:
        try:
            op = HybridOperator(operator or HybridOperator.OR.value)
        except ValueError:
            raise InvalidWorkflowError(
                f"operator must be AND or OR, got {operator!r}", field="operator",
            ) from None
        rule = HybridRule(
            threshold=validate_threshold(threshold),
            approver_id=approver_id,
            operator=op,
        )

    validate_rule(rule)
    return rule
