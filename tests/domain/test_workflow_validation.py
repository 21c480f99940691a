"""
Tests for workflow definition validation and rule construction.
"""

from uuid import uuid4

import pytest

from expense_kernel.domain.approval import (
    CLAIM_TRANSITIONS,
    ApprovalDecision,
    Claim,
    ClaimStatus,
    HybridOperator,
    HybridRule,
    PercentageRule,
    SequentialRule,
    SpecificApproverRule,
    WorkflowStep,
)
from expense_kernel.domain.workflow_validation import (
    build_rule,
    validate_threshold,
    validate_workflow_definition,
)
from expense_kernel.exceptions import InvalidWorkflowError
from tests.builders import approved, make_workflow, rejected


class TestValidateThreshold:

    @pytest.mark.parametrize("value", [1, 50, 100])
    def test_accepts_range(self, value):
        assert validate_threshold(value) == value

    @pytest.mark.parametrize("value", [0, 101, -5])
    def test_rejects_out_of_range(self, value):
        with pytest.raises(InvalidWorkflowError) as exc_info:
            validate_threshold(value)
        assert exc_info.value.field == "threshold"

    @pytest.mark.parametrize("value", [None, 60.0, "60", True])
    def test_rejects_non_integers(self, value):
        with pytest.raises(InvalidWorkflowError):
            validate_threshold(value)


class TestValidateWorkflowDefinition:

    def test_valid_sequential(self):
        validate_workflow_definition(make_workflow([uuid4(), uuid4()]))

    def test_name_required(self):
        workflow = make_workflow([uuid4()], name="   ")

        with pytest.raises(InvalidWorkflowError) as exc_info:
            validate_workflow_definition(workflow)
        assert exc_info.value.field == "name"

    @pytest.mark.parametrize(
        "rule",
        [SequentialRule(), PercentageRule(threshold=50)],
        ids=["sequential", "percentage"],
    )
    def test_steps_required(self, rule):
        with pytest.raises(InvalidWorkflowError) as exc_info:
            validate_workflow_definition(make_workflow([], rule))
        assert exc_info.value.field == "steps"

    def test_placeholder_may_have_no_steps(self):
        validate_workflow_definition(make_workflow([]), require_steps=False)

    def test_specific_approver_rule_may_have_no_steps(self):
        validate_workflow_definition(make_workflow([], SpecificApproverRule(approver_id=uuid4())))

    def test_specific_approver_required(self):
        workflow = make_workflow([uuid4()], SpecificApproverRule(approver_id=None))

        with pytest.raises(InvalidWorkflowError) as exc_info:
            validate_workflow_definition(workflow)
        assert exc_info.value.field == "approver_id"

    def test_hybrid_threshold_checked(self):
        workflow = make_workflow([uuid4()], HybridRule(threshold=0, approver_id=uuid4()))

        with pytest.raises(InvalidWorkflowError) as exc_info:
            validate_workflow_definition(workflow)
        assert exc_info.value.field == "threshold"

    def test_step_numbers_must_increase(self):
        a, b = uuid4(), uuid4()
        workflow = make_workflow([a, b])
        shuffled = type(workflow)(
            workflow_id=workflow.workflow_id,
            company_id=workflow.company_id,
            name=workflow.name,
            steps=(WorkflowStep(2, a), WorkflowStep(1, b)),
            rule=workflow.rule,
        )

        with pytest.raises(InvalidWorkflowError) as exc_info:
            validate_workflow_definition(shuffled)
        assert exc_info.value.field == "steps"

    def test_approvers_must_be_company_members(self):
        member, outsider = uuid4(), uuid4()

        with pytest.raises(InvalidWorkflowError) as exc_info:
            validate_workflow_definition(
                make_workflow([member, outsider]), company_member_ids=[member],
            )
        assert exc_info.value.field == "steps"

    def test_specific_approver_must_be_company_member(self):
        member, outsider = uuid4(), uuid4()
        workflow = make_workflow([member], SpecificApproverRule(approver_id=outsider))

        with pytest.raises(InvalidWorkflowError) as exc_info:
            validate_workflow_definition(workflow, company_member_ids=[member])
        assert exc_info.value.field == "approver_id"


class TestBuildRule:

    def test_sequential(self):
        assert build_rule("sequential") == SequentialRule()

    def test_percentage(self):
        assert build_rule("percentage", threshold=60) == PercentageRule(threshold=60)

    def test_hybrid_defaults_to_or(self):
        cfo = uuid4()

        rule = build_rule("hybrid", threshold=60, approver_id=cfo)

        assert rule == HybridRule(threshold=60, approver_id=cfo, operator=HybridOperator.OR)

    def test_hybrid_and(self):
        rule = build_rule("hybrid", threshold=80, approver_id=uuid4(), operator="AND")

        assert rule.operator == HybridOperator.AND

    def test_unknown_rule_type(self):
        with pytest.raises(InvalidWorkflowError) as exc_info:
            build_rule("unanimous")
        assert exc_info.value.field == "rule_type"

    def test_bad_operator(self):
        with pytest.raises(InvalidWorkflowError) as exc_info:
            build_rule("hybrid", threshold=60, approver_id=uuid4(), operator="XOR")
        assert exc_info.value.field == "operator"

    def test_percentage_without_threshold(self):
        with pytest.raises(InvalidWorkflowError):
            build_rule("percentage")

    def test_specific_without_approver(self):
        with pytest.raises(InvalidWorkflowError) as exc_info:
            build_rule("specific_approver")
        assert exc_info.value.field == "approver_id"


class TestClaimLifecycle:

    def test_terminal_states_have_no_transitions(self):
        assert CLAIM_TRANSITIONS[ClaimStatus.APPROVED] == frozenset()
        assert CLAIM_TRANSITIONS[ClaimStatus.REJECTED] == frozenset()

    def test_pending_may_stay_or_resolve(self):
        assert CLAIM_TRANSITIONS[ClaimStatus.PENDING] == {
            ClaimStatus.PENDING, ClaimStatus.APPROVED, ClaimStatus.REJECTED,
        }

    def test_rejection_comment_taken_from_history(self):
        approver = uuid4()
        claim = Claim(
            claim_id=uuid4(),
            company_id=uuid4(),
            submitted_by=uuid4(),
            status=ClaimStatus.REJECTED,
            approval_history=(approved(uuid4()), rejected(approver, "Receipt missing")),
        )

        assert claim.is_terminal
        assert claim.rejection_comment == "Receipt missing"

    def test_decision_values(self):
        assert ApprovalDecision("Approved") is ApprovalDecision.APPROVED
        assert ApprovalDecision("Rejected") is ApprovalDecision.REJECTED
