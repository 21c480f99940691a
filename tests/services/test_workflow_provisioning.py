"""
Tests for WorkflowRepository: storage round trips, the company default, and
the workflow provisioned when a claim is submitted without one.
"""

from uuid import uuid4

import pytest

from expense_kernel.domain.approval import (
    HybridOperator,
    HybridRule,
    ProvisioningPolicy,
    SequentialRule,
    SubmitterRole,
    WorkflowOrigin,
)
from expense_kernel.exceptions import WorkflowNotFoundError
from expense_kernel.services.workflow_repository import reporting_line_approvers


class TestStorage:

    def test_round_trip_preserves_rule_and_steps(self, create_workflow, workflow_repository):
        a, b, cfo = uuid4(), uuid4(), uuid4()
        rule = HybridRule(threshold=80, approver_id=cfo, operator=HybridOperator.AND)
        created = create_workflow([a, b], rule, name="High Security")

        loaded = workflow_repository.load_workflow(created.workflow_id)

        assert loaded.rule == rule
        assert loaded.approver_ids == (a, b)
        assert [s.step_number for s in loaded.steps] == [1, 2]
        assert loaded.origin == WorkflowOrigin.CONFIGURED
        assert loaded.created_at.tzinfo is not None

    def test_unknown_workflow(self, workflow_repository):
        with pytest.raises(WorkflowNotFoundError):
            workflow_repository.load_workflow(uuid4())

    def test_list_for_company_newest_first(self, create_workflow, workflow_repository, company_id):
        first = create_workflow([uuid4()], name="First")
        second = create_workflow([uuid4()], name="Second")
        create_workflow([uuid4()], company_id=uuid4(), name="Elsewhere")

        listed = workflow_repository.list_for_company(company_id)

        assert [w.workflow_id for w in listed] == [second.workflow_id, first.workflow_id]


class TestDefaultWorkflow:

    def test_set_default_is_exclusive(self, create_workflow, workflow_repository, company_id):
        first = create_workflow([uuid4()], make_default=True)
        second = create_workflow([uuid4()])

        workflow_repository.set_default(company_id, second.workflow_id)

        assert workflow_repository.find_default(company_id).workflow_id == second.workflow_id
        assert workflow_repository.load_workflow(first.workflow_id).is_default is False

    def test_set_default_rejects_other_company(
        self, create_workflow, workflow_repository, company_id, other_company_id,
    ):
        mine = create_workflow([uuid4()], make_default=True)
        theirs = create_workflow([uuid4()], company_id=other_company_id)

        with pytest.raises(WorkflowNotFoundError):
            workflow_repository.set_default(company_id, theirs.workflow_id)

        # The existing default is untouched.
        assert workflow_repository.find_default(company_id).workflow_id == mine.workflow_id

    def test_no_default(self, workflow_repository, company_id):
        assert workflow_repository.find_default(company_id) is None


class TestReportingLine:

    def test_employee_with_manager_and_admin(self, make_submitter):
        manager, admin = uuid4(), uuid4()
        submitter = make_submitter(SubmitterRole.EMPLOYEE, manager_id=manager, admin_id=admin)

        assert reporting_line_approvers(submitter) == (manager, admin)

    def test_manager_with_admin(self, make_submitter):
        admin = uuid4()
        submitter = make_submitter(SubmitterRole.MANAGER, manager_id=uuid4(), admin_id=admin)

        assert reporting_line_approvers(submitter) == (admin,)

    @pytest.mark.parametrize(
        "role, has_manager, has_admin",
        [
            (SubmitterRole.EMPLOYEE, False, True),
            (SubmitterRole.EMPLOYEE, True, False),
            (SubmitterRole.MANAGER, False, False),
            (SubmitterRole.ADMIN, True, True),
        ],
    )
    def test_no_reporting_line(self, make_submitter, role, has_manager, has_admin):
        submitter = make_submitter(
            role,
            manager_id=uuid4() if has_manager else None,
            admin_id=uuid4() if has_admin else None,
        )

        assert reporting_line_approvers(submitter) == ()


class TestEnsureDefaultWorkflow:

    def test_admin_default_takes_precedence(
        self, create_workflow, workflow_repository, company_id, make_submitter,
    ):
        default = create_workflow([uuid4(), uuid4()], make_default=True)
        submitter = make_submitter(manager_id=uuid4(), admin_id=uuid4())

        result = workflow_repository.ensure_default_workflow(company_id, submitter)

        assert result.workflow_id == default.workflow_id

    def test_employee_gets_hierarchy_workflow(
        self, workflow_repository, company_id, make_submitter,
    ):
        manager, admin = uuid4(), uuid4()
        submitter = make_submitter(manager_id=manager, admin_id=admin)

        result = workflow_repository.ensure_default_workflow(company_id, submitter)

        assert result.name == "Hierarchical Approval"
        assert result.origin == WorkflowOrigin.HIERARCHY
        assert result.rule == SequentialRule()
        assert result.approver_ids == (manager, admin)

    def test_manager_gets_admin_workflow(self, workflow_repository, company_id, make_submitter):
        admin = uuid4()
        submitter = make_submitter(SubmitterRole.MANAGER, admin_id=admin)

        result = workflow_repository.ensure_default_workflow(company_id, submitter)

        assert result.name == "Manager to Admin"
        assert result.approver_ids == (admin,)

    def test_hierarchy_workflow_is_reused(
        self, workflow_repository, company_id, make_submitter,
    ):
        manager, admin = uuid4(), uuid4()

        first = workflow_repository.ensure_default_workflow(
            company_id, make_submitter(manager_id=manager, admin_id=admin),
        )
        second = workflow_repository.ensure_default_workflow(
            company_id, make_submitter(manager_id=manager, admin_id=admin),
        )
        other_team = workflow_repository.ensure_default_workflow(
            company_id, make_submitter(manager_id=uuid4(), admin_id=admin),
        )

        assert second.workflow_id == first.workflow_id
        assert other_team.workflow_id != first.workflow_id

    def test_placeholder_when_no_reporting_line(
        self, workflow_repository, company_id, make_submitter, captured_logs,
    ):
        first = workflow_repository.ensure_default_workflow(
            company_id, make_submitter(SubmitterRole.ADMIN),
        )
        second = workflow_repository.ensure_default_workflow(
            company_id, make_submitter(SubmitterRole.EMPLOYEE),
        )

        assert first.name == "Default Approval Workflow"
        assert first.origin == WorkflowOrigin.PLACEHOLDER
        assert first.steps == ()
        assert second.workflow_id == first.workflow_id

        provisioned = [r for r in captured_logs() if r["message"] == "workflow_provisioned"]
        assert len(provisioned) == 1
        assert provisioned[0]["origin"] == "placeholder"

    def test_placeholder_is_per_company(
        self, workflow_repository, company_id, other_company_id, make_submitter,
    ):
        mine = workflow_repository.ensure_default_workflow(company_id, make_submitter())
        theirs = workflow_repository.ensure_default_workflow(other_company_id, make_submitter())

        assert mine.workflow_id != theirs.workflow_id
        assert theirs.company_id == other_company_id

    def test_policy_names(self, workflow_repository, company_id, make_submitter):
        policy = ProvisioningPolicy(placeholder_workflow_name="Auto Approve")

        result = workflow_repository.ensure_default_workflow(
            company_id, make_submitter(), policy,
        )

        assert result.name == "Auto Approve"
