"""
Tests for the config -> kernel bridges and the workflow seeding script.
"""

from dataclasses import replace
from uuid import uuid4

import pytest

from expense_config import get_active_config
from expense_config.bridges import (
    init_kernel_from_config,
    provisioning_policy_from_config,
    template_approvers_and_rule,
)
from expense_config.loader import parse_config
from expense_config.schema import WorkflowTemplateDef
from expense_kernel.db.engine import get_session, reset_engine
from expense_kernel.domain.approval import (
    HybridOperator,
    HybridRule,
    PercentageRule,
    ProvisioningPolicy,
    SequentialRule,
    SpecificApproverRule,
)
from expense_kernel.services.workflow_service import WorkflowService


@pytest.fixture
def config():
    return get_active_config()


@pytest.fixture
def templates(config):
    return {t.name: t for t in config.workflow_templates}


@pytest.fixture
def managers():
    return [uuid4() for _ in range(6)]


@pytest.fixture
def kernel_engine():
    """Engine opened by the code under test, disposed afterwards."""
    yield
    reset_engine()


class TestProvisioningPolicy:

    def test_names_from_config(self):
        config = parse_config({
            "config_id": "c",
            "database": {"url": "sqlite://"},
            "provisioning": {"placeholder_workflow_name": "Auto"},
        })

        policy = provisioning_policy_from_config(config)

        assert policy == ProvisioningPolicy(placeholder_workflow_name="Auto")


class TestTemplateWorkflowSpec:

    def test_sequential_with_finance_final_step(self, templates, managers):
        cfo = uuid4()

        approvers, rule = template_approvers_and_rule(
            templates["Sequential Approval Workflow"], managers, cfo,
        )

        assert approvers == (managers[0], managers[1], cfo)
        assert rule == SequentialRule()

    def test_percentage(self, templates, managers):
        approvers, rule = template_approvers_and_rule(
            templates["60% Approval Workflow"], managers, uuid4(),
        )

        assert approvers == tuple(managers[:5])
        assert rule == PercentageRule(threshold=60)

    def test_specific_approver(self, templates, managers):
        cfo = uuid4()

        approvers, rule = template_approvers_and_rule(
            templates["CFO Auto-Approval Workflow"], managers, cfo,
        )

        assert approvers == tuple(managers[:3])
        assert rule == SpecificApproverRule(approver_id=cfo)

    def test_hybrid_templates(self, templates, managers):
        cfo = uuid4()

        either, either_rule = template_approvers_and_rule(
            templates["Hybrid: 60% OR CFO Approval"], managers, cfo,
        )
        both, both_rule = template_approvers_and_rule(
            templates["High Security: 80% AND CFO Approval"], managers, cfo,
        )

        assert either == tuple(managers[:4])
        assert either_rule == HybridRule(threshold=60, approver_id=cfo, operator=HybridOperator.OR)
        assert both == tuple(managers)
        assert both_rule == HybridRule(threshold=80, approver_id=cfo, operator=HybridOperator.AND)

    def test_finance_approver_required(self, managers):
        template = WorkflowTemplateDef(
            name="Needs CFO", rule_type="specific_approver", cfo_approver=True,
        )

        with pytest.raises(ValueError, match="finance approver"):
            template_approvers_and_rule(template, managers, None)

    def test_fewer_managers_than_steps(self, templates):
        only = [uuid4()]

        approvers, _ = template_approvers_and_rule(templates["60% Approval Workflow"], only, uuid4())

        assert approvers == (only[0],)


class TestInitKernel:

    def test_creates_schema_and_accepts_workflows(self, config, kernel_engine, managers):
        in_memory = replace(config, database=replace(config.database, url="sqlite://"))

        engine = init_kernel_from_config(in_memory, create_schema=True)

        assert engine.dialect.name == "sqlite"
        session = get_session()
        try:
            company_id, cfo = uuid4(), uuid4()
            service = WorkflowService(session)
            for template in in_memory.workflow_templates:
                approvers, rule = template_approvers_and_rule(template, managers, cfo)
                service.create_workflow(company_id, template.name, approvers, rule)

            assert len(service.list_workflows(company_id)) == len(in_memory.workflow_templates)
        finally:
            session.rollback()
            session.close()


class TestSeedScript:

    def test_seeds_every_template(self, tmp_path, kernel_engine, templates):
        from scripts.seed_workflows import main

        company_id, cfo = uuid4(), uuid4()
        managers = [uuid4() for _ in range(5)]
        argv = ["--db-url", f"sqlite:///{tmp_path / 'seed.db'}", "--company-id", str(company_id), "--cfo", str(cfo)]
        for manager in managers:
            argv += ["--manager", str(manager)]

        assert main(argv) == 0

        session = get_session()
        try:
            stored = WorkflowService(session).list_workflows(company_id)
        finally:
            session.close()

        assert {w.name for w in stored} == set(templates)
        defaults = [w for w in stored if w.is_default]
        assert [w.name for w in defaults] == ["Sequential Approval Workflow"]
