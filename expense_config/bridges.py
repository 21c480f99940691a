"""
Config -> Kernel Bridges.

Functions that turn ``ExpenseConfig`` into kernel inputs.  They live in
expense_config (the producer) because the kernel must NEVER import
expense_config.

Usage:
    from expense_config import get_active_config
    from expense_config.bridges import init_kernel_from_config, provisioning_policy_from_config

    config = get_active_config()
    init_kernel_from_config(config)
    policy = provisioning_policy_from_config(config)
"""

from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy.engine import Engine

from expense_config.schema import ExpenseConfig, WorkflowTemplateDef
from expense_kernel.db.engine import create_tables, init_engine_from_url
from expense_kernel.db.immutability import register_immutability_listeners
from expense_kernel.domain.approval import ApprovalRule, ProvisioningPolicy
from expense_kernel.domain.workflow_validation import build_rule
from expense_kernel.logging_config import configure_logging


def provisioning_policy_from_config(config: ExpenseConfig) -> ProvisioningPolicy:
    """Workflow names used when claims are submitted without a workflow."""
    p = config.provisioning
    return ProvisioningPolicy(
        hierarchy_workflow_name=p.hierarchy_workflow_name,
        manager_workflow_name=p.manager_workflow_name,
        placeholder_workflow_name=p.placeholder_workflow_name,
    )


def init_kernel_from_config(config: ExpenseConfig, *, create_schema: bool = False) -> Engine:
    """Configure logging, open the engine and arm append-only enforcement.

    Args:
        config: Active configuration.
        create_schema: Also create missing tables (local tooling / SQLite).
    """
    configure_logging(level=config.logging.level)
    db = config.database
    engine = init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
    )
    register_immutability_listeners()
    if create_schema:
        create_tables()
    return engine


def template_approvers_and_rule(
    template: WorkflowTemplateDef,
    manager_ids: Sequence[UUID],
    cfo_id: UUID | None,
) -> tuple[tuple[UUID, ...], ApprovalRule]:
    """Resolve a template against a company's people.

    Returns:
        (approver_ids in step order, rule) ready for
        ``WorkflowService.create_workflow``.

    Raises:
        ValueError: If the template needs a finance approver and none is given.
    """
    needs_cfo = template.cfo_final_step or template.cfo_approver
    if needs_cfo and cfo_id is None:
        raise ValueError(f"template {template.name!r} requires a finance approver")

    managers = list(manager_ids)
    if template.manager_steps is not None:
        managers = managers[: template.manager_steps]
    approvers = tuple(managers) + ((cfo_id,) if template.cfo_final_step else ())

    rule = build_rule(
        template.rule_type,
        threshold=template.threshold,
        approver_id=cfo_id if template.cfo_approver else None,
        operator=template.operator,
    )
    return approvers, rule
