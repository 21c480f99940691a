"""
ExpenseConfig schema.

Frozen dataclasses the YAML configuration set is parsed into.  Only
``expense_config.loader`` builds these; everything else receives them from
``expense_config.get_active_config()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection settings passed to ``init_engine_from_url``."""

    url: str
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


# ---------------------------------------------------------------------------
# Approval behaviour
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProvisioningConfig:
    """Names of workflows materialized at claim submission."""

    hierarchy_workflow_name: str = "Hierarchical Approval"
    manager_workflow_name: str = "Manager to Admin"
    placeholder_workflow_name: str = "Default Approval Workflow"


@dataclass(frozen=True)
class WorkflowTemplateDef:
    """A workflow shape the seed tooling can stamp out for a company.

    Steps are filled from the company's managers (``manager_steps`` of them,
    or all when None).  ``cfo_final_step`` appends the finance approver as
    the last step; ``cfo_approver`` makes them the rule's specific approver.
    """

    name: str
    rule_type: str
    threshold: int | None = None
    operator: str | None = None
    manager_steps: int | None = None
    cfo_final_step: bool = False
    cfo_approver: bool = False


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ExpenseConfig:
    """The whole runtime configuration."""

    config_id: str
    version: int
    database: DatabaseConfig
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    provisioning: ProvisioningConfig = field(default_factory=ProvisioningConfig)
    workflow_templates: tuple[WorkflowTemplateDef, ...] = ()
    checksum: str = ""
