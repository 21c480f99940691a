"""
Configuration Loader (``expense_config.loader``).

Responsibility
--------------
Loads the YAML configuration set and parses it into typed
``expense_config.schema`` dataclass instances.  Runtime callers use
``expense_config.get_active_config()`` instead of calling this directly.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  No dependency on the kernel.

Invariants enforced
-------------------
* Every structural problem raises ``ValueError`` with a message naming the
  offending key; required keys are never silently defaulted.
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``compute_checksum`` is a deterministic SHA-256 over the raw document.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Any

import yaml

from expense_config.schema import (
    DatabaseConfig,
    ExpenseConfig,
    LoggingConfig,
    ProvisioningConfig,
    WorkflowTemplateDef,
)

_VALID_RULE_TYPES = frozenset({"sequential", "percentage", "specific_approver", "hybrid"})
_RULES_WITH_THRESHOLD = frozenset({"percentage", "hybrid"})
_RULES_WITH_APPROVER = frozenset({"specific_approver", "hybrid"})
_VALID_OPERATORS = frozenset({"AND", "OR"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top-level YAML document must be a mapping")
    return data


def _positive_int(value: Any, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"{key} must be a positive integer, got {value!r}")
    return value


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    """Parse the ``database`` section.  ``url`` is required."""
    if not data.get("url"):
        raise ValueError("database.url is required")
    return DatabaseConfig(
        url=str(data["url"]),
        echo=bool(data.get("echo", False)),
        pool_size=_positive_int(data.get("pool_size", 20), "database.pool_size"),
        max_overflow=int(data.get("max_overflow", 10)),
        pool_timeout=_positive_int(data.get("pool_timeout", 30), "database.pool_timeout"),
    )


def parse_logging(data: dict[str, Any]) -> LoggingConfig:
    level = str(data.get("level", "INFO")).upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ValueError(f"logging.level {level!r} is not a logging level name")
    return LoggingConfig(level=level)


def parse_provisioning(data: dict[str, Any]) -> ProvisioningConfig:
    defaults = ProvisioningConfig()
    return ProvisioningConfig(
        hierarchy_workflow_name=data.get(
            "hierarchy_workflow_name", defaults.hierarchy_workflow_name,
        ),
        manager_workflow_name=data.get(
            "manager_workflow_name", defaults.manager_workflow_name,
        ),
        placeholder_workflow_name=data.get(
            "placeholder_workflow_name", defaults.placeholder_workflow_name,
        ),
    )


def parse_workflow_template(data: dict[str, Any]) -> WorkflowTemplateDef:
    """
    Parse one ``workflow_templates`` entry.

    Raises:
        ValueError: unknown rule type, threshold outside [1, 100] or missing
            where required, bad operator, or a specific-approver rule
            without ``cfo_approver``.
    """
    name = data.get("name")
    if not name:
        raise ValueError("workflow template requires a name")

    rule_type = data.get("rule_type")
    if rule_type not in _VALID_RULE_TYPES:
        raise ValueError(
            f"workflow template {name!r}: unknown rule_type {rule_type!r} "
            f"(expected one of {sorted(_VALID_RULE_TYPES)})"
        )

    threshold = data.get("threshold")
    if rule_type in _RULES_WITH_THRESHOLD:
        if isinstance(threshold, bool) or not isinstance(threshold, int) or not 1 <= threshold <= 100:
            raise ValueError(
                f"workflow template {name!r}: threshold must be an integer "
                f"between 1 and 100, got {threshold!r}"
            )

    operator = data.get("operator")
    if rule_type == "hybrid":
        operator = str(operator or "OR").upper()
        if operator not in _VALID_OPERATORS:
            raise ValueError(f"workflow template {name!r}: operator must be AND or OR")

    cfo_approver = bool(data.get("cfo_approver", False))
    if rule_type in _RULES_WITH_APPROVER and not cfo_approver:
        raise ValueError(
            f"workflow template {name!r}: {rule_type} rule needs cfo_approver: true"
        )

    manager_steps = data.get("manager_steps")
    if manager_steps is not None:
        manager_steps = _positive_int(manager_steps, f"{name}.manager_steps")

    return WorkflowTemplateDef(
        name=name,
        rule_type=rule_type,
        threshold=threshold if rule_type in _RULES_WITH_THRESHOLD else None,
        operator=operator if rule_type == "hybrid" else None,
        manager_steps=manager_steps,
        cfo_final_step=bool(data.get("cfo_final_step", False)),
        cfo_approver=cfo_approver,
    )


def parse_config(data: dict[str, Any]) -> ExpenseConfig:
    """Parse a whole configuration document."""
    for key in ("config_id", "database"):
        if key not in data:
            raise ValueError(f"configuration is missing required key {key!r}")

    templates = tuple(
        parse_workflow_template(t) for t in data.get("workflow_templates") or ()
    )
    names = [t.name for t in templates]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ValueError(f"duplicate workflow template names: {duplicates}")

    return ExpenseConfig(
        config_id=str(data["config_id"]),
        version=int(data.get("version", 1)),
        database=parse_database(data["database"] or {}),
        logging=parse_logging(data.get("logging") or {}),
        provisioning=parse_provisioning(data.get("provisioning") or {}),
        workflow_templates=templates,
        checksum=compute_checksum(data),
    )


def load_config(path: Path) -> ExpenseConfig:
    """Load and parse the configuration file at ``path``."""
    return parse_config(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
