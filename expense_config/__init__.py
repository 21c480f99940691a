"""
expense_config -- single public entrypoint for runtime configuration.

Responsibility:
    ``get_active_config()`` is the ONLY way to obtain configuration at
    runtime.  No other component reads configuration files or environment
    variables directly.

Architecture position:
    Configuration -- YAML-driven, above ``expense_kernel``.  The kernel
    MUST NEVER import from ``expense_config``; ``expense_config.bridges``
    translates configuration into kernel inputs.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``ValueError`` -- schema or structural validation failure.

Every successful call emits an ``EXPENSE_CONFIG_TRACE`` log entry with the
config id, version and checksum.
"""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from pathlib import Path

from expense_config.loader import load_config
from expense_config.schema import ExpenseConfig

_logger = logging.getLogger("expense_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"

# Deployment override for the connection string.  Read here and nowhere else.
DATABASE_URL_ENV = "EXPENSE_DATABASE_URL"


def get_active_config(config_path: Path | str | None = None) -> ExpenseConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: YAML file to load.  Defaults to
            ``expense_config/sets/default.yaml``.

    Returns:
        ExpenseConfig -- frozen, validated configuration.  When
        ``EXPENSE_DATABASE_URL`` is set it replaces ``database.url``.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_CONFIG_PATH
    config = load_config(path)

    url_override = os.environ.get(DATABASE_URL_ENV)
    if url_override:
        config = replace(config, database=replace(config.database, url=url_override))

    _logger.info(
        "EXPENSE_CONFIG_TRACE",
        extra={
            "trace_type": "EXPENSE_CONFIG_TRACE",
            "config_set_id": config.config_id,
            "config_set_version": config.version,
            "checksum": config.checksum,
            "template_count": len(config.workflow_templates),
            "database_url_overridden": bool(url_override),
        },
    )
    return config


__all__ = ["ExpenseConfig", "get_active_config", "DATABASE_URL_ENV"]
