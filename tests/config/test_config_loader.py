"""
Tests for the YAML configuration loader and get_active_config().
"""

from pathlib import Path

import pytest
import yaml

from expense_config import DATABASE_URL_ENV, get_active_config
from expense_config.loader import compute_checksum, load_config, parse_config


def _minimal(**overrides) -> dict:
    data = {
        "config_id": "test-config",
        "version": 3,
        "database": {"url": "sqlite://"},
    }
    data.update(overrides)
    return data


def _write(tmp_path, data) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(data, sort_keys=False))
    return path


class TestActiveConfig:

    def test_bundled_config_loads(self, monkeypatch):
        monkeypatch.delenv(DATABASE_URL_ENV, raising=False)

        config = get_active_config()

        assert config.config_id == "expense-approval-default"
        assert config.database.url == "sqlite:///expense_kernel.db"
        assert [t.name for t in config.workflow_templates] == [
            "Sequential Approval Workflow",
            "60% Approval Workflow",
            "CFO Auto-Approval Workflow",
            "Hybrid: 60% OR CFO Approval",
            "High Security: 80% AND CFO Approval",
        ]
        assert len(config.checksum) == 64

    def test_database_url_override(self, monkeypatch, captured_logs):
        monkeypatch.setenv(DATABASE_URL_ENV, "postgresql://expense@db/expense")

        config = get_active_config()

        assert config.database.url == "postgresql://expense@db/expense"
        traces = [r for r in captured_logs() if r["message"] == "EXPENSE_CONFIG_TRACE"]
        assert traces[-1]["database_url_overridden"] is True
        assert traces[-1]["config_set_id"] == "expense-approval-default"

    def test_explicit_path(self, tmp_path, monkeypatch):
        monkeypatch.delenv(DATABASE_URL_ENV, raising=False)

        config = get_active_config(_write(tmp_path, _minimal()))

        assert config.config_id == "test-config"
        assert config.version == 3
        assert config.workflow_templates == ()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")


class TestParseConfig:

    def test_defaults(self):
        config = parse_config(_minimal())

        assert config.database.pool_size == 20
        assert config.logging.level == "INFO"
        assert config.provisioning.placeholder_workflow_name == "Default Approval Workflow"

    @pytest.mark.parametrize("missing", ["config_id", "database"])
    def test_required_keys(self, missing):
        data = _minimal()
        del data[missing]

        with pytest.raises(ValueError, match=missing):
            parse_config(data)

    def test_database_url_required(self):
        with pytest.raises(ValueError, match="database.url"):
            parse_config(_minimal(database={"echo": True}))

    def test_bad_logging_level(self):
        with pytest.raises(ValueError, match="logging.level"):
            parse_config(_minimal(logging={"level": "CHATTY"}))

    def test_non_mapping_document(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ValueError, match="mapping"):
            load_config(path)


class TestWorkflowTemplates:

    def test_hybrid_operator_defaults_to_or(self):
        config = parse_config(_minimal(workflow_templates=[
            {"name": "H", "rule_type": "hybrid", "threshold": 50, "cfo_approver": True},
        ]))

        assert config.workflow_templates[0].operator == "OR"

    def test_parameters_dropped_for_rules_without_them(self):
        config = parse_config(_minimal(workflow_templates=[
            {"name": "S", "rule_type": "sequential", "threshold": 50, "operator": "AND"},
        ]))

        template = config.workflow_templates[0]
        assert template.threshold is None
        assert template.operator is None

    @pytest.mark.parametrize(
        "template, message",
        [
            ({"rule_type": "sequential"}, "requires a name"),
            ({"name": "X", "rule_type": "unanimous"}, "unknown rule_type"),
            ({"name": "X", "rule_type": "percentage"}, "threshold"),
            ({"name": "X", "rule_type": "percentage", "threshold": 101}, "threshold"),
            ({"name": "X", "rule_type": "percentage", "threshold": 60.5}, "threshold"),
            (
                {"name": "X", "rule_type": "hybrid", "threshold": 60, "operator": "XOR",
                 "cfo_approver": True},
                "operator",
            ),
            ({"name": "X", "rule_type": "specific_approver"}, "cfo_approver"),
            ({"name": "X", "rule_type": "sequential", "manager_steps": 0}, "manager_steps"),
        ],
    )
    def test_invalid_templates(self, template, message):
        with pytest.raises(ValueError, match=message):
            parse_config(_minimal(workflow_templates=[template]))

    def test_duplicate_names(self):
        templates = [
            {"name": "Same", "rule_type": "sequential"},
            {"name": "Same", "rule_type": "sequential"},
        ]

        with pytest.raises(ValueError, match="duplicate"):
            parse_config(_minimal(workflow_templates=templates))


class TestChecksum:

    def test_key_order_independent(self):
        assert compute_checksum({"a": 1, "b": [1, 2]}) == compute_checksum({"b": [1, 2], "a": 1})

    def test_content_sensitive(self):
        assert compute_checksum(_minimal()) != compute_checksum(_minimal(version=4))
