#!/usr/bin/env python3
"""
Seed a company with the workflow templates from the active configuration.

Creates the schema if needed, then stamps out one workflow per
``workflow_templates`` entry using the given managers and finance approver,
and commits.  The first template becomes the company default unless
``--no-default`` is passed.

Usage:
    python3 scripts/seed_workflows.py --company-id UUID \\
        --manager UUID --manager UUID --cfo UUID [--config PATH] [--db-url URL]

Company and people ids come from the identity system; random ones are
generated when omitted, which is handy for a local SQLite playground.
"""

import argparse
import sys
from dataclasses import replace
from pathlib import Path
from uuid import UUID, uuid4

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

DEFAULT_MANAGER_COUNT = 5


def _parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Create the configured approval workflow templates for a company",
    )
    p.add_argument("--company-id", type=UUID, default=None, help="Owning company (default: random)")
    p.add_argument(
        "--manager", dest="managers", type=UUID, action="append", default=[],
        help="Manager approver id, in step order; repeat for each manager",
    )
    p.add_argument("--cfo", type=UUID, default=None, help="Finance approver id (default: random)")
    p.add_argument("--config", type=Path, default=None, help="Configuration YAML (default: bundled set)")
    p.add_argument("--db-url", default=None, help="Database URL (overrides the configuration)")
    p.add_argument(
        "--no-default", action="store_true",
        help="Do not make the first template the company default",
    )
    return p.parse_args(argv)


def main(argv=None) -> int:
    args = _parse_args(argv)

    from expense_config import get_active_config
    from expense_config.bridges import init_kernel_from_config, template_approvers_and_rule
    from expense_kernel.db.engine import session_scope
    from expense_kernel.exceptions import InvalidWorkflowError
    from expense_kernel.services.workflow_service import WorkflowService

    config = get_active_config(args.config)
    if args.db_url:
        config = replace(config, database=replace(config.database, url=args.db_url))

    if not config.workflow_templates:
        print(f"  Configuration {config.config_id!r} defines no workflow templates.", file=sys.stderr)
        return 1

    company_id = args.company_id or uuid4()
    managers = args.managers or [uuid4() for _ in range(DEFAULT_MANAGER_COUNT)]
    cfo_id = args.cfo or uuid4()

    print(f"  [1/2] Initializing database ({config.database.url})...")
    init_kernel_from_config(config, create_schema=True)

    print(f"  [2/2] Creating {len(config.workflow_templates)} workflows for company {company_id}...")
    try:
        with session_scope() as session:
            service = WorkflowService(session)
            for position, template in enumerate(config.workflow_templates):
                approver_ids, rule = template_approvers_and_rule(template, managers, cfo_id)
                workflow = service.create_workflow(
                    company_id,
                    template.name,
                    approver_ids,
                    rule,
                    company_member_ids=[*managers, cfo_id],
                    make_default=position == 0 and not args.no_default,
                )
                marker = " (default)" if workflow.is_default else ""
                print(
                    f"        {workflow.name}: {rule.rule_type.value}, "
                    f"{len(workflow.steps)} steps{marker}"
                )
    except (InvalidWorkflowError, ValueError) as exc:
        print(f"  FAILED: {exc}", file=sys.stderr)
        return 1

    print()
    print(f"  company_id: {company_id}")
    print(f"  managers:   {', '.join(str(m) for m in managers)}")
    print(f"  cfo:        {cfo_id}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
