"""
Expense Kernel - approval workflow core

A multi-tenant expense claim approval kernel with:
- Configurable approval workflows (sequential, percentage, specific approver, hybrid)
- Append-only approval history
- Per-claim optimistic concurrency
- Structured, auditable decision logging
"""

__version__ = "0.1.0"
