"""
Pure calculation engines for the expense approval kernel.

Engines take frozen domain objects and return results.  They perform no
I/O and read no clock.
"""

from expense_engines.approval import (
    approval_percentage,
    check_hybrid_rule,
    check_percentage_rule,
    check_sequential_rule,
    check_specific_approver_rule,
    evaluate,
)
from expense_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "evaluate",
    "check_sequential_rule",
    "check_percentage_rule",
    "check_specific_approver_rule",
    "check_hybrid_rule",
    "approval_percentage",
    "traced_engine",
    "compute_input_fingerprint",
]
