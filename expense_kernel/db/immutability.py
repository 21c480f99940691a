"""
ORM-level append-only enforcement for approval configuration and history.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                  | Rule
------------------------|-----------------------------------------------------
Workflow                | Only ``is_default`` may change after insert; never deleted
WorkflowStep            | Immutable from creation; never deleted
ApprovalHistory         | Immutable from creation; never deleted

In-flight claims are evaluated against the workflow attached at submission,
so a workflow's name, rule and steps are frozen once it exists.  Approval
history is the audit trail (including the rejection comment) and is only
ever appended to.

SQLAlchemy fires ``before_update`` / ``before_delete`` during flush, before
any SQL reaches the database.  A failed check raises
ImmutabilityViolationError and the flush is aborted.

Bulk Core statements (``session.execute(update(...))``) bypass these hooks.
The claim repository only issues such a statement against ``expense_claims``.

===============================================================================
USAGE
===============================================================================

    from expense_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

Tests that need to write forbidden rows call
``unregister_immutability_listeners()`` and re-register afterwards.
"""

from sqlalchemy import event, inspect

from expense_kernel.exceptions import ImmutabilityViolationError
from expense_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

# Workflow columns an admin may flip after creation.
_WORKFLOW_MUTABLE_FIELDS = frozenset({"is_default"})


def _changed_columns(target) -> set[str]:
    state = inspect(target)
    return {
        attr.key
        for attr in state.mapper.column_attrs
        if state.attrs[attr.key].history.has_changes()
    }


def _blocked(entity_type: str, entity_id, operation: str, reason: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
        },
    )
    return ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _check_workflow_immutability(mapper, connection, target):
    """Allow default-flag changes only."""
    forbidden = _changed_columns(target) - _WORKFLOW_MUTABLE_FIELDS
    if forbidden:
        raise _blocked(
            "Workflow", target.id, "UPDATE",
            f"Workflow configuration is immutable (attempted: {', '.join(sorted(forbidden))})",
        )


def _check_workflow_delete(mapper, connection, target):
    raise _blocked(
        "Workflow", target.id, "DELETE",
        "Workflows may be referenced by claims and cannot be deleted",
    )


def _check_workflow_step_immutability(mapper, connection, target):
    raise _blocked(
        "WorkflowStep", target.id, "UPDATE",
        "Workflow steps are immutable -- cannot modify",
    )


def _check_workflow_step_delete(mapper, connection, target):
    raise _blocked(
        "WorkflowStep", target.id, "DELETE",
        "Workflow steps are immutable -- cannot delete",
    )


def _check_history_immutability(mapper, connection, target):
    raise _blocked(
        "ApprovalHistory", target.id, "UPDATE",
        "Approval history is append-only -- cannot modify",
    )


def _check_history_delete(mapper, connection, target):
    raise _blocked(
        "ApprovalHistory", target.id, "DELETE",
        "Approval history is append-only -- cannot delete",
    )


def _listeners():
    from expense_kernel.models.claim import ApprovalHistoryModel
    from expense_kernel.models.workflow import WorkflowModel, WorkflowStepModel

    return (
        (WorkflowModel, "before_update", _check_workflow_immutability),
        (WorkflowModel, "before_delete", _check_workflow_delete),
        (WorkflowStepModel, "before_update", _check_workflow_step_immutability),
        (WorkflowStepModel, "before_delete", _check_workflow_step_delete),
        (ApprovalHistoryModel, "before_update", _check_history_immutability),
        (ApprovalHistoryModel, "before_delete", _check_history_delete),
    )


def register_immutability_listeners():
    """
    Register all append-only enforcement listeners.

    Call once after models are importable and before any writes.
    Registering twice is a no-op.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove the append-only enforcement listeners.

    WARNING: Only use this in tests that must write forbidden rows.
    """
    for target, event_name, listener_fn in _listeners():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
