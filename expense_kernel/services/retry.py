"""
Caller-side retry for optimistic concurrency conflicts.

Responsibility:
    Re-run a unit of work that lost a version race.  The unit of work must
    reload the claim itself (typically by opening a fresh
    ``session_scope()``), so each attempt re-applies the decision to the
    latest state.

Architecture position:
    Kernel > Services -- helper for API handlers and batch tooling.  The
    coordinator never retries on its own.

Invariants enforced:
    - Only ``OptimisticLockError`` is retried.  ``ClaimAlreadyResolvedError``
      and every other error propagate on the first occurrence.
    - MAX_ATTEMPTS bounds the loop.

Usage:
    def decide():
        with session_scope() as session:
            coordinator = ApprovalCoordinator(session, clock)
            return coordinator.record_decision(claim_id, approver_id, "Approved")

    claim = retry_on_conflict(decide, attempts=3)
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

from expense_kernel.exceptions import OptimisticLockError
from expense_kernel.logging_config import get_logger

logger = get_logger("services.retry")

T = TypeVar("T")

# Safety limit for callers passing an unbounded attempt count.
MAX_ATTEMPTS = 10


def retry_on_conflict(operation: Callable[[], T], attempts: int = 3) -> T:
    """Call ``operation`` until it succeeds or conflicts ``attempts`` times.

    Raises:
        ValueError: If ``attempts`` is not in [1, MAX_ATTEMPTS].
        OptimisticLockError: From the last attempt when every attempt
            conflicted.
    """
    if not 1 <= attempts <= MAX_ATTEMPTS:
        raise ValueError(f"attempts must be between 1 and {MAX_ATTEMPTS}, got {attempts}")

    for attempt in range(1, attempts):
        try:
            return operation()
        except OptimisticLockError as exc:
            logger.info(
                "conflict_retry",
                extra={"attempt": attempt, "entity_id": exc.entity_id},
            )

    try:
        return operation()
    except OptimisticLockError as exc:
        logger.warning(
            "conflict_retries_exhausted",
            extra={"attempts": attempts, "entity_id": exc.entity_id},
        )
        raise
