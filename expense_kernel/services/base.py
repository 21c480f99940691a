"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Common constructor and session-handling contract for every service and
    repository in the kernel layer, plus the translation of driver-level
    failures into ``TransientStorageError``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit or rollback themselves.  The caller
      (``session_scope()``, ``retry_on_conflict`` or a test) owns
      commit/rollback.

Failure modes:
    - TransientStorageError wrapping any SQLAlchemy ``DBAPIError`` other
      than an ``IntegrityError``.  The original exception is chained as
      ``__cause__``.
"""

from abc import ABC
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session

from expense_kernel.exceptions import TransientStorageError
from expense_kernel.logging_config import get_logger

logger = get_logger("services.base")


class BaseService(ABC):
    """
    Abstract base class for kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide query-only listings -- those belong in
          ``expense_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session


@contextmanager
def storage_operation(operation: str) -> Iterator[None]:
    """Run a persistence step, surfacing I/O failures as TransientStorageError.

    Integrity errors are programming or data bugs and propagate unchanged.
    """
    try:
        yield
    except IntegrityError:
        raise
    except DBAPIError as exc:
        detail = str(exc.orig) if exc.orig is not None else str(exc)
        logger.warning(
            "storage_operation_failed",
            extra={"operation": operation, "detail": detail},
        )
        raise TransientStorageError(operation, detail) from exc
