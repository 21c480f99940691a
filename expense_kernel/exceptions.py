"""
Typed Exception Hierarchy for the Expense Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the approval kernel (the API layer, batch tooling, tests) must be
able to tell a retryable conflict from a programming error without parsing
message strings.  Every error therefore has:

  1. A TYPED exception class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. Structured DATA attributes (not just a message string)

Example - WRONG way to handle errors:
    try:
        coordinator.record_decision(...)
    except Exception as e:
        if "modified by another" in str(e):  # FRAGILE
            retry()

Example - RIGHT way:
    try:
        coordinator.record_decision(...)
    except OptimisticLockError:
        retry()                         # reload + reapply is safe
    except ClaimAlreadyResolvedError as e:
        api_response(code=e.code, status=e.status)   # hard error, no retry

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from ExpenseKernelError:

    ExpenseKernelError (base)
    |
    +-- NotFoundError
    |   +-- ClaimNotFoundError
    |   +-- WorkflowNotFoundError
    |
    +-- ValidationError
    |   +-- InvalidDecisionError
    |   +-- RejectionCommentRequiredError
    |   +-- InvalidWorkflowError
    |
    +-- ConflictError
    |   +-- ClaimAlreadyResolvedError
    |   +-- InvalidClaimTransitionError
    |   +-- OptimisticLockError
    |
    +-- TransientStorageError
    |
    +-- WorkflowIntegrityError
    |
    +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Not found       | CLAIM_NOT_FOUND             | Claim ID doesn't resolve
                | WORKFLOW_NOT_FOUND          | Workflow ID doesn't resolve
----------------|-----------------------------|-----------------------------------------
Validation      | INVALID_DECISION            | Decision not Approved/Rejected
                | REJECTION_COMMENT_REQUIRED  | Rejected without a comment
                | INVALID_WORKFLOW            | Bad threshold, steps, approver
----------------|-----------------------------|-----------------------------------------
Conflict        | CLAIM_ALREADY_RESOLVED      | Deciding a terminal claim (no retry)
                | INVALID_CLAIM_TRANSITION    | Status change outside the state machine
                | OPTIMISTIC_LOCK_CONFLICT    | Concurrent decision won (retry)
----------------|-----------------------------|-----------------------------------------
Storage         | TRANSIENT_STORAGE_ERROR     | Persistence I/O failure (retry w/ backoff)
----------------|-----------------------------|-----------------------------------------
Integrity       | WORKFLOW_INTEGRITY_ERROR    | Unknown rule tag in stored workflow
                | IMMUTABILITY_VIOLATION      | Update/delete of append-only rows

===============================================================================
HANDLING PATTERNS
===============================================================================

1. RETRYABLE vs NOT:
   OptimisticLockError and TransientStorageError expose ``retryable = True``.
   ClaimAlreadyResolvedError does not: it signals a stale UI or a double
   submit and must be reported, never swallowed.

2. VALIDATION IS NEVER PARTIALLY APPLIED:
   Every ValidationError is raised before the claim is touched.

3. INTEGRITY ERRORS ARE FATAL:
   WorkflowIntegrityError means stored configuration is corrupt.  Log it
   and stop; do not attempt a fallback rule.
"""


class ExpenseKernelError(Exception):
    """
    Base exception for all expense kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "EXPENSE_KERNEL_ERROR"
    retryable: bool = False


# Not-found exceptions


class NotFoundError(ExpenseKernelError):
    """Base exception for identifiers that do not resolve."""

    code: str = "NOT_FOUND"


class ClaimNotFoundError(NotFoundError):
    """Claim with given ID was not found."""

    code: str = "CLAIM_NOT_FOUND"

    def __init__(self, claim_id: str):
        self.claim_id = claim_id
        super().__init__(f"Claim not found: {claim_id}")


class WorkflowNotFoundError(NotFoundError):
    """Workflow with given ID was not found."""

    code: str = "WORKFLOW_NOT_FOUND"

    def __init__(self, workflow_id: str):
        self.workflow_id = workflow_id
        super().__init__(f"Workflow not found: {workflow_id}")


# Validation exceptions


class ValidationError(ExpenseKernelError):
    """Base exception for rejected input.  Never partially applied."""

    code: str = "VALIDATION_ERROR"


class InvalidDecisionError(ValidationError):
    """Decision value is not one of Approved / Rejected."""

    code: str = "INVALID_DECISION"

    def __init__(self, decision: str):
        self.decision = decision
        super().__init__(
            f"Invalid decision '{decision}': expected 'Approved' or 'Rejected'"
        )


class RejectionCommentRequiredError(ValidationError):
    """A rejection was submitted without a reason."""

    code: str = "REJECTION_COMMENT_REQUIRED"

    def __init__(self, claim_id: str):
        self.claim_id = claim_id
        super().__init__(f"Comment is required to reject claim {claim_id}")


class InvalidWorkflowError(ValidationError):
    """Workflow definition failed validation at creation time."""

    code: str = "INVALID_WORKFLOW"

    def __init__(self, reason: str, field: str | None = None):
        self.reason = reason
        self.field = field
        prefix = f"{field}: " if field else ""
        super().__init__(f"Invalid workflow: {prefix}{reason}")


# Conflict exceptions


class ConflictError(ExpenseKernelError):
    """Base exception for state conflicts."""

    code: str = "CONFLICT"


class ClaimAlreadyResolvedError(ConflictError):
    """Decision attempted on a claim that is already Approved or Rejected."""

    code: str = "CLAIM_ALREADY_RESOLVED"

    def __init__(self, claim_id: str, status: str):
        self.claim_id = claim_id
        self.status = status
        super().__init__(f"Claim {claim_id} is already {status}")


class InvalidClaimTransitionError(ConflictError):
    """Status change not permitted by the claim state machine."""

    code: str = "INVALID_CLAIM_TRANSITION"

    def __init__(self, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid claim transition: {from_status} -> {to_status}"
        )


class OptimisticLockError(ConflictError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"
    retryable: bool = True

    def __init__(self, entity_type: str, entity_id: str, expected_version: int):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_version = expected_version
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id} "
            f"(expected version {expected_version}): "
            "entity was modified by another transaction"
        )


# Storage exceptions


class TransientStorageError(ExpenseKernelError):
    """Persistence layer I/O failure.  Callers may retry with backoff."""

    code: str = "TRANSIENT_STORAGE_ERROR"
    retryable: bool = True

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Storage failure during {operation}: {detail}")


# Integrity exceptions


class WorkflowIntegrityError(ExpenseKernelError):
    """Stored workflow is structurally invalid (e.g. unknown rule tag)."""

    code: str = "WORKFLOW_INTEGRITY_ERROR"

    def __init__(self, workflow_id: str | None, reason: str):
        self.workflow_id = workflow_id
        self.reason = reason
        super().__init__(f"Workflow {workflow_id} is corrupt: {reason}")


class ImmutabilityViolationError(ExpenseKernelError):
    """Attempted modification of an immutable or append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )
