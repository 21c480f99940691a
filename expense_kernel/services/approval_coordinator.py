"""
expense_kernel.services.approval_coordinator -- The single mutating entry
point for approval decisions.

Responsibility:
    Append one approve/reject action to a claim's history, ask the pure
    evaluator what that means, and persist the resulting state transition
    through the claim repository's compare-and-set save.

Architecture position:
    Kernel > Services -- imperative shell around ``expense_engines.approval``.

Invariants enforced:
    - Validation before mutation: an invalid decision, a rejection without
      a comment, an unknown claim or a terminal claim all raise before the
      claim is touched.
    - Rejection is immediate: a Rejected decision sets the claim Rejected
      without consulting the workflow.
    - The sequential cursor advances only for Sequential workflows, and
      only when the claim stays Pending.
    - Once a claim leaves Pending it never returns (CLAIM_TRANSITIONS).
    - One logical update: history append, status change and cursor move are
      saved together, guarded by the claim version.

Failure modes:
    - InvalidDecisionError, RejectionCommentRequiredError (ValidationError).
    - ClaimNotFoundError, WorkflowNotFoundError (NotFoundError).
    - ClaimAlreadyResolvedError (hard conflict, never retry).
    - OptimisticLockError (a concurrent decision won; reload and reapply).
    - TransientStorageError (storage I/O; caller may retry with backoff).
    - WorkflowIntegrityError (stored workflow is corrupt).

The coordinator performs no automatic retry; see
``expense_kernel.services.retry.retry_on_conflict``.
"""

from __future__ import annotations

from dataclasses import replace
from uuid import UUID

from sqlalchemy.orm import Session

from expense_engines.approval import evaluate
from expense_kernel.domain.approval import (
    CLAIM_TRANSITIONS,
    TERMINAL_CLAIM_STATUSES,
    ApprovalDecision,
    ApprovalHistoryEntry,
    Claim,
    ClaimStatus,
    EvaluationOutcome,
    SequentialRule,
)
from expense_kernel.domain.clock import Clock, SystemClock
from expense_kernel.exceptions import (
    ClaimAlreadyResolvedError,
    InvalidClaimTransitionError,
    InvalidDecisionError,
    RejectionCommentRequiredError,
)
from expense_kernel.logging_config import LogContext, get_logger
from expense_kernel.services.claim_repository import ClaimRepository
from expense_kernel.services.workflow_repository import WorkflowRepository

logger = get_logger("services.approval_coordinator")


def parse_decision(decision: ApprovalDecision | str) -> ApprovalDecision:
    """Accept the enum or its exact string value ("Approved" / "Rejected")."""
    if isinstance(decision, ApprovalDecision):
        return decision
    try:
        return ApprovalDecision(decision)
    except ValueError:
        raise InvalidDecisionError(str(decision)) from None


class ApprovalCoordinator:
    """Records approval decisions against claims.

    Contract:
        ``record_decision`` is the only operation that changes a claim's
        approval state.  It flushes within the caller's transaction.

    Non-goals:
        - Does NOT check that the approver belongs to the workflow; identity
          and membership are validated by the caller.
        - Does NOT retry on conflict.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        claims: ClaimRepository | None = None,
        workflows: WorkflowRepository | None = None,
    ) -> None:
        self._session = session
        self._clock = clock or SystemClock()
        self._claims = claims or ClaimRepository(session)
        self._workflows = workflows or WorkflowRepository(session, self._clock)

    def record_decision(
        self,
        claim_id: UUID,
        approver_id: UUID,
        decision: ApprovalDecision | str,
        comment: str = "",
    ) -> Claim:
        """Record one approver's decision and apply its consequence.

        Args:
            claim_id: Claim being decided.
            approver_id: Caller-validated identity of the approver.
            decision: Approved or Rejected.
            comment: Free text.  Required (non-blank) for rejections.

        Returns:
            The persisted claim snapshot after the decision.
        """
        with LogContext.bind(claim_id=claim_id, actor_id=approver_id):
            decision = parse_decision(decision)
            comment = comment or ""
            if decision == ApprovalDecision.REJECTED and not comment.strip():
                raise RejectionCommentRequiredError(str(claim_id))

            claim = self._claims.load_claim(claim_id)
            if claim.status in TERMINAL_CLAIM_STATUSES:
                logger.warning(
                    "claim_decision_on_resolved_claim",
                    extra={"status": claim.status.value, "decision": decision.value},
                )
                raise ClaimAlreadyResolvedError(str(claim_id), claim.status.value)

            now = self._clock.now()
            entry = ApprovalHistoryEntry(
                approver_id=approver_id,
                decision=decision,
                comment=comment,
                decided_at=now,
            )
            history = claim.approval_history + (entry,)

            new_status, new_index, reason = self._apply(claim, history, decision)

            allowed = CLAIM_TRANSITIONS.get(claim.status, frozenset())
            if new_status not in allowed:
                raise InvalidClaimTransitionError(claim.status.value, new_status.value)

            updated = replace(
                claim,
                status=new_status,
                current_approver_index=new_index,
                approval_history=history,
                resolved_at=now if new_status in TERMINAL_CLAIM_STATUSES else None,
            )
            saved = self._claims.save_claim(updated, expected_version=claim.version)

            logger.info(
                "claim_decision_recorded",
                extra={
                    "decision": decision.value,
                    "previous_status": claim.status.value,
                    "new_status": new_status.value,
                    "current_approver_index": new_index,
                    "reason": reason,
                    "version": saved.version,
                },
            )
            return saved

    def _apply(
        self,
        claim: Claim,
        history: tuple[ApprovalHistoryEntry, ...],
        decision: ApprovalDecision,
    ) -> tuple[ClaimStatus, int, str]:
        """Work out (status, cursor, reason) after appending ``decision``."""
        index = claim.current_approver_index

        if decision == ApprovalDecision.REJECTED:
            return ClaimStatus.REJECTED, index, f"Rejected by {history[-1].approver_id}"

        workflow = None
        if claim.workflow_id is not None:
            workflow = self._workflows.load_workflow(claim.workflow_id)

        with LogContext.bind(workflow_id=claim.workflow_id):
            evaluation = evaluate(workflow, history, index)

        if evaluation.outcome == EvaluationOutcome.APPROVE:
            return ClaimStatus.APPROVED, index, evaluation.reason
        if evaluation.outcome == EvaluationOutcome.REJECT:
            return ClaimStatus.REJECTED, index, evaluation.reason

        if workflow is not None and isinstance(workflow.rule, SequentialRule):
            index += 1
        return ClaimStatus.PENDING, index, evaluation.reason
