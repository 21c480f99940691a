"""
expense_kernel.services.claim_repository -- Claim persistence with
optimistic concurrency.

Responsibility:
    Load claim snapshots and persist the coordinator's state transitions
    (status, sequential cursor, resolution time and newly appended history
    entries) as one version-checked update.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.

Invariants enforced:
    - Compare-and-set: ``save_claim`` issues
      ``UPDATE ... WHERE id = :id AND version = :expected`` and bumps the
      version.  Zero rows affected means another decision won the race.
    - History is append-only: entries already stored are never rewritten;
      new entries get the next ``sequence`` positions.

Failure modes:
    - ClaimNotFoundError if the claim id does not resolve.
    - OptimisticLockError on a version mismatch (retryable).
    - TransientStorageError on driver-level I/O failure (retryable).
"""

from __future__ import annotations

from dataclasses import replace
from uuid import UUID

from sqlalchemy import update

from expense_kernel.domain.approval import Claim
from expense_kernel.exceptions import ClaimNotFoundError, OptimisticLockError
from expense_kernel.logging_config import get_logger
from expense_kernel.models.claim import ApprovalHistoryModel, ClaimModel
from expense_kernel.services.base import BaseService, storage_operation

logger = get_logger("services.claim_repository")

# Columns the coordinator is allowed to move.  Identity, ownership and the
# attached workflow are fixed at submission.
_STATE_COLUMNS = ("status", "current_approver_index", "resolved_at", "version")


class ClaimRepository(BaseService):
    """Read-by-id, add and compare-and-set save for claims."""

    def load_claim(self, claim_id: UUID) -> Claim:
        """Return the current snapshot of a claim.

        Raises:
            ClaimNotFoundError: If no claim has this id.
            TransientStorageError: On storage I/O failure.
        """
        return self._load_model(claim_id).to_dto()

    def add_claim(self, claim: Claim) -> Claim:
        """Insert a new claim together with any history it already carries."""
        model = ClaimModel.from_dto(claim)
        for sequence, entry in enumerate(claim.approval_history):
            model.history.append(
                ApprovalHistoryModel.from_dto(entry, claim.claim_id, sequence)
            )
        with storage_operation("add_claim"):
            self.session.add(model)
            self.session.flush()
        return model.to_dto()

    def save_claim(self, claim: Claim, expected_version: int) -> Claim:
        """Persist a claim's new approval state if nobody else got there first.

        Args:
            claim: The updated snapshot.  Its history must extend the stored
                history (append-only).
            expected_version: Version the caller read the claim at.

        Returns:
            The persisted snapshot, carrying the bumped version.

        Raises:
            ClaimNotFoundError: If the claim does not exist.
            OptimisticLockError: If the stored version is not
                ``expected_version``.
            TransientStorageError: On storage I/O failure.
        """
        model = self._load_model(claim.claim_id)
        new_version = expected_version + 1

        with storage_operation("save_claim"):
            result = self.session.execute(
                update(ClaimModel)
                .where(
                    ClaimModel.id == claim.claim_id,
                    ClaimModel.version == expected_version,
                )
                .values(
                    status=claim.status.value,
                    current_approver_index=claim.current_approver_index,
                    resolved_at=claim.resolved_at,
                    version=new_version,
                )
                .execution_options(synchronize_session=False)
            )

        if result.rowcount != 1:
            logger.warning(
                "claim_version_conflict",
                extra={
                    "claim_id": str(claim.claim_id),
                    "expected_version": expected_version,
                },
            )
            self.session.expire(model)
            raise OptimisticLockError("Claim", str(claim.claim_id), expected_version)

        stored_ids = {entry.id for entry in model.history}
        appended = 0
        for sequence, entry in enumerate(claim.approval_history):
            if entry.entry_id in stored_ids:
                continue
            model.history.append(
                ApprovalHistoryModel.from_dto(entry, claim.claim_id, sequence)
            )
            appended += 1

        with storage_operation("save_claim"):
            self.session.flush()
        self.session.expire(model, list(_STATE_COLUMNS))

        logger.debug(
            "claim_saved",
            extra={
                "claim_id": str(claim.claim_id),
                "version": new_version,
                "history_appended": appended,
            },
        )
        return replace(claim, version=new_version)

    def _load_model(self, claim_id: UUID) -> ClaimModel:
        with storage_operation("load_claim"):
            model = self.session.get(ClaimModel, claim_id, populate_existing=True)
        if model is None:
            raise ClaimNotFoundError(str(claim_id))
        return model
