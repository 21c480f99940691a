"""
Module: expense_kernel.models.claim
Responsibility: ORM persistence for expense claims' approval state and
    their append-only approval history.

Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ (for DTO conversion) only.

Invariants enforced:
    - Status values are limited by a check constraint.
    - ``version`` is the optimistic concurrency counter.  It is written
      only by the claim repository's version-checked UPDATE.
    - History rows are append-only (db/immutability.py).  ``sequence``
      orders them and is unique per claim, so two writers appending the
      same position cannot both succeed.

Failure modes:
    - IntegrityError on a duplicate (claim_id, sequence) history row.
    - ImmutabilityViolationError on history UPDATE/DELETE.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from expense_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from expense_kernel.domain.approval import ApprovalHistoryEntry, Claim


class ClaimModel(Base):
    """Persistent approval state of one expense claim."""

    __tablename__ = "expense_claims"

    __table_args__ = (
        CheckConstraint(
            "status IN ('Pending', 'Approved', 'Rejected')",
            name="ck_expense_claims_valid_status",
        ),
        CheckConstraint(
            "current_approver_index >= 0",
            name="ck_expense_claims_index_non_negative",
        ),
        Index("ix_expense_claims_company_status", "company_id", "status"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    submitted_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    workflow_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("approval_workflows.id"),
        nullable=True,
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="Pending")
    current_approver_index: Mapped[int] = mapped_column(nullable=False, default=0)
    version: Mapped[int] = mapped_column(nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    resolved_at: Mapped[datetime | None] = mapped_column(nullable=True)

    history: Mapped[list["ApprovalHistoryModel"]] = relationship(
        "ApprovalHistoryModel",
        back_populates="claim",
        order_by="ApprovalHistoryModel.sequence",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<Claim {self.id} status={self.status} "
            f"index={self.current_approver_index} v{self.version}>"
        )

    def to_dto(self) -> Claim:
        """Convert ORM model to frozen domain DTO."""
        from expense_kernel.domain.approval import Claim as ClaimDTO, ClaimStatus

        return ClaimDTO(
            claim_id=self.id,
            company_id=self.company_id,
            submitted_by=self.submitted_by,
            workflow_id=self.workflow_id,
            status=ClaimStatus(self.status),
            current_approver_index=self.current_approver_index,
            approval_history=tuple(entry.to_dto() for entry in self.history),
            version=self.version,
            created_at=self.created_at,
            resolved_at=self.resolved_at,
        )

    @classmethod
    def from_dto(cls, dto: Claim) -> ClaimModel:
        """Create ORM model from domain DTO.  History rows are added separately."""
        return cls(
            id=dto.claim_id,
            company_id=dto.company_id,
            submitted_by=dto.submitted_by,
            workflow_id=dto.workflow_id,
            status=dto.status.value,
            current_approver_index=dto.current_approver_index,
            version=dto.version,
            created_at=dto.created_at,
            resolved_at=dto.resolved_at,
        )


class ApprovalHistoryModel(Base):
    """One approve/reject action on a claim.  Append-only."""

    __tablename__ = "claim_approval_history"

    __table_args__ = (
        UniqueConstraint("claim_id", "sequence", name="uq_claim_approval_history_seq"),
        CheckConstraint(
            "decision IN ('Approved', 'Rejected')",
            name="ck_claim_approval_history_decision",
        ),
        Index("ix_claim_approval_history_approver", "approver_id"),
    )

    claim_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("expense_claims.id"),
        nullable=False,
    )
    sequence: Mapped[int] = mapped_column(nullable=False)
    approver_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    decision: Mapped[str] = mapped_column(String(20), nullable=False)
    comment: Mapped[str] = mapped_column(Text, default="", nullable=False)
    decided_at: Mapped[datetime] = mapped_column(nullable=False)

    claim: Mapped["ClaimModel"] = relationship("ClaimModel", back_populates="history")

    def __repr__(self) -> str:
        return (
            f"<ApprovalHistory {self.claim_id}#{self.sequence} "
            f"{self.approver_id} {self.decision}>"
        )

    def to_dto(self) -> ApprovalHistoryEntry:
        from expense_kernel.domain.approval import (
            ApprovalDecision,
            ApprovalHistoryEntry as EntryDTO,
        )

        return EntryDTO(
            approver_id=self.approver_id,
            decision=ApprovalDecision(self.decision),
            comment=self.comment,
            decided_at=self.decided_at,
            entry_id=self.id,
        )

    @classmethod
    def from_dto(
        cls, dto: ApprovalHistoryEntry, claim_id: UUID, sequence: int,
    ) -> ApprovalHistoryModel:
        return cls(
            id=dto.entry_id,
            claim_id=claim_id,
            sequence=sequence,
            approver_id=dto.approver_id,
            decision=dto.decision.value,
            comment=dto.comment,
            decided_at=dto.decided_at,
        )
