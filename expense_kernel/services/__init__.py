"""Kernel services: the imperative shell around the pure approval engine."""

from expense_kernel.services.approval_coordinator import ApprovalCoordinator
from expense_kernel.services.claim_repository import ClaimRepository
from expense_kernel.services.claim_service import ClaimService
from expense_kernel.services.retry import retry_on_conflict
from expense_kernel.services.workflow_repository import WorkflowRepository
from expense_kernel.services.workflow_service import WorkflowService

__all__ = [
    "ApprovalCoordinator",
    "ClaimRepository",
    "ClaimService",
    "WorkflowRepository",
    "WorkflowService",
    "retry_on_conflict",
]
