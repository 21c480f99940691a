"""ORM models for the approval kernel.  Importing this package registers every table."""

from expense_kernel.models.claim import ApprovalHistoryModel, ClaimModel
from expense_kernel.models.workflow import WorkflowModel, WorkflowStepModel

__all__ = [
    "WorkflowModel",
    "WorkflowStepModel",
    "ClaimModel",
    "ApprovalHistoryModel",
]
