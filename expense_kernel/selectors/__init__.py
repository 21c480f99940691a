"""Read-only query access to claims and their approval state."""

from expense_kernel.selectors.claim_selector import ClaimSelector, PendingApproval

__all__ = ["ClaimSelector", "PendingApproval"]
