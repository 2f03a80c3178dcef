"""Domain Enumerations - All status and type definitions"""
from enum import Enum


class AuditItemType(str, Enum):
    """Kinds of auditable artifact a review workflow can govern"""
    PROCEDURE = "procedure"
    PLANNING_PROCEDURE = "planning-procedure"
    DOCUMENT_REQUEST = "document-request"
    CHECKLIST_ITEM = "checklist-item"
    PBC = "pbc"
    KYC = "kyc"
    ISQM_DOCUMENT = "isqm-document"
    WORKING_PAPER = "working-paper"
    CLASSIFICATION_SECTION = "classification-section"


class ReviewStatus(str, Enum):
    """Review workflow status"""
    IN_PROGRESS = "in-progress"
    READY_FOR_REVIEW = "ready-for-review"
    UNDER_REVIEW = "under-review"
    APPROVED = "approved"
    REJECTED = "rejected"
    SIGNED_OFF = "signed-off"
    RE_OPENED = "re-opened"  # Transient, never persisted


class ReviewPriority(str, Enum):
    """Review priority"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ReviewAction(str, Enum):
    """Actions a caller may request against a workflow"""
    SUBMIT = "submit"
    CLAIM = "claim"
    ASSIGN = "assign"
    APPROVE = "approve"
    REJECT = "reject"
    SIGN_OFF = "sign-off"
    RESUBMIT = "resubmit"
    REOPEN = "reopen"


class HistoryAction(str, Enum):
    """Labels recorded in the review history log"""
    SUBMITTED_FOR_REVIEW = "submitted-for-review"
    CLAIMED_FOR_REVIEW = "claimed-for-review"
    ASSIGNED_REVIEWER = "assigned-reviewer"
    REVIEW_APPROVED = "review-approved"
    REVIEW_REJECTED = "review-rejected"
    SIGNED_OFF = "signed-off"
    RESUBMITTED = "resubmitted"
    RE_OPENED = "re-opened"


class UserRole(str, Enum):
    """Portal roles carried on the actor's token"""
    CLIENT = "client"
    EMPLOYEE = "employee"
    REVIEWER = "reviewer"
    PARTNER = "partner"
    ADMIN = "admin"


class ReviewEventType(str, Enum):
    """Outbound events consumed by the notification subsystem"""
    TRANSITION = "transition"
    OVERDUE = "overdue"
    SUPERSEDED = "superseded"


# Statuses in which the underlying artifact must not be edited
LOCKED_STATUSES = frozenset({
    ReviewStatus.UNDER_REVIEW,
    ReviewStatus.APPROVED,
    ReviewStatus.SIGNED_OFF,
})

# Statuses that require an assigned reviewer
REVIEWER_BOUND_STATUSES = frozenset({
    ReviewStatus.UNDER_REVIEW,
    ReviewStatus.APPROVED,
    ReviewStatus.REJECTED,
    ReviewStatus.SIGNED_OFF,
})

REVIEWER_ROLES = frozenset({UserRole.REVIEWER, UserRole.PARTNER, UserRole.ADMIN})
ELEVATED_ROLES = frozenset({UserRole.PARTNER, UserRole.ADMIN})
