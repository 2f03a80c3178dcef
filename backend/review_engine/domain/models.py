"""Domain Models - Pydantic schemas for all entities"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Set
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from .enums import (
    AuditItemType, HistoryAction, ReviewEventType, ReviewPriority,
    ReviewStatus, UserRole
)
from ..utils.time import ensure_utc


# ============================================================================
# Identity
# ============================================================================

class ActorContext(BaseModel):
    """Current actor context from the access token"""
    model_config = ConfigDict(extra="forbid")

    user_id: str = Field(..., min_length=1, description="Portal user ID")
    email: Optional[EmailStr] = Field(None, description="User email")
    display_name: str = Field("", description="User display name")
    roles: List[str] = Field(default_factory=list, description="Assigned portal roles")

    @property
    def portal_roles(self) -> Set[UserRole]:
        """Roles recognised by the portal; unknown role strings are ignored"""
        recognised = set()
        for role in self.roles:
            try:
                recognised.add(UserRole(role.lower()))
            except ValueError:
                continue
        return recognised

    def has_any_role(self, roles) -> bool:
        return bool(self.portal_roles & set(roles))


# ============================================================================
# Review Workflow
# ============================================================================

class WorkflowKey(BaseModel):
    """Natural key of a review workflow: (item_type, item_id, engagement)"""
    model_config = ConfigDict(frozen=True)

    item_type: AuditItemType
    item_id: str
    engagement: str

    def as_filter(self) -> Dict[str, Any]:
        return {
            "item_type": self.item_type.value,
            "item_id": self.item_id,
            "engagement": self.engagement,
        }

    def __str__(self) -> str:
        return f"{self.item_type.value}/{self.item_id}@{self.engagement}"


class ReviewNote(BaseModel):
    """Free-form commentary attached to a workflow (append-only)"""
    model_config = ConfigDict(extra="ignore")

    text: str
    added_by: str
    added_at: datetime

    @field_validator("added_at", mode="after")
    @classmethod
    def normalize_datetimes(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)


class ReviewWorkflow(BaseModel):
    """Review workflow record - materialized view of the latest transition"""
    model_config = ConfigDict(extra="ignore")

    workflow_id: str = Field(..., description="Unique workflow ID")
    item_type: AuditItemType
    item_id: str
    engagement: str
    status: ReviewStatus = Field(default=ReviewStatus.IN_PROGRESS)

    # Review assignment
    assigned_reviewer: Optional[str] = None
    assigned_at: Optional[datetime] = None

    # Submission
    submitted_for_review_at: Optional[datetime] = None
    submitted_for_review_by: Optional[str] = None

    # Review outcome
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None
    review_comments: Optional[str] = None

    # Sign-off
    signed_off_at: Optional[datetime] = None
    signed_off_by: Optional[str] = None
    sign_off_comments: Optional[str] = None

    # Derived lock, persisted for fast external checks
    is_locked: bool = False
    locked_at: Optional[datetime] = None
    locked_by: Optional[str] = None

    # Reopening
    reopened_at: Optional[datetime] = None
    reopened_by: Optional[str] = None
    reopen_reason: Optional[str] = None

    priority: ReviewPriority = Field(default=ReviewPriority.MEDIUM)
    due_date: Optional[datetime] = None
    tags: List[str] = Field(default_factory=list)
    notes: List[ReviewNote] = Field(default_factory=list)

    # Domain version: bumps only on reopen
    version: int = Field(default=1, ge=1)
    previous_version: Optional[int] = None

    # Storage revision: bumps on every write, used for compare-and-swap
    revision: int = Field(default=1, ge=1, description="Optimistic concurrency revision")

    is_superseded: bool = False
    superseded_at: Optional[datetime] = None
    superseded_by: Optional[str] = None

    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @field_validator(
        "assigned_at", "submitted_for_review_at", "reviewed_at", "signed_off_at",
        "locked_at", "reopened_at", "due_date", "superseded_at", "created_at",
        "updated_at",
        mode="after"
    )
    @classmethod
    def normalize_datetimes(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    @field_validator("tags", mode="after")
    @classmethod
    def normalize_tag_set(cls, tags: List[str]) -> List[str]:
        return normalize_tags(tags)

    @property
    def key(self) -> WorkflowKey:
        return WorkflowKey(item_type=self.item_type, item_id=self.item_id, engagement=self.engagement)


class ReviewHistoryEntry(BaseModel):
    """Immutable record of a single transition"""
    model_config = ConfigDict(extra="ignore")

    history_id: str
    workflow_id: str
    item_type: AuditItemType
    item_id: str
    engagement: str
    action: HistoryAction
    performed_by: str
    performed_at: datetime
    previous_status: Optional[ReviewStatus] = None
    new_status: Optional[ReviewStatus] = None
    comments: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    sequence: int = Field(..., ge=1, description="Record revision produced by the transition")
    correlation_id: Optional[str] = None

    @field_validator("performed_at", mode="after")
    @classmethod
    def normalize_datetimes(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)


class ReviewTransitionEvent(BaseModel):
    """Outbound event for the notification subsystem"""
    model_config = ConfigDict(extra="ignore")

    event_id: str
    event_type: ReviewEventType = ReviewEventType.TRANSITION
    workflow_id: str
    item_type: AuditItemType
    item_id: str
    engagement: str
    action: Optional[HistoryAction] = None
    previous_status: Optional[ReviewStatus] = None
    new_status: ReviewStatus
    actor: Optional[str] = None
    reason: Optional[str] = None
    timestamp: datetime
    correlation_id: Optional[str] = None

    @field_validator("timestamp", mode="after")
    @classmethod
    def normalize_datetimes(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)


# ============================================================================
# Requests & Queries
# ============================================================================

class TransitionPayload(BaseModel):
    """Transition-specific input supplied by the caller"""
    model_config = ConfigDict(extra="forbid")

    comments: Optional[str] = Field(None, max_length=5000)
    reason: Optional[str] = Field(None, max_length=5000)
    reviewer_id: Optional[str] = Field(None, description="Target reviewer for the assign action")


class ReviewWorkflowFilters(BaseModel):
    """Conjunctive filters for listing workflows"""
    model_config = ConfigDict(extra="forbid")

    status: Optional[ReviewStatus] = None
    statuses: Optional[List[ReviewStatus]] = None
    engagement: Optional[str] = None
    item_type: Optional[AuditItemType] = None
    assigned_reviewer: Optional[str] = None
    priority: Optional[ReviewPriority] = None
    due_date_from: Optional[datetime] = None
    due_date_to: Optional[datetime] = None
    tag: Optional[str] = None
    include_superseded: bool = False

    @field_validator("due_date_from", "due_date_to", mode="after")
    @classmethod
    def normalize_datetimes(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)


class PaginatedWorkflows(BaseModel):
    """One page of workflows"""
    items: List[ReviewWorkflow]
    page: int
    page_size: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


def normalize_tags(tags: Optional[List[str]]) -> List[str]:
    """Tags behave as a set: trimmed, de-duplicated, blanks dropped, sorted"""
    return sorted({tag.strip() for tag in (tags or []) if tag and tag.strip()})


__all__ = [
    "ActorContext",
    "WorkflowKey",
    "ReviewNote",
    "ReviewWorkflow",
    "ReviewHistoryEntry",
    "ReviewTransitionEvent",
    "TransitionPayload",
    "ReviewWorkflowFilters",
    "PaginatedWorkflows",
    "normalize_tags",
]
