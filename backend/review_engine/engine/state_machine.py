"""Review State Machine - Pure transition validation for review workflows"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from pydantic import BaseModel, Field

from .lock_manager import LockManager
from ..domain.enums import HistoryAction, ReviewAction, ReviewStatus
from ..domain.errors import InvalidTransitionError, ValidationError
from ..domain.models import ReviewWorkflow, TransitionPayload
from ..utils.logger import get_logger
from ..utils.time import utc_now

logger = get_logger(__name__)


# (current status, requested action) -> next status. Closed: anything else is illegal.
TRANSITIONS: Dict[Tuple[ReviewStatus, ReviewAction], ReviewStatus] = {
    (ReviewStatus.IN_PROGRESS, ReviewAction.SUBMIT): ReviewStatus.READY_FOR_REVIEW,
    (ReviewStatus.READY_FOR_REVIEW, ReviewAction.CLAIM): ReviewStatus.UNDER_REVIEW,
    (ReviewStatus.READY_FOR_REVIEW, ReviewAction.ASSIGN): ReviewStatus.UNDER_REVIEW,
    (ReviewStatus.UNDER_REVIEW, ReviewAction.ASSIGN): ReviewStatus.UNDER_REVIEW,
    (ReviewStatus.UNDER_REVIEW, ReviewAction.APPROVE): ReviewStatus.APPROVED,
    (ReviewStatus.UNDER_REVIEW, ReviewAction.REJECT): ReviewStatus.REJECTED,
    (ReviewStatus.APPROVED, ReviewAction.SIGN_OFF): ReviewStatus.SIGNED_OFF,
    (ReviewStatus.REJECTED, ReviewAction.RESUBMIT): ReviewStatus.IN_PROGRESS,
    (ReviewStatus.SIGNED_OFF, ReviewAction.REOPEN): ReviewStatus.RE_OPENED,
}

# Transient statuses are resolved inside the same transition
TRANSIENT_SUCCESSORS: Dict[ReviewStatus, ReviewStatus] = {
    ReviewStatus.RE_OPENED: ReviewStatus.IN_PROGRESS,
}

HISTORY_LABELS: Dict[ReviewAction, HistoryAction] = {
    ReviewAction.SUBMIT: HistoryAction.SUBMITTED_FOR_REVIEW,
    ReviewAction.CLAIM: HistoryAction.CLAIMED_FOR_REVIEW,
    ReviewAction.ASSIGN: HistoryAction.ASSIGNED_REVIEWER,
    ReviewAction.APPROVE: HistoryAction.REVIEW_APPROVED,
    ReviewAction.REJECT: HistoryAction.REVIEW_REJECTED,
    ReviewAction.SIGN_OFF: HistoryAction.SIGNED_OFF,
    ReviewAction.RESUBMIT: HistoryAction.RESUBMITTED,
    ReviewAction.REOPEN: HistoryAction.RE_OPENED,
}

# Cleared whenever a review cycle is abandoned (rejection resubmitted, sign-off reopened)
_REVIEW_FIELDS_CLEARED = {
    "assigned_reviewer": None,
    "assigned_at": None,
    "reviewed_at": None,
    "reviewed_by": None,
    "review_comments": None,
}

_SIGN_OFF_FIELDS_CLEARED = {
    "signed_off_at": None,
    "signed_off_by": None,
    "sign_off_comments": None,
}


class TransitionOutcome(BaseModel):
    """Result of applying an action: the next record plus what the history log needs"""

    workflow: ReviewWorkflow
    action: HistoryAction
    previous_status: ReviewStatus
    new_status: ReviewStatus
    comments: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ReviewStateMachine:
    """
    Compute the next workflow record for a requested action.

    Given current status S and action A:
    1. Look up (S, A) in the transition table -> InvalidTransitionError if absent
    2. Apply the action's field updates
    3. Settle transient statuses (re-opened -> in-progress)
    4. Recompute the lock from the resulting status

    Item type never participates; it is carried through untouched.
    """

    def __init__(self, lock_manager: Optional[LockManager] = None):
        self.lock_manager = lock_manager or LockManager()

    @staticmethod
    def allowed_actions(status: ReviewStatus) -> List[ReviewAction]:
        return [action for (source, action) in TRANSITIONS if source == status]

    def can_apply(self, workflow: ReviewWorkflow, action: ReviewAction) -> bool:
        return (workflow.status, action) in TRANSITIONS

    def resolve_target(self, workflow: ReviewWorkflow, action: ReviewAction) -> ReviewStatus:
        """
        Raises:
            InvalidTransitionError: action is not legal from the current status
        """
        target = TRANSITIONS.get((workflow.status, action))
        if target is None:
            raise InvalidTransitionError(
                f"Cannot {action.value} a review that is {workflow.status.value}",
                details={
                    "workflow_id": workflow.workflow_id,
                    "current_status": workflow.status.value,
                    "action": action.value,
                    "allowed_actions": [a.value for a in self.allowed_actions(workflow.status)],
                }
            )
        return target

    def apply(
        self,
        workflow: ReviewWorkflow,
        action: ReviewAction,
        actor_id: str,
        payload: Optional[TransitionPayload] = None,
        now: Optional[datetime] = None
    ) -> TransitionOutcome:
        """
        Apply ``action`` to ``workflow`` without touching storage.

        Raises:
            InvalidTransitionError: action is not legal from the current status
            ValidationError: the action's payload is incomplete
        """
        payload = payload or TransitionPayload()
        now = now or utc_now()

        target = self.resolve_target(workflow, action)
        updates, metadata = self._field_updates(workflow, action, actor_id, payload, now)
        updates["status"] = target
        next_workflow = workflow.model_copy(update=updates)

        successor = TRANSIENT_SUCCESSORS.get(target)
        if successor is not None:
            metadata["transient_status"] = target.value
            next_workflow = next_workflow.model_copy(update={"status": successor})

        next_workflow = self._apply_lock(workflow, next_workflow, actor_id, now)

        logger.info(
            f"Resolved transition: {workflow.status.value} -> {next_workflow.status.value}",
            extra={
                "workflow_id": workflow.workflow_id,
                "action": action.value,
                "status": next_workflow.status.value,
            }
        )

        return TransitionOutcome(
            workflow=next_workflow,
            action=HISTORY_LABELS[action],
            previous_status=workflow.status,
            new_status=next_workflow.status,
            comments=self._history_comments(action, payload),
            metadata=metadata,
        )

    # =========================================================================
    # Per-action field updates
    # =========================================================================

    def _field_updates(
        self,
        workflow: ReviewWorkflow,
        action: ReviewAction,
        actor_id: str,
        payload: TransitionPayload,
        now: datetime
    ) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        metadata: Dict[str, Any] = {}

        if action == ReviewAction.SUBMIT:
            return {"submitted_for_review_at": now, "submitted_for_review_by": actor_id}, metadata

        if action == ReviewAction.CLAIM:
            return {"assigned_reviewer": actor_id, "assigned_at": now}, metadata

        if action == ReviewAction.ASSIGN:
            reviewer_id = (payload.reviewer_id or "").strip()
            if not reviewer_id:
                raise ValidationError(
                    "reviewer_id is required to assign a reviewer",
                    details={"workflow_id": workflow.workflow_id}
                )
            metadata["reviewer_id"] = reviewer_id
            if workflow.assigned_reviewer:
                metadata["previous_reviewer"] = workflow.assigned_reviewer
            return {"assigned_reviewer": reviewer_id, "assigned_at": now}, metadata

        if action in (ReviewAction.APPROVE, ReviewAction.REJECT):
            return {
                "reviewed_at": now,
                "reviewed_by": actor_id,
                "review_comments": _clean(payload.comments),
            }, metadata

        if action == ReviewAction.SIGN_OFF:
            return {
                "signed_off_at": now,
                "signed_off_by": actor_id,
                "sign_off_comments": _clean(payload.comments),
            }, metadata

        if action == ReviewAction.RESUBMIT:
            if workflow.assigned_reviewer:
                metadata["previous_reviewer"] = workflow.assigned_reviewer
            return dict(_REVIEW_FIELDS_CLEARED), metadata

        if action == ReviewAction.REOPEN:
            reason = _clean(payload.reason)
            if not reason:
                raise ValidationError(
                    "A reason is required to reopen a signed-off review",
                    details={"workflow_id": workflow.workflow_id}
                )
            metadata.update({
                "version_before": workflow.version,
                "version_after": workflow.version + 1,
                "signed_off_by": workflow.signed_off_by,
            })
            updates = {
                "version": workflow.version + 1,
                "previous_version": workflow.version,
                "reopened_at": now,
                "reopened_by": actor_id,
                "reopen_reason": reason,
            }
            updates.update(_SIGN_OFF_FIELDS_CLEARED)
            updates.update(_REVIEW_FIELDS_CLEARED)
            return updates, metadata

        raise InvalidTransitionError(f"Unsupported action {action.value}")

    def _apply_lock(
        self,
        before: ReviewWorkflow,
        after: ReviewWorkflow,
        actor_id: str,
        now: datetime
    ) -> ReviewWorkflow:
        locked = self.lock_manager.is_locked_status(after.status)
        if not locked:
            return after.model_copy(update={"is_locked": False, "locked_at": None, "locked_by": None})
        if before.is_locked:
            return after.model_copy(update={"is_locked": True})
        return after.model_copy(update={"is_locked": True, "locked_at": now, "locked_by": actor_id})

    @staticmethod
    def _history_comments(action: ReviewAction, payload: TransitionPayload) -> Optional[str]:
        if action == ReviewAction.REOPEN:
            return _clean(payload.reason)
        return _clean(payload.comments)


def _clean(text: Optional[str]) -> Optional[str]:
    return (text or "").strip() or None
