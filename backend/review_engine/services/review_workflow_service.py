"""Review Workflow Service - Orchestrates review transitions and queries"""
import math
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from ..config.settings import settings
from ..domain.enums import ReviewAction, ReviewPriority, ReviewStatus
from ..domain.errors import (
    DuplicateWorkflowError, InvalidTransitionError, PartialCommitError,
    PermissionDeniedError, ValidationError, WorkflowNotFoundError
)
from ..domain.models import (
    ActorContext, PaginatedWorkflows, ReviewHistoryEntry, ReviewNote,
    ReviewWorkflow, ReviewWorkflowFilters, TransitionPayload, WorkflowKey,
    normalize_tags
)
from ..engine.event_publisher import ReviewEventPublisher
from ..engine.history_writer import HistoryWriter
from ..engine.lock_manager import LockManager
from ..engine.reviewer_assignment import ReviewerAssignment
from ..engine.state_machine import ReviewStateMachine
from ..repositories.review_event_repo import ReviewEventRepository
from ..repositories.review_history_repo import ReviewHistoryRepository
from ..repositories.review_workflow_repo import ReviewWorkflowRepository
from ..utils.idgen import generate_review_workflow_id
from ..utils.logger import get_logger
from ..utils.time import utc_now

logger = get_logger(__name__)


class ReviewWorkflowService:
    """
    Single writer path for review workflows.

    Transition flow:
    1. Load the current record
    2. Validate the action against the current status
    3. Authorize the actor
    4. Compute the next record
    5. Compare-and-swap on the storage revision
    6. Append exactly one history entry
    7. Publish a transition event
    """

    def __init__(
        self,
        workflow_repo: Optional[ReviewWorkflowRepository] = None,
        history_repo: Optional[ReviewHistoryRepository] = None,
        event_repo: Optional[ReviewEventRepository] = None
    ):
        self.workflow_repo = workflow_repo or ReviewWorkflowRepository()
        self.history_repo = history_repo or ReviewHistoryRepository()
        self.lock_manager = LockManager()
        self.state_machine = ReviewStateMachine(self.lock_manager)
        self.reviewer_assignment = ReviewerAssignment()
        self.history_writer = HistoryWriter(self.history_repo)
        self.event_publisher = ReviewEventPublisher(event_repo or ReviewEventRepository())

    # =========================================================================
    # Creation
    # =========================================================================

    def create(
        self,
        key: WorkflowKey,
        actor: ActorContext,
        priority: Optional[ReviewPriority] = None,
        due_date: Optional[datetime] = None,
        tags: Optional[List[str]] = None
    ) -> ReviewWorkflow:
        """Create the workflow for ``key``, or return the active one if it exists"""
        workflow, _ = self.get_or_create(key, actor, priority, due_date, tags)
        return workflow

    def get_or_create(
        self,
        key: WorkflowKey,
        actor: ActorContext,
        priority: Optional[ReviewPriority] = None,
        due_date: Optional[datetime] = None,
        tags: Optional[List[str]] = None
    ) -> Tuple[ReviewWorkflow, bool]:
        """
        Idempotent create.

        Returns:
            (workflow, created) where ``created`` is False when an active
            workflow already held the key
        """
        key = self._validate_key(key)

        existing = self.workflow_repo.get_by_key(key)
        if existing is not None:
            return existing, False

        now = utc_now()
        workflow = ReviewWorkflow(
            workflow_id=generate_review_workflow_id(),
            item_type=key.item_type,
            item_id=key.item_id,
            engagement=key.engagement,
            status=ReviewStatus.IN_PROGRESS,
            priority=priority or ReviewPriority.MEDIUM,
            due_date=due_date,
            tags=tags or [],
            created_by=actor.user_id,
            created_at=now,
            updated_at=now
        )

        try:
            return self.workflow_repo.create(workflow), True
        except DuplicateWorkflowError:
            # A concurrent create won; hand back the winner
            winner = self.workflow_repo.get_by_key(key)
            if winner is None:
                raise
            logger.info(
                f"Concurrent create resolved to {winner.workflow_id}",
                extra={"workflow_id": winner.workflow_id, "engagement": key.engagement}
            )
            return winner, False

    # =========================================================================
    # Transitions
    # =========================================================================

    def transition(
        self,
        key: WorkflowKey,
        action: ReviewAction,
        actor: ActorContext,
        payload: Optional[TransitionPayload] = None,
        correlation_id: Optional[str] = None
    ) -> ReviewWorkflow:
        """
        Apply ``action`` to the active workflow for ``key``.

        Raises:
            WorkflowNotFoundError: no active workflow for the key
            InvalidTransitionError: action not legal from the current status
            PermissionDeniedError: actor lacks the role or assignment
            ValidationError: payload incomplete (reopen reason, assign reviewer)
            ConcurrencyError: the record changed since it was loaded
            PartialCommitError: record committed but history append failed
        """
        workflow = self._load_by_key(key)
        return self._apply_transition(workflow, action, actor, payload, correlation_id)

    def transition_by_id(
        self,
        workflow_id: str,
        action: ReviewAction,
        actor: ActorContext,
        payload: Optional[TransitionPayload] = None,
        correlation_id: Optional[str] = None
    ) -> ReviewWorkflow:
        """Same as :meth:`transition`, addressed by workflow ID"""
        workflow = self.workflow_repo.get_or_raise(workflow_id)
        return self._apply_transition(workflow, action, actor, payload, correlation_id)

    def _apply_transition(
        self,
        workflow: ReviewWorkflow,
        action: ReviewAction,
        actor: ActorContext,
        payload: Optional[TransitionPayload],
        correlation_id: Optional[str]
    ) -> ReviewWorkflow:
        if workflow.is_superseded:
            raise InvalidTransitionError(
                f"Review workflow {workflow.workflow_id} has been superseded",
                details={"workflow_id": workflow.workflow_id, "action": action.value}
            )

        self.state_machine.resolve_target(workflow, action)
        self.reviewer_assignment.authorize(actor, workflow, action)

        outcome = self.state_machine.apply(workflow, action, actor.user_id, payload, utc_now())
        committed = self.workflow_repo.compare_and_swap(
            workflow.workflow_id, workflow.revision, outcome.workflow
        )

        try:
            self.history_writer.write_transition(committed, outcome, actor, correlation_id)
        except Exception as e:
            logger.error(
                f"History append failed after commit: {e}",
                extra={
                    "workflow_id": committed.workflow_id,
                    "action": outcome.action.value,
                    "actor_id": actor.user_id,
                    "status": committed.status.value,
                    "revision": committed.revision,
                    "error_code": PartialCommitError.error_code,
                }
            )
            raise PartialCommitError(
                f"Review {committed.workflow_id} moved to {committed.status.value} "
                f"but its history entry was not recorded",
                workflow=committed,
                details={
                    "workflow_id": committed.workflow_id,
                    "action": outcome.action.value,
                    "previous_status": outcome.previous_status.value,
                    "new_status": outcome.new_status.value,
                    "revision": committed.revision,
                }
            ) from e

        self.event_publisher.publish_transition(
            committed,
            outcome.action,
            outcome.previous_status,
            actor.user_id,
            correlation_id
        )

        logger.info(
            f"Review transition applied: {outcome.action.value}",
            extra={
                "workflow_id": committed.workflow_id,
                "item_type": committed.item_type.value,
                "item_id": committed.item_id,
                "engagement": committed.engagement,
                "actor_id": actor.user_id,
                "action": outcome.action.value,
                "status": committed.status.value,
                "revision": committed.revision,
            }
        )
        return committed

    # =========================================================================
    # Reads
    # =========================================================================

    def get(self, key: WorkflowKey) -> Optional[ReviewWorkflow]:
        """Active workflow for ``key``, or None"""
        return self.workflow_repo.get_by_key(self._validate_key(key))

    def get_by_id(self, workflow_id: str) -> ReviewWorkflow:
        return self.workflow_repo.get_or_raise(workflow_id)

    def get_history(
        self,
        workflow_id: str,
        limit: Optional[int] = None
    ) -> List[ReviewHistoryEntry]:
        """
        History oldest first; the full log unless ``limit`` is given.

        Raises:
            WorkflowNotFoundError: unknown workflow ID
        """
        self.workflow_repo.get_or_raise(workflow_id)
        return self.history_repo.list_by_workflow(workflow_id, limit=limit)

    def count_history(self, workflow_id: str) -> int:
        """Number of history entries, i.e. successful transitions"""
        self.workflow_repo.get_or_raise(workflow_id)
        return self.history_repo.count_by_workflow(workflow_id)

    def list(
        self,
        filters: Optional[ReviewWorkflowFilters] = None,
        page: int = 1,
        page_size: Optional[int] = None,
        sort_by: str = "created_at",
        sort_order: str = "asc"
    ) -> PaginatedWorkflows:
        """Offset pagination over a total order (sort field, then workflow ID)"""
        if page < 1:
            raise ValidationError("page must be >= 1", details={"page": page})
        page_size = page_size or settings.default_page_size
        if page_size < 1 or page_size > settings.max_page_size:
            raise ValidationError(
                f"page_size must be between 1 and {settings.max_page_size}",
                details={"page_size": page_size}
            )

        total = self.workflow_repo.count(filters)
        items = self.workflow_repo.list(
            filters,
            sort_by=sort_by,
            sort_order=sort_order,
            skip=(page - 1) * page_size,
            limit=page_size
        )
        total_pages = math.ceil(total / page_size) if total else 0

        return PaginatedWorkflows(
            items=items,
            page=page,
            page_size=page_size,
            total=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1
        )

    def review_queue(
        self,
        reviewer_id: Optional[str] = None,
        status: Optional[ReviewStatus] = None,
        engagement: Optional[str] = None,
        limit: int = 100
    ) -> List[ReviewWorkflow]:
        """
        Work waiting on reviewers.

        With a reviewer: their assigned records (under review unless ``status``
        says otherwise). Without: everything ready for review, oldest due first.
        """
        if reviewer_id:
            filters = ReviewWorkflowFilters(
                assigned_reviewer=reviewer_id,
                status=status or ReviewStatus.UNDER_REVIEW,
                engagement=engagement
            )
        else:
            filters = ReviewWorkflowFilters(
                status=status or ReviewStatus.READY_FOR_REVIEW,
                engagement=engagement
            )
        return self.workflow_repo.list(filters, sort_by="due_date", limit=limit)

    def stats(self, engagement: Optional[str] = None) -> Dict[str, int]:
        """Active workflow count per persisted status, plus ``total``"""
        counts = self.workflow_repo.count_by_status(engagement)
        result = {
            status.value: counts.get(status.value, 0)
            for status in ReviewStatus
            if status != ReviewStatus.RE_OPENED
        }
        result["total"] = sum(result.values())
        return result

    def find_overdue(self, now: Optional[datetime] = None, limit: Optional[int] = None) -> List[ReviewWorkflow]:
        return self.workflow_repo.list_overdue(
            now or utc_now(), limit=limit or settings.overdue_sweep_batch_size
        )

    # =========================================================================
    # Lock signal
    # =========================================================================

    def is_editable(self, key: WorkflowKey) -> bool:
        """
        Whether the artifact behind ``key`` may be edited.

        An artifact with no active workflow has nothing locking it.
        """
        workflow = self.get(key)
        if workflow is None:
            return True
        return self.lock_manager.is_editable(workflow)

    def ensure_editable(self, key: WorkflowKey) -> None:
        """
        Raises:
            LockedError: the artifact's review currently locks its content
        """
        workflow = self.get(key)
        if workflow is not None:
            self.lock_manager.ensure_editable(workflow)

    # =========================================================================
    # Annotations (no status change, no history entry)
    # =========================================================================

    def add_note(self, workflow_id: str, text: str, actor: ActorContext) -> ReviewWorkflow:
        text = (text or "").strip()
        if not text:
            raise ValidationError("Note text is required", details={"workflow_id": workflow_id})

        workflow = self.workflow_repo.get_or_raise(workflow_id)
        self._require_participant(actor, workflow, "add notes to")

        note = ReviewNote(text=text, added_by=actor.user_id, added_at=utc_now())
        updated = workflow.model_copy(update={"notes": workflow.notes + [note]})
        return self.workflow_repo.compare_and_swap(workflow_id, workflow.revision, updated)

    def update_tags(self, workflow_id: str, tags: List[str], actor: ActorContext) -> ReviewWorkflow:
        workflow = self.workflow_repo.get_or_raise(workflow_id)
        self._require_participant(actor, workflow, "tag")

        updated = workflow.model_copy(update={"tags": normalize_tags(tags)})
        return self.workflow_repo.compare_and_swap(workflow_id, workflow.revision, updated)

    def update_schedule(
        self,
        workflow_id: str,
        actor: ActorContext,
        priority: Optional[ReviewPriority] = None,
        due_date: Optional[datetime] = None,
        clear_due_date: bool = False
    ) -> ReviewWorkflow:
        """Change priority and/or due date"""
        workflow = self.workflow_repo.get_or_raise(workflow_id)
        self._require_participant(actor, workflow, "reschedule")

        updates = {}
        if priority is not None:
            updates["priority"] = priority
        if clear_due_date:
            updates["due_date"] = None
        elif due_date is not None:
            updates["due_date"] = due_date
        if not updates:
            return workflow

        updated = workflow.model_copy(update=updates)
        return self.workflow_repo.compare_and_swap(workflow_id, workflow.revision, updated)

    # =========================================================================
    # Supersede
    # =========================================================================

    def supersede(
        self,
        workflow_id: str,
        actor: ActorContext,
        reason: Optional[str] = None,
        correlation_id: Optional[str] = None
    ) -> ReviewWorkflow:
        """
        Retire a workflow from its natural key. The record and its history stay
        for audit; a new workflow may then be created for the same key.

        Not a transition: nothing is appended to the history log. The
        retirement lives on the record (``superseded_at``/``superseded_by``)
        and is announced through the event outbox.
        """
        workflow = self.workflow_repo.get_or_raise(workflow_id)
        if not self.reviewer_assignment.can_supersede(actor):
            raise PermissionDeniedError(
                f"User {actor.user_id} may not supersede this review",
                details={"workflow_id": workflow_id}
            )
        if workflow.is_superseded:
            return workflow

        updated = workflow.model_copy(update={
            "is_superseded": True,
            "superseded_at": utc_now(),
            "superseded_by": actor.user_id,
        })
        committed = self.workflow_repo.compare_and_swap(workflow_id, workflow.revision, updated)
        self.event_publisher.publish_superseded(committed, actor.user_id, reason, correlation_id)

        logger.info(
            f"Superseded review workflow: {workflow_id}",
            extra={"workflow_id": workflow_id, "actor_id": actor.user_id}
        )
        return committed

    # =========================================================================
    # Helpers
    # =========================================================================

    def _load_by_key(self, key: WorkflowKey) -> ReviewWorkflow:
        workflow = self.get(key)
        if workflow is None:
            raise WorkflowNotFoundError(
                f"No review workflow for {key}",
                details=key.as_filter()
            )
        return workflow

    def _require_participant(self, actor: ActorContext, workflow: ReviewWorkflow, verb: str) -> None:
        if not self.reviewer_assignment.can_participate(actor):
            raise PermissionDeniedError(
                f"User {actor.user_id} may not {verb} this review",
                details={"workflow_id": workflow.workflow_id}
            )

    @staticmethod
    def _validate_key(key: WorkflowKey) -> WorkflowKey:
        item_id = (key.item_id or "").strip()
        engagement = (key.engagement or "").strip()
        missing = [
            name for name, value in (("item_id", item_id), ("engagement", engagement))
            if not value
        ]
        if missing:
            raise ValidationError(
                f"Missing workflow key fields: {', '.join(missing)}",
                details={"missing": missing}
            )
        if item_id == key.item_id and engagement == key.engagement:
            return key
        return WorkflowKey(item_type=key.item_type, item_id=item_id, engagement=engagement)
