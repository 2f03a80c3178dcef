"""Event Publisher - Emit review transition events to the outbox"""
from typing import Callable, List, Optional

from ..domain.enums import HistoryAction, ReviewEventType, ReviewStatus
from ..domain.models import ReviewTransitionEvent, ReviewWorkflow
from ..repositories.review_event_repo import ReviewEventRepository
from ..utils.idgen import generate_event_id
from ..utils.logger import get_logger
from ..utils.time import utc_now

logger = get_logger(__name__)

Subscriber = Callable[[ReviewTransitionEvent], None]


class ReviewEventPublisher:
    """
    Publish transition events for the notification subsystem.

    Events land in the ``review_events`` outbox and are handed to any in-process
    subscribers. Publishing happens after the record and history are committed,
    so failures here are logged and swallowed: they never undo a transition.
    """

    def __init__(self, repo: Optional[ReviewEventRepository] = None):
        self.repo = repo or ReviewEventRepository()
        self._subscribers: List[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> None:
        self._subscribers.append(subscriber)

    def publish_transition(
        self,
        workflow: ReviewWorkflow,
        action: HistoryAction,
        previous_status: Optional[ReviewStatus],
        actor_id: str,
        correlation_id: Optional[str] = None
    ) -> Optional[ReviewTransitionEvent]:
        event = self._build_event(
            workflow,
            ReviewEventType.TRANSITION,
            action=action,
            previous_status=previous_status,
            actor_id=actor_id,
            correlation_id=correlation_id
        )
        return self._publish(event)

    def publish_overdue(
        self,
        workflow: ReviewWorkflow,
        correlation_id: Optional[str] = None
    ) -> Optional[ReviewTransitionEvent]:
        event = self._build_event(
            workflow,
            ReviewEventType.OVERDUE,
            previous_status=workflow.status,
            correlation_id=correlation_id
        )
        return self._publish(event)

    def publish_superseded(
        self,
        workflow: ReviewWorkflow,
        actor_id: str,
        reason: Optional[str] = None,
        correlation_id: Optional[str] = None
    ) -> Optional[ReviewTransitionEvent]:
        """Announce that a workflow was retired from its natural key (status unchanged)"""
        event = self._build_event(
            workflow,
            ReviewEventType.SUPERSEDED,
            previous_status=workflow.status,
            actor_id=actor_id,
            reason=reason,
            correlation_id=correlation_id
        )
        return self._publish(event)

    def _build_event(
        self,
        workflow: ReviewWorkflow,
        event_type: ReviewEventType,
        action: Optional[HistoryAction] = None,
        previous_status: Optional[ReviewStatus] = None,
        actor_id: Optional[str] = None,
        reason: Optional[str] = None,
        correlation_id: Optional[str] = None
    ) -> ReviewTransitionEvent:
        return ReviewTransitionEvent(
            event_id=generate_event_id(),
            event_type=event_type,
            workflow_id=workflow.workflow_id,
            item_type=workflow.item_type,
            item_id=workflow.item_id,
            engagement=workflow.engagement,
            action=action,
            previous_status=previous_status,
            new_status=workflow.status,
            actor=actor_id,
            reason=reason,
            timestamp=utc_now(),
            correlation_id=correlation_id
        )

    def _publish(self, event: ReviewTransitionEvent) -> Optional[ReviewTransitionEvent]:
        try:
            self.repo.create_event(event)
        except Exception as e:
            logger.error(
                f"Failed to queue review event for {event.workflow_id}: {e}",
                extra={"workflow_id": event.workflow_id, "status": event.new_status.value}
            )
            return None

        for subscriber in self._subscribers:
            try:
                subscriber(event)
            except Exception as e:
                # Don't fail the transition if a subscriber fails
                logger.warning(
                    f"Review event subscriber failed: {e}",
                    extra={"workflow_id": event.workflow_id}
                )

        return event
