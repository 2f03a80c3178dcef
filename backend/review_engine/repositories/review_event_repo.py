"""Review Event Repository - Outbox of transition events for downstream consumers"""
from datetime import datetime
from typing import List, Optional
from pymongo import ASCENDING
from pymongo.collection import Collection

from .documents import as_storage_datetime, from_document, to_document
from .mongo_client import REVIEW_EVENTS, get_collection
from ..domain.models import ReviewTransitionEvent
from ..utils.logger import get_logger

logger = get_logger(__name__)


class ReviewEventRepository:
    """Outbox the notification subsystem polls; the engine only inserts"""

    def __init__(self, collection: Optional[Collection] = None):
        self._events: Collection = (
            collection if collection is not None else get_collection(REVIEW_EVENTS)
        )

    def create_event(self, event: ReviewTransitionEvent) -> ReviewTransitionEvent:
        self._events.insert_one(to_document(event, "event_id"))
        logger.info(
            f"Queued review event: {event.event_type.value}",
            extra={"workflow_id": event.workflow_id, "status": event.new_status.value}
        )
        return event

    def list_for_workflow(self, workflow_id: str) -> List[ReviewTransitionEvent]:
        cursor = self._events.find({"workflow_id": workflow_id}).sort("timestamp", ASCENDING)
        return [from_document(ReviewTransitionEvent, doc) for doc in cursor]

    def list_since(self, since: datetime, limit: int = 100) -> List[ReviewTransitionEvent]:
        """Events emitted at or after ``since``, oldest first"""
        cursor = self._events.find(
            {"timestamp": {"$gte": as_storage_datetime(since)}}
        ).sort([("timestamp", ASCENDING), ("event_id", ASCENDING)]).limit(limit)
        return [from_document(ReviewTransitionEvent, doc) for doc in cursor]
