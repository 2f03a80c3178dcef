"""Review History Repository - Append-only transition log"""
from typing import List, Optional
from pymongo import ASCENDING, DESCENDING
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError

from .documents import from_document, to_document
from .mongo_client import REVIEW_HISTORY, get_collection
from ..domain.errors import ConflictError
from ..domain.models import ReviewHistoryEntry
from ..utils.logger import get_logger

logger = get_logger(__name__)


class ReviewHistoryRepository:
    """
    Repository for review history entries (append-only).

    Entries are inserted and read, never rewritten: there is no
    update or delete path.
    """

    def __init__(self, collection: Optional[Collection] = None):
        self._history: Collection = (
            collection if collection is not None else get_collection(REVIEW_HISTORY)
        )

    def append(self, entry: ReviewHistoryEntry) -> ReviewHistoryEntry:
        """
        Insert a history entry.

        Raises:
            ConflictError: an entry with the same ``history_id`` already exists
        """
        try:
            self._history.insert_one(to_document(entry, "history_id"))
        except DuplicateKeyError as e:
            raise ConflictError(
                f"History entry {entry.history_id} already recorded",
                details={"history_id": entry.history_id, "workflow_id": entry.workflow_id}
            ) from e

        logger.info(
            f"Recorded review history: {entry.action.value}",
            extra={
                "workflow_id": entry.workflow_id,
                "action": entry.action.value,
                "actor_id": entry.performed_by,
                "revision": entry.sequence,
            }
        )
        return entry

    def list_by_workflow(
        self,
        workflow_id: str,
        limit: Optional[int] = None
    ) -> List[ReviewHistoryEntry]:
        """History for one workflow, oldest first"""
        cursor = self._history.find({"workflow_id": workflow_id}).sort(
            [("performed_at", ASCENDING), ("sequence", ASCENDING)]
        )
        if limit:
            cursor = cursor.limit(limit)
        return [from_document(ReviewHistoryEntry, doc) for doc in cursor]

    def count_by_workflow(self, workflow_id: str) -> int:
        return self._history.count_documents({"workflow_id": workflow_id})

    def list_by_engagement(self, engagement: str, limit: int = 100) -> List[ReviewHistoryEntry]:
        """Most recent history across an engagement, newest first"""
        cursor = self._history.find({"engagement": engagement}).sort(
            [("performed_at", DESCENDING), ("sequence", DESCENDING)]
        ).limit(limit)
        return [from_document(ReviewHistoryEntry, doc) for doc in cursor]

    def update(self, *args, **kwargs):
        raise NotImplementedError("Review history is append-only")

    def delete(self, *args, **kwargs):
        raise NotImplementedError("Review history is append-only")
