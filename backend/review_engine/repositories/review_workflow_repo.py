"""Review Workflow Repository - Durable keyed storage with compare-and-swap"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError

from .documents import as_storage_datetime, from_document, to_document
from .mongo_client import REVIEW_WORKFLOWS, get_collection
from ..domain.enums import ReviewStatus
from ..domain.errors import ConcurrencyError, DuplicateWorkflowError, WorkflowNotFoundError
from ..domain.models import ReviewWorkflow, ReviewWorkflowFilters, WorkflowKey
from ..utils.logger import get_logger
from ..utils.time import utc_now

logger = get_logger(__name__)

SORTABLE_FIELDS = frozenset({"created_at", "updated_at", "due_date", "status", "item_id"})


class ReviewWorkflowRepository:
    """
    Repository for review workflow records.

    The stored ``revision`` is the only concurrency gate: every write goes through
    :meth:`compare_and_swap` and bumps it by one. The domain ``version`` is
    untouched here.
    """

    def __init__(self, collection: Optional[Collection] = None):
        self._workflows: Collection = (
            collection if collection is not None else get_collection(REVIEW_WORKFLOWS)
        )

    # =========================================================================
    # Reads
    # =========================================================================

    def get(self, workflow_id: str) -> Optional[ReviewWorkflow]:
        """Get workflow by ID (superseded records included)"""
        return from_document(ReviewWorkflow, self._workflows.find_one({"workflow_id": workflow_id}))

    def get_or_raise(self, workflow_id: str) -> ReviewWorkflow:
        workflow = self.get(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(
                f"Review workflow {workflow_id} not found",
                details={"workflow_id": workflow_id}
            )
        return workflow

    def get_by_key(self, key: WorkflowKey) -> Optional[ReviewWorkflow]:
        """Get the active (non-superseded) workflow for a natural key"""
        query = key.as_filter()
        query["is_superseded"] = False
        return from_document(ReviewWorkflow, self._workflows.find_one(query))

    # =========================================================================
    # Writes
    # =========================================================================

    def create(self, workflow: ReviewWorkflow) -> ReviewWorkflow:
        """
        Conditionally insert a workflow.

        Raises:
            DuplicateWorkflowError: an active workflow already holds the natural key
        """
        existing = self.get_by_key(workflow.key)
        if existing is not None:
            raise DuplicateWorkflowError(
                f"An active review workflow already exists for {workflow.key}",
                details={"workflow_id": existing.workflow_id}
            )

        try:
            self._workflows.insert_one(to_document(workflow, "workflow_id"))
        except DuplicateKeyError as e:
            # Lost the race against a concurrent create; the unique index decided
            raise DuplicateWorkflowError(
                f"An active review workflow already exists for {workflow.key}",
                details={"item_type": workflow.item_type.value, "item_id": workflow.item_id}
            ) from e

        logger.info(
            f"Created review workflow: {workflow.workflow_id}",
            extra={
                "workflow_id": workflow.workflow_id,
                "item_type": workflow.item_type.value,
                "item_id": workflow.item_id,
                "engagement": workflow.engagement,
            }
        )
        return workflow

    def compare_and_swap(
        self,
        workflow_id: str,
        expected_revision: int,
        workflow: ReviewWorkflow
    ) -> ReviewWorkflow:
        """
        Replace the stored record only if its revision still equals ``expected_revision``.

        Returns the stored record (revision ``expected_revision + 1``).

        Raises:
            ConcurrencyError: the stored revision moved on since it was read
            WorkflowNotFoundError: no record with this ID exists
        """
        candidate = workflow.model_copy(
            update={"revision": expected_revision + 1, "updated_at": utc_now()}
        )
        updates = to_document(candidate, "workflow_id")
        updates.pop("_id", None)
        updates.pop("created_at", None)

        result = self._workflows.find_one_and_update(
            {"workflow_id": workflow_id, "revision": expected_revision},
            {"$set": updates},
            return_document=ReturnDocument.AFTER
        )

        if result is None:
            if self._workflows.find_one({"workflow_id": workflow_id}) is not None:
                raise ConcurrencyError(
                    f"Review workflow {workflow_id} was modified. Please refresh and try again.",
                    details={"workflow_id": workflow_id, "expected_revision": expected_revision}
                )
            raise WorkflowNotFoundError(
                f"Review workflow {workflow_id} not found",
                details={"workflow_id": workflow_id}
            )

        logger.info(
            f"Updated review workflow: {workflow_id}",
            extra={"workflow_id": workflow_id, "revision": expected_revision + 1}
        )
        return from_document(ReviewWorkflow, result)

    # =========================================================================
    # Queries
    # =========================================================================

    def list(
        self,
        filters: Optional[ReviewWorkflowFilters] = None,
        sort_by: str = "created_at",
        sort_order: str = "asc",
        skip: int = 0,
        limit: int = 50
    ) -> List[ReviewWorkflow]:
        """
        List workflows matching all filters.

        Ordering is total: ``workflow_id`` always breaks ties so offset pages
        never overlap or skip records.
        """
        if sort_by not in SORTABLE_FIELDS:
            sort_by = "created_at"
        direction = DESCENDING if sort_order.lower() == "desc" else ASCENDING

        cursor = (
            self._workflows.find(self._build_query(filters))
            .sort([(sort_by, direction), ("workflow_id", ASCENDING)])
            .skip(skip)
            .limit(limit)
        )
        return [from_document(ReviewWorkflow, doc) for doc in cursor]

    def count(self, filters: Optional[ReviewWorkflowFilters] = None) -> int:
        """Count workflows matching all filters"""
        return self._workflows.count_documents(self._build_query(filters))

    def list_overdue(self, now: datetime, limit: int = 500) -> List[ReviewWorkflow]:
        """Active workflows whose due date has passed and that are not signed off"""
        query = {
            "is_superseded": False,
            "due_date": {"$ne": None, "$lt": as_storage_datetime(now)},
            "status": {"$ne": ReviewStatus.SIGNED_OFF.value},
        }
        cursor = self._workflows.find(query).sort(
            [("due_date", ASCENDING), ("workflow_id", ASCENDING)]
        ).limit(limit)
        return [from_document(ReviewWorkflow, doc) for doc in cursor]

    def count_by_status(self, engagement: Optional[str] = None) -> Dict[str, int]:
        """Count active workflows per status, optionally scoped to an engagement"""
        match: Dict[str, Any] = {"is_superseded": False}
        if engagement:
            match["engagement"] = engagement

        pipeline = [
            {"$match": match},
            {"$group": {"_id": "$status", "count": {"$sum": 1}}},
        ]
        return {doc["_id"]: doc["count"] for doc in self._workflows.aggregate(pipeline)}

    @staticmethod
    def _build_query(filters: Optional[ReviewWorkflowFilters]) -> Dict[str, Any]:
        filters = filters or ReviewWorkflowFilters()
        query: Dict[str, Any] = {}

        if not filters.include_superseded:
            query["is_superseded"] = False

        if filters.statuses:
            query["status"] = {"$in": [s.value for s in filters.statuses]}
        elif filters.status:
            query["status"] = filters.status.value
        if filters.engagement:
            query["engagement"] = filters.engagement
        if filters.item_type:
            query["item_type"] = filters.item_type.value
        if filters.assigned_reviewer:
            query["assigned_reviewer"] = filters.assigned_reviewer
        if filters.priority:
            query["priority"] = filters.priority.value
        if filters.tag:
            query["tags"] = filters.tag

        due_range: Dict[str, Any] = {}
        if filters.due_date_from:
            due_range["$gte"] = as_storage_datetime(filters.due_date_from)
        if filters.due_date_to:
            due_range["$lte"] = as_storage_datetime(filters.due_date_to)
        if due_range:
            query["due_date"] = due_range

        return query
