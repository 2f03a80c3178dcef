"""History Writer - Append-only review history entries"""
from typing import Any, Dict, Optional

from .state_machine import TransitionOutcome
from ..domain.enums import HistoryAction
from ..domain.models import ActorContext, ReviewHistoryEntry, ReviewWorkflow
from ..repositories.review_history_repo import ReviewHistoryRepository
from ..utils.idgen import generate_history_entry_id
from ..utils.time import utc_now


class HistoryWriter:
    """
    Write review history entries.

    Every successful transition produces exactly one entry; ``sequence`` is the
    record revision the write produced, so entries sharing a timestamp still
    order deterministically.
    """

    def __init__(self, repo: Optional[ReviewHistoryRepository] = None):
        self.repo = repo or ReviewHistoryRepository()

    def write_entry(
        self,
        workflow: ReviewWorkflow,
        action: HistoryAction,
        actor: ActorContext,
        previous_status=None,
        new_status=None,
        comments: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None
    ) -> ReviewHistoryEntry:
        """Write a single history entry for the committed ``workflow``"""
        entry = ReviewHistoryEntry(
            history_id=generate_history_entry_id(),
            workflow_id=workflow.workflow_id,
            item_type=workflow.item_type,
            item_id=workflow.item_id,
            engagement=workflow.engagement,
            action=action,
            performed_by=actor.user_id,
            performed_at=workflow.updated_at or utc_now(),
            previous_status=previous_status,
            new_status=new_status,
            comments=comments,
            metadata=metadata or {},
            sequence=workflow.revision,
            correlation_id=correlation_id
        )
        return self.repo.append(entry)

    def write_transition(
        self,
        workflow: ReviewWorkflow,
        outcome: TransitionOutcome,
        actor: ActorContext,
        correlation_id: Optional[str] = None
    ) -> ReviewHistoryEntry:
        """Record a state machine outcome once its record has been committed"""
        return self.write_entry(
            workflow=workflow,
            action=outcome.action,
            actor=actor,
            previous_status=outcome.previous_status,
            new_status=outcome.new_status,
            comments=outcome.comments,
            metadata=outcome.metadata,
            correlation_id=correlation_id
        )
