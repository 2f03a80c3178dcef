"""Overdue Scheduler - Periodic sweep for review workflows past their due date

Reads active workflows and emits ``overdue`` events for the notification
subsystem. It never changes a workflow's status.
"""
from datetime import datetime, timedelta
from typing import Dict, Optional, Set
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config.settings import settings
from ..services.review_workflow_service import ReviewWorkflowService
from ..utils.idgen import generate_correlation_id
from ..utils.logger import get_context_logger, get_logger
from ..utils.time import utc_now

logger = get_logger(__name__)


class OverdueReviewScheduler:
    """
    APScheduler job that flags overdue reviews.

    Each workflow is reported at most once per ``reminder_cooldown`` so a
    long-overdue item doesn't produce an event on every sweep.
    """

    reminder_cooldown = timedelta(hours=24)

    def __init__(self, service: Optional[ReviewWorkflowService] = None):
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._service = service
        self._is_running = False
        self._last_reported: Dict[str, datetime] = {}

    @property
    def service(self) -> ReviewWorkflowService:
        if self._service is None:
            self._service = ReviewWorkflowService()
        return self._service

    def start(self) -> None:
        """Start the scheduler"""
        if self._is_running:
            logger.warning("Overdue scheduler already running")
            return

        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self._sweep_job,
            trigger=IntervalTrigger(seconds=settings.overdue_sweep_interval_seconds),
            id="sweep_overdue_reviews",
            name="Sweep overdue review workflows",
            replace_existing=True
        )
        self.scheduler.start()
        self._is_running = True
        logger.info(
            f"Overdue scheduler started (every {settings.overdue_sweep_interval_seconds}s)"
        )

    def stop(self) -> None:
        """Stop the scheduler"""
        if self.scheduler:
            self.scheduler.shutdown()
            self._is_running = False
            logger.info("Overdue scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._is_running

    async def _sweep_job(self) -> None:
        try:
            self.sweep()
        except Exception as e:
            logger.error(f"Error in overdue sweep job: {e}", exc_info=True)

    def sweep(self, now: Optional[datetime] = None) -> int:
        """
        Publish an overdue event for each overdue workflow not reported recently.

        Returns:
            Number of events published
        """
        now = now or utc_now()
        correlation_id = generate_correlation_id()
        published = 0
        overdue = self.service.find_overdue(now)

        for workflow in overdue:
            last = self._last_reported.get(workflow.workflow_id)
            if last is not None and now - last < self.reminder_cooldown:
                continue

            event = self.service.event_publisher.publish_overdue(workflow, correlation_id)
            if event is None:
                continue

            self._last_reported[workflow.workflow_id] = now
            published += 1
            get_context_logger(
                __name__,
                workflow_id=workflow.workflow_id,
                engagement=workflow.engagement,
                status=workflow.status.value
            ).info(f"Review overdue since {workflow.due_date.isoformat()}")

        self._forget_stale(now, {workflow.workflow_id for workflow in overdue})

        if published:
            logger.info(
                f"Flagged {published} overdue review workflows",
                extra={"correlation_id": correlation_id}
            )
        return published

    def _forget_stale(self, now: datetime, overdue_ids: Set[str]) -> None:
        """Drop reminders for workflows no longer overdue or past their cooldown"""
        self._last_reported = {
            workflow_id: reported_at
            for workflow_id, reported_at in self._last_reported.items()
            if workflow_id in overdue_ids and now - reported_at < self.reminder_cooldown
        }


# Global scheduler instance
_scheduler: Optional[OverdueReviewScheduler] = None


def get_scheduler() -> OverdueReviewScheduler:
    """Get or create scheduler instance"""
    global _scheduler
    if _scheduler is None:
        _scheduler = OverdueReviewScheduler()
    return _scheduler


def start_scheduler() -> None:
    """Start the global scheduler"""
    get_scheduler().start()


def stop_scheduler() -> None:
    """Stop the global scheduler"""
    global _scheduler
    if _scheduler:
        _scheduler.stop()
        _scheduler = None
