"""Reviewer Assignment - Who may claim, review, sign off and reopen"""
from typing import Optional

from ..domain.enums import (
    ELEVATED_ROLES, REVIEWER_ROLES, ReviewAction, ReviewStatus
)
from ..domain.errors import PermissionDeniedError
from ..domain.models import ActorContext, ReviewWorkflow
from ..utils.logger import get_logger

logger = get_logger(__name__)

_ASSIGNABLE_STATUSES = frozenset({ReviewStatus.READY_FOR_REVIEW, ReviewStatus.UNDER_REVIEW})


class ReviewerAssignment:
    """
    Role and assignment checks for review actions.

    Rules:
    - Any recognised portal role can submit and resubmit work
    - Reviewers, partners and admins can claim work that is ready for review
    - Only the assigned reviewer (or a partner/admin) can approve or reject
    - Only partners and admins can sign off, reopen, assign or supersede
    """

    def _is_same_user(self, actor: ActorContext, user_id: Optional[str]) -> bool:
        """Reviewer IDs are compared case-insensitively"""
        if not user_id:
            return False
        return actor.user_id.strip().lower() == user_id.strip().lower()

    def is_reviewer(self, actor: ActorContext) -> bool:
        return actor.has_any_role(REVIEWER_ROLES)

    def is_elevated(self, actor: ActorContext) -> bool:
        return actor.has_any_role(ELEVATED_ROLES)

    def can_participate(self, actor: ActorContext) -> bool:
        return bool(actor.portal_roles)

    def can_claim(self, actor: ActorContext, workflow: ReviewWorkflow) -> bool:
        """Reviewer-capable actor, item waiting for review, free or already theirs"""
        if not self.is_reviewer(actor):
            return False
        if workflow.status != ReviewStatus.READY_FOR_REVIEW:
            return False
        if not workflow.assigned_reviewer:
            return True
        return self._is_same_user(actor, workflow.assigned_reviewer)

    def can_assign(self, actor: ActorContext, workflow: ReviewWorkflow) -> bool:
        return self.is_elevated(actor) and workflow.status in _ASSIGNABLE_STATUSES

    def can_review(self, actor: ActorContext, workflow: ReviewWorkflow) -> bool:
        if self.is_elevated(actor):
            return True
        return self.is_reviewer(actor) and self._is_same_user(actor, workflow.assigned_reviewer)

    def can_sign_off(self, actor: ActorContext, workflow: ReviewWorkflow) -> bool:
        return self.is_elevated(actor) and workflow.status == ReviewStatus.APPROVED

    def can_reopen(self, actor: ActorContext, workflow: ReviewWorkflow) -> bool:
        return self.is_elevated(actor) and workflow.status == ReviewStatus.SIGNED_OFF

    def can_supersede(self, actor: ActorContext) -> bool:
        return self.is_elevated(actor)

    def is_allowed(
        self,
        actor: ActorContext,
        workflow: ReviewWorkflow,
        action: ReviewAction
    ) -> bool:
        """Role and assignment check; callers validate the transition itself first"""
        if action in (ReviewAction.SUBMIT, ReviewAction.RESUBMIT):
            return self.can_participate(actor)
        if action == ReviewAction.CLAIM:
            return self.can_claim(actor, workflow)
        if action in (ReviewAction.ASSIGN, ReviewAction.SIGN_OFF, ReviewAction.REOPEN):
            return self.is_elevated(actor)
        if action in (ReviewAction.APPROVE, ReviewAction.REJECT):
            return self.can_review(actor, workflow)
        return False

    def authorize(
        self,
        actor: ActorContext,
        workflow: ReviewWorkflow,
        action: ReviewAction
    ) -> None:
        """
        Raises:
            PermissionDeniedError: actor may not perform ``action`` on ``workflow``
        """
        if self.is_allowed(actor, workflow, action):
            return

        logger.warning(
            f"Permission denied for {action.value}",
            extra={
                "workflow_id": workflow.workflow_id,
                "actor_id": actor.user_id,
                "action": action.value,
                "status": workflow.status.value,
            }
        )
        raise PermissionDeniedError(
            f"User {actor.user_id} may not {action.value} this review",
            details={
                "workflow_id": workflow.workflow_id,
                "action": action.value,
                "status": workflow.status.value,
                "roles": sorted(role.value for role in actor.portal_roles),
                "assigned_reviewer": workflow.assigned_reviewer,
            }
        )
