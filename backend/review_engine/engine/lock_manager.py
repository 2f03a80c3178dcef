"""Lock Manager - Derived "content is editable" signal"""
from ..domain.enums import LOCKED_STATUSES, ReviewStatus
from ..domain.errors import LockedError
from ..domain.models import ReviewWorkflow


class LockManager:
    """
    Answer whether an artifact's content may be edited.

    The signal is derived purely from workflow status. Item editors consult it
    before mutating their own stores; the engine never guards those stores itself.
    """

    @staticmethod
    def is_locked_status(status: ReviewStatus) -> bool:
        return status in LOCKED_STATUSES

    def is_editable(self, workflow: ReviewWorkflow) -> bool:
        return not self.is_locked_status(workflow.status)

    def ensure_editable(self, workflow: ReviewWorkflow) -> None:
        """
        Raises:
            LockedError: the workflow's status blocks content edits
        """
        if not self.is_editable(workflow):
            raise LockedError(
                f"{workflow.item_type.value} {workflow.item_id} is locked while "
                f"its review is {workflow.status.value}",
                details={
                    "workflow_id": workflow.workflow_id,
                    "status": workflow.status.value,
                    "locked_by": workflow.locked_by,
                }
            )
