"""ReviewStateMachine: transition table, side effects and lock derivation"""
from datetime import datetime, timezone

import pytest

from review_engine.domain.enums import (
    AuditItemType, HistoryAction, LOCKED_STATUSES, ReviewAction, ReviewStatus
)
from review_engine.domain.errors import InvalidTransitionError, ValidationError
from review_engine.domain.models import TransitionPayload
from review_engine.engine.state_machine import TRANSITIONS, ReviewStateMachine

NOW = datetime(2025, 3, 2, 10, 30, tzinfo=timezone.utc)
EARLIER = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def machine():
    return ReviewStateMachine()


class TestForwardPath:
    def test_submit_records_submitter(self, machine, make_workflow):
        outcome = machine.apply(make_workflow(), ReviewAction.SUBMIT, "prep-1", now=NOW)

        assert outcome.workflow.status == ReviewStatus.READY_FOR_REVIEW
        assert outcome.workflow.submitted_for_review_by == "prep-1"
        assert outcome.workflow.submitted_for_review_at == NOW
        assert outcome.workflow.is_locked is False
        assert outcome.action == HistoryAction.SUBMITTED_FOR_REVIEW
        assert outcome.previous_status == ReviewStatus.IN_PROGRESS
        assert outcome.new_status == ReviewStatus.READY_FOR_REVIEW

    def test_claim_assigns_and_locks(self, machine, make_workflow):
        workflow = make_workflow(ReviewStatus.READY_FOR_REVIEW)
        outcome = machine.apply(workflow, ReviewAction.CLAIM, "R1", now=NOW)

        assert outcome.workflow.status == ReviewStatus.UNDER_REVIEW
        assert outcome.workflow.assigned_reviewer == "R1"
        assert outcome.workflow.assigned_at == NOW
        assert outcome.workflow.is_locked is True
        assert outcome.workflow.locked_by == "R1"
        assert outcome.workflow.locked_at == NOW
        assert outcome.action == HistoryAction.CLAIMED_FOR_REVIEW

    def test_approve_keeps_original_lock(self, machine, make_workflow):
        workflow = make_workflow(
            ReviewStatus.UNDER_REVIEW,
            assigned_reviewer="R1", assigned_at=EARLIER,
            is_locked=True, locked_at=EARLIER, locked_by="R1",
        )
        outcome = machine.apply(
            workflow, ReviewAction.APPROVE, "R1", TransitionPayload(comments="  looks good "), now=NOW
        )

        assert outcome.workflow.status == ReviewStatus.APPROVED
        assert outcome.workflow.reviewed_by == "R1"
        assert outcome.workflow.reviewed_at == NOW
        assert outcome.workflow.review_comments == "looks good"
        assert outcome.workflow.locked_at == EARLIER
        assert outcome.comments == "looks good"

    def test_sign_off_records_signer(self, machine, make_workflow):
        workflow = make_workflow(
            ReviewStatus.APPROVED,
            assigned_reviewer="R1", reviewed_by="R1", reviewed_at=EARLIER,
            is_locked=True, locked_at=EARLIER, locked_by="R1",
        )
        outcome = machine.apply(
            workflow, ReviewAction.SIGN_OFF, "P1", TransitionPayload(comments="ok"), now=NOW
        )

        assert outcome.workflow.status == ReviewStatus.SIGNED_OFF
        assert outcome.workflow.signed_off_by == "P1"
        assert outcome.workflow.signed_off_at == NOW
        assert outcome.workflow.sign_off_comments == "ok"
        assert outcome.workflow.is_locked is True
        assert outcome.workflow.version == 1

    def test_apply_does_not_mutate_input(self, machine, make_workflow):
        workflow = make_workflow()
        machine.apply(workflow, ReviewAction.SUBMIT, "prep-1", now=NOW)

        assert workflow.status == ReviewStatus.IN_PROGRESS
        assert workflow.submitted_for_review_by is None


class TestRejection:
    def test_reject_unlocks(self, machine, make_workflow):
        workflow = make_workflow(
            ReviewStatus.UNDER_REVIEW,
            assigned_reviewer="R1", is_locked=True, locked_at=EARLIER, locked_by="R1",
        )
        outcome = machine.apply(
            workflow, ReviewAction.REJECT, "R1", TransitionPayload(comments="tie-out missing"), now=NOW
        )

        assert outcome.workflow.status == ReviewStatus.REJECTED
        assert outcome.workflow.is_locked is False
        assert outcome.workflow.locked_at is None
        assert outcome.workflow.locked_by is None
        assert outcome.workflow.assigned_reviewer == "R1"
        assert outcome.action == HistoryAction.REVIEW_REJECTED

    def test_resubmit_clears_reviewer_fields_only(self, machine, make_workflow):
        workflow = make_workflow(
            ReviewStatus.REJECTED,
            submitted_for_review_at=EARLIER, submitted_for_review_by="prep-1",
            assigned_reviewer="R1", assigned_at=EARLIER,
            reviewed_at=EARLIER, reviewed_by="R1", review_comments="tie-out missing",
        )
        outcome = machine.apply(workflow, ReviewAction.RESUBMIT, "prep-1", now=NOW)
        result = outcome.workflow

        assert result.status == ReviewStatus.IN_PROGRESS
        assert result.assigned_reviewer is None
        assert result.assigned_at is None
        assert result.reviewed_at is None
        assert result.reviewed_by is None
        assert result.review_comments is None
        assert result.submitted_for_review_by == "prep-1"
        assert outcome.metadata["previous_reviewer"] == "R1"


class TestReopen:
    @pytest.fixture
    def signed(self, make_workflow):
        return make_workflow(
            ReviewStatus.SIGNED_OFF,
            assigned_reviewer="R1", assigned_at=EARLIER,
            reviewed_at=EARLIER, reviewed_by="R1", review_comments="looks good",
            signed_off_at=EARLIER, signed_off_by="P1", sign_off_comments="fine",
            is_locked=True, locked_at=EARLIER, locked_by="R1",
        )

    def test_reopen_bumps_version_and_settles_in_progress(self, machine, signed):
        outcome = machine.apply(
            signed, ReviewAction.REOPEN, "P1", TransitionPayload(reason="missing evidence"), now=NOW
        )
        result = outcome.workflow

        assert result.status == ReviewStatus.IN_PROGRESS
        assert result.version == 2
        assert result.previous_version == 1
        assert result.reopened_by == "P1"
        assert result.reopened_at == NOW
        assert result.reopen_reason == "missing evidence"
        assert result.is_locked is False

    def test_reopen_clears_sign_off_and_review_outcome(self, machine, signed):
        result = machine.apply(
            signed, ReviewAction.REOPEN, "P1", TransitionPayload(reason="missing evidence"), now=NOW
        ).workflow

        assert result.signed_off_at is None
        assert result.signed_off_by is None
        assert result.sign_off_comments is None
        assert result.reviewed_by is None
        assert result.assigned_reviewer is None

    def test_reopen_outcome_describes_transient_step(self, machine, signed):
        outcome = machine.apply(
            signed, ReviewAction.REOPEN, "P1", TransitionPayload(reason="missing evidence"), now=NOW
        )

        assert outcome.action == HistoryAction.RE_OPENED
        assert outcome.previous_status == ReviewStatus.SIGNED_OFF
        assert outcome.new_status == ReviewStatus.IN_PROGRESS
        assert outcome.comments == "missing evidence"
        assert outcome.metadata["version_before"] == 1
        assert outcome.metadata["version_after"] == 2
        assert outcome.metadata["transient_status"] == ReviewStatus.RE_OPENED.value

    @pytest.mark.parametrize("reason", [None, "", "   "])
    def test_reopen_requires_reason(self, machine, signed, reason):
        with pytest.raises(ValidationError):
            machine.apply(signed, ReviewAction.REOPEN, "P1", TransitionPayload(reason=reason), now=NOW)

    def test_second_reopen_cycle(self, machine, make_workflow):
        workflow = make_workflow(
            ReviewStatus.SIGNED_OFF, version=2, previous_version=1,
            assigned_reviewer="R1", signed_off_at=EARLIER, signed_off_by="P1", is_locked=True,
        )
        result = machine.apply(
            workflow, ReviewAction.REOPEN, "P1", TransitionPayload(reason="again"), now=NOW
        ).workflow

        assert result.version == 3
        assert result.previous_version == 2


class TestAssign:
    def test_assign_from_ready(self, machine, make_workflow):
        outcome = machine.apply(
            make_workflow(ReviewStatus.READY_FOR_REVIEW),
            ReviewAction.ASSIGN, "P1", TransitionPayload(reviewer_id="R2"), now=NOW
        )

        assert outcome.workflow.status == ReviewStatus.UNDER_REVIEW
        assert outcome.workflow.assigned_reviewer == "R2"
        assert outcome.workflow.locked_by == "P1"
        assert outcome.action == HistoryAction.ASSIGNED_REVIEWER

    def test_reassign_records_previous_reviewer(self, machine, make_workflow):
        workflow = make_workflow(
            ReviewStatus.UNDER_REVIEW, assigned_reviewer="R1",
            is_locked=True, locked_at=EARLIER, locked_by="R1",
        )
        outcome = machine.apply(
            workflow, ReviewAction.ASSIGN, "P1", TransitionPayload(reviewer_id="R2"), now=NOW
        )

        assert outcome.workflow.assigned_reviewer == "R2"
        assert outcome.workflow.locked_at == EARLIER
        assert outcome.metadata == {"reviewer_id": "R2", "previous_reviewer": "R1"}

    def test_assign_requires_reviewer(self, machine, make_workflow):
        with pytest.raises(ValidationError):
            machine.apply(make_workflow(ReviewStatus.READY_FOR_REVIEW), ReviewAction.ASSIGN, "P1", now=NOW)


class TestTableIsClosed:
    ILLEGAL = [
        (status, action)
        for status in ReviewStatus
        for action in ReviewAction
        if (status, action) not in TRANSITIONS
    ]

    @pytest.mark.parametrize("status,action", ILLEGAL)
    def test_illegal_pairs_raise(self, machine, make_workflow, status, action):
        payload = TransitionPayload(reason="r", reviewer_id="R2")
        with pytest.raises(InvalidTransitionError) as exc_info:
            machine.apply(make_workflow(status), action, "P1", payload, now=NOW)

        assert exc_info.value.details["current_status"] == status.value
        assert exc_info.value.details["action"] == action.value

    @pytest.mark.parametrize("item_type", list(AuditItemType))
    def test_item_type_is_carried_through(self, machine, make_workflow, item_type):
        outcome = machine.apply(make_workflow(item_type=item_type), ReviewAction.SUBMIT, "prep-1", now=NOW)

        assert outcome.workflow.item_type == item_type
        assert outcome.workflow.status == ReviewStatus.READY_FOR_REVIEW

    def test_allowed_actions(self):
        assert ReviewStateMachine.allowed_actions(ReviewStatus.UNDER_REVIEW) == [
            ReviewAction.ASSIGN, ReviewAction.APPROVE, ReviewAction.REJECT
        ]
        assert ReviewStateMachine.allowed_actions(ReviewStatus.RE_OPENED) == []

    @pytest.mark.parametrize("status,action", list(TRANSITIONS))
    def test_lock_always_matches_resulting_status(self, machine, make_workflow, status, action):
        workflow = make_workflow(status, assigned_reviewer="R1", is_locked=status in LOCKED_STATUSES)
        payload = TransitionPayload(reason="r", reviewer_id="R2")
        result = machine.apply(workflow, action, "P1", payload, now=NOW).workflow

        assert result.is_locked == (result.status in LOCKED_STATUSES)
