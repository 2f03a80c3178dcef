"""ReviewerAssignment: role and assignment rules"""
import pytest

from review_engine.domain.enums import ReviewAction, ReviewStatus
from review_engine.domain.errors import PermissionDeniedError
from review_engine.domain.models import ActorContext
from review_engine.engine.reviewer_assignment import ReviewerAssignment


@pytest.fixture
def assignment():
    return ReviewerAssignment()


def actor(user_id, *roles):
    return ActorContext(user_id=user_id, roles=list(roles))


class TestClaim:
    def test_reviewer_can_claim_unassigned(self, assignment, make_workflow):
        assert assignment.can_claim(actor("R1", "reviewer"), make_workflow(ReviewStatus.READY_FOR_REVIEW))

    def test_employee_cannot_claim(self, assignment, make_workflow):
        assert not assignment.can_claim(actor("E1", "employee"), make_workflow(ReviewStatus.READY_FOR_REVIEW))

    def test_claim_requires_ready_for_review(self, assignment, make_workflow):
        assert not assignment.can_claim(actor("R1", "reviewer"), make_workflow(ReviewStatus.IN_PROGRESS))

    def test_claim_respects_existing_assignment(self, assignment, make_workflow):
        workflow = make_workflow(ReviewStatus.READY_FOR_REVIEW, assigned_reviewer="R1")

        assert assignment.can_claim(actor("r1", "reviewer"), workflow)
        assert not assignment.can_claim(actor("R2", "reviewer"), workflow)

    @pytest.mark.parametrize("role", ["partner", "admin", "REVIEWER"])
    def test_reviewer_capable_roles(self, assignment, make_workflow, role):
        assert assignment.can_claim(actor("X", role), make_workflow(ReviewStatus.READY_FOR_REVIEW))


class TestReview:
    def test_only_assigned_reviewer_or_elevated(self, assignment, make_workflow):
        workflow = make_workflow(ReviewStatus.UNDER_REVIEW, assigned_reviewer="R1")

        assert assignment.can_review(actor("R1", "reviewer"), workflow)
        assert not assignment.can_review(actor("R2", "reviewer"), workflow)
        assert assignment.can_review(actor("P1", "partner"), workflow)

    def test_sign_off_and_reopen_need_elevated_role_and_status(self, assignment, make_workflow):
        approved = make_workflow(ReviewStatus.APPROVED, assigned_reviewer="R1")
        signed = make_workflow(ReviewStatus.SIGNED_OFF, assigned_reviewer="R1")

        assert assignment.can_sign_off(actor("P1", "partner"), approved)
        assert not assignment.can_sign_off(actor("R1", "reviewer"), approved)
        assert not assignment.can_sign_off(actor("P1", "partner"), signed)
        assert assignment.can_reopen(actor("A1", "admin"), signed)
        assert not assignment.can_reopen(actor("A1", "admin"), approved)

    def test_assign_needs_elevated_role(self, assignment, make_workflow):
        ready = make_workflow(ReviewStatus.READY_FOR_REVIEW)

        assert assignment.can_assign(actor("P1", "partner"), ready)
        assert not assignment.can_assign(actor("R1", "reviewer"), ready)
        assert not assignment.can_assign(actor("P1", "partner"), make_workflow(ReviewStatus.APPROVED))


class TestAuthorize:
    def test_unknown_roles_cannot_participate(self, assignment, make_workflow):
        with pytest.raises(PermissionDeniedError):
            assignment.authorize(actor("G1", "viewer"), make_workflow(), ReviewAction.SUBMIT)

    def test_client_can_submit(self, assignment, make_workflow):
        assignment.authorize(actor("C1", "client"), make_workflow(), ReviewAction.SUBMIT)

    def test_denial_carries_context(self, assignment, make_workflow):
        workflow = make_workflow(ReviewStatus.READY_FOR_REVIEW)

        with pytest.raises(PermissionDeniedError) as exc_info:
            assignment.authorize(actor("E1", "employee"), workflow, ReviewAction.CLAIM)

        details = exc_info.value.details
        assert details["action"] == "claim"
        assert details["roles"] == ["employee"]
        assert exc_info.value.http_status == 403

    @pytest.mark.parametrize("action", [ReviewAction.SIGN_OFF, ReviewAction.REOPEN, ReviewAction.ASSIGN])
    def test_reviewer_cannot_perform_partner_actions(self, assignment, make_workflow, action):
        with pytest.raises(PermissionDeniedError):
            assignment.authorize(actor("R1", "reviewer"), make_workflow(ReviewStatus.APPROVED), action)

    def test_supersede_is_elevated_only(self, assignment):
        assert assignment.can_supersede(actor("A1", "admin"))
        assert not assignment.can_supersede(actor("R1", "reviewer"))
