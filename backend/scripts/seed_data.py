"""
Seed Data Script - Creates sample review workflows for local testing
Run: python -m scripts.seed_data
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from datetime import timedelta
from review_engine.repositories.mongo_client import get_collection, create_indexes, REVIEW_WORKFLOWS
from review_engine.domain.enums import AuditItemType, ReviewAction, ReviewPriority
from review_engine.domain.models import ActorContext, TransitionPayload, WorkflowKey
from review_engine.services.review_workflow_service import ReviewWorkflowService
from review_engine.utils.time import utc_now

ENGAGEMENT = "DEMO-2025"

PREPARER = ActorContext(user_id="preparer.demo", display_name="Demo Preparer", roles=["employee"])
REVIEWER = ActorContext(user_id="reviewer.demo", display_name="Demo Reviewer", roles=["reviewer"])
PARTNER = ActorContext(user_id="partner.demo", display_name="Demo Partner", roles=["partner"])


def create_sample_reviews():
    """Create one workflow per item type and walk a few through the lifecycle"""
    if get_collection(REVIEW_WORKFLOWS).count_documents({"engagement": ENGAGEMENT}) > 0:
        print("Demo engagement already has data. Skipping seed.")
        return

    service = ReviewWorkflowService()
    now = utc_now()

    workflows = {}
    for offset, item_type in enumerate(AuditItemType):
        key = WorkflowKey(item_type=item_type, item_id=f"{item_type.value}-001", engagement=ENGAGEMENT)
        workflows[item_type] = service.create(
            key,
            PREPARER,
            priority=ReviewPriority.HIGH if offset % 3 == 0 else ReviewPriority.MEDIUM,
            due_date=now + timedelta(days=offset - 2),
            tags=["demo"]
        )
        print(f"Created review workflow: {workflows[item_type].workflow_id} ({key})")

    # Waiting in the queue
    pbc = workflows[AuditItemType.PBC].key
    service.transition(pbc, ReviewAction.SUBMIT, PREPARER)

    # Fully signed off
    paper = workflows[AuditItemType.WORKING_PAPER].key
    service.transition(paper, ReviewAction.SUBMIT, PREPARER)
    service.transition(paper, ReviewAction.CLAIM, REVIEWER)
    service.transition(paper, ReviewAction.APPROVE, REVIEWER, TransitionPayload(comments="Tied out"))
    service.transition(paper, ReviewAction.SIGN_OFF, PARTNER)

    # Sent back to the preparer
    kyc = workflows[AuditItemType.KYC].key
    service.transition(kyc, ReviewAction.SUBMIT, PREPARER)
    service.transition(kyc, ReviewAction.CLAIM, REVIEWER)
    service.transition(kyc, ReviewAction.REJECT, REVIEWER, TransitionPayload(comments="Missing ID copy"))

    print("\n[OK] Seed data created successfully!")
    print(f"   - {len(workflows)} review workflows in engagement {ENGAGEMENT}")


def main():
    print("=== Seeding database ===")
    print("-" * 40)

    # Create indexes first
    create_indexes()

    create_sample_reviews()

    print("-" * 40)
    print("Done!")


if __name__ == "__main__":
    main()
