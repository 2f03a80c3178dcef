"""
Pytest Configuration and Fixtures

Provides:
    - mongo_db: in-memory mongomock database bound as the application database (autouse)
    - actors: preparer, reviewers, partner, admin, outsider
    - service: ReviewWorkflowService over the bound database
    - pbc_key: the (pbc, Q1, E1) natural key used by lifecycle scenarios
"""

from datetime import datetime, timezone

import mongomock
import pytest

from review_engine.domain.enums import AuditItemType, ReviewAction, ReviewStatus
from review_engine.domain.models import (
    ActorContext, ReviewWorkflow, TransitionPayload, WorkflowKey
)
from review_engine.repositories.mongo_client import set_database
from review_engine.services.review_workflow_service import ReviewWorkflowService


# ── Database ─────────────────────────────────────────────────────────────

@pytest.fixture(autouse=True)
def mongo_db():
    """Fresh in-memory database per test"""
    database = mongomock.MongoClient()["review_engine_test"]
    set_database(database)
    yield database
    set_database(None)


# ── Actors ───────────────────────────────────────────────────────────────

@pytest.fixture
def preparer():
    return ActorContext(user_id="prep-1", email="prep1@example.com", display_name="Preparer One", roles=["employee"])


@pytest.fixture
def reviewer():
    return ActorContext(user_id="R1", email="r1@example.com", display_name="Reviewer One", roles=["reviewer"])


@pytest.fixture
def other_reviewer():
    return ActorContext(user_id="R2", email="r2@example.com", display_name="Reviewer Two", roles=["reviewer"])


@pytest.fixture
def partner():
    return ActorContext(user_id="P1", email="p1@example.com", display_name="Partner One", roles=["partner"])


@pytest.fixture
def admin():
    return ActorContext(user_id="admin-1", display_name="Admin", roles=["admin"])


@pytest.fixture
def outsider():
    """Authenticated but holds no portal role"""
    return ActorContext(user_id="guest-1", display_name="Guest", roles=["viewer"])


# ── Service & keys ───────────────────────────────────────────────────────

@pytest.fixture
def service():
    return ReviewWorkflowService()


@pytest.fixture
def pbc_key():
    return WorkflowKey(item_type=AuditItemType.PBC, item_id="Q1", engagement="E1")


@pytest.fixture
def make_workflow():
    """Build an unsaved workflow in any status"""

    def _make(status=ReviewStatus.IN_PROGRESS, **overrides):
        now = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)
        fields = dict(
            workflow_id="RWF-test000001",
            item_type=AuditItemType.PBC,
            item_id="Q1",
            engagement="E1",
            status=status,
            created_at=now,
            updated_at=now,
        )
        fields.update(overrides)
        return ReviewWorkflow(**fields)

    return _make


@pytest.fixture
def walk():
    """Drive a workflow through a sequence of (action, actor, payload) steps"""

    def _walk(service, key, steps):
        workflow = None
        for action, actor, payload in steps:
            workflow = service.transition(key, action, actor, payload)
        return workflow

    return _walk


@pytest.fixture
def signed_off(service, pbc_key, preparer, reviewer, partner, walk):
    """The pbc/Q1/E1 workflow walked all the way to signed-off"""
    service.create(pbc_key, preparer)
    return walk(service, pbc_key, [
        (ReviewAction.SUBMIT, preparer, None),
        (ReviewAction.CLAIM, reviewer, None),
        (ReviewAction.APPROVE, reviewer, TransitionPayload(comments="looks good")),
        (ReviewAction.SIGN_OFF, partner, None),
    ])
