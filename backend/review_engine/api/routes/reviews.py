"""Review API Routes - Review workflow lifecycle, history and queues"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..deps import get_correlation_id_dep, get_current_user_dep, get_review_service
from ...domain.enums import AuditItemType, ReviewAction, ReviewPriority, ReviewStatus
from ...domain.models import (
    ActorContext, PaginatedWorkflows, ReviewHistoryEntry, ReviewWorkflow,
    ReviewWorkflowFilters, TransitionPayload, WorkflowKey
)
from ...domain.errors import WorkflowNotFoundError
from ...engine.lock_manager import LockManager
from ...engine.state_machine import ReviewStateMachine
from ...services.review_workflow_service import ReviewWorkflowService
from ...utils.logger import get_logger
from ...utils.time import is_overdue

logger = get_logger(__name__)
router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================

class CreateReviewWorkflowRequest(BaseModel):
    """Request to open a review workflow for an artifact"""
    item_type: AuditItemType
    item_id: str = Field(..., min_length=1, max_length=200)
    engagement: str = Field(..., min_length=1, max_length=200)
    priority: Optional[ReviewPriority] = None
    due_date: Optional[datetime] = None
    tags: List[str] = Field(default_factory=list, max_length=50)


class TransitionRequest(BaseModel):
    """Request to move a workflow through its lifecycle"""
    action: ReviewAction
    comments: Optional[str] = Field(None, max_length=5000)
    reason: Optional[str] = Field(None, max_length=5000)
    reviewer_id: Optional[str] = Field(None, max_length=200)


class AddNoteRequest(BaseModel):
    """Request to append a note"""
    text: str = Field(..., min_length=1, max_length=5000)


class UpdateTagsRequest(BaseModel):
    """Request to replace the tag set"""
    tags: List[str] = Field(default_factory=list, max_length=50)


class UpdateScheduleRequest(BaseModel):
    """Request to change priority and/or due date"""
    priority: Optional[ReviewPriority] = None
    due_date: Optional[datetime] = None
    clear_due_date: bool = False


class SupersedeRequest(BaseModel):
    """Request to retire a workflow from its artifact"""
    reason: Optional[str] = Field(None, max_length=2000)


class WorkflowDetailResponse(BaseModel):
    """Workflow plus the actions its status admits"""
    workflow: ReviewWorkflow
    allowed_actions: List[ReviewAction]
    is_editable: bool
    is_overdue: bool = False


class HistoryResponse(BaseModel):
    """Workflow history, oldest first"""
    workflow_id: str
    items: List[ReviewHistoryEntry]
    total: int


class EditableResponse(BaseModel):
    """Lock signal for content editors"""
    workflow_id: str
    status: ReviewStatus
    is_editable: bool


def _detail(workflow: ReviewWorkflow) -> WorkflowDetailResponse:
    return WorkflowDetailResponse(
        workflow=workflow,
        allowed_actions=ReviewStateMachine.allowed_actions(workflow.status),
        is_editable=LockManager().is_editable(workflow),
        is_overdue=workflow.status != ReviewStatus.SIGNED_OFF and is_overdue(workflow.due_date)
    )


# ============================================================================
# Workflow Routes
# ============================================================================

@router.post("/workflows", response_model=WorkflowDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_review_workflow(
    request: CreateReviewWorkflowRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    service: ReviewWorkflowService = Depends(get_review_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """
    Open a review workflow for an artifact

    Idempotent: if the artifact already has an active workflow it is returned
    with 200 instead of 201.
    """
    workflow, created = service.get_or_create(
        WorkflowKey(
            item_type=request.item_type,
            item_id=request.item_id,
            engagement=request.engagement
        ),
        actor=actor,
        priority=request.priority,
        due_date=request.due_date,
        tags=request.tags
    )

    if not created:
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content=_detail(workflow).model_dump(mode="json")
        )
    return _detail(workflow)


@router.get("/workflows", response_model=PaginatedWorkflows)
async def list_review_workflows(
    status_filter: Optional[List[ReviewStatus]] = Query(None, alias="status"),
    engagement: Optional[str] = Query(None),
    item_type: Optional[AuditItemType] = Query(None),
    assigned_reviewer: Optional[str] = Query(None),
    priority: Optional[ReviewPriority] = Query(None),
    due_date_from: Optional[datetime] = Query(None),
    due_date_to: Optional[datetime] = Query(None),
    tag: Optional[str] = Query(None),
    include_superseded: bool = Query(False),
    sort_by: str = Query("created_at"),
    sort_order: str = Query("asc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    actor: ActorContext = Depends(get_current_user_dep),
    service: ReviewWorkflowService = Depends(get_review_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """
    List review workflows

    All filters combine with AND. Repeat ``status`` to match several statuses.
    """
    filters = ReviewWorkflowFilters(
        statuses=status_filter or None,
        engagement=engagement,
        item_type=item_type,
        assigned_reviewer=assigned_reviewer,
        priority=priority,
        due_date_from=due_date_from,
        due_date_to=due_date_to,
        tag=tag,
        include_superseded=include_superseded
    )
    return service.list(
        filters,
        page=page,
        page_size=page_size,
        sort_by=sort_by,
        sort_order=sort_order
    )


@router.get("/workflows/by-item/{item_type}/{item_id}", response_model=WorkflowDetailResponse)
async def get_review_workflow_by_item(
    item_type: AuditItemType,
    item_id: str,
    engagement: str = Query(..., min_length=1),
    actor: ActorContext = Depends(get_current_user_dep),
    service: ReviewWorkflowService = Depends(get_review_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Get the active workflow for an artifact"""
    key = WorkflowKey(item_type=item_type, item_id=item_id, engagement=engagement)
    workflow = service.get(key)
    if workflow is None:
        raise WorkflowNotFoundError(f"No review workflow for {key}", details=key.as_filter())
    return _detail(workflow)


@router.get("/workflows/{workflow_id}", response_model=WorkflowDetailResponse)
async def get_review_workflow(
    workflow_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    service: ReviewWorkflowService = Depends(get_review_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Get a workflow by ID"""
    return _detail(service.get_by_id(workflow_id))


@router.post("/workflows/{workflow_id}/transitions", response_model=WorkflowDetailResponse)
async def transition_review_workflow(
    workflow_id: str,
    request: TransitionRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    service: ReviewWorkflowService = Depends(get_review_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """
    Apply a lifecycle action

    Responds 409 for illegal actions or stale revisions, 403 for missing role
    or assignment, and 207 when the state change committed without its history
    entry.
    """
    workflow = service.transition_by_id(
        workflow_id,
        request.action,
        actor,
        payload=TransitionPayload(
            comments=request.comments,
            reason=request.reason,
            reviewer_id=request.reviewer_id
        ),
        correlation_id=correlation_id
    )

    logger.info(
        f"Transitioned review workflow: {workflow_id}",
        extra={"workflow_id": workflow_id, "action": request.action.value, "actor_id": actor.user_id}
    )
    return _detail(workflow)


@router.get("/workflows/{workflow_id}/history", response_model=HistoryResponse)
async def get_review_history(
    workflow_id: str,
    limit: Optional[int] = Query(None, ge=1, le=1000),
    actor: ActorContext = Depends(get_current_user_dep),
    service: ReviewWorkflowService = Depends(get_review_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """
    Get a workflow's history, oldest first

    ``total`` is the full log length even when ``limit`` trims ``items``.
    """
    items = service.get_history(workflow_id, limit=limit)
    return HistoryResponse(
        workflow_id=workflow_id,
        items=items,
        total=service.count_history(workflow_id)
    )


@router.get("/workflows/{workflow_id}/editable", response_model=EditableResponse)
async def get_review_editable(
    workflow_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    service: ReviewWorkflowService = Depends(get_review_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Whether the artifact behind a workflow may currently be edited"""
    workflow = service.get_by_id(workflow_id)
    return EditableResponse(
        workflow_id=workflow.workflow_id,
        status=workflow.status,
        is_editable=service.lock_manager.is_editable(workflow)
    )


@router.post("/workflows/{workflow_id}/notes", response_model=WorkflowDetailResponse)
async def add_review_note(
    workflow_id: str,
    request: AddNoteRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    service: ReviewWorkflowService = Depends(get_review_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Append a note (no status change)"""
    return _detail(service.add_note(workflow_id, request.text, actor))


@router.put("/workflows/{workflow_id}/tags", response_model=WorkflowDetailResponse)
async def update_review_tags(
    workflow_id: str,
    request: UpdateTagsRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    service: ReviewWorkflowService = Depends(get_review_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Replace the tag set"""
    return _detail(service.update_tags(workflow_id, request.tags, actor))


@router.patch("/workflows/{workflow_id}/schedule", response_model=WorkflowDetailResponse)
async def update_review_schedule(
    workflow_id: str,
    request: UpdateScheduleRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    service: ReviewWorkflowService = Depends(get_review_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Change priority and/or due date"""
    workflow = service.update_schedule(
        workflow_id,
        actor,
        priority=request.priority,
        due_date=request.due_date,
        clear_due_date=request.clear_due_date
    )
    return _detail(workflow)


@router.post("/workflows/{workflow_id}/supersede", response_model=WorkflowDetailResponse)
async def supersede_review_workflow(
    workflow_id: str,
    request: SupersedeRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    service: ReviewWorkflowService = Depends(get_review_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Retire a workflow so the artifact can start a fresh one"""
    workflow = service.supersede(
        workflow_id, actor, reason=request.reason, correlation_id=correlation_id
    )
    return _detail(workflow)


# ============================================================================
# Queue & Stats Routes
# ============================================================================

@router.get("/queue", response_model=List[ReviewWorkflow])
async def get_review_queue(
    reviewer_id: Optional[str] = Query(None),
    mine: bool = Query(False, description="Use the caller as reviewer_id"),
    status_filter: Optional[ReviewStatus] = Query(None, alias="status"),
    engagement: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    actor: ActorContext = Depends(get_current_user_dep),
    service: ReviewWorkflowService = Depends(get_review_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """
    Review queue

    With ``reviewer_id`` (or ``mine=true``): that reviewer's assigned work.
    Otherwise: everything waiting to be claimed.
    """
    return service.review_queue(
        reviewer_id=actor.user_id if mine else reviewer_id,
        status=status_filter,
        engagement=engagement,
        limit=limit
    )


@router.get("/stats", response_model=Dict[str, Any])
async def get_review_stats(
    engagement: Optional[str] = Query(None),
    actor: ActorContext = Depends(get_current_user_dep),
    service: ReviewWorkflowService = Depends(get_review_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Active workflow counts per status"""
    return service.stats(engagement)
