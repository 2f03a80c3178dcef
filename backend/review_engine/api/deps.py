"""Request-scoped dependencies for the review routes"""
from typing import Optional
from fastapi import Header, HTTPException, status

from ..domain.errors import AuthenticationError
from ..domain.models import ActorContext
from ..services.review_workflow_service import ReviewWorkflowService
from ..utils.idgen import generate_correlation_id
from ..utils.jwt import get_current_user
from ..utils.logger import get_correlation_id, get_logger, set_correlation_id

logger = get_logger(__name__)


def _unauthorized(error: AuthenticationError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=error.to_dict(),
        headers={"WWW-Authenticate": "Bearer"}
    )


async def get_correlation_id_dep(
    x_correlation_id: Optional[str] = Header(None, alias="X-Correlation-Id")
) -> str:
    """Correlation ID bound by the middleware, or the header, or a fresh one"""
    correlation_id = get_correlation_id() or x_correlation_id or generate_correlation_id()
    set_correlation_id(correlation_id)
    return correlation_id


async def get_current_user_dep(
    authorization: Optional[str] = Header(None)
) -> ActorContext:
    """
    Actor from the portal Bearer token

    Raises:
        HTTPException: 401 if the header is missing or the token is rejected
    """
    try:
        return get_current_user(authorization)
    except AuthenticationError as e:
        logger.info(f"Rejected request credentials: {e.message}")
        raise _unauthorized(e)


def get_review_service() -> ReviewWorkflowService:
    """Service bound to the current database; cheap to build per request"""
    return ReviewWorkflowService()
