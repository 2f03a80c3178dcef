"""
Error Handlers

Centralized exception handlers for the FastAPI application.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError

from ...domain.errors import DomainError, PartialCommitError
from ...utils.logger import get_logger, get_correlation_id

logger = get_logger(__name__)


def _correlation_headers() -> dict:
    return {"X-Correlation-Id": get_correlation_id() or ""}


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """
    Handle domain-specific errors (business logic errors).

    These are expected errors such as invalid transitions, revision conflicts
    and permission denials.
    """
    logger.warning(
        f"Domain error: {exc.error_code} - {exc.message}",
        extra={"error_code": exc.error_code, "workflow_id": exc.details.get("workflow_id")}
    )
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
        headers=_correlation_headers()
    )


async def partial_commit_handler(request: Request, exc: PartialCommitError) -> JSONResponse:
    """
    Handle a committed transition whose history entry is missing.

    The state change stands, so the committed record is returned alongside the
    error for the caller to reconcile.
    """
    logger.error(
        f"Partial commit: {exc.message}",
        extra={"error_code": exc.error_code, "workflow_id": exc.details.get("workflow_id")}
    )
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
        headers=_correlation_headers()
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Handle request validation errors.

    These occur when request data doesn't match expected schema.
    """
    logger.warning(
        f"Validation error: {exc.errors()}, "
        f"path={request.url.path}, "
        f"method={request.method}"
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Request validation failed",
                "details": {"errors": jsonable_encoder(exc.errors())}
            }
        },
        headers=_correlation_headers()
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected errors.

    Logs full stack trace for debugging.
    """
    logger.error(f"Unexpected error: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "details": {"hint": "Check server logs for details"}
            }
        },
        headers=_correlation_headers()
    )


def register_error_handlers(app: FastAPI) -> None:
    """
    Register all exception handlers with the FastAPI application.

    More specific handlers are looked up first by exception class.
    """
    app.add_exception_handler(PartialCommitError, partial_commit_handler)
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, general_exception_handler)
