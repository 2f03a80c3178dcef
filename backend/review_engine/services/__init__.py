"""Service modules - Business logic layer"""
from .review_workflow_service import ReviewWorkflowService

__all__ = [
    "ReviewWorkflowService",
]
