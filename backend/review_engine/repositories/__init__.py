"""Repository modules - Data access layer"""
from .mongo_client import get_database, get_collection, set_database
from .review_workflow_repo import ReviewWorkflowRepository
from .review_history_repo import ReviewHistoryRepository
from .review_event_repo import ReviewEventRepository

__all__ = [
    "get_database",
    "get_collection",
    "set_database",
    "ReviewWorkflowRepository",
    "ReviewHistoryRepository",
    "ReviewEventRepository",
]
