"""HTTP surface of the review engine"""
from .deps import get_correlation_id_dep, get_current_user_dep, get_review_service

__all__ = ["get_correlation_id_dep", "get_current_user_dep", "get_review_service"]
