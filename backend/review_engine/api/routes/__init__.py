"""API Routes module"""
from fastapi import APIRouter

from .reviews import router as reviews_router

# Main API router
api_router = APIRouter()

api_router.include_router(reviews_router, prefix="/reviews", tags=["Reviews"])

__all__ = ["api_router"]
