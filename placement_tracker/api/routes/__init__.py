"""
API Routes - Combines all route modules into single router.
"""

from fastapi import APIRouter

from placement_tracker.api.routes.extraction_routes import router as extraction_router
from placement_tracker.api.routes.placement_routes import router as placement_router

# Main API router
api_router = APIRouter()

api_router.include_router(extraction_router)
api_router.include_router(placement_router)
