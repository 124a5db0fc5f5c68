"""
Request-scoped collaborators for the routes.

Each request builds a PlacementService for the signed-in user and loads
their collection from the store. Tests override get_placement_store and
get_extraction_service through app.dependency_overrides.
"""

from fastapi import Depends

from placement_tracker.core.auth import SessionContext, get_session_context
from placement_tracker.db.placement_store import PlacementStore, PostgresPlacementStore
from placement_tracker.services.extraction_service import ExtractionService, get_extraction_service
from placement_tracker.services.placement_service import PlacementService


def get_placement_store(context: SessionContext = Depends(get_session_context)) -> PlacementStore:
    return PostgresPlacementStore(context)


def get_placement_service(
    context: SessionContext = Depends(get_session_context),
    store: PlacementStore = Depends(get_placement_store),
) -> PlacementService:
    service = PlacementService(context, store)
    service.load()
    return service


def get_extractor() -> ExtractionService:
    return get_extraction_service()
