"""
Extraction Routes

POST /extract - Pasted recruiter email -> candidate for the user to verify
POST /placements/from-candidate - Save a verified new-placement candidate
POST /placements/{placement_id}/follow-up - Merge a verified follow-up candidate

Nothing is persisted by /extract. The client shows the candidate, the user
corrects it, and only then sends it back to one of the other two routes.
"""

from fastapi import APIRouter, Depends

from placement_tracker.api.dependencies import get_extractor, get_placement_service
from placement_tracker.api.routes.placement_routes import present
from placement_tracker.core.errors import RecordNotFound
from placement_tracker.schemas.schemas import (
    CandidatePartial,
    ExtractRequest,
    ExtractResponse,
    PlacementResponse,
)
from placement_tracker.services.extraction_service import ExtractionService
from placement_tracker.services.placement_service import PlacementService

router = APIRouter(tags=["Extraction"])


@router.post("/extract", response_model=ExtractResponse)
async def extract(
    body: ExtractRequest,
    service: PlacementService = Depends(get_placement_service),
    extractor: ExtractionService = Depends(get_extractor),
):
    """
    Extract placement details from an email.

    With placement_id the email is read as a follow-up for that placement's
    company (new rounds, results, status). Returns 502 if the model output
    is unusable; existing data is never touched here.
    """
    hint = service.get(body.placement_id).company_name if body.placement_id else None
    candidate = extractor.extract(body.email_text, hint=hint)
    return ExtractResponse(
        candidate=candidate,
        message="Follow-up details extracted" if hint else "Placement details extracted",
    )


@router.post("/placements/from-candidate", response_model=PlacementResponse, status_code=201)
async def create_from_candidate(
    candidate: CandidatePartial,
    service: PlacementService = Depends(get_placement_service),
):
    return present(service.create_from_candidate(candidate))


@router.post("/placements/{placement_id}/follow-up", response_model=PlacementResponse)
async def apply_follow_up(
    placement_id: str,
    candidate: CandidatePartial,
    service: PlacementService = Depends(get_placement_service),
):
    """Only fields present in the candidate change. Status changes respect eligibility."""
    record = service.apply_follow_up(placement_id, candidate)
    if record is None:
        raise RecordNotFound(placement_id)
    return present(record)
