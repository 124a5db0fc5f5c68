"""
Placement Routes

GET /placements - Search, filter and sort the user's placements
GET /placements/kanban - Placements grouped by status
GET /placements/upcoming - Tests and interviews in the next few days
GET /placements/stats - Dashboard aggregates
GET /placements/export - CSV download (complete or filtered)
GET /placements/{placement_id} - One placement
POST /placements - Create from the form
PUT /placements/{placement_id} - Edit from the form
PATCH /placements/{placement_id}/eligibility - Set eligibility (status follows)
PATCH /placements/{placement_id}/status - Set status (blocked while not eligible)
POST /placements/bulk/status - Set one status on many placements
POST /placements/bulk/delete - Delete many placements
DELETE /placements/{placement_id} - Delete one placement
"""

import datetime as dt
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from placement_tracker.api.dependencies import get_placement_service
from placement_tracker.core.config import get_settings
from placement_tracker.schemas.schemas import (
    STATUS_ORDER,
    ApplicationRecord,
    ApplicationStatus,
    BulkDelete,
    BulkStatusResponse,
    BulkStatusUpdate,
    DashboardStats,
    EligibilityUpdate,
    FilterSet,
    KanbanColumn,
    KanbanResponse,
    MessageResponse,
    PlacementForm,
    PlacementListResponse,
    PlacementResponse,
    SortField,
    SortOrder,
    SortSpec,
    StatusUpdate,
    UpcomingEventsResponse,
)
from placement_tracker.services import export_service, query_service
from placement_tracker.services.placement_service import PlacementService
from placement_tracker.services.reconciler import has_eligibility_conflict

router = APIRouter(prefix="/placements", tags=["Placements"])


def present(record: ApplicationRecord, now: Optional[dt.datetime] = None) -> PlacementResponse:
    """Record plus the badges the dashboard shows next to it."""
    settings = get_settings()
    return PlacementResponse(
        placement=record,
        has_conflict=has_eligibility_conflict(record),
        progress_stage=query_service.progress_stage(record),
        progress_percentage=query_service.progress_percentage(record),
        next_event=query_service.next_event(record, settings.upcoming_horizon_days, now),
    )


def filter_params(
    status: List[ApplicationStatus] = Query([], description="Any of these statuses"),
    ctc_min: Optional[float] = Query(None, ge=0),
    ctc_max: Optional[float] = Query(None, ge=0),
    deadline_start: Optional[dt.date] = Query(None),
    deadline_end: Optional[dt.date] = Query(None),
    location: List[str] = Query([], description="Any of these exact locations"),
    has_deadline: Optional[bool] = Query(None),
    has_interview: Optional[bool] = Query(None),
    has_test: Optional[bool] = Query(None),
) -> FilterSet:
    return FilterSet(
        statuses=status,
        ctc_min=ctc_min,
        ctc_max=ctc_max,
        deadline_start=deadline_start,
        deadline_end=deadline_end,
        locations=location,
        has_deadline=has_deadline,
        has_interview=has_interview,
        has_test=has_test,
    )


def sort_params(
    sort_by: SortField = Query(SortField.created_at),
    order: SortOrder = Query(SortOrder.desc),
) -> SortSpec:
    return SortSpec(field=sort_by, order=order)


@router.get("", response_model=PlacementListResponse)
async def list_placements(
    search: str = Query("", description="Matches company, role, status or location"),
    filters: FilterSet = Depends(filter_params),
    sort: SortSpec = Depends(sort_params),
    service: PlacementService = Depends(get_placement_service),
):
    """List the signed-in user's placements with search, filters and sorting."""
    visible = query_service.view(service.records, search, filters, sort)
    now = dt.datetime.now(dt.timezone.utc)
    return PlacementListResponse(
        placements=[present(r, now) for r in visible],
        total=len(service.records),
        visible=len(visible),
    )


@router.get("/kanban", response_model=KanbanResponse)
async def kanban(
    search: str = Query(""),
    filters: FilterSet = Depends(filter_params),
    sort: SortSpec = Depends(sort_params),
    service: PlacementService = Depends(get_placement_service),
):
    """Visible placements bucketed by status, columns in fixed order."""
    buckets = query_service.group_by_status(query_service.view(service.records, search, filters, sort))
    return KanbanResponse(
        columns=[KanbanColumn(status=s, placements=buckets[s]) for s in STATUS_ORDER]
    )


@router.get("/upcoming", response_model=UpcomingEventsResponse)
async def upcoming(
    limit: Optional[int] = Query(None, ge=1, description="Defaults to settings.upcoming_limit"),
    days: Optional[int] = Query(None, ge=0, description="Defaults to settings.upcoming_horizon_days"),
    service: PlacementService = Depends(get_placement_service),
):
    """Upcoming tests and interviews, soonest first."""
    settings = get_settings()
    horizon = settings.upcoming_horizon_days if days is None else days
    events = query_service.upcoming_events(service.records, horizon)
    return UpcomingEventsResponse(
        events=events[: limit or settings.upcoming_limit],
        total=len(events),
    )


@router.get("/stats", response_model=DashboardStats)
async def stats(service: PlacementService = Depends(get_placement_service)):
    return query_service.compute_stats(service.records, get_settings().upcoming_horizon_days)


@router.get("/export")
async def export_csv(
    filtered: bool = Query(False, description="Export the current view instead of everything"),
    search: str = Query(""),
    filters: FilterSet = Depends(filter_params),
    sort: SortSpec = Depends(sort_params),
    service: PlacementService = Depends(get_placement_service),
):
    """
    Download placements as CSV.

    With filtered=true the search/filter/sort params select and order the rows,
    otherwise the complete collection is exported in its stored order.
    """
    records = (
        query_service.view(service.records, search, filters, sort)
        if filtered else service.records
    )
    filename = export_service.export_filename(filtered)
    return Response(
        content=export_service.to_csv(records),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{placement_id}", response_model=PlacementResponse)
async def get_placement(placement_id: str, service: PlacementService = Depends(get_placement_service)):
    return present(service.get(placement_id))


@router.post("", response_model=PlacementResponse, status_code=201)
async def create_placement(form: PlacementForm, service: PlacementService = Depends(get_placement_service)):
    """Create a placement. Marking it not eligible forces status to Not Eligible."""
    return present(service.create(form))


@router.put("/{placement_id}", response_model=PlacementResponse)
async def update_placement(
    placement_id: str,
    form: PlacementForm,
    service: PlacementService = Depends(get_placement_service),
):
    return present(service.update_from_form(placement_id, form))


@router.patch("/{placement_id}/eligibility", response_model=PlacementResponse)
async def set_eligibility(
    placement_id: str,
    body: EligibilityUpdate,
    service: PlacementService = Depends(get_placement_service),
):
    return present(service.set_eligibility(placement_id, body.eligibility))


@router.patch("/{placement_id}/status", response_model=PlacementResponse)
async def set_status(
    placement_id: str,
    body: StatusUpdate,
    service: PlacementService = Depends(get_placement_service),
):
    """Returns 409 if the placement is marked not eligible."""
    return present(service.set_status(placement_id, body.status))


@router.post("/bulk/status", response_model=BulkStatusResponse)
async def bulk_status(body: BulkStatusUpdate, service: PlacementService = Depends(get_placement_service)):
    """Not-eligible and unknown placements are skipped, store failures are listed in `failed`."""
    updated, skipped, failed = service.bulk_set_status(body.ids, body.status)
    return BulkStatusResponse(updated=updated, skipped=skipped, failed=failed)


@router.post("/bulk/delete", response_model=MessageResponse)
async def bulk_delete(body: BulkDelete, service: PlacementService = Depends(get_placement_service)):
    deleted = service.delete_many(body.ids)
    return MessageResponse(message=f"Deleted {deleted} placements")


@router.delete("/{placement_id}", response_model=MessageResponse)
async def delete_placement(placement_id: str, service: PlacementService = Depends(get_placement_service)):
    service.delete(placement_id)
    return MessageResponse(message="Placement deleted")
