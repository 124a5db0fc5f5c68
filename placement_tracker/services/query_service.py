"""
Query/View Engine - everything the dashboard derives from the placement list.

- view(): search + filters + sort over the in-memory collection
- group_by_status(): kanban columns
- upcoming_events(): tests/interviews coming up within a horizon
- progress_stage() / progress_percentage(): per-record progress badge
- compute_stats(): dashboard aggregates

All functions are pure and recompute from the records they are given.
Unset round slots (empty description) never count for anything here.
"""

import datetime as dt
import math
from typing import Dict, Iterable, List, Optional, Sequence

from placement_tracker.schemas.schemas import (
    STATUS_ORDER,
    ApplicationRecord,
    ApplicationStatus,
    DashboardStats,
    Eligibility,
    EventKind,
    FilterSet,
    ProgressMetric,
    ProgressStage,
    RoundCompletion,
    SortField,
    SortOrder,
    SortSpec,
    StatusCount,
    UpcomingEvent,
)
from placement_tracker.services.reconciler import has_eligibility_conflict
from placement_tracker.utils.dates import utcnow

SECONDS_PER_DAY = 24 * 60 * 60
EARLIEST = float("-inf")
INACTIVE_STATUSES = (ApplicationStatus.rejected, ApplicationStatus.withdrawn)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _percentage(count: int, total: int) -> int:
    return _round_half_up(count / total * 100) if total else 0


# ============================================================
# SEARCH & FILTERS
# ============================================================

def matches_search(record: ApplicationRecord, search: str) -> bool:
    """Case-insensitive substring match on company, role, status and location."""
    term = (search or "").strip().lower()
    if not term:
        return True
    haystack = (record.company_name, record.role, record.status.value, record.location)
    return any(term in value.lower() for value in haystack if value)


def _in_range(value, low, high) -> bool:
    if low is None and high is None:
        return True
    # a record without a value cannot be judged against a bound
    if value is None:
        return False
    if low is not None and value < low:
        return False
    if high is not None and value > high:
        return False
    return True


def matches_filters(record: ApplicationRecord, filters: FilterSet) -> bool:
    if filters.statuses and record.status not in filters.statuses:
        return False
    if not _in_range(record.ctc, filters.ctc_min, filters.ctc_max):
        return False
    if not _in_range(record.registration_deadline, filters.deadline_start, filters.deadline_end):
        return False
    if filters.locations and record.location not in filters.locations:
        return False
    if filters.has_deadline is not None and record.has_deadline != filters.has_deadline:
        return False
    if filters.has_interview is not None and record.has_interview != filters.has_interview:
        return False
    if filters.has_test is not None and record.has_test != filters.has_test:
        return False
    return True


# ============================================================
# SORTING
# ============================================================

def _instant(value) -> float:
    """Seconds since epoch for dates/datetimes; missing values sort first."""
    if value is None:
        return EARLIEST
    if not isinstance(value, dt.datetime):
        value = dt.datetime.combine(value, dt.time())
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    return value.timestamp()


def _sort_key(field: SortField):
    if field is SortField.company_name:
        return lambda r: r.company_name.casefold()
    if field is SortField.status:
        return lambda r: r.status.value.casefold()
    if field is SortField.ctc:
        return lambda r: EARLIEST if r.ctc is None else r.ctc
    if field is SortField.registration_deadline:
        return lambda r: _instant(r.registration_deadline)
    return lambda r: _instant(r.created_at)


def sort_records(records: Iterable[ApplicationRecord], sort: SortSpec) -> List[ApplicationRecord]:
    # sorted() is stable in both directions, ties keep input order
    return sorted(records, key=_sort_key(sort.field), reverse=sort.order is SortOrder.desc)


def view(
    records: Sequence[ApplicationRecord],
    search: str = "",
    filters: Optional[FilterSet] = None,
    sort: Optional[SortSpec] = None,
) -> List[ApplicationRecord]:
    """Visible subset of the collection, in display order."""
    filters = filters or FilterSet()
    sort = sort or SortSpec()
    visible = [r for r in records if matches_search(r, search) and matches_filters(r, filters)]
    return sort_records(visible, sort)


def group_by_status(records: Iterable[ApplicationRecord]) -> Dict[ApplicationStatus, List[ApplicationRecord]]:
    """Kanban buckets in canonical status order, relative order preserved."""
    buckets: Dict[ApplicationStatus, List[ApplicationRecord]] = {s: [] for s in STATUS_ORDER}
    for record in records:
        buckets[record.status].append(record)
    return buckets


# ============================================================
# UPCOMING EVENTS
# ============================================================

def _days_until(day: dt.date, now: dt.datetime) -> int:
    start_of_day = dt.datetime.combine(day, dt.time(), tzinfo=now.tzinfo)
    return math.ceil((start_of_day - now).total_seconds() / SECONDS_PER_DAY)


def is_active_for_events(record: ApplicationRecord) -> bool:
    """Only eligible, still-running applications surface upcoming events."""
    return record.eligibility is Eligibility.eligible and record.status not in INACTIVE_STATUSES


def _record_events(record: ApplicationRecord, horizon_days: int, now: dt.datetime) -> List[UpcomingEvent]:
    events = []
    slots = [(EventKind.test, s) for s in record.tests] + [(EventKind.interview, s) for s in record.interviews]
    for kind, slot in slots:
        if not slot.is_set or slot.date is None:
            continue
        days = _days_until(slot.date, now)
        if 0 <= days <= horizon_days:
            events.append(UpcomingEvent(
                record_id=record.id,
                company_name=record.company_name,
                kind=kind,
                description=slot.description,
                date=slot.date,
                days_remaining=days,
            ))
    return events


def upcoming_events(
    records: Iterable[ApplicationRecord],
    horizon_days: int = 7,
    now: Optional[dt.datetime] = None,
) -> List[UpcomingEvent]:
    """
    Tests and interviews dated within [now, now + horizon_days].

    days_remaining is the ceiling of the fractional day difference to the
    start of the event day. The list is sorted by days_remaining (stable);
    take a prefix for a "top N" view.
    """
    now = now or utcnow()
    events = []
    for record in records:
        if is_active_for_events(record):
            events.extend(_record_events(record, horizon_days, now))
    return sorted(events, key=lambda e: e.days_remaining)


def next_event(
    record: ApplicationRecord,
    horizon_days: int = 7,
    now: Optional[dt.datetime] = None,
) -> Optional[UpcomingEvent]:
    events = upcoming_events([record], horizon_days, now)
    return events[0] if events else None


# ============================================================
# PROGRESS
# ============================================================

def progress_stage(record: ApplicationRecord) -> ProgressStage:
    if record.status is ApplicationStatus.selected:
        return ProgressStage.complete
    if record.status is ApplicationStatus.rejected:
        return ProgressStage.rejected
    if record.status is ApplicationStatus.withdrawn:
        return ProgressStage.withdrawn
    if record.has_interview:
        return ProgressStage.interview
    if record.has_test:
        return ProgressStage.test
    return ProgressStage.applied


def progress_percentage(record: ApplicationRecord) -> int:
    if record.status is ApplicationStatus.selected:
        return 100
    if record.status in INACTIVE_STATUSES:
        return 0
    progress = 20
    if record.has_test:
        progress += 30
    if record.has_interview:
        progress += 50
    return min(progress, 90)


# ============================================================
# DASHBOARD STATS
# ============================================================

def round_completion(records: Iterable[ApplicationRecord]) -> RoundCompletion:
    totals = RoundCompletion()
    for record in records:
        tests = [s for s in record.tests if s.is_set]
        interviews = [s for s in record.interviews if s.is_set]
        totals.tests_total += len(tests)
        totals.tests_completed += sum(1 for s in tests if s.result.value != "pending")
        totals.interviews_total += len(interviews)
        totals.interviews_completed += sum(1 for s in interviews if s.result.value != "pending")
    return totals


def compute_stats(
    records: Sequence[ApplicationRecord],
    horizon_days: int = 7,
    now: Optional[dt.datetime] = None,
) -> DashboardStats:
    now = now or utcnow()
    total = len(records)

    counts = {status: 0 for status in STATUS_ORDER}
    for record in records:
        counts[record.status] += 1

    ctcs = [r.ctc for r in records if r.ctc is not None]
    average_ctc = round(sum(ctcs) / len(ctcs), 2) if ctcs else None

    eligibility_counts = [
        ("Eligible", sum(1 for r in records if r.eligibility is Eligibility.eligible)),
        ("Not Eligible", sum(1 for r in records if r.eligibility is Eligibility.not_eligible)),
        ("Not Sure", sum(1 for r in records if r.eligibility is Eligibility.unknown)),
    ]

    with_tests = sum(1 for r in records if r.has_test)
    with_interviews = sum(1 for r in records if r.has_interview)
    progress = [
        ("Success Rate", counts[ApplicationStatus.selected]),
        ("In Progress", counts[ApplicationStatus.in_progress]),
        ("With Tests", with_tests),
        ("With Interviews", with_interviews),
    ]

    # days since creation, for applications that moved past "Applied"
    moved = [
        r for r in records
        if r.created_at is not None and r.status is not ApplicationStatus.applied
    ]
    avg_days = None
    if moved:
        day_counts = [
            math.ceil((_instant(now) - _instant(r.created_at)) / SECONDS_PER_DAY)
            for r in moved
        ]
        avg_days = _round_half_up(sum(day_counts) / len(day_counts))

    return DashboardStats(
        total=total,
        counts_by_status={status.value: count for status, count in counts.items()},
        eligible_count=eligibility_counts[0][1],
        average_ctc=average_ctc,
        status_distribution=[
            StatusCount(name=status.value, count=count, percentage=_percentage(count, total))
            for status, count in counts.items() if count > 0
        ],
        eligibility_distribution=[
            StatusCount(name=name, count=count, percentage=_percentage(count, total))
            for name, count in eligibility_counts
        ],
        progress_metrics=[
            ProgressMetric(name=name, count=count, total=total, percentage=_percentage(count, total))
            for name, count in progress
        ],
        round_completion=round_completion(records),
        upcoming_count=len(upcoming_events(records, horizon_days, now)),
        conflict_count=sum(1 for r in records if has_eligibility_conflict(r)),
        avg_days_since_created=avg_days,
    )
