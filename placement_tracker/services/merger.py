"""
Partial-Update Merger - folds an extraction candidate into a canonical record.

Two modes:
- create: candidate becomes a new record, absent fields take defaults
- follow_up: candidate patches an existing record, field by field

In both modes a value that is blank, None or a placeholder phrase
("Not specified", "N/A", ...) counts as absent, and so does a value that
cannot be coerced to the field's type. An absent value never overwrites
anything.
"""

import datetime as dt
import logging
import re
from typing import Any, Dict, Iterable, List, Optional

from placement_tracker.core.config import get_settings
from placement_tracker.core.errors import ValidationError
from placement_tracker.schemas.schemas import (
    ApplicationRecord,
    ApplicationStatus,
    AssessmentResult,
    AssessmentRound,
    CandidatePartial,
    Eligibility,
    InterviewResult,
    InterviewRound,
    MergeMode,
    RoundPartial,
)
from placement_tracker.services.reconciler import reconcile, status_change_allowed
from placement_tracker.utils.dates import utcnow

logger = logging.getLogger(__name__)


DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y", "%d %B %Y", "%d %b %Y", "%B %d, %Y")
TIME_FORMATS = ("%H:%M", "%H:%M:%S", "%I:%M %p", "%I:%M%p", "%I %p", "%I%p")
NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")

ELIGIBILITY_WORDS = {
    "true": Eligibility.eligible,
    "yes": Eligibility.eligible,
    "eligible": Eligibility.eligible,
    "false": Eligibility.not_eligible,
    "no": Eligibility.not_eligible,
    "noteligible": Eligibility.not_eligible,
    "ineligible": Eligibility.not_eligible,
    "unknown": Eligibility.unknown,
    "notsure": Eligibility.unknown,
}

ASSESSMENT_WORDS = {
    "pending": AssessmentResult.pending,
    "passed": AssessmentResult.passed,
    "qualified": AssessmentResult.passed,
    "cleared": AssessmentResult.passed,
    "shortlisted": AssessmentResult.passed,
    "failed": AssessmentResult.failed,
    "notqualified": AssessmentResult.failed,
    "notcleared": AssessmentResult.failed,
    "waitlisted": AssessmentResult.waitlisted,
}

INTERVIEW_WORDS = {
    "pending": InterviewResult.pending,
    "selected": InterviewResult.selected,
    "offered": InterviewResult.selected,
    "rejected": InterviewResult.rejected,
    "notselected": InterviewResult.rejected,
    "waitlisted": InterviewResult.waitlisted,
}

STATUS_WORDS = {_status.value.replace(" ", "").lower(): _status for _status in ApplicationStatus}

TEXT_FIELDS = ("company_name", "role", "location", "eligibility_criteria", "registration_link")


# ============================================================
# VALUE CLEANING
# ============================================================

def _normalize_word(value: str) -> str:
    return re.sub(r"[\s_\-]+", "", value).lower()


def clean_value(value: Optional[str], placeholders: Iterable[str]) -> Optional[str]:
    """Return the stripped value, or None if it is blank or a placeholder phrase."""
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    lowered = value.lower()
    if any(lowered == p.strip().lower() for p in placeholders):
        return None
    return value


def parse_date(value: str) -> Optional[dt.date]:
    for fmt in DATE_FORMATS:
        try:
            return dt.datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    # "2025-07-01T10:00:00" and friends
    try:
        return dt.datetime.fromisoformat(value).date()
    except ValueError:
        return None


def parse_time(value: str) -> Optional[dt.time]:
    for fmt in TIME_FORMATS:
        try:
            return dt.datetime.strptime(value.upper(), fmt).time()
        except ValueError:
            continue
    return None


def parse_ctc(value: str) -> Optional[float]:
    match = NUMBER_RE.search(value.replace(",", ""))
    return float(match.group()) if match else None


class _Coercer:
    """Cleans and types one candidate's values, dropping what it cannot read."""

    def __init__(self, placeholders: Iterable[str]):
        self.placeholders = list(placeholders)

    def _coerce(self, name: str, raw: Optional[str], parser) -> Any:
        value = clean_value(raw, self.placeholders)
        if value is None:
            return None
        parsed = parser(value)
        if parsed is None:
            logger.warning("Dropping unreadable %s value from candidate: %r", name, value)
        return parsed

    def text(self, name: str, raw: Optional[str]) -> Optional[str]:
        return clean_value(raw, self.placeholders)

    def date(self, name: str, raw: Optional[str]) -> Optional[dt.date]:
        return self._coerce(name, raw, parse_date)

    def time(self, name: str, raw: Optional[str]) -> Optional[dt.time]:
        return self._coerce(name, raw, parse_time)

    def ctc(self, raw: Optional[str]) -> Optional[float]:
        return self._coerce("ctc", raw, parse_ctc)

    def word(self, name: str, raw: Optional[str], table: Dict[str, Any]) -> Any:
        return self._coerce(name, raw, lambda v: table.get(_normalize_word(v)))

    def slot(self, name: str, partial: RoundPartial, results: Dict[str, Any]) -> Dict[str, Any]:
        patch = {
            "description": self.text(name, partial.description),
            "date": self.date(f"{name} date", partial.date),
            "time": self.time(f"{name} time", partial.time),
            "result": self.word(f"{name} result", partial.result, results),
        }
        return {k: v for k, v in patch.items() if v is not None}


class CoercedCandidate:
    """Candidate values that survived cleaning, already typed."""

    def __init__(self, candidate: CandidatePartial, placeholders: Iterable[str]):
        c = _Coercer(placeholders)

        scalars = {name: c.text(name, getattr(candidate, name)) for name in TEXT_FIELDS}
        scalars["ctc"] = c.ctc(candidate.ctc)
        scalars["registration_deadline"] = c.date("registration deadline", candidate.registration_deadline)
        scalars["registration_deadline_time"] = c.time(
            "registration deadline time", candidate.registration_deadline_time
        )
        self.scalars: Dict[str, Any] = {k: v for k, v in scalars.items() if v is not None}

        self.eligibility: Optional[Eligibility] = c.word(
            "eligibility", candidate.are_you_eligible, ELIGIBILITY_WORDS
        )
        self.status: Optional[ApplicationStatus] = c.word("status", candidate.status, STATUS_WORDS)

        self.tests: List[Dict[str, Any]] = [
            c.slot(f"test {n}", partial, ASSESSMENT_WORDS)
            for n, partial in enumerate(candidate.tests, start=1)
        ]
        self.interviews: List[Dict[str, Any]] = [
            c.slot(f"interview {n}", partial, INTERVIEW_WORDS)
            for n, partial in enumerate(candidate.interviews, start=1)
        ]

    @property
    def is_empty(self) -> bool:
        return not (
            self.scalars or self.eligibility or self.status
            or any(self.tests) or any(self.interviews)
        )


# ============================================================
# MERGE
# ============================================================

def merge(
    existing: Optional[ApplicationRecord],
    candidate: CandidatePartial,
    mode: MergeMode,
    user_id: Optional[str] = None,
    now: Optional[dt.datetime] = None,
    placeholders: Optional[Iterable[str]] = None,
) -> ApplicationRecord:
    """
    Merge a candidate into a record.

    Args:
        existing: Current record (None in create mode)
        candidate: Extraction output, already parsed into a CandidatePartial
        mode: MergeMode.create or MergeMode.follow_up
        user_id: Owner of the new record (create mode only)
        now: Timestamp for created_at/updated_at
        placeholders: Phrases treated as "no value"; defaults to settings

    Returns:
        A full ApplicationRecord ready to persist. Persisting is the caller's job.
    """
    if placeholders is None:
        placeholders = get_settings().extraction_placeholders
    now = now or utcnow()
    values = CoercedCandidate(candidate, placeholders)

    if mode is MergeMode.create:
        return _create(values, user_id, now)

    if existing is None:
        raise ValidationError("Follow-up merge needs an existing placement")
    return _follow_up(existing, values, now)


def _create(values: CoercedCandidate, user_id: Optional[str], now: dt.datetime) -> ApplicationRecord:
    if not values.scalars.get("company_name"):
        raise ValidationError("Company name is required", field="company_name")
    if not user_id:
        raise ValidationError("A signed-in user is required to create placements")

    record = ApplicationRecord(
        user_id=user_id,
        status=values.status or ApplicationStatus.applied,
        tests=[AssessmentRound(**patch) for patch in values.tests],
        interviews=[InterviewRound(**patch) for patch in values.interviews],
        created_at=now,
        updated_at=now,
        **values.scalars,
    )
    return reconcile(record, values.eligibility or Eligibility.unknown)


def _follow_up(existing: ApplicationRecord, values: CoercedCandidate, now: dt.datetime) -> ApplicationRecord:
    update: Dict[str, Any] = dict(values.scalars)
    update["tests"] = [
        slot.model_copy(update=patch) for slot, patch in zip(existing.tests, values.tests)
    ]
    update["interviews"] = [
        slot.model_copy(update=patch) for slot, patch in zip(existing.interviews, values.interviews)
    ]
    update["updated_at"] = now
    record = existing.model_copy(update=update)

    if values.eligibility is not None:
        record = reconcile(record, values.eligibility)

    if values.status is not None and values.status is not record.status:
        if status_change_allowed(record, values.status):
            record = record.model_copy(update={"status": values.status})
        else:
            logger.info(
                "Skipped status change to %s for ineligible placement %s",
                values.status.value, record.id
            )
    return record
