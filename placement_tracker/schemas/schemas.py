"""
Pydantic Schemas - Placement records, extraction candidates and API contracts.

All schemas in one file for simplicity.

Rounds are stored as fixed-size slot lists (5 tests, 3 interviews). The flat
wire names used by the database and the LLM (test_1, test_1_date, result_1,
interview_result_2, ...) are folded into slots at the boundaries only.
"""

import datetime as dt
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


TEST_SLOTS = 5
INTERVIEW_SLOTS = 3


# ============================================================
# ENUMS
# ============================================================

class ApplicationStatus(str, Enum):
    applied = "Applied"
    in_progress = "In Progress"
    selected = "Selected"
    rejected = "Rejected"
    withdrawn = "Withdrawn"
    not_eligible = "Not Eligible"


# Canonical kanban column order
STATUS_ORDER: List[ApplicationStatus] = list(ApplicationStatus)


class Eligibility(str, Enum):
    eligible = "eligible"
    not_eligible = "not_eligible"
    unknown = "unknown"

    @classmethod
    def from_flag(cls, flag: Optional[bool]) -> "Eligibility":
        """Map the stored nullable boolean to the tri-state."""
        if flag is None:
            return cls.unknown
        return cls.eligible if flag else cls.not_eligible

    def to_flag(self) -> Optional[bool]:
        if self is Eligibility.unknown:
            return None
        return self is Eligibility.eligible

    @property
    def label(self) -> str:
        return {"eligible": "Yes", "not_eligible": "No", "unknown": "Not Sure"}[self.value]


class AssessmentResult(str, Enum):
    pending = "pending"
    passed = "Passed"
    failed = "Failed"
    waitlisted = "Waitlisted"


class InterviewResult(str, Enum):
    pending = "pending"
    selected = "Selected"
    rejected = "Rejected"
    waitlisted = "Waitlisted"


class EventKind(str, Enum):
    test = "Test"
    interview = "Interview"


class ProgressStage(str, Enum):
    complete = "Complete"
    rejected = "Rejected"
    withdrawn = "Withdrawn"
    interview = "Interview Stage"
    test = "Test Stage"
    applied = "Applied"


class SortField(str, Enum):
    company_name = "company_name"
    status = "status"
    ctc = "ctc"
    created_at = "created_at"
    registration_deadline = "registration_deadline"


class SortOrder(str, Enum):
    asc = "asc"
    desc = "desc"


class MergeMode(str, Enum):
    create = "create"
    follow_up = "follow_up"


# ============================================================
# ROUND SLOTS
# ============================================================

class RoundSlot(BaseModel):
    """One test or interview instance. Empty description means the slot is unset."""

    model_config = ConfigDict(frozen=True)

    description: str = ""
    date: Optional[dt.date] = None
    time: Optional[dt.time] = None

    @field_validator("description", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return v or ""

    @property
    def is_set(self) -> bool:
        return bool(self.description.strip())


class AssessmentRound(RoundSlot):
    result: AssessmentResult = AssessmentResult.pending

    @field_validator("result", mode="before")
    @classmethod
    def default_result(cls, v):
        return v or AssessmentResult.pending


class InterviewRound(RoundSlot):
    result: InterviewResult = InterviewResult.pending

    @field_validator("result", mode="before")
    @classmethod
    def default_result(cls, v):
        return v or InterviewResult.pending


def empty_tests() -> List[AssessmentRound]:
    return [AssessmentRound() for _ in range(TEST_SLOTS)]


def empty_interviews() -> List[InterviewRound]:
    return [InterviewRound() for _ in range(INTERVIEW_SLOTS)]


# ============================================================
# CANONICAL RECORD
# ============================================================

class ApplicationRecord(BaseModel):
    """
    Canonical placement record, the only thing persisted.

    Frozen: every mutation produces a new record via model_copy(), so the
    in-memory collection is never left half-updated.
    """

    model_config = ConfigDict(frozen=True)

    TEXT_FIELDS: ClassVar[tuple] = (
        "role", "location", "eligibility_criteria", "registration_link"
    )

    id: Optional[str] = None
    user_id: str
    company_name: str = Field(..., min_length=1)
    role: str = ""
    ctc: Optional[float] = Field(None, ge=0)
    location: str = ""
    eligibility_criteria: str = ""
    registration_deadline: Optional[dt.date] = None
    registration_deadline_time: Optional[dt.time] = None
    registration_link: str = ""
    eligibility: Eligibility = Eligibility.unknown
    status: ApplicationStatus = ApplicationStatus.applied
    tests: List[AssessmentRound] = Field(
        default_factory=empty_tests, min_length=TEST_SLOTS, max_length=TEST_SLOTS
    )
    interviews: List[InterviewRound] = Field(
        default_factory=empty_interviews, min_length=INTERVIEW_SLOTS, max_length=INTERVIEW_SLOTS
    )
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None

    @field_validator("company_name", mode="before")
    @classmethod
    def strip_company(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator(*TEXT_FIELDS, mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return v or ""

    @property
    def has_deadline(self) -> bool:
        return self.registration_deadline is not None

    @property
    def has_test(self) -> bool:
        return any(slot.is_set for slot in self.tests)

    @property
    def has_interview(self) -> bool:
        return any(slot.is_set for slot in self.interviews)


# ============================================================
# EXTRACTION CANDIDATE
# ============================================================

class RoundPartial(BaseModel):
    """Raw slot values as returned by the extractor. Nothing here is trusted."""

    description: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    result: Optional[str] = None

    @field_validator("description", "date", "time", "result", mode="before")
    @classmethod
    def stringify(cls, v):
        if v is None or isinstance(v, str):
            return v
        return str(v)


def _empty_partials(count: int) -> List[RoundPartial]:
    return [RoundPartial() for _ in range(count)]


class CandidatePartial(BaseModel):
    """
    Sparse, untrusted subset of a record produced by the extractor.

    Accepts the flat LLM payload:
        {"company_name": "...", "eligibility": "B.Tech CSE, 7 CGPA",
         "test_1": "Coding Test", "test_1_date": "2025-07-01", "result_1": "Passed",
         "interview_2": "HR", "interview_result_2": "Selected", ...}
    "eligibility" there is the criteria text; the tri-state goes in "are_you_eligible".
    """

    model_config = ConfigDict(extra="ignore")

    SCALAR_FIELDS: ClassVar[tuple] = (
        "company_name", "role", "ctc", "location", "eligibility_criteria",
        "registration_deadline", "registration_deadline_time", "registration_link",
        "are_you_eligible", "status",
    )

    company_name: Optional[str] = None
    role: Optional[str] = None
    ctc: Optional[str] = None
    location: Optional[str] = None
    eligibility_criteria: Optional[str] = None
    registration_deadline: Optional[str] = None
    registration_deadline_time: Optional[str] = None
    registration_link: Optional[str] = None
    are_you_eligible: Optional[str] = None
    status: Optional[str] = None
    tests: List[RoundPartial] = Field(
        default_factory=lambda: _empty_partials(TEST_SLOTS),
        min_length=TEST_SLOTS, max_length=TEST_SLOTS
    )
    interviews: List[RoundPartial] = Field(
        default_factory=lambda: _empty_partials(INTERVIEW_SLOTS),
        min_length=INTERVIEW_SLOTS, max_length=INTERVIEW_SLOTS
    )

    @model_validator(mode="before")
    @classmethod
    def fold_flat_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)

        if "eligibility" in data and "eligibility_criteria" not in data:
            data["eligibility_criteria"] = data.pop("eligibility")

        if "tests" not in data:
            data["tests"] = [
                {
                    "description": data.pop(f"test_{n}", None),
                    "date": data.pop(f"test_{n}_date", None),
                    "time": data.pop(f"test_{n}_time", None),
                    "result": data.pop(f"result_{n}", None),
                }
                for n in range(1, TEST_SLOTS + 1)
            ]
        if "interviews" not in data:
            data["interviews"] = [
                {
                    "description": data.pop(f"interview_{n}", None),
                    "date": data.pop(f"interview_{n}_date", None),
                    "time": data.pop(f"interview_{n}_time", None),
                    "result": data.pop(f"interview_result_{n}", None),
                }
                for n in range(1, INTERVIEW_SLOTS + 1)
            ]
        return data

    @field_validator(*SCALAR_FIELDS, mode="before")
    @classmethod
    def stringify(cls, v):
        # LLMs return ctc as 12 or "12 LPA", eligibility as true or "Yes"
        if v is None or isinstance(v, str):
            return v
        return str(v)


# ============================================================
# QUERY SCHEMAS
# ============================================================

class FilterSet(BaseModel):
    """Independent, AND-combined filters. Unset values match everything."""

    statuses: List[ApplicationStatus] = []
    ctc_min: Optional[float] = None
    ctc_max: Optional[float] = None
    deadline_start: Optional[dt.date] = None
    deadline_end: Optional[dt.date] = None
    locations: List[str] = []
    has_deadline: Optional[bool] = None
    has_interview: Optional[bool] = None
    has_test: Optional[bool] = None


class SortSpec(BaseModel):
    field: SortField = SortField.created_at
    order: SortOrder = SortOrder.desc


class UpcomingEvent(BaseModel):
    record_id: Optional[str] = None
    company_name: str
    kind: EventKind
    description: str
    date: dt.date
    days_remaining: int


class StatusCount(BaseModel):
    name: str
    count: int
    percentage: int


class ProgressMetric(BaseModel):
    name: str
    count: int
    total: int
    percentage: int


class RoundCompletion(BaseModel):
    tests_total: int = 0
    tests_completed: int = 0
    interviews_total: int = 0
    interviews_completed: int = 0


class DashboardStats(BaseModel):
    total: int
    counts_by_status: Dict[str, int]
    eligible_count: int
    average_ctc: Optional[float] = None
    status_distribution: List[StatusCount]
    eligibility_distribution: List[StatusCount]
    progress_metrics: List[ProgressMetric]
    round_completion: RoundCompletion
    upcoming_count: int
    conflict_count: int
    avg_days_since_created: Optional[int] = None


# ============================================================
# API REQUEST SCHEMAS
# ============================================================

class RoundInput(BaseModel):
    description: str = ""
    date: Optional[dt.date] = None
    time: Optional[dt.time] = None
    result: Optional[str] = None


class PlacementForm(BaseModel):
    """Full form submission used for both create and edit."""

    company_name: str = Field(..., min_length=1, max_length=200)
    role: str = ""
    ctc: Optional[float] = Field(None, ge=0)
    location: str = ""
    eligibility_criteria: str = ""
    registration_deadline: Optional[dt.date] = None
    registration_deadline_time: Optional[dt.time] = None
    registration_link: str = ""
    eligibility: Eligibility = Eligibility.unknown
    status: ApplicationStatus = ApplicationStatus.applied
    tests: List[RoundInput] = Field(
        default_factory=lambda: [RoundInput() for _ in range(TEST_SLOTS)],
        max_length=TEST_SLOTS
    )
    interviews: List[RoundInput] = Field(
        default_factory=lambda: [RoundInput() for _ in range(INTERVIEW_SLOTS)],
        max_length=INTERVIEW_SLOTS
    )


class EligibilityUpdate(BaseModel):
    eligibility: Eligibility


class StatusUpdate(BaseModel):
    status: ApplicationStatus


class BulkStatusUpdate(BaseModel):
    ids: List[str] = Field(..., min_length=1)
    status: ApplicationStatus


class BulkDelete(BaseModel):
    ids: List[str] = Field(..., min_length=1)


class ExtractRequest(BaseModel):
    email_text: str = Field(..., min_length=1)
    placement_id: Optional[str] = None


# ============================================================
# API RESPONSE SCHEMAS
# ============================================================

class PlacementResponse(BaseModel):
    placement: ApplicationRecord
    has_conflict: bool = False
    progress_stage: ProgressStage
    progress_percentage: int
    next_event: Optional[UpcomingEvent] = None


class PlacementListResponse(BaseModel):
    placements: List[PlacementResponse]
    total: int
    visible: int


class KanbanColumn(BaseModel):
    status: ApplicationStatus
    placements: List[ApplicationRecord]


class KanbanResponse(BaseModel):
    columns: List[KanbanColumn]


class UpcomingEventsResponse(BaseModel):
    events: List[UpcomingEvent]
    total: int


class ExtractResponse(BaseModel):
    candidate: CandidatePartial
    message: str


class BulkStatusResponse(BaseModel):
    updated: List[str]
    skipped: List[str]
    failed: List[str] = []


class MessageResponse(BaseModel):
    message: str
    success: bool = True


class ErrorResponse(BaseModel):
    detail: str
