"""
Placement Service - every path that changes a placement goes through here.

Workflow for a mutation:
1. Build the new canonical record (form, merge, or direct change)
2. Run the eligibility reconciler / status gate
3. Write the changed columns to the store
4. Only then replace the record in the in-memory collection

A failed store call leaves self.records exactly as it was.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from placement_tracker.core.auth import SessionContext
from placement_tracker.core.config import Settings, get_settings
from placement_tracker.core.errors import (
    InvariantViolationAttempt,
    RecordNotFound,
    StoreFailure,
    ValidationError,
)
from placement_tracker.db.placement_store import PlacementStore, changed_fields
from placement_tracker.schemas.schemas import (
    INTERVIEW_SLOTS,
    TEST_SLOTS,
    ApplicationRecord,
    ApplicationStatus,
    AssessmentResult,
    AssessmentRound,
    CandidatePartial,
    Eligibility,
    InterviewResult,
    InterviewRound,
    MergeMode,
    PlacementForm,
    RoundInput,
)
from placement_tracker.services.merger import merge
from placement_tracker.services.reconciler import (
    change_status,
    reconcile,
    status_change_allowed,
)
from placement_tracker.utils.dates import utcnow

logger = logging.getLogger(__name__)


# ============================================================
# FORM HELPERS
# ============================================================

def _result(enum_cls, value: Optional[str], field: str):
    if not value:
        return enum_cls.pending
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"'{value}' is not a valid {field}", field=field)


def _pad(rounds: List[RoundInput], size: int) -> List[RoundInput]:
    return list(rounds) + [RoundInput() for _ in range(size - len(rounds))]


def form_fields(form: PlacementForm) -> Dict[str, Any]:
    """Record fields from a form submission (identity, eligibility and status excluded)."""
    company_name = form.company_name.strip()
    if not company_name:
        raise ValidationError("Company name is required", field="company_name")

    tests = [
        AssessmentRound(
            description=r.description.strip(), date=r.date, time=r.time,
            result=_result(AssessmentResult, r.result, f"test {n} result"),
        )
        for n, r in enumerate(_pad(form.tests, TEST_SLOTS), start=1)
    ]
    interviews = [
        InterviewRound(
            description=r.description.strip(), date=r.date, time=r.time,
            result=_result(InterviewResult, r.result, f"interview {n} result"),
        )
        for n, r in enumerate(_pad(form.interviews, INTERVIEW_SLOTS), start=1)
    ]
    return {
        "company_name": company_name,
        "role": form.role.strip(),
        "ctc": form.ctc,
        "location": form.location.strip(),
        "eligibility_criteria": form.eligibility_criteria.strip(),
        "registration_deadline": form.registration_deadline,
        "registration_deadline_time": form.registration_deadline_time,
        "registration_link": form.registration_link.strip(),
        "tests": tests,
        "interviews": interviews,
    }


# ============================================================
# SERVICE
# ============================================================

class PlacementService:
    """
    One user's placements, held in memory and written through to the store.
    """

    def __init__(
        self,
        context: SessionContext,
        store: PlacementStore,
        settings: Optional[Settings] = None,
    ):
        self.context = context
        self.store = store
        self.settings = settings or get_settings()
        self.records: List[ApplicationRecord] = []

    # ---------- reads ----------

    def load(self) -> List[ApplicationRecord]:
        """Fetch the collection. On StoreFailure the previous collection stays."""
        self.records = self.store.list()
        return self.records

    def find(self, record_id: str) -> Optional[ApplicationRecord]:
        return next((r for r in self.records if r.id == record_id), None)

    def get(self, record_id: str) -> ApplicationRecord:
        record = self.find(record_id)
        if record is None:
            raise RecordNotFound(record_id)
        return record

    # ---------- internal ----------

    def _replace(self, record: ApplicationRecord) -> None:
        self.records = [record if r.id == record.id else r for r in self.records]

    def _persist(self, before: ApplicationRecord, after: ApplicationRecord) -> ApplicationRecord:
        fields = changed_fields(before, after)
        fields.pop("updated_at", None)
        if not fields:
            return before
        after = after.model_copy(update={"updated_at": utcnow()})
        fields = changed_fields(before, after)
        self.store.update(before.id, fields)
        self._replace(after)
        return after

    def _insert(self, record: ApplicationRecord) -> ApplicationRecord:
        saved = self.store.create(record)
        self.records = [saved] + self.records
        return saved

    # ---------- create ----------

    def create(self, form: PlacementForm) -> ApplicationRecord:
        now = utcnow()
        record = ApplicationRecord(
            user_id=self.context.user_id,
            status=form.status,
            created_at=now,
            updated_at=now,
            **form_fields(form),
        )
        return self._insert(reconcile(record, form.eligibility))

    def create_from_candidate(self, candidate: CandidatePartial) -> ApplicationRecord:
        """Create a placement from a verified new-placement extraction."""
        record = merge(
            None, candidate, MergeMode.create,
            user_id=self.context.user_id,
            placeholders=self.settings.extraction_placeholders,
        )
        return self._insert(record)

    # ---------- update ----------

    def update_from_form(self, record_id: str, form: PlacementForm) -> ApplicationRecord:
        before = self.get(record_id)
        status_changed = form.status is not before.status
        if (
            status_changed
            and form.eligibility is Eligibility.not_eligible
            and form.status is not ApplicationStatus.not_eligible
        ):
            raise InvariantViolationAttempt(
                f"Cannot set status of {before.company_name} to '{form.status.value}' "
                f"while marked not eligible"
            )
        after = before.model_copy(update={**form_fields(form), "status": form.status})
        after = reconcile(after, form.eligibility)
        return self._persist(before, after)

    def set_eligibility(self, record_id: str, eligibility: Eligibility) -> ApplicationRecord:
        before = self.get(record_id)
        return self._persist(before, reconcile(before, eligibility))

    def set_status(self, record_id: str, status: ApplicationStatus) -> ApplicationRecord:
        """Raises InvariantViolationAttempt if the placement is marked not eligible."""
        before = self.get(record_id)
        return self._persist(before, change_status(before, status))

    def bulk_set_status(
        self, record_ids: Sequence[str], status: ApplicationStatus
    ) -> Tuple[List[str], List[str], List[str]]:
        """
        Set one status on many placements.
        Ineligible or unknown placements are skipped, not failed.
        A store failure on one placement does not stop the rest; that
        placement keeps its previous status and is reported as failed.

        Returns:
            (updated_ids, skipped_ids, failed_ids)
        """
        updated, skipped, failed = [], [], []
        for record_id in record_ids:
            record = self.find(record_id)
            if record is None or not status_change_allowed(record, status):
                skipped.append(record_id)
                continue
            try:
                self._persist(record, record.model_copy(update={"status": status}))
            except StoreFailure as e:
                logger.warning("Bulk status %s failed for placement %s: %s", status.value, record_id, e)
                failed.append(record_id)
                continue
            updated.append(record_id)
        if skipped:
            logger.info("Bulk status %s skipped %d placements", status.value, len(skipped))
        return updated, skipped, failed

    def apply_follow_up(self, record_id: str, candidate: CandidatePartial) -> Optional[ApplicationRecord]:
        """
        Merge a verified follow-up extraction.
        Returns None if the placement is gone by the time the result arrives.
        """
        before = self.find(record_id)
        if before is None:
            logger.info("Discarding follow-up for placement %s, no longer present", record_id)
            return None
        after = merge(
            before, candidate, MergeMode.follow_up,
            placeholders=self.settings.extraction_placeholders,
        )
        return self._persist(before, after)

    # ---------- delete ----------

    def delete(self, record_id: str) -> None:
        self.get(record_id)
        self.store.delete(record_id)
        self.records = [r for r in self.records if r.id != record_id]

    def delete_many(self, record_ids: Sequence[str]) -> int:
        ids = [i for i in dict.fromkeys(record_ids) if self.find(i) is not None]
        if not ids:
            return 0
        self.store.delete_many(ids)
        doomed = set(ids)
        self.records = [r for r in self.records if r.id not in doomed]
        return len(ids)
