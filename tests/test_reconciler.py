"""
Tests for the eligibility/status reconciler.

Covers:
- reconcile() for every eligibility transition
- status gate while not eligible
- conflict flag for records that already break the rule
"""

import pytest

from conftest import make_record
from placement_tracker.core.errors import InvariantViolationAttempt
from placement_tracker.schemas.schemas import ApplicationStatus, Eligibility
from placement_tracker.services.reconciler import (
    change_status,
    check_status_change,
    has_eligibility_conflict,
    reconcile,
    status_change_allowed,
)


class TestReconcile:
    @pytest.mark.parametrize("status", list(ApplicationStatus))
    def test_not_eligible_forces_status(self, status):
        record = make_record(status=status, eligibility=Eligibility.eligible)
        result = reconcile(record, Eligibility.not_eligible)
        assert result.eligibility is Eligibility.not_eligible
        assert result.status is ApplicationStatus.not_eligible

    def test_back_to_eligible_resets_to_applied(self):
        record = make_record(status=ApplicationStatus.not_eligible, eligibility=Eligibility.not_eligible)
        result = reconcile(record, Eligibility.eligible)
        assert result.eligibility is Eligibility.eligible
        assert result.status is ApplicationStatus.applied

    def test_eligible_keeps_other_status(self):
        record = make_record(status=ApplicationStatus.in_progress, eligibility=Eligibility.unknown)
        result = reconcile(record, Eligibility.eligible)
        assert result.status is ApplicationStatus.in_progress

    def test_unknown_leaves_status_alone(self):
        record = make_record(status=ApplicationStatus.not_eligible, eligibility=Eligibility.not_eligible)
        result = reconcile(record, Eligibility.unknown)
        assert result.eligibility is Eligibility.unknown
        assert result.status is ApplicationStatus.not_eligible

    def test_does_not_mutate_input(self):
        record = make_record(eligibility=Eligibility.eligible)
        reconcile(record, Eligibility.not_eligible)
        assert record.eligibility is Eligibility.eligible
        assert record.status is ApplicationStatus.applied

    def test_other_fields_untouched(self):
        record = make_record(role="SDE", ctc=12.0, location="Pune")
        result = reconcile(record, Eligibility.not_eligible)
        assert (result.role, result.ctc, result.location) == ("SDE", 12.0, "Pune")


class TestStatusGate:
    def test_blocked_while_not_eligible(self):
        record = make_record(status=ApplicationStatus.not_eligible, eligibility=Eligibility.not_eligible)
        assert not status_change_allowed(record, ApplicationStatus.selected)
        with pytest.raises(InvariantViolationAttempt):
            check_status_change(record, ApplicationStatus.selected)

    def test_not_eligible_status_always_allowed(self):
        record = make_record(status=ApplicationStatus.not_eligible, eligibility=Eligibility.not_eligible)
        assert status_change_allowed(record, ApplicationStatus.not_eligible)

    @pytest.mark.parametrize("eligibility", [Eligibility.eligible, Eligibility.unknown])
    def test_free_otherwise(self, eligibility):
        record = make_record(eligibility=eligibility)
        result = change_status(record, ApplicationStatus.rejected)
        assert result.status is ApplicationStatus.rejected

    def test_rejected_change_leaves_record(self):
        record = make_record(status=ApplicationStatus.not_eligible, eligibility=Eligibility.not_eligible)
        with pytest.raises(InvariantViolationAttempt):
            change_status(record, ApplicationStatus.applied)
        assert record.status is ApplicationStatus.not_eligible


class TestConflictFlag:
    def test_flags_legacy_violation(self):
        record = make_record(status=ApplicationStatus.selected, eligibility=Eligibility.not_eligible)
        assert has_eligibility_conflict(record)

    def test_consistent_record_not_flagged(self):
        assert not has_eligibility_conflict(
            make_record(status=ApplicationStatus.not_eligible, eligibility=Eligibility.not_eligible)
        )
        assert not has_eligibility_conflict(make_record(eligibility=Eligibility.eligible))


def test_eligibility_round_trip_scenario():
    record = make_record("Acme", eligibility=Eligibility.unknown, status=ApplicationStatus.applied)
    record = reconcile(record, Eligibility.not_eligible)
    assert record.status is ApplicationStatus.not_eligible
    record = reconcile(record, Eligibility.eligible)
    assert record.status is ApplicationStatus.applied
