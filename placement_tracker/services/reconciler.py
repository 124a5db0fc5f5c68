"""
Eligibility/Status Reconciler.

Coupling rule between the eligibility tri-state and the lifecycle status:
- eligibility set to not_eligible  -> status forced to "Not Eligible"
- not_eligible -> eligible while status is "Not Eligible" -> status back to "Applied"
- anything else leaves status alone

Records that already break the rule (legacy or imported data) are only
flagged, never repaired on read.
"""

import logging

from placement_tracker.core.errors import InvariantViolationAttempt
from placement_tracker.schemas.schemas import (
    ApplicationRecord,
    ApplicationStatus,
    Eligibility,
)

logger = logging.getLogger(__name__)


def reconcile(current: ApplicationRecord, proposed: Eligibility) -> ApplicationRecord:
    """Apply a new eligibility value and the status it implies."""
    status = current.status
    if proposed is Eligibility.not_eligible:
        status = ApplicationStatus.not_eligible
    elif proposed is Eligibility.eligible and current.status is ApplicationStatus.not_eligible:
        status = ApplicationStatus.applied

    if status is not current.status:
        logger.debug(
            "Eligibility %s moved %s from %s to %s",
            proposed.value, current.company_name, current.status.value, status.value
        )
    return current.model_copy(update={"eligibility": proposed, "status": status})


def status_change_allowed(current: ApplicationRecord, proposed: ApplicationStatus) -> bool:
    if current.eligibility is not Eligibility.not_eligible:
        return True
    return proposed is ApplicationStatus.not_eligible


def check_status_change(current: ApplicationRecord, proposed: ApplicationStatus) -> None:
    """Raise InvariantViolationAttempt if the status cannot move while ineligible."""
    if not status_change_allowed(current, proposed):
        raise InvariantViolationAttempt(
            f"Cannot set status of {current.company_name} to '{proposed.value}' "
            f"while marked not eligible"
        )


def change_status(current: ApplicationRecord, proposed: ApplicationStatus) -> ApplicationRecord:
    check_status_change(current, proposed)
    return current.model_copy(update={"status": proposed})


def has_eligibility_conflict(record: ApplicationRecord) -> bool:
    """True for records stored with eligibility=not_eligible and some other status."""
    return (
        record.eligibility is Eligibility.not_eligible
        and record.status is not ApplicationStatus.not_eligible
    )
