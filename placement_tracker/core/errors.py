"""
Tracker error taxonomy.

Every failure in the tracker is local and recoverable by a later user action:
- ValidationError: bad input, rejected before the store is touched
- ExtractionFailure: the LLM returned nothing usable, existing data untouched
- StoreFailure: remote database error, in-memory collection left as it was
- InvariantViolationAttempt: status change blocked by eligibility
- RecordNotFound: id is not in the current user's collection
"""

from typing import Optional


class TrackerError(Exception):
    """Base class for all tracker errors."""

    status_code: int = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(TrackerError):
    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class ExtractionFailure(TrackerError):
    status_code = 502

    def __init__(self, message: str, raw_response: Optional[str] = None):
        super().__init__(message)
        self.raw_response = raw_response


class StoreFailure(TrackerError):
    status_code = 503

    def __init__(self, operation: str, message: str):
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation


class InvariantViolationAttempt(TrackerError):
    status_code = 409


class RecordNotFound(TrackerError):
    status_code = 404

    def __init__(self, record_id: str):
        super().__init__(f"Placement {record_id} not found")
        self.record_id = record_id
