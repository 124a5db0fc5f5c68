"""
Placement Store - the remote relational store behind the tracker.

The `placements` table keeps the flat layout the web client writes
(test_1, test_1_date, result_1, ..., are_you_eligible). Rows are folded
into ApplicationRecord slots here and nowhere else.

Every store call is scoped to the signed-in user from the SessionContext,
and every database error surfaces as StoreFailure. A row that does not
form a valid record is logged and left out of list() results.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import bindparam, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from placement_tracker.core.auth import SessionContext
from placement_tracker.core.errors import RecordNotFound, StoreFailure, ValidationError
from placement_tracker.db.postgres import get_session_factory, session_scope
from placement_tracker.schemas.schemas import (
    INTERVIEW_SLOTS,
    TEST_SLOTS,
    ApplicationRecord,
    Eligibility,
)

logger = logging.getLogger(__name__)

TABLE = "placements"


def _test_columns(n: int) -> Dict[str, str]:
    return {
        "description": f"test_{n}",
        "date": f"test_{n}_date",
        "time": f"test_{n}_time",
        "result": f"result_{n}",
    }


def _interview_columns(n: int) -> Dict[str, str]:
    return {
        "description": f"interview_{n}",
        "date": f"interview_{n}_date",
        "time": f"interview_{n}_time",
        "result": f"interview_result_{n}",
    }


TEST_COLUMNS = [_test_columns(n) for n in range(1, TEST_SLOTS + 1)]
INTERVIEW_COLUMNS = [_interview_columns(n) for n in range(1, INTERVIEW_SLOTS + 1)]

COLUMNS: List[str] = [
    "id", "user_id", "company_name", "role", "ctc", "location", "eligibility",
    "registration_deadline", "registration_deadline_time", "registration_link",
    *[col for cols in TEST_COLUMNS for col in cols.values()],
    *[col for cols in INTERVIEW_COLUMNS for col in cols.values()],
    "are_you_eligible", "status", "created_at", "updated_at",
]

IMMUTABLE_COLUMNS = {"id", "user_id", "created_at"}


# ============================================================
# ROW MAPPING
# ============================================================

def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _slot_to_row(slot, columns: Dict[str, str]) -> Dict[str, Any]:
    return {
        columns["description"]: slot.description or None,
        columns["date"]: _iso(slot.date),
        columns["time"]: _iso(slot.time),
        columns["result"]: slot.result.value,
    }


def _slot_from_row(row: Mapping[str, Any], columns: Dict[str, str]) -> Dict[str, Any]:
    return {field: row.get(column) for field, column in columns.items()}


def to_row(record: ApplicationRecord) -> Dict[str, Any]:
    """Flatten a record into column -> value pairs (dates as ISO strings)."""
    row = {
        "id": record.id,
        "user_id": record.user_id,
        "company_name": record.company_name,
        "role": record.role or None,
        "ctc": record.ctc,
        "location": record.location or None,
        "eligibility": record.eligibility_criteria or None,
        "registration_deadline": _iso(record.registration_deadline),
        "registration_deadline_time": _iso(record.registration_deadline_time),
        "registration_link": record.registration_link or None,
        "are_you_eligible": record.eligibility.to_flag(),
        "status": record.status.value,
        "created_at": _iso(record.created_at),
        "updated_at": _iso(record.updated_at),
    }
    for slot, columns in zip(record.tests, TEST_COLUMNS):
        row.update(_slot_to_row(slot, columns))
    for slot, columns in zip(record.interviews, INTERVIEW_COLUMNS):
        row.update(_slot_to_row(slot, columns))
    return row


def changed_fields(before: ApplicationRecord, after: ApplicationRecord) -> Dict[str, Any]:
    """Flat column -> value pairs that differ, used as the partial update payload."""
    old_row, new_row = to_row(before), to_row(after)
    return {
        column: value for column, value in new_row.items()
        if column not in ("id", "user_id", "created_at") and old_row.get(column) != value
    }


def from_row(row: Mapping[str, Any]) -> ApplicationRecord:
    """Build a record from a table row. Raises pydantic's ValidationError on bad rows."""
    flag = row.get("are_you_eligible")
    return ApplicationRecord(
        id=str(row["id"]),
        user_id=str(row["user_id"]),
        company_name=row.get("company_name"),
        role=row.get("role"),
        ctc=row.get("ctc"),
        location=row.get("location"),
        eligibility_criteria=row.get("eligibility"),
        registration_deadline=row.get("registration_deadline"),
        registration_deadline_time=row.get("registration_deadline_time"),
        registration_link=row.get("registration_link"),
        eligibility=Eligibility.from_flag(None if flag is None else bool(flag)),
        status=row.get("status"),
        tests=[_slot_from_row(row, columns) for columns in TEST_COLUMNS],
        interviews=[_slot_from_row(row, columns) for columns in INTERVIEW_COLUMNS],
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


# ============================================================
# STORE INTERFACE
# ============================================================

class PlacementStore(ABC):
    """Persistence collaborator. All methods are scoped to one user."""

    @abstractmethod
    def list(self) -> List[ApplicationRecord]:
        """All of the user's placements, newest first."""

    @abstractmethod
    def create(self, record: ApplicationRecord) -> ApplicationRecord:
        """Insert and return the record with its assigned id."""

    @abstractmethod
    def update(self, record_id: str, fields: Dict[str, Any]) -> None:
        """Write the given flat columns onto one placement."""

    @abstractmethod
    def delete(self, record_id: str) -> None:
        pass

    @abstractmethod
    def delete_many(self, record_ids: Sequence[str]) -> None:
        pass


class PostgresPlacementStore(PlacementStore):
    """
    SQL implementation over the `placements` table.
    Uses plain text() queries, the DDL lives in scripts/schema.sql.
    """

    def __init__(self, context: SessionContext, session_factory: Optional[sessionmaker] = None):
        self.context = context
        self.session_factory = session_factory or get_session_factory()

    def _fail(self, operation: str, error: Exception) -> StoreFailure:
        logger.error("Store %s failed for user %s: %s", operation, self.context.user_id, error)
        return StoreFailure(operation, str(error))

    def list(self) -> List[ApplicationRecord]:
        try:
            with session_scope(self.session_factory) as db:
                result = db.execute(
                    text(f"SELECT * FROM {TABLE} WHERE user_id = :uid ORDER BY created_at DESC"),
                    {"uid": self.context.user_id}
                )
                rows = [dict(row) for row in result.mappings().all()]
        except SQLAlchemyError as e:
            raise self._fail("list", e) from e

        records = []
        for row in rows:
            try:
                records.append(from_row(row))
            except PydanticValidationError as e:
                logger.warning("Skipping malformed placement row %s: %s", row.get("id"), e)
        return records

    def create(self, record: ApplicationRecord) -> ApplicationRecord:
        if record.user_id != self.context.user_id:
            raise ValidationError("Placement owner does not match the signed-in user", field="user_id")
        if record.id is None:
            record = record.model_copy(update={"id": str(uuid.uuid4())})

        row = to_row(record)
        columns = ", ".join(row)
        params = ", ".join(f":{column}" for column in row)
        try:
            with session_scope(self.session_factory) as db:
                db.execute(text(f"INSERT INTO {TABLE} ({columns}) VALUES ({params})"), row)
        except SQLAlchemyError as e:
            raise self._fail("create", e) from e

        logger.info("Created placement %s (%s)", record.id, record.company_name)
        return record

    def update(self, record_id: str, fields: Dict[str, Any]) -> None:
        unknown = set(fields) - set(COLUMNS)
        if unknown:
            raise ValidationError(f"Unknown placement fields: {', '.join(sorted(unknown))}")
        frozen = set(fields) & IMMUTABLE_COLUMNS
        if frozen:
            raise ValidationError(f"Fields cannot be changed: {', '.join(sorted(frozen))}")
        if not fields:
            return

        assignments = ", ".join(f"{column} = :{column}" for column in fields)
        params = dict(fields, record_id=record_id, uid=self.context.user_id)
        try:
            with session_scope(self.session_factory) as db:
                result = db.execute(
                    text(f"UPDATE {TABLE} SET {assignments} WHERE id = :record_id AND user_id = :uid"),
                    params
                )
                updated = result.rowcount
        except SQLAlchemyError as e:
            raise self._fail("update", e) from e
        if updated == 0:
            raise RecordNotFound(record_id)

    def delete(self, record_id: str) -> None:
        try:
            with session_scope(self.session_factory) as db:
                result = db.execute(
                    text(f"DELETE FROM {TABLE} WHERE id = :record_id AND user_id = :uid"),
                    {"record_id": record_id, "uid": self.context.user_id}
                )
                deleted = result.rowcount
        except SQLAlchemyError as e:
            raise self._fail("delete", e) from e
        if deleted == 0:
            raise RecordNotFound(record_id)

    def delete_many(self, record_ids: Sequence[str]) -> None:
        if not record_ids:
            return
        query = text(
            f"DELETE FROM {TABLE} WHERE user_id = :uid AND id IN :ids"
        ).bindparams(bindparam("ids", expanding=True))
        try:
            with session_scope(self.session_factory) as db:
                db.execute(query, {"uid": self.context.user_id, "ids": list(record_ids)})
        except SQLAlchemyError as e:
            raise self._fail("delete_many", e) from e
        logger.info("Deleted %d placements for user %s", len(record_ids), self.context.user_id)
