"""
Export Serializer - placements to CSV.

Column order is fixed. Cells are quoted with the standard csv rules, so
"Acme, Inc." comes out as "\"Acme, Inc.\"" and reads back unchanged.
Same input order -> same bytes.
"""

import csv
import datetime as dt
import io
from typing import List, Optional, Sequence

from placement_tracker.core.config import get_settings
from placement_tracker.schemas.schemas import (
    INTERVIEW_SLOTS,
    TEST_SLOTS,
    ApplicationRecord,
    RoundSlot,
)


def _build_headers() -> List[str]:
    headers = [
        "Company Name", "Role", "Status", "CTC (LPA)", "Location",
        "Registration Deadline", "Eligibility",
    ]
    for n in range(1, TEST_SLOTS + 1):
        headers += [f"Test {n}", f"Test {n} Date", f"Test {n} Result"]
    for n in range(1, INTERVIEW_SLOTS + 1):
        headers += [f"Interview {n}", f"Interview {n} Date", f"Interview {n} Result"]
    headers.append("Created At")
    return headers


HEADERS = _build_headers()


def format_date(value: Optional[dt.date], date_format: str) -> str:
    if value is None:
        return ""
    return value.strftime(date_format)


def format_ctc(value: Optional[float]) -> str:
    if value is None:
        return ""
    # 12.0 -> "12", 12.5 -> "12.5"
    return str(int(value)) if float(value).is_integer() else str(value)


def _slot_cells(slot: RoundSlot, date_format: str) -> List[str]:
    if not slot.is_set:
        return ["", "", ""]
    return [slot.description, format_date(slot.date, date_format), slot.result.value]


def to_row(record: ApplicationRecord, date_format: str) -> List[str]:
    row = [
        record.company_name,
        record.role,
        record.status.value,
        format_ctc(record.ctc),
        record.location,
        format_date(record.registration_deadline, date_format),
        record.eligibility.label,
    ]
    for slot in record.tests:
        row += _slot_cells(slot, date_format)
    for slot in record.interviews:
        row += _slot_cells(slot, date_format)
    row.append(format_date(record.created_at, date_format))
    return row


def to_csv(records: Sequence[ApplicationRecord], date_format: Optional[str] = None) -> str:
    """
    Serialize placements to CSV text.

    Args:
        records: Full collection or the currently filtered subset, in display order
        date_format: strftime format for dates; defaults to settings.export_date_format
    """
    date_format = date_format or get_settings().export_date_format
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(HEADERS)
    for record in records:
        writer.writerow(to_row(record, date_format))
    return output.getvalue()


def export_filename(filtered: bool, today: Optional[dt.date] = None) -> str:
    today = today or dt.date.today()
    return f"placements_{'filtered' if filtered else 'complete'}_{today.isoformat()}.csv"
