"""
Shared fixtures: record factories, an in-memory SQLite placements table,
and a scripted LLM client so nothing leaves the process.
"""

import datetime as dt
from typing import List, Optional

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from placement_tracker.core.auth import SessionContext
from placement_tracker.db.placement_store import COLUMNS, PostgresPlacementStore
from placement_tracker.schemas.schemas import (
    ApplicationRecord,
    ApplicationStatus,
    AssessmentRound,
    Eligibility,
    InterviewRound,
    empty_interviews,
    empty_tests,
)

USER_ID = "user-1"
OTHER_USER_ID = "user-2"
NOW = dt.datetime(2025, 7, 1, 9, 0, tzinfo=dt.timezone.utc)

COLUMN_TYPES = {"ctc": "REAL", "are_you_eligible": "BOOLEAN"}


def make_record(
    company_name: str = "Acme",
    status: ApplicationStatus = ApplicationStatus.applied,
    eligibility: Eligibility = Eligibility.unknown,
    tests: Optional[List[dict]] = None,
    interviews: Optional[List[dict]] = None,
    **fields,
) -> ApplicationRecord:
    """Build a record; tests/interviews are dicts for the leading slots."""
    test_slots = empty_tests()
    for i, slot in enumerate(tests or []):
        test_slots[i] = AssessmentRound(**slot)
    interview_slots = empty_interviews()
    for i, slot in enumerate(interviews or []):
        interview_slots[i] = InterviewRound(**slot)
    fields.setdefault("user_id", USER_ID)
    fields.setdefault("created_at", NOW)
    fields.setdefault("updated_at", NOW)
    return ApplicationRecord(
        company_name=company_name,
        status=status,
        eligibility=eligibility,
        tests=test_slots,
        interviews=interview_slots,
        **fields,
    )


class FakeLLMClient:
    """Stands in for LLMClient; returns canned responses and records prompts."""

    def __init__(self, response: str = "{}"):
        self.response = response
        self.calls = []

    def complete(self, system_prompt: str, user_content: str, max_tokens=None) -> str:
        self.calls.append((system_prompt, user_content))
        return self.response


@pytest.fixture
def context():
    return SessionContext(user_id=USER_ID, email="student@example.com")


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    columns = ", ".join(
        f"{c} TEXT PRIMARY KEY" if c == "id" else f"{c} {COLUMN_TYPES.get(c, 'TEXT')}"
        for c in COLUMNS
    )
    with engine.begin() as conn:
        conn.execute(text(f"CREATE TABLE placements ({columns})"))
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def store(context, session_factory):
    return PostgresPlacementStore(context, session_factory)


@pytest.fixture
def fake_llm():
    return FakeLLMClient()
