"""
Extraction Service - recruiter email text -> CandidatePartial.

PURPOSE:
AI is used ONLY to turn a pasted email into a candidate record.
The candidate is never persisted directly: the user verifies it and the
merger folds it into a canonical record.

Two prompts:
1. New placement email (everything about the drive)
2. Follow-up email for a known company (new rounds, results, status)
"""

import logging
from typing import Optional, Union

from pydantic import ValidationError as PydanticValidationError

from placement_tracker.core.errors import ExtractionFailure
from placement_tracker.schemas.schemas import (
    INTERVIEW_SLOTS,
    TEST_SLOTS,
    ApplicationStatus,
    CandidatePartial,
)
from placement_tracker.services.llm_client import LLMClient, extract_json, get_llm_client

logger = logging.getLogger(__name__)

ORDINALS = ["First", "Second", "Third", "Fourth", "Fifth"]
STATUS_CHOICES = ", ".join(s.value for s in ApplicationStatus)


# ============================================================
# PROMPTS
# ============================================================

def _round_fields(with_results: bool) -> str:
    lines = []
    for n in range(1, TEST_SLOTS + 1):
        lines += [
            f'  "test_{n}": "{ORDINALS[n - 1]} test/round description or empty string",',
            f'  "test_{n}_date": "YYYY-MM-DD or empty string",',
            f'  "test_{n}_time": "HH:MM (24-hour) or empty string",',
        ]
        if with_results:
            lines.append(f'  "result_{n}": "pending, Passed, Failed, Waitlisted or empty string",')
    for n in range(1, INTERVIEW_SLOTS + 1):
        lines += [
            f'  "interview_{n}": "{ORDINALS[n - 1]} interview type (Technical, HR, Managerial) or empty string",',
            f'  "interview_{n}_date": "YYYY-MM-DD or empty string",',
            f'  "interview_{n}_time": "HH:MM (24-hour) or empty string",',
        ]
        if with_results:
            lines.append(
                f'  "interview_result_{n}": "pending, Selected, Rejected, Waitlisted or empty string",'
            )
    return "\n".join(lines)


RULES = """Rules:
- Dates: convert any format (DD/MM/YYYY, MM/DD/YYYY, "5th July") to YYYY-MM-DD
- Times: convert to 24-hour HH:MM
- Tests: look for "test", "round", "assessment", "exam", "coding", "aptitude"
- Interviews: look for "interview", "technical round", "HR round", "final round", "managerial"
- Only fill a field when the email clearly states it
- Use empty strings for missing information (NOT "Not specified")
Return ONLY the JSON, no explanation."""


NEW_PLACEMENT_PROMPT = f"""You extract placement drive details from recruiter emails. Return ONLY valid JSON.
Output format:
{{
  "company_name": "Company name",
  "role": "Job role/position",
  "ctc": "CTC in LPA as a number, or empty string",
  "location": "Job location",
  "eligibility": "Eligibility criteria text",
  "registration_deadline": "YYYY-MM-DD or empty string",
  "registration_deadline_time": "HH:MM, 23:59 if a deadline date has no time",
  "registration_link": "Registration URL",
{_round_fields(with_results=False)}
  "status": "Applied"
}}
{RULES}"""


FOLLOW_UP_PROMPT = """You extract follow-up details for an existing placement at {company}. Return ONLY valid JSON.
Only extract NEW information this email adds.
Output format:
{{
  "company_name": "{company}",
{rounds}
  "status": "One of: {statuses}, or empty string if unchanged"
}}
- Results: look for "passed", "failed", "selected", "rejected", "waitlisted", "qualified", "shortlisted"
{rules}"""


def build_prompt(hint: Optional[str] = None) -> str:
    if not hint:
        return NEW_PLACEMENT_PROMPT
    return FOLLOW_UP_PROMPT.format(
        company=hint,
        rounds=_round_fields(with_results=True),
        statuses=STATUS_CHOICES,
        rules=RULES,
    )


# ============================================================
# CANDIDATE PARSING
# ============================================================

def parse_candidate(payload: Union[str, dict]) -> CandidatePartial:
    """
    Turn extractor output into a CandidatePartial.
    Raises ExtractionFailure if no structured payload can be recovered.
    """
    raw = payload if isinstance(payload, str) else None
    if isinstance(payload, str):
        payload = extract_json(payload)
    try:
        return CandidatePartial.model_validate(payload)
    except PydanticValidationError as e:
        raise ExtractionFailure(f"Extracted data has the wrong shape: {e}", raw_response=raw) from e


class ExtractionService:
    """
    Extractor collaborator:
    extract(email_text, hint) -> CandidatePartial, or raises ExtractionFailure.
    """

    def __init__(self, client: Optional[LLMClient] = None):
        self.client = client or get_llm_client()

    def extract(self, email_text: str, hint: Optional[str] = None) -> CandidatePartial:
        """
        Args:
            email_text: The pasted email, any format
            hint: Company name of the placement a follow-up email belongs to
        """
        if not email_text or not email_text.strip():
            raise ExtractionFailure("Please paste the email content first")

        response = self.client.complete(build_prompt(hint), email_text)
        candidate = parse_candidate(response)
        logger.info(
            "Extracted candidate for %s (%s)",
            candidate.company_name or hint or "unknown company",
            "follow-up" if hint else "new placement"
        )
        return candidate


def get_extraction_service() -> ExtractionService:
    return ExtractionService()
