"""
Schemas module - records, extraction candidates and the API contract.

- Records: ApplicationRecord and its round slots (what is persisted)
- Candidates: CandidatePartial (what the extractor returns)
- Requests/Responses: what the API accepts and returns
"""
