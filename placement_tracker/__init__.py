"""
Placement Tracker
Keeps a student's campus placement applications in one place.

Architecture:
- PostgreSQL: placements table, one row per application
- LLM: turns pasted recruiter emails into candidates (never saved unverified)
- Services: reconciler, merger, query engine and CSV export over the records
"""

__version__ = "1.0.0"
