"""
Database module - PostgreSQL connection and the placements store.
"""
from placement_tracker.db.postgres import check_postgres_connection, get_db_session
from placement_tracker.db.placement_store import PlacementStore, PostgresPlacementStore

__all__ = [
    "get_db_session",
    "check_postgres_connection",
    "PlacementStore",
    "PostgresPlacementStore",
]
