#!/usr/bin/env python3
"""
Connection Check Script

Run this to verify the database and the extraction model are reachable.
Usage: python scripts/check_connections.py
"""
from placement_tracker.core.config import get_settings
from placement_tracker.db.postgres import check_postgres_connection, masked_postgres_url
from placement_tracker.services.llm_client import get_llm_client


def main():
    settings = get_settings()
    print("=" * 50)
    print("PLACEMENT TRACKER - CONNECTION CHECK")
    print("=" * 50)

    print("\n[1] Checking PostgreSQL...")
    print(f"    URL: {masked_postgres_url(settings)}")
    if check_postgres_connection():
        print("    ✅ PostgreSQL: CONNECTED")
    else:
        print("    ❌ PostgreSQL: FAILED")

    print("\n[2] Checking extraction model...")
    if settings.llm_api_key:
        print(f"    Base URL: {settings.llm_base_url}")
        print(f"    Model: {settings.llm_model}")
        if get_llm_client().check_connection():
            print("    ✅ LLM: CONNECTED")
        else:
            print("    ❌ LLM: FAILED")
    else:
        print("    ⚠️  LLM: API key not configured")

    print("\n" + "=" * 50)
    print("Connection check complete!")
    print("=" * 50)


if __name__ == "__main__":
    main()
