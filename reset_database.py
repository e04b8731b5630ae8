#!/usr/bin/env python3
"""
Database reset script for the Slot Engine.

This script drops every table and recreates the empty schema from the models.
Use this to get a clean local SQLite database for development; production
databases are managed with the Alembic migrations in backend/alembic.
"""

import os
import sys

# Add backend/src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'backend', 'src'))

from sqlalchemy import inspect

from core.config import DATABASE_URL
from core.database import create_tables, drop_tables, engine

EXPECTED_TABLES = [
    'facilities', 'doctors', 'service_offerings', 'availability_rules',
    'availability_exceptions', 'availability_slots', 'appointments',
]


def reset_database() -> bool:
    """Drop and recreate all tables. Refuses to touch non-SQLite databases."""

    print("🔄 Resetting Slot Engine database...")
    print(f"Database URL: {DATABASE_URL}")

    # Confirm action (in case someone runs this against a real database)
    if not str(DATABASE_URL).startswith("sqlite"):
        print("❌ ERROR: This script only works with SQLite databases!")
        return False

    drop_tables()
    create_tables()

    table_names = set(inspect(engine).get_table_names())
    missing = [table for table in EXPECTED_TABLES if table not in table_names]

    print("📋 Created tables:")
    for table in EXPECTED_TABLES:
        marker = "✅" if table in table_names else "❌"
        print(f"  {marker} {table}")

    if missing:
        print(f"❌ Missing tables: {', '.join(missing)}")
        return False

    print("🎉 Database reset completed successfully!")
    return True


if __name__ == "__main__":
    sys.exit(0 if reset_database() else 1)
