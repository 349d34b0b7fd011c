#!/usr/bin/env python3
"""
Database initialization script for the Family Calendar Assistant
Creates the events and conversation_messages tables.

Uses PostgreSQL when DATABASE_URL is set (and USE_SQLITE is not),
otherwise the SQLite file configured in config/settings.json.
"""

import os
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.core.config import Config
from src.core.database import PostgreSQLDatabase, SQLiteDatabase


def init_database(force: bool = False) -> bool:
    """Initialize the database with the calendar schema"""
    use_sqlite = os.environ.get('USE_SQLITE', '').lower() in ('1', 'true', 'yes')
    database_url = os.environ.get('DATABASE_URL')

    if database_url and not use_sqlite:
        print("Creating schema in PostgreSQL database from DATABASE_URL...")
        db = PostgreSQLDatabase(database_url)
        db.init_schema()
        print("✓ Database schema created successfully!")
        return True

    db_path = Config().get_database_path()

    # Check if database already exists
    if db_path.exists() and not force:
        response = input(f"Database already exists at {db_path}. Overwrite? (yes/no): ")
        if response.lower() != 'yes':
            print("Aborting database initialization.")
            return False
    if db_path.exists():
        db_path.unlink()

    print(f"Creating database at {db_path}...")
    db = SQLiteDatabase(db_path, create=True)

    print("✓ Database schema created successfully!")
    print(f"✓ Database location: {db_path}")
    print(f"\n✓ Tables created: {', '.join(db.get_table_names())}")
    return True


if __name__ == "__main__":
    print("=" * 60)
    print("Family Calendar Assistant - Database Initialization")
    print("=" * 60)
    print()

    if init_database(force="--force" in sys.argv):
        print("\n" + "=" * 60)
        print("Database initialization complete!")
        print("=" * 60)
        sys.exit(0)
    else:
        print("\n" + "=" * 60)
        print("Database initialization failed!")
        print("=" * 60)
        sys.exit(1)
