"""
Database utilities and connection management
Supports both SQLite (local development) and PostgreSQL (production)

Usage:
    # SQLite (default for local dev, uses USE_SQLITE=1 env var)
    db = get_database()

    # PostgreSQL (production, uses DATABASE_URL env var)
    db = get_database()  # Automatically uses PostgreSQL if DATABASE_URL is set
"""

import os
import re
import sqlite3
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Dict, Any, Optional, Tuple, Union
from contextlib import contextmanager

# psycopg2 is an optional extra, only needed for PostgreSQL deployments
try:
    import psycopg2
    import psycopg2.extras
    POSTGRES_AVAILABLE = True
except ImportError:
    POSTGRES_AVAILABLE = False

# Connection-level failures surfaced to callers as an unavailable upstream
if POSTGRES_AVAILABLE:
    OPERATIONAL_ERRORS = (sqlite3.OperationalError, psycopg2.OperationalError)
else:
    OPERATIONAL_ERRORS = (sqlite3.OperationalError,)


# Schema shared by scripts/init_db.py and the test fixtures.
# Timestamps are stored as ISO-8601 text so lexical order matches time order.
SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS events (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT,
        family_id TEXT,
        title TEXT NOT NULL,
        description TEXT,
        location TEXT,
        start_time TEXT NOT NULL,
        end_time TEXT NOT NULL,
        is_recurring BOOLEAN DEFAULT 0,
        recurrence_pattern TEXT,
        source TEXT DEFAULT 'manual' CHECK(source IN ('chat', 'email', 'manual')),
        created_at TEXT DEFAULT (strftime('%Y-%m-%dT%H:%M:%f', 'now')),
        updated_at TEXT DEFAULT (strftime('%Y-%m-%dT%H:%M:%f', 'now'))
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_events_user ON events(user_id, start_time);",
    "CREATE INDEX IF NOT EXISTS idx_events_family ON events(family_id, start_time);",
    "CREATE INDEX IF NOT EXISTS idx_events_title ON events(title COLLATE NOCASE);",
    """
    CREATE TABLE IF NOT EXISTS conversation_messages (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        conversation_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        role TEXT NOT NULL CHECK(role IN ('user', 'assistant')),
        content TEXT NOT NULL,
        created_at TEXT DEFAULT (strftime('%Y-%m-%dT%H:%M:%f', 'now'))
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_conversation_user ON conversation_messages(user_id, id);",
]

POSTGRES_SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS events (
        id SERIAL PRIMARY KEY,
        user_id TEXT,
        family_id TEXT,
        title TEXT NOT NULL,
        description TEXT,
        location TEXT,
        start_time TEXT NOT NULL,
        end_time TEXT NOT NULL,
        is_recurring BOOLEAN DEFAULT false,
        recurrence_pattern TEXT,
        source TEXT DEFAULT 'manual' CHECK(source IN ('chat', 'email', 'manual')),
        created_at TEXT DEFAULT to_char(now(), 'YYYY-MM-DD"T"HH24:MI:SS.MS'),
        updated_at TEXT DEFAULT to_char(now(), 'YYYY-MM-DD"T"HH24:MI:SS.MS')
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_events_user ON events(user_id, start_time);",
    "CREATE INDEX IF NOT EXISTS idx_events_family ON events(family_id, start_time);",
    "CREATE INDEX IF NOT EXISTS idx_events_title ON events(lower(title));",
    """
    CREATE TABLE IF NOT EXISTS conversation_messages (
        id SERIAL PRIMARY KEY,
        conversation_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        role TEXT NOT NULL CHECK(role IN ('user', 'assistant')),
        content TEXT NOT NULL,
        created_at TEXT DEFAULT to_char(now(), 'YYYY-MM-DD"T"HH24:MI:SS.MS')
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_conversation_user ON conversation_messages(user_id, id);",
]


class DatabaseBase(ABC):
    """Abstract base class for database operations"""

    @abstractmethod
    def get_connection(self):
        """Get a database connection"""
        pass

    @abstractmethod
    def execute(self, query: str, params: Tuple = ()) -> List[Dict[str, Any]]:
        """Execute a SELECT query and return results as list of dicts"""
        pass

    @abstractmethod
    def execute_one(self, query: str, params: Tuple = ()) -> Optional[Dict[str, Any]]:
        """Execute a SELECT query and return single result"""
        pass

    @abstractmethod
    def execute_write(self, query: str, params: Tuple = ()) -> int:
        """Execute an INSERT, UPDATE, or DELETE query"""
        pass

    @abstractmethod
    def init_schema(self) -> None:
        """Create the events and conversation tables if missing"""
        pass

    def row_to_dict(self, row: Any) -> Optional[Dict[str, Any]]:
        """Convert row to dictionary"""
        if row is None:
            return None
        if isinstance(row, dict):
            return row
        return dict(row)

    def rows_to_dicts(self, rows: List[Any]) -> List[Dict[str, Any]]:
        """Convert list of rows to list of dictionaries"""
        return [self.row_to_dict(row) for row in rows if row is not None]


class SQLiteDatabase(DatabaseBase):
    """SQLite database implementation for local development"""

    def __init__(self, db_path: Optional[Path] = None, create: bool = False):
        if db_path is None:
            db_path = Path(__file__).parent.parent.parent / "data" / "database" / "calendar.db"

        self.db_path = Path(db_path)

        if create:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self.init_schema()
        elif not self.db_path.exists():
            raise FileNotFoundError(
                f"Database not found at {self.db_path}. "
                "Run 'python scripts/init_db.py' to create it."
            )

    @contextmanager
    def get_connection(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        try:
            yield conn
        finally:
            conn.close()

    def execute(self, query: str, params: Tuple = ()) -> List[Dict[str, Any]]:
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            rows = cursor.fetchall()
            return [dict(row) for row in rows]

    def execute_one(self, query: str, params: Tuple = ()) -> Optional[Dict[str, Any]]:
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            row = cursor.fetchone()
            return dict(row) if row else None

    def execute_write(self, query: str, params: Tuple = ()) -> int:
        is_insert = query.strip().upper().startswith('INSERT')
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            conn.commit()
            if is_insert:
                return cursor.lastrowid or 0
            return cursor.rowcount

    def init_schema(self) -> None:
        with self.get_connection() as conn:
            for statement in SCHEMA_STATEMENTS:
                conn.execute(statement)
            conn.commit()

    def table_exists(self, table_name: str) -> bool:
        query = "SELECT name FROM sqlite_master WHERE type='table' AND name=?;"
        result = self.execute_one(query, (table_name,))
        return result is not None

    def get_table_names(self) -> List[str]:
        query = "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name;"
        rows = self.execute(query)
        return [row['name'] for row in rows]

    def count(self, table_name: str, where_clause: str = "", params: Tuple = ()) -> int:
        query = f"SELECT COUNT(*) as count FROM {table_name}"
        if where_clause:
            query += f" WHERE {where_clause}"
        result = self.execute_one(query, params)
        return result['count'] if result else 0

    @contextmanager
    def transaction(self):
        with self.get_connection() as conn:
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise


class PostgreSQLDatabase(DatabaseBase):
    """PostgreSQL database implementation for production"""

    BOOLEAN_COLUMNS = ['is_recurring']

    def __init__(self, database_url: str):
        if not POSTGRES_AVAILABLE:
            raise ImportError(
                "psycopg2 not installed. Run: pip install 'family-calendar-assistant[postgres]'"
            )
        self.database_url = database_url
        self.db_path = database_url  # Reported by the health check

    @contextmanager
    def get_connection(self):
        conn = psycopg2.connect(self.database_url)
        try:
            yield conn
        finally:
            conn.close()

    def _convert_query(self, query: str) -> str:
        """Convert SQLite-style ? placeholders to PostgreSQL %s"""
        query = query.replace('?', '%s')

        # Boolean comparisons: column = 0/1 -> column = false/true
        for col in self.BOOLEAN_COLUMNS:
            query = re.sub(rf'\b{col}\s*=\s*0\b', f'{col} = false', query)
            query = re.sub(rf'\b{col}\s*=\s*1\b', f'{col} = true', query)

        return query

    def execute(self, query: str, params: Tuple = ()) -> List[Dict[str, Any]]:
        query = self._convert_query(query)

        with self.get_connection() as conn:
            with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cursor:
                cursor.execute(query, params)
                rows = cursor.fetchall()
                return [dict(row) for row in rows]

    def execute_one(self, query: str, params: Tuple = ()) -> Optional[Dict[str, Any]]:
        query = self._convert_query(query)

        with self.get_connection() as conn:
            with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cursor:
                cursor.execute(query, params)
                row = cursor.fetchone()
                return dict(row) if row else None

    def execute_write(self, query: str, params: Tuple = ()) -> int:
        query = self._convert_query(query)

        # Add RETURNING id for INSERT statements to get the inserted ID
        is_insert = query.strip().upper().startswith('INSERT')
        if is_insert and 'RETURNING' not in query.upper():
            query = query.rstrip().rstrip(';') + ' RETURNING id'

        with self.get_connection() as conn:
            with conn.cursor() as cursor:
                cursor.execute(query, params)
                conn.commit()
                if is_insert:
                    result = cursor.fetchone()
                    return result[0] if result else 0
                return cursor.rowcount

    def init_schema(self) -> None:
        with self.get_connection() as conn:
            with conn.cursor() as cursor:
                for statement in POSTGRES_SCHEMA_STATEMENTS:
                    cursor.execute(statement)
            conn.commit()

    def table_exists(self, table_name: str) -> bool:
        query = """
            SELECT table_name FROM information_schema.tables
            WHERE table_schema = 'public' AND table_name = ?;
        """
        result = self.execute_one(query, (table_name,))
        return result is not None

    @contextmanager
    def transaction(self):
        with self.get_connection() as conn:
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise


Database = Union[SQLiteDatabase, PostgreSQLDatabase]


def get_database(db_path: Optional[Path] = None) -> Database:
    """
    Factory function to get the appropriate database instance.

    Uses PostgreSQL if DATABASE_URL is set, otherwise falls back to SQLite.
    Set USE_SQLITE=1 to force SQLite even if DATABASE_URL is set.
    """
    use_sqlite = os.environ.get('USE_SQLITE', '').lower() in ('1', 'true', 'yes')
    database_url = os.environ.get('DATABASE_URL')

    if database_url and not use_sqlite:
        return PostgreSQLDatabase(database_url)
    else:
        return SQLiteDatabase(db_path)
