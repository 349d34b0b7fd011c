"""
Unit tests for the database module.
Tests SQLiteDatabase connection management, query operations, schema
creation and backend selection.
"""

import pytest
import sqlite3
from pathlib import Path
from unittest.mock import patch

import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent.parent))

from src.core.database import SQLiteDatabase, get_database


class TestDatabaseInit:
    """Tests for SQLiteDatabase initialization."""

    def test_init_with_valid_path(self, tmp_path):
        """Database initializes with a valid path to existing db file."""
        db_file = tmp_path / "test.db"
        conn = sqlite3.connect(db_file)
        conn.close()

        db = SQLiteDatabase(db_file)
        assert db.db_path == db_file

    def test_init_raises_if_file_not_found(self, tmp_path):
        """Database raises FileNotFoundError if db file doesn't exist."""
        db_file = tmp_path / "nonexistent.db"

        with pytest.raises(FileNotFoundError) as exc_info:
            SQLiteDatabase(db_file)

        assert "Database not found" in str(exc_info.value)
        assert "init_db.py" in str(exc_info.value)

    def test_create_builds_schema(self, tmp_path):
        """create=True makes parent directories and both tables."""
        db_file = tmp_path / "nested" / "calendar.db"

        db = SQLiteDatabase(db_file, create=True)

        assert db_file.exists()
        assert db.table_exists("events")
        assert db.table_exists("conversation_messages")

    def test_init_schema_is_idempotent(self, tmp_path):
        """Running init_schema twice keeps existing rows."""
        db = SQLiteDatabase(tmp_path / "calendar.db", create=True)
        db.execute_write(
            "INSERT INTO events (user_id, title, start_time, end_time) VALUES (?, ?, ?, ?)",
            ("u1", "Dentist", "2025-03-21T09:00:00", "2025-03-21T10:00:00"),
        )

        db.init_schema()

        assert db.count("events") == 1


class TestConnectionManagement:
    """Tests for database connection context manager."""

    @pytest.fixture
    def temp_db(self, tmp_path):
        """Create a temporary database with a test table."""
        db_file = tmp_path / "test.db"
        conn = sqlite3.connect(db_file)
        cursor = conn.cursor()
        cursor.execute("""
            CREATE TABLE test_table (
                id INTEGER PRIMARY KEY,
                name TEXT NOT NULL,
                value INTEGER
            )
        """)
        conn.commit()
        conn.close()
        return SQLiteDatabase(db_file)

    def test_get_connection_returns_valid_connection(self, temp_db):
        """get_connection() returns a valid sqlite3 connection."""
        with temp_db.get_connection() as conn:
            assert isinstance(conn, sqlite3.Connection)
            cursor = conn.cursor()
            cursor.execute("SELECT 1")
            result = cursor.fetchone()
            assert result[0] == 1

    def test_get_connection_enables_row_factory(self, temp_db):
        """get_connection() enables column access by name."""
        with temp_db.get_connection() as conn:
            assert conn.row_factory == sqlite3.Row

    def test_transaction_rolls_back_on_error(self, temp_db):
        """transaction() rolls back when the block raises."""
        with pytest.raises(RuntimeError):
            with temp_db.transaction() as conn:
                conn.execute("INSERT INTO test_table (name, value) VALUES ('a', 1)")
                raise RuntimeError("boom")

        assert temp_db.count("test_table") == 0


class TestQueries:
    """Tests for execute, execute_one and execute_write."""

    @pytest.fixture
    def db(self, tmp_path):
        return SQLiteDatabase(tmp_path / "calendar.db", create=True)

    def test_execute_write_insert_returns_row_id(self, db):
        """INSERT returns the new row id."""
        first = db.execute_write(
            "INSERT INTO events (user_id, title, start_time, end_time) VALUES (?, ?, ?, ?)",
            ("u1", "Soccer", "2025-03-21T16:00:00", "2025-03-21T17:00:00"),
        )
        second = db.execute_write(
            "INSERT INTO events (user_id, title, start_time, end_time) VALUES (?, ?, ?, ?)",
            ("u1", "Piano", "2025-03-22T16:00:00", "2025-03-22T17:00:00"),
        )

        assert first == 1
        assert second == 2

    def test_execute_write_update_returns_rowcount(self, db):
        """UPDATE returns the number of affected rows."""
        db.execute_write(
            "INSERT INTO events (user_id, title, start_time, end_time) VALUES (?, ?, ?, ?)",
            ("u1", "Soccer", "2025-03-21T16:00:00", "2025-03-21T17:00:00"),
        )

        assert db.execute_write("UPDATE events SET title = ? WHERE id = ?", ("Football", 1)) == 1
        assert db.execute_write("UPDATE events SET title = ? WHERE id = ?", ("Football", 99)) == 0

    def test_execute_returns_dicts(self, db):
        """execute() returns a list of plain dicts."""
        db.execute_write(
            "INSERT INTO events (user_id, title, start_time, end_time) VALUES (?, ?, ?, ?)",
            ("u1", "Soccer", "2025-03-21T16:00:00", "2025-03-21T17:00:00"),
        )

        rows = db.execute("SELECT id, title, source FROM events")

        assert rows == [{"id": 1, "title": "Soccer", "source": "manual"}]

    def test_execute_one_returns_none_when_empty(self, db):
        assert db.execute_one("SELECT * FROM events WHERE id = ?", (1,)) is None

    def test_source_check_constraint(self, db):
        """Only chat, email and manual are valid event sources."""
        with pytest.raises(sqlite3.IntegrityError):
            db.execute_write(
                "INSERT INTO events (user_id, title, start_time, end_time, source) "
                "VALUES (?, ?, ?, ?, ?)",
                ("u1", "Soccer", "2025-03-21T16:00:00", "2025-03-21T17:00:00", "fax"),
            )


class TestGetDatabase:
    """Tests for backend selection."""

    def test_defaults_to_sqlite(self, tmp_path):
        db_file = tmp_path / "calendar.db"
        SQLiteDatabase(db_file, create=True)

        with patch.dict("os.environ", {"DATABASE_URL": "", "USE_SQLITE": ""}):
            db = get_database(db_file)

        assert isinstance(db, SQLiteDatabase)
        assert db.db_path == db_file

    def test_use_sqlite_overrides_database_url(self, tmp_path):
        db_file = tmp_path / "calendar.db"
        SQLiteDatabase(db_file, create=True)

        with patch.dict("os.environ", {"DATABASE_URL": "postgres://x", "USE_SQLITE": "1"}):
            db = get_database(db_file)

        assert isinstance(db, SQLiteDatabase)
