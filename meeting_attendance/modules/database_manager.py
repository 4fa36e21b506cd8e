"""
Database Manager Module - QR Meeting Attendance

This module handles all database operations for the attendance service.
It manages SQLite connections, creates the schema, and provides small helpers
for queries, updates and transactions used by the manager classes.

The schema carries the invariants the service relies on:
- member email is unique, case-insensitively
- meeting scan codes are unique
- one attendance record per (member, meeting) and per (device, meeting)
- deleting a member or a meeting deletes its attendance records
"""

import sqlite3
import logging
from contextlib import contextmanager
import threading
import os


class DatabaseManager:
    """
    SQLite access layer for members, meetings and attendance.
    Connections are kept per thread and reused.
    """

    def __init__(self, db_path):
        """
        Initialize the database manager with the specified database path.

        Args:
            db_path (str): Path to the SQLite database file
        """
        self.db_path = str(db_path)
        self.logger = logging.getLogger(__name__)
        self._local = threading.local()

        # Ensure database directory exists
        directory = os.path.dirname(self.db_path)
        if self.db_path != ':memory:' and directory:
            os.makedirs(directory, exist_ok=True)

        self.initialize_database()

    @contextmanager
    def get_connection(self):
        """
        Context manager for database connections.
        Provides thread-local connections for thread safety.

        Yields:
            sqlite3.Connection: Database connection object
        """
        if not hasattr(self._local, 'connection'):
            self._local.connection = sqlite3.connect(
                self.db_path,
                check_same_thread=False,
                timeout=30.0
            )
            self._local.connection.row_factory = sqlite3.Row
            # Cascades depend on foreign key enforcement
            self._local.connection.execute("PRAGMA foreign_keys = ON")

        try:
            yield self._local.connection
        except Exception:
            self._local.connection.rollback()
            raise

    def initialize_database(self):
        """
        Create all tables and indexes. Idempotent.
        """
        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()

                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS members (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        name VARCHAR(100) NOT NULL,
                        email VARCHAR(255) NOT NULL UNIQUE COLLATE NOCASE,
                        password_hash VARCHAR(255) NOT NULL,
                        role VARCHAR(20) NOT NULL DEFAULT 'member'
                            CHECK (role IN ('admin', 'pr', 'member')),
                        active_token TEXT,
                        active_ip VARCHAR(64),
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    )
                """)

                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS meetings (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        title VARCHAR(200) NOT NULL,
                        type VARCHAR(10) NOT NULL CHECK (type IN ('offline', 'online')),
                        scan_code VARCHAR(6) NOT NULL UNIQUE,
                        start_time TEXT NOT NULL,
                        end_time TEXT NOT NULL,
                        is_active BOOLEAN NOT NULL DEFAULT 1,
                        created_by INTEGER,
                        latitude REAL,
                        longitude REAL,
                        allowed_radius REAL NOT NULL DEFAULT 500,
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        FOREIGN KEY (created_by) REFERENCES members(id) ON DELETE SET NULL
                    )
                """)

                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS attendance (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        member_id INTEGER NOT NULL,
                        meeting_id INTEGER NOT NULL,
                        location VARCHAR(255),
                        device_ip VARCHAR(64) NOT NULL,
                        member_latitude REAL,
                        member_longitude REAL,
                        timestamp TEXT NOT NULL,
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        FOREIGN KEY (member_id) REFERENCES members(id) ON DELETE CASCADE,
                        FOREIGN KEY (meeting_id) REFERENCES meetings(id) ON DELETE CASCADE,
                        UNIQUE(member_id, meeting_id),
                        UNIQUE(device_ip, meeting_id)
                    )
                """)

                cursor.execute("CREATE INDEX IF NOT EXISTS idx_attendance_meeting ON attendance(meeting_id)")
                cursor.execute("CREATE INDEX IF NOT EXISTS idx_attendance_member ON attendance(member_id)")
                cursor.execute("CREATE INDEX IF NOT EXISTS idx_meetings_code ON meetings(scan_code)")

                conn.commit()

                self.logger.info("Database initialized successfully")

        except Exception as e:
            self.logger.error(f"Failed to initialize database: {str(e)}")
            raise

    def execute_query(self, query, params=None, fetch_all=True):
        """
        Execute a SELECT query and return results.

        Args:
            query (str): SQL query string
            params (tuple): Query parameters
            fetch_all (bool): Whether to fetch all results or just one

        Returns:
            list or dict: Query results
        """
        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute(query, params or ())

                if fetch_all:
                    return [dict(row) for row in cursor.fetchall()]
                result = cursor.fetchone()
                return dict(result) if result else None

        except Exception as e:
            self.logger.error(f"Query execution failed: {str(e)}")
            raise

    def execute_update(self, query, params=None):
        """
        Execute an INSERT, UPDATE, or DELETE query.

        Args:
            query (str): SQL query string
            params (tuple): Query parameters

        Returns:
            int: Last inserted row ID for INSERT, otherwise the number of affected rows
        """
        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute(query, params or ())
                conn.commit()

                if query.strip().upper().startswith('INSERT'):
                    return cursor.lastrowid
                return cursor.rowcount

        except sqlite3.IntegrityError as e:
            # Constraint violations are expected outcomes for callers to classify
            self.logger.info(f"Constraint violation: {str(e)}")
            raise
        except Exception as e:
            self.logger.error(f"Update execution failed: {str(e)}")
            raise

    @contextmanager
    def transaction(self):
        """
        Context manager for database transactions with automatic rollback on error.

        Yields:
            sqlite3.Connection: Database connection within transaction
        """
        with self.get_connection() as conn:
            try:
                yield conn
                conn.commit()
            except Exception as e:
                conn.rollback()
                self.logger.error(f"Transaction rolled back: {str(e)}")
                raise

    def close_all_connections(self):
        """Close the current thread's connection."""
        try:
            if hasattr(self._local, 'connection'):
                self._local.connection.close()
                del self._local.connection
        except Exception as e:
            self.logger.error(f"Error closing connections: {str(e)}")

    def __del__(self):
        """Cleanup when object is destroyed."""
        self.close_all_connections()
