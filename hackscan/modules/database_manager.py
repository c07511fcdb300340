"""
Database Manager Module - HackScan Attendance Tracker

This module handles all database operations for the attendance tracker.
It provides the SQLite connection handling, schema creation and the small set
of query helpers every other manager builds on. Write transactions take the
database write lock up front so concurrent scanners serialize on it instead
of failing halfway through a check-then-write.

Features:
- Thread-local SQLite connections
- Idempotent schema creation
- Query, update and batch helpers
- Write transactions with automatic rollback
- Seeding of the global scan mode row
"""

import sqlite3
import logging
from contextlib import contextmanager
import threading
import os


class DatabaseManager:
    """
    Database management class for the attendance tracker.
    Owns the SQLite connections and the schema that the entity store,
    roster managers and report generator query.
    """

    def __init__(self, db_path, journal_mode='WAL', timeout=30.0):
        """
        Initialize the database manager with the specified database path.

        Args:
            db_path (str): Path to the SQLite database file
            journal_mode (str): SQLite journal mode for file databases
            timeout (float): Seconds to wait on a locked database
        """
        self.db_path = str(db_path)
        self.journal_mode = journal_mode
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)
        self._local = threading.local()

        directory = os.path.dirname(self.db_path)
        if directory:
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
            connection = sqlite3.connect(
                self.db_path,
                check_same_thread=False,
                timeout=self.timeout
            )
            connection.row_factory = sqlite3.Row
            connection.execute("PRAGMA foreign_keys = ON")
            if self.db_path != ':memory:' and self.journal_mode:
                connection.execute(f"PRAGMA journal_mode = {self.journal_mode}")
            self._local.connection = connection

        try:
            yield self._local.connection
        except sqlite3.IntegrityError:
            # Constraint violations are interpreted by the caller
            self._local.connection.rollback()
            raise
        except sqlite3.Error as e:
            self._local.connection.rollback()
            self.logger.error(f"Database operation failed: {str(e)}")
            raise

    def initialize_database(self):
        """
        Create all necessary tables for the attendance tracker.
        This method is idempotent and can be called multiple times safely.
        """
        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()

                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS teams (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        name VARCHAR(100) UNIQUE NOT NULL,
                        description TEXT,
                        created_by VARCHAR(100),
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    )
                """)

                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS labs (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        name VARCHAR(100) UNIQUE NOT NULL,
                        description TEXT,
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    )
                """)

                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS participants (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        name VARCHAR(100) NOT NULL,
                        email VARCHAR(100) NOT NULL,
                        team_id INTEGER NOT NULL,
                        lab_id INTEGER NOT NULL,
                        is_checked_in BOOLEAN NOT NULL DEFAULT 0,
                        last_check_in TIMESTAMP,
                        qr_code_hash VARCHAR(64) UNIQUE NOT NULL,
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        FOREIGN KEY (team_id) REFERENCES teams(id),
                        FOREIGN KEY (lab_id) REFERENCES labs(id)
                    )
                """)

                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS volunteers (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        first_name VARCHAR(50) NOT NULL,
                        last_name VARCHAR(50),
                        email VARCHAR(100) UNIQUE NOT NULL,
                        organization VARCHAR(100),
                        is_checked_in BOOLEAN NOT NULL DEFAULT 0,
                        last_check_in TIMESTAMP,
                        qr_code_hash VARCHAR(64) UNIQUE,
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    )
                """)

                # Append-only audit trail of attendance transitions
                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS scan_logs (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        participant_id INTEGER,
                        volunteer_id INTEGER,
                        subject_type VARCHAR(20) NOT NULL,
                        scanned_by VARCHAR(100) NOT NULL,
                        scan_type VARCHAR(20) NOT NULL,
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        FOREIGN KEY (participant_id) REFERENCES participants(id) ON DELETE CASCADE,
                        FOREIGN KEY (volunteer_id) REFERENCES volunteers(id) ON DELETE CASCADE
                    )
                """)

                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS meal_consumptions (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        participant_id INTEGER NOT NULL,
                        meal_type VARCHAR(20) NOT NULL,
                        consumed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        FOREIGN KEY (participant_id) REFERENCES participants(id) ON DELETE CASCADE,
                        UNIQUE(participant_id, meal_type)
                    )
                """)

                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS system_mode_config (
                        id VARCHAR(20) PRIMARY KEY DEFAULT 'global',
                        mode VARCHAR(20) NOT NULL DEFAULT 'ATTENDANCE',
                        selected_meal_type VARCHAR(20),
                        allowed_lab_ids TEXT NOT NULL DEFAULT '[]',
                        allowed_scanner_ids TEXT NOT NULL DEFAULT '[]',
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    )
                """)

                cursor.execute("CREATE INDEX IF NOT EXISTS idx_scan_logs_created ON scan_logs(created_at)")
                cursor.execute("CREATE INDEX IF NOT EXISTS idx_scan_logs_participant ON scan_logs(participant_id)")
                cursor.execute("CREATE INDEX IF NOT EXISTS idx_scan_logs_volunteer ON scan_logs(volunteer_id)")
                cursor.execute("CREATE INDEX IF NOT EXISTS idx_participants_lab ON participants(lab_id)")
                cursor.execute("CREATE INDEX IF NOT EXISTS idx_meal_consumptions_type ON meal_consumptions(meal_type)")

                self._insert_default_data(cursor)
                conn.commit()

                self.logger.info("Database initialized successfully")

        except sqlite3.Error as e:
            self.logger.error(f"Failed to initialize database: {str(e)}")
            raise

    def _insert_default_data(self, cursor):
        """
        Insert the global scan mode row if it is missing.

        Args:
            cursor: Database cursor object
        """
        cursor.execute("""
            INSERT OR IGNORE INTO system_mode_config (id, mode, allowed_lab_ids, allowed_scanner_ids)
            VALUES ('global', 'ATTENDANCE', '[]', '[]')
        """)

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
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params or ())

            if fetch_all:
                return [dict(row) for row in cursor.fetchall()]

            result = cursor.fetchone()
            return dict(result) if result else None

    def execute_update(self, query, params=None):
        """
        Execute an INSERT, UPDATE, or DELETE query in its own transaction.

        Args:
            query (str): SQL query string
            params (tuple): Query parameters

        Returns:
            int: Number of affected rows or last inserted row ID
        """
        with self.transaction() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params or ())

            if query.strip().upper().startswith('INSERT'):
                return cursor.lastrowid
            return cursor.rowcount

    @contextmanager
    def transaction(self):
        """
        Context manager for write transactions with automatic rollback on error.
        The write lock is taken when the transaction opens.

        Yields:
            sqlite3.Connection: Database connection within transaction
        """
        with self.get_connection() as conn:
            if not conn.in_transaction:
                conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    def check_health(self):
        """Run a trivial query against the database."""
        try:
            self.execute_query("SELECT 1 AS ok", fetch_all=False)
            return True, "Database connection healthy"
        except sqlite3.Error as e:
            return False, f"Database error: {str(e)}"

    def close_all_connections(self):
        """Close the calling thread's database connection."""
        if hasattr(self._local, 'connection'):
            try:
                self._local.connection.close()
            except sqlite3.Error as e:
                self.logger.error(f"Error closing connections: {str(e)}")
            del self._local.connection
