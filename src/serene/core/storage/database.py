"""SQLite database management for the wellness record store.

Handles connection lifecycle, schema creation, and migrations.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

# Current schema version
SCHEMA_VERSION = 2

# ---------------------------------------------------------------------------
# Schema DDL
# ---------------------------------------------------------------------------

_SCHEMA_V1 = """
CREATE TABLE IF NOT EXISTS breathing_patterns (
    id               TEXT PRIMARY KEY,
    name             TEXT NOT NULL UNIQUE,
    inhale           INTEGER NOT NULL,
    hold             INTEGER,
    exhale           INTEGER NOT NULL,
    post_exhale_hold INTEGER,
    cycles           INTEGER NOT NULL,
    created_at       TEXT NOT NULL,
    updated_at       TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS breathing_sessions (
    id                  TEXT PRIMARY KEY,
    user_id             TEXT NOT NULL,
    pattern_name        TEXT NOT NULL,
    start_time          TEXT NOT NULL,
    end_time            TEXT,
    target_cycles       INTEGER NOT NULL,
    completed_cycles    INTEGER NOT NULL DEFAULT 0,
    stress_level_before INTEGER,
    stress_level_after  INTEGER,
    status              TEXT NOT NULL,
    created_at          TEXT NOT NULL,
    updated_at          TEXT NOT NULL,
    CHECK (completed_cycles >= 0 AND completed_cycles <= target_cycles)
);

-- content is encrypted at rest
CREATE TABLE IF NOT EXISTS chat_messages (
    id          TEXT PRIMARY KEY,
    session_id  TEXT NOT NULL,
    sender_id   TEXT NOT NULL,
    content_enc TEXT NOT NULL,
    type        TEXT NOT NULL DEFAULT 'text',
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);

-- pair_key is the canonical unordered {requester, recipient} pair
CREATE TABLE IF NOT EXISTS friend_requests (
    id           TEXT PRIMARY KEY,
    requester_id TEXT NOT NULL,
    recipient_id TEXT NOT NULL,
    pair_key     TEXT NOT NULL,
    status       TEXT NOT NULL DEFAULT 'pending',
    created_at   TEXT NOT NULL,
    updated_at   TEXT NOT NULL,
    CHECK (requester_id <> recipient_id)
);

-- triggers/symptoms/notes are encrypted at rest
CREATE TABLE IF NOT EXISTS stress_logs (
    id           TEXT PRIMARY KEY,
    user_id      TEXT NOT NULL,
    level        INTEGER NOT NULL CHECK (level BETWEEN 1 AND 10),
    date         TEXT NOT NULL,
    triggers_enc TEXT,
    symptoms_enc TEXT,
    notes_enc    TEXT,
    created_at   TEXT NOT NULL,
    updated_at   TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- At most one non-rejected request per unordered pair, enforced with the insert
CREATE UNIQUE INDEX IF NOT EXISTS uq_friend_requests_active_pair
    ON friend_requests(pair_key) WHERE status <> 'rejected';

CREATE INDEX IF NOT EXISTS idx_sessions_user       ON breathing_sessions(user_id);
CREATE INDEX IF NOT EXISTS idx_sessions_start      ON breathing_sessions(start_time);
CREATE INDEX IF NOT EXISTS idx_messages_session    ON chat_messages(session_id);
CREATE INDEX IF NOT EXISTS idx_stress_logs_user    ON stress_logs(user_id);
CREATE INDEX IF NOT EXISTS idx_stress_logs_date    ON stress_logs(date);
"""

# ---------------------------------------------------------------------------
# V2: Audit trail (record creation, status transitions, constraint failures)
# ---------------------------------------------------------------------------

_SCHEMA_V2 = """
CREATE TABLE IF NOT EXISTS audit_log (
    id           TEXT PRIMARY KEY,
    timestamp    TEXT NOT NULL DEFAULT (datetime('now')),
    action       TEXT NOT NULL,
    entity_type  TEXT NOT NULL,
    entity_id    TEXT,
    payload_hash TEXT,
    from_status  TEXT,
    to_status    TEXT,
    status       TEXT NOT NULL DEFAULT 'success',
    error_type   TEXT,
    metadata_json TEXT
);

CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log(timestamp);
CREATE INDEX IF NOT EXISTS idx_audit_action    ON audit_log(action);
CREATE INDEX IF NOT EXISTS idx_audit_entity    ON audit_log(entity_type, entity_id);
"""


class DatabaseError(Exception):
    """Raised when database operations fail."""


class WellnessDatabase:
    """SQLite database manager for the wellness record store.

    Supports both file-based and in-memory (`:memory:`) databases.
    In-memory mode is used for testing.

    Usage::

        db = WellnessDatabase(":memory:")
        db.initialize()
        conn = db.connection
        # ... use connection ...
        db.close()
    """

    def __init__(self, db_path: str = ":memory:") -> None:
        """Initialize database manager.

        Args:
            db_path: Path to SQLite file, or ":memory:" for in-memory DB.
        """
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    @property
    def connection(self) -> sqlite3.Connection:
        """Get the active database connection.

        Raises:
            DatabaseError: If the database has not been initialized.
        """
        if self._conn is None:
            raise DatabaseError("Database not initialized. Call initialize() first.")
        return self._conn

    def initialize(self) -> None:
        """Create the database connection and ensure schema exists.

        For file-based databases, creates parent directories if needed.
        Idempotent: safe to call multiple times.
        """
        if self._conn is not None:
            return

        if self._db_path != ":memory:":
            db_file = Path(self._db_path).expanduser()
            db_file.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(db_file))
        else:
            self._conn = sqlite3.connect(":memory:")

        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")

        self._ensure_schema()
        logger.info("Wellness database initialized: %s", self._db_path)

    def _ensure_schema(self) -> None:
        """Create tables if they don't exist and apply migrations."""
        conn = self.connection

        # V1: record tables (CREATE IF NOT EXISTS is idempotent)
        conn.executescript(_SCHEMA_V1)

        current_version = self.get_schema_version()

        if current_version < 2:
            conn.executescript(_SCHEMA_V2)
            logger.info("Applied schema migration V2: audit_log table")

        if current_version < SCHEMA_VERSION:
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
            conn.commit()
            logger.info(
                "Schema updated from version %d to %d", current_version, SCHEMA_VERSION
            )

    def get_schema_version(self) -> int:
        """Return the current schema version."""
        cursor = self.connection.execute("SELECT MAX(version) FROM schema_version")
        row = cursor.fetchone()
        return row[0] if row[0] is not None else 0

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.info("Wellness database closed")

    def __enter__(self) -> WellnessDatabase:
        self.initialize()
        return self

    def __exit__(self, *args) -> None:
        self.close()
