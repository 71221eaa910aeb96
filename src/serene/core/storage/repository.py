"""Wellness record repository — SQLite implementation of ``RecordStore``.

The repository mediates between the wellness dataclasses and the SQLite
database. It assigns ids, stamps ``created_at``/``updated_at``, encrypts
free-text fields with FieldEncryptor, and turns unique-index violations into
``DuplicateKeyError`` so callers never see ``sqlite3`` exceptions.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, TypeVar

from serene.core.storage.database import WellnessDatabase
from serene.core.storage.encryption import FieldEncryptor
from serene.domains.wellness.domain_logic.entities import (
    BreathingPattern,
    BreathingSession,
    ChatMessage,
    ChatMessageType,
    FriendRequest,
    StressLog,
)
from serene.domains.wellness.domain_logic.state_machines import (
    FriendRequestStatus,
    SessionStatus,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TABLES: dict[type, str] = {
    BreathingPattern: "breathing_patterns",
    BreathingSession: "breathing_sessions",
    ChatMessage: "chat_messages",
    FriendRequest: "friend_requests",
    StressLog: "stress_logs",
}


class RepositoryError(Exception):
    """Raised when repository operations fail."""


class DuplicateKeyError(RepositoryError):
    """Raised when an insert or update collides with a unique key."""

    def __init__(self, entity_type: str, detail: str) -> None:
        self.entity_type = entity_type
        self.detail = detail
        super().__init__(f"Duplicate {entity_type}: {detail}")


class StaleRecordError(RepositoryError):
    """Raised when a conditional update finds the stored status has moved on."""

    def __init__(
        self, entity_type: str, entity_id: str, expected_status: str, current_status: str
    ) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_status = expected_status
        self.current_status = current_status
        super().__init__(
            f"{entity_type} {entity_id} is {current_status}, expected {expected_status}"
        )


def _iso(value: datetime | None) -> str | None:
    # Normalized to UTC so stored strings sort chronologically
    return value.astimezone(timezone.utc).isoformat() if value is not None else None


def _parse(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _limit(value: int | None) -> int:
    # SQLite treats a negative LIMIT as unbounded
    return -1 if value is None else value


class WellnessRepository:
    """CRUD repository for wellness records.

    Usage::

        db = WellnessDatabase(":memory:")
        db.initialize()
        repo = WellnessRepository(db, FieldEncryptor(key="..."))

        pattern = repo.insert(BreathingPattern(name="4-7-8", inhale=4, exhale=8, cycles=4, hold=7))
        repo.find_by_key(BreathingPattern, "4-7-8")
    """

    def __init__(
        self,
        database: WellnessDatabase,
        encryptor: FieldEncryptor,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._db = database
        self._enc = encryptor
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @staticmethod
    def _new_id() -> str:
        return str(uuid.uuid4())

    def _table(self, entity_type: type) -> str:
        try:
            return _TABLES[entity_type]
        except KeyError:
            raise RepositoryError(f"Unsupported record type: {entity_type.__name__}") from None

    # ------------------------------------------------------------------
    # RecordStore
    # ------------------------------------------------------------------

    def insert(self, entity: T) -> T:
        """Persist a new record; returns a copy with id and timestamps set.

        Raises:
            DuplicateKeyError: On a pattern-name or active friend-pair collision.
            RepositoryError: On any other constraint failure.
        """
        table = self._table(type(entity))
        now = self._clock()
        stamped = replace(
            entity,
            id=entity.id or self._new_id(),
            created_at=now,
            updated_at=now,
        )
        if isinstance(stamped, StressLog) and stamped.date is None:
            stamped = replace(stamped, date=now)

        row = self._to_row(stamped)
        columns = ", ".join(row)
        placeholders = ", ".join("?" for _ in row)
        self._execute(
            stamped,
            f"INSERT INTO {table} ({columns}) VALUES ({placeholders})",
            tuple(row.values()),
        )
        logger.info("Inserted %s %s", stamped.entity_type, stamped.id)
        return stamped

    def update(self, entity: T, *, expected_status: Any = None) -> T:
        """Persist changes to an existing record; returns a copy with ``updated_at`` advanced.

        With ``expected_status`` the write only lands while the stored row
        still carries that status, checked in the same statement.

        Raises:
            RepositoryError: If the record does not exist or its type is immutable.
            StaleRecordError: If the stored status differs from ``expected_status``.
            DuplicateKeyError: If the change collides with a unique key.
        """
        if isinstance(entity, BreathingPattern):
            raise RepositoryError("Breathing patterns are immutable once created")
        table = self._table(type(entity))
        if not entity.id:
            raise RepositoryError(f"Cannot update unsaved {entity.entity_type}")

        now = self._clock()
        # updated_at must strictly advance even within one clock tick
        if entity.updated_at is not None and now <= entity.updated_at:
            now = entity.updated_at + timedelta(microseconds=1)
        stamped = replace(entity, updated_at=now)

        row = self._to_row(stamped)
        row.pop("id")
        row.pop("created_at")
        assignments = ", ".join(f"{column} = ?" for column in row)
        sql = f"UPDATE {table} SET {assignments} WHERE id = ?"
        params: tuple = (*row.values(), stamped.id)
        if expected_status is not None:
            expected = getattr(expected_status, "value", expected_status)
            sql += " AND status = ?"
            params += (expected,)
        cursor = self._execute(stamped, sql, params)
        if cursor.rowcount == 0:
            stored = None
            if expected_status is not None:
                stored = self._db.connection.execute(
                    f"SELECT status FROM {table} WHERE id = ?", (stamped.id,)
                ).fetchone()
            if stored is None:
                raise RepositoryError(f"{entity.entity_type} {entity.id} not found")
            raise StaleRecordError(entity.entity_type, stamped.id, expected, stored["status"])
        logger.info("Updated %s %s", stamped.entity_type, stamped.id)
        return stamped

    def get(self, entity_type: type[T], entity_id: str) -> T | None:
        row = self._db.connection.execute(
            f"SELECT * FROM {self._table(entity_type)} WHERE id = ?", (entity_id,)
        ).fetchone()
        return self._from_row(entity_type, row) if row is not None else None

    def find_by_key(self, entity_type: type[T], key: str) -> T | None:
        """Look up a record by its natural unique key."""
        conn = self._db.connection
        if entity_type is BreathingPattern:
            row = conn.execute(
                "SELECT * FROM breathing_patterns WHERE name = ?", (key,)
            ).fetchone()
        elif entity_type is FriendRequest:
            row = conn.execute(
                "SELECT * FROM friend_requests WHERE pair_key = ? AND status <> ?",
                (key, FriendRequestStatus.REJECTED.value),
            ).fetchone()
        else:
            raise RepositoryError(f"{entity_type.__name__} has no natural key")
        return self._from_row(entity_type, row) if row is not None else None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_sessions_for_user(
        self, user_id: str, *, limit: int | None = 10
    ) -> list[BreathingSession]:
        """Breathing sessions for a user, most recent start first. ``limit=None`` returns all."""
        rows = self._db.connection.execute(
            "SELECT * FROM breathing_sessions"
            " WHERE user_id = ? ORDER BY start_time DESC, rowid DESC LIMIT ?",
            (user_id, _limit(limit)),
        ).fetchall()
        return [self._from_row(BreathingSession, row) for row in rows]

    def get_messages_for_session(self, session_id: str, *, limit: int = 100) -> list[ChatMessage]:
        """Chat messages of a session, oldest first."""
        rows = self._db.connection.execute(
            "SELECT * FROM chat_messages WHERE session_id = ? ORDER BY created_at ASC, rowid ASC LIMIT ?",
            (session_id, limit),
        ).fetchall()
        return [self._from_row(ChatMessage, row) for row in rows]

    def get_stress_logs_for_user(
        self,
        user_id: str,
        *,
        since: datetime | None = None,
        limit: int | None = 90,
    ) -> list[StressLog]:
        """Stress logs for a user, newest first. ``limit=None`` returns all."""
        query = "SELECT * FROM stress_logs WHERE user_id = ?"
        params: list[Any] = [user_id]
        if since is not None:
            query += " AND date >= ?"
            params.append(_iso(since))
        query += " ORDER BY date DESC, rowid DESC LIMIT ?"
        params.append(_limit(limit))
        rows = self._db.connection.execute(query, params).fetchall()
        return [self._from_row(StressLog, row) for row in rows]

    def get_friend_requests_for_user(
        self,
        user_id: str,
        *,
        status: FriendRequestStatus | None = None,
    ) -> list[FriendRequest]:
        """Friend requests the user sent or received, newest first."""
        query = "SELECT * FROM friend_requests WHERE (requester_id = ? OR recipient_id = ?)"
        params: list[Any] = [user_id, user_id]
        if status is not None:
            query += " AND status = ?"
            params.append(FriendRequestStatus(status).value)
        query += " ORDER BY created_at DESC, rowid DESC"
        rows = self._db.connection.execute(query, params).fetchall()
        return [self._from_row(FriendRequest, row) for row in rows]

    def count(self, entity_type: type) -> int:
        row = self._db.connection.execute(
            f"SELECT COUNT(*) FROM {self._table(entity_type)}"
        ).fetchone()
        return row[0]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _execute(self, entity: Any, sql: str, params: tuple) -> sqlite3.Cursor:
        """Run one write as its own transaction: committed, or rolled back and raised."""
        conn = self._db.connection
        try:
            cursor = conn.execute(sql, params)
            conn.commit()
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            if "UNIQUE" in str(exc):
                raise DuplicateKeyError(entity.entity_type, self._natural_key(entity)) from exc
            raise RepositoryError(f"Constraint failed for {entity.entity_type}: {exc}") from exc
        return cursor

    @staticmethod
    def _natural_key(entity: Any) -> str:
        if isinstance(entity, BreathingPattern):
            return f"name={entity.name!r}"
        if isinstance(entity, FriendRequest):
            return f"pair={entity.pair_key}"
        return f"id={entity.id}"

    def _to_row(self, entity: Any) -> dict[str, Any]:
        base = {
            "id": entity.id,
            "created_at": _iso(entity.created_at),
            "updated_at": _iso(entity.updated_at),
        }
        if isinstance(entity, BreathingPattern):
            return {
                **base,
                "name": entity.name,
                "inhale": entity.inhale,
                "hold": entity.hold,
                "exhale": entity.exhale,
                "post_exhale_hold": entity.post_exhale_hold,
                "cycles": entity.cycles,
            }
        if isinstance(entity, BreathingSession):
            return {
                **base,
                "user_id": entity.user_id,
                "pattern_name": entity.pattern_name,
                "start_time": _iso(entity.start_time),
                "end_time": _iso(entity.end_time),
                "target_cycles": entity.target_cycles,
                "completed_cycles": entity.completed_cycles,
                "stress_level_before": entity.stress_level_before,
                "stress_level_after": entity.stress_level_after,
                "status": SessionStatus(entity.status).value,
            }
        if isinstance(entity, ChatMessage):
            return {
                **base,
                "session_id": entity.session_id,
                "sender_id": entity.sender_id,
                "content_enc": self._enc.encrypt_text(entity.content),
                "type": ChatMessageType(entity.type).value,
            }
        if isinstance(entity, FriendRequest):
            return {
                **base,
                "requester_id": entity.requester_id,
                "recipient_id": entity.recipient_id,
                "pair_key": entity.pair_key,
                "status": FriendRequestStatus(entity.status).value,
            }
        if isinstance(entity, StressLog):
            return {
                **base,
                "user_id": entity.user_id,
                "level": entity.level,
                "date": _iso(entity.date),
                "triggers_enc": self._enc.encrypt_json(entity.triggers),
                "symptoms_enc": self._enc.encrypt_json(entity.symptoms),
                "notes_enc": self._enc.encrypt_text(entity.notes),
            }
        raise RepositoryError(f"Unsupported record type: {type(entity).__name__}")

    def _from_row(self, entity_type: type[T], row: sqlite3.Row) -> T:
        stamps = {
            "id": row["id"],
            "created_at": _parse(row["created_at"]),
            "updated_at": _parse(row["updated_at"]),
        }
        if entity_type is BreathingPattern:
            return BreathingPattern(
                name=row["name"],
                inhale=row["inhale"],
                hold=row["hold"],
                exhale=row["exhale"],
                post_exhale_hold=row["post_exhale_hold"],
                cycles=row["cycles"],
                **stamps,
            )
        if entity_type is BreathingSession:
            return BreathingSession(
                user_id=row["user_id"],
                pattern_name=row["pattern_name"],
                start_time=_parse(row["start_time"]),
                end_time=_parse(row["end_time"]),
                target_cycles=row["target_cycles"],
                completed_cycles=row["completed_cycles"],
                stress_level_before=row["stress_level_before"],
                stress_level_after=row["stress_level_after"],
                status=SessionStatus(row["status"]),
                **stamps,
            )
        if entity_type is ChatMessage:
            return ChatMessage(
                session_id=row["session_id"],
                sender_id=row["sender_id"],
                content=self._enc.decrypt_text(row["content_enc"]),
                type=ChatMessageType(row["type"]),
                **stamps,
            )
        if entity_type is FriendRequest:
            return FriendRequest(
                requester_id=row["requester_id"],
                recipient_id=row["recipient_id"],
                status=FriendRequestStatus(row["status"]),
                **stamps,
            )
        if entity_type is StressLog:
            return StressLog(
                user_id=row["user_id"],
                level=row["level"],
                date=_parse(row["date"]),
                triggers=self._enc.decrypt_json(row["triggers_enc"]) or [],
                symptoms=self._enc.decrypt_json(row["symptoms_enc"]) or [],
                notes=self._enc.decrypt_text(row["notes_enc"]),
                **stamps,
            )
        raise RepositoryError(f"Unsupported record type: {entity_type.__name__}")
