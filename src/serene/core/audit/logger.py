"""Audit logger — trail of record creation, status changes and rejections.

Every create, status transition and constraint failure handled by the
wellness services is recorded in the ``audit_log`` table. Entries never hold
record content:

* ``payload_hash``: SHA-256 of the canonical JSON of the candidate.
* ``from_status`` / ``to_status``: the state-machine edge, for transitions.
* ``error_type``: failure code or exception class for rejected operations.
"""

from __future__ import annotations

import hashlib
import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from serene.core.storage.database import WellnessDatabase

logger = logging.getLogger(__name__)


def _hash_payload(data: Any) -> str:
    """SHA-256 hash of canonical JSON; empty string if not serializable."""
    try:
        canonical = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
        return hashlib.sha256(canonical.encode()).hexdigest()
    except (TypeError, ValueError):
        return ""


@dataclass
class AuditEvent:
    """A single audit log entry."""

    action: str                          # 'record_created' | 'status_transition' | 'constraint_violation'
    entity_type: str
    entity_id: str | None = None
    payload_hash: str = ""
    from_status: str | None = None
    to_status: str | None = None
    status: str = "success"              # 'success' | 'failure'
    error_type: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class AuditLogger:
    """Records audit events to the ``audit_log`` SQLite table.

    Writes are committed immediately. A failed audit write is logged and
    swallowed so it can never undo or mask the operation being audited.

    Usage::

        audit = AuditLogger(db)
        audit.log_transition("breathing_session", session.id, "IN_PROGRESS", "COMPLETED")
    """

    def __init__(self, database: WellnessDatabase) -> None:
        self._db = database

    # ---------------------------------------------------------------
    # Write
    # ---------------------------------------------------------------

    def log_event(self, event: AuditEvent) -> str:
        """Insert an audit event and return its id ("" if the write failed)."""
        event_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc).isoformat()

        metadata_json = (
            json.dumps(event.metadata, separators=(",", ":"), default=str)
            if event.metadata
            else None
        )

        try:
            conn = self._db.connection
            conn.execute(
                """INSERT INTO audit_log
                   (id, timestamp, action, entity_type, entity_id, payload_hash,
                    from_status, to_status, status, error_type, metadata_json)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    event_id,
                    now,
                    event.action,
                    event.entity_type,
                    event.entity_id,
                    event.payload_hash or None,
                    event.from_status,
                    event.to_status,
                    event.status,
                    event.error_type,
                    metadata_json,
                ),
            )
            conn.commit()
        except Exception:
            logger.exception("Failed to write audit event; event lost")
            return ""

        return event_id

    def log_created(self, entity_type: str, entity_id: str, payload: Any = None) -> str:
        return self.log_event(AuditEvent(
            action="record_created",
            entity_type=entity_type,
            entity_id=entity_id,
            payload_hash=_hash_payload(payload) if payload is not None else "",
        ))

    def log_transition(
        self,
        entity_type: str,
        entity_id: str,
        from_status: str,
        to_status: str,
        *,
        error_type: str | None = None,
    ) -> str:
        """Log a status change, or a refused one when ``error_type`` is given."""
        return self.log_event(AuditEvent(
            action="status_transition",
            entity_type=entity_type,
            entity_id=entity_id,
            from_status=from_status,
            to_status=to_status,
            status="failure" if error_type else "success",
            error_type=error_type,
        ))

    def log_violation(
        self,
        entity_type: str,
        error_type: str,
        *,
        entity_id: str | None = None,
        payload: Any = None,
        fields: list[str] | None = None,
    ) -> str:
        """Log a rejected create/update (validation, self-reference, duplicate key)."""
        return self.log_event(AuditEvent(
            action="constraint_violation",
            entity_type=entity_type,
            entity_id=entity_id,
            payload_hash=_hash_payload(payload) if payload is not None else "",
            status="failure",
            error_type=error_type,
            metadata={"fields": fields} if fields else {},
        ))

    # ---------------------------------------------------------------
    # Read
    # ---------------------------------------------------------------

    def get_events(
        self,
        *,
        action: str | None = None,
        entity_type: str | None = None,
        entity_id: str | None = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        """Query audit events with optional filters, newest first."""
        conditions: list[str] = []
        params: list[Any] = []

        if action:
            conditions.append("action = ?")
            params.append(action)
        if entity_type:
            conditions.append("entity_type = ?")
            params.append(entity_type)
        if entity_id:
            conditions.append("entity_id = ?")
            params.append(entity_id)

        where = (" WHERE " + " AND ".join(conditions)) if conditions else ""
        query = f"SELECT * FROM audit_log{where} ORDER BY timestamp DESC, rowid DESC LIMIT ?"
        params.append(limit)

        rows = self._db.connection.execute(query, params).fetchall()
        return [dict(row) for row in rows]

    def count_events(self, *, action: str | None = None) -> int:
        if action:
            row = self._db.connection.execute(
                "SELECT COUNT(*) FROM audit_log WHERE action = ?", (action,)
            ).fetchone()
        else:
            row = self._db.connection.execute("SELECT COUNT(*) FROM audit_log").fetchone()
        return row[0]
