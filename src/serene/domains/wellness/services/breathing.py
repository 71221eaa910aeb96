"""Breathing patterns and breathing sessions."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

from serene.core.audit.logger import AuditLogger
from serene.core.storage.repository import DuplicateKeyError, StaleRecordError
from serene.core.storage.store import RecordStore
from serene.domains.wellness.domain_logic.analytics import (
    BreathingEffectiveness,
    breathing_effectiveness,
)
from serene.domains.wellness.domain_logic.entities import BreathingPattern, BreathingSession
from serene.domains.wellness.domain_logic.errors import FailureCode, RecordNotFoundError
from serene.domains.wellness.domain_logic.state_machines import (
    SessionStatus,
    check_session_transition,
)
from serene.domains.wellness.domain_logic.validators import ValidationResult
from serene.domains.wellness.services.base import RecordService

logger = logging.getLogger(__name__)

DEFAULT_PATTERNS: tuple[dict[str, Any], ...] = (
    {"name": "4-7-8", "inhale": 4, "hold": 7, "exhale": 8, "cycles": 4},
    {"name": "BOX_BREATHING", "inhale": 4, "hold": 4, "exhale": 4, "post_exhale_hold": 4, "cycles": 4},
    {"name": "QUICK_BREATH", "inhale": 2, "exhale": 4, "cycles": 6},
)


class BreathingPatternService(RecordService[BreathingPattern]):
    """Named breathing rhythms. Names are unique; patterns are never edited."""

    record_type = BreathingPattern

    def get(self, name: str) -> BreathingPattern | None:
        return self._store.find_by_key(BreathingPattern, name.strip())

    def seed_defaults(self) -> int:
        """Insert the built-in patterns that are not stored yet.

        Returns:
            Number of patterns inserted.
        """
        inserted = 0
        for pattern in DEFAULT_PATTERNS:
            if self.get(pattern["name"]) is not None:
                continue
            try:
                self.create(pattern)
            except DuplicateKeyError:
                # Inserted concurrently by another process; the unique index kept one copy.
                continue
            inserted += 1
        if inserted:
            logger.info("Seeded %d default breathing patterns", inserted)
        return inserted


class BreathingSessionService(RecordService[BreathingSession]):
    """Breathing sessions and their IN_PROGRESS / INTERRUPTED / COMPLETED lifecycle.

    Status legality is checked from (current, requested) only. The cycle and
    timing rules (``completed_cycles <= target_cycles``, end after start) are
    checked separately on the whole record at the same save.
    """

    record_type = BreathingSession

    def __init__(
        self,
        store: RecordStore,
        audit: AuditLogger | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        super().__init__(store, audit)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _before_insert(self, entity: BreathingSession) -> None:
        if entity.status != SessionStatus.IN_PROGRESS:
            result = ValidationResult()
            result.add(
                "status",
                FailureCode.ILLEGAL_TRANSITION,
                f"a new session must start as {SessionStatus.IN_PROGRESS.value}",
            )
            self._reject(entity, result)

    def start(
        self,
        user_id: str,
        pattern_name: str,
        *,
        stress_level_before: int | None = None,
        start_time: datetime | None = None,
    ) -> BreathingSession:
        """Start a session of a stored pattern; ``target_cycles`` comes from the pattern.

        Raises:
            RecordNotFoundError: If no pattern is stored under ``pattern_name``.
        """
        pattern = self._store.find_by_key(BreathingPattern, pattern_name.strip())
        if pattern is None:
            raise RecordNotFoundError(BreathingPattern.entity_type, pattern_name)
        return self.create({
            "user_id": user_id,
            "pattern_name": pattern.name,
            "start_time": start_time or self._clock(),
            "target_cycles": pattern.cycles,
            "stress_level_before": stress_level_before,
        })

    def transition(
        self, session: BreathingSession, requested: SessionStatus | str, **changes: Any
    ) -> BreathingSession:
        """Move ``session`` to ``requested``, saving any field ``changes`` with it.

        Raises:
            IllegalTransitionError: If the edge is not in the transition table.
            RecordValidationError: If the resulting record is invalid.
        """
        return self._transition(session, requested, SessionStatus, check_session_transition, changes)

    def record_cycles(self, session: BreathingSession, completed_cycles: int) -> BreathingSession:
        """Update the cycle count of a session that is still open.

        The stored status decides; the write is conditional on it not changing.
        """
        stored = self._load(session)
        reason = "cycles cannot change once the session is completed"
        if stored.status != SessionStatus.COMPLETED:
            try:
                return self._save(
                    replace(stored, completed_cycles=completed_cycles),
                    expected_status=stored.status,
                )
            except StaleRecordError as exc:
                reason = f"session became {exc.current_status} while cycles were recorded"
        result = ValidationResult()
        result.add("completed_cycles", FailureCode.ILLEGAL_TRANSITION, reason)
        self._reject(session, result, entity_id=session.id)

    def complete(
        self,
        session: BreathingSession,
        *,
        completed_cycles: int | None = None,
        stress_level_after: int | None = None,
        end_time: datetime | None = None,
    ) -> BreathingSession:
        changes: dict[str, Any] = {"end_time": end_time or self._clock()}
        if completed_cycles is not None:
            changes["completed_cycles"] = completed_cycles
        if stress_level_after is not None:
            changes["stress_level_after"] = stress_level_after
        return self.transition(session, SessionStatus.COMPLETED, **changes)

    def interrupt(self, session: BreathingSession) -> BreathingSession:
        return self.transition(session, SessionStatus.INTERRUPTED)

    def resume(self, session: BreathingSession) -> BreathingSession:
        """Resume an interrupted session. ``completed_cycles`` is kept as is."""
        return self.transition(session, SessionStatus.IN_PROGRESS)


    def effectiveness(self, user_id: str) -> BreathingEffectiveness:
        """How much the user's rated sessions lowered their stress, overall and per pattern."""
        sessions = self._store.get_sessions_for_user(user_id, limit=None)
        # oldest first, so the earlier pattern wins a tie
        return breathing_effectiveness(reversed(sessions))
