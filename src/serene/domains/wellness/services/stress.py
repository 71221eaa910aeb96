"""Stress logs."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any

from serene.core.audit.logger import AuditLogger
from serene.core.storage.store import RecordStore
from serene.domains.wellness.domain_logic.analytics import (
    StressTrends,
    average_stress_level,
    stress_trends,
)
from serene.domains.wellness.domain_logic.entities import StressLog
from serene.domains.wellness.services.base import RecordService


class StressLogService(RecordService[StressLog]):
    """Self-reported stress readings.

    ``date`` defaults to the creation time; triggers and symptoms are stored
    trimmed. ``average_level`` and ``trends`` summarize the logs dated within
    the last ``days`` days.

    Usage::

        service = StressLogService(repository, audit)
        service.create({"user_id": user_id, "level": 6, "triggers": ["deadline"]})
        service.trends(user_id, days=30).trend  # StressTrend.STABLE
    """

    record_type = StressLog

    def __init__(
        self,
        store: RecordStore,
        audit: AuditLogger | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        super().__init__(store, audit)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def correct(self, log: StressLog, **changes: Any) -> StressLog:
        """Apply a corrective edit to a stored log, re-validating every field."""
        return self._save(replace(self._load(log), **changes))

    def average_level(self, user_id: str, *, days: int = 30) -> float:
        """Mean level of the user's recent logs, one decimal; 0.0 when there are none.

        Raises:
            ValueError: If ``days`` is negative.
        """
        return average_stress_level(self._recent(user_id, days))

    def trends(self, user_id: str, *, days: int = 30) -> StressTrends:
        """
        Raises:
            ValueError: If ``days`` is negative.
        """
        return stress_trends(self._recent(user_id, days))

    def _recent(self, user_id: str, days: int) -> list[StressLog]:
        if days < 0:
            raise ValueError(f"days must be non-negative, got {days}")
        since = self._clock() - timedelta(days=days)
        return self._store.get_stress_logs_for_user(user_id, since=since, limit=None)
