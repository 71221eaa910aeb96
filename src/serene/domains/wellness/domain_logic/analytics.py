"""Summary statistics over a user's breathing sessions and stress logs.

Pure functions: callers fetch the history, these reduce it. Empty history
yields a zeroed summary rather than an error.
"""

from __future__ import annotations

import statistics
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from serene.domains.wellness.domain_logic.entities import BreathingSession, StressLog

# Half-over-half change in mean level needed before a trend is called
TREND_THRESHOLD = 0.5
MIN_LOGS_FOR_TREND = 3
TOP_TRIGGERS = 3


class StressTrend(str, Enum):
    IMPROVING = "IMPROVING"
    WORSENING = "WORSENING"
    STABLE = "STABLE"


@dataclass(frozen=True)
class BreathingEffectiveness:
    average_stress_reduction: float = 0.0
    total_sessions: int = 0
    most_effective_pattern: str | None = None


@dataclass(frozen=True)
class StressTrends:
    average: float = 0.0
    trend: StressTrend = StressTrend.STABLE
    highest_level: int = 0
    lowest_level: int = 0
    common_triggers: list[str] = field(default_factory=list)


def breathing_effectiveness(sessions: Iterable[BreathingSession]) -> BreathingEffectiveness:
    """Average stress reduction over sessions rated before and after.

    The most effective pattern is the one with the highest average reduction,
    first seen wins a tie; it stays ``None`` unless that average is positive.

    Usage::

        summary = breathing_effectiveness(repo.get_sessions_for_user(user_id, limit=None))
        summary.most_effective_pattern  # "4-7-8"
    """
    by_pattern: dict[str, list[int]] = {}
    reductions: list[int] = []
    for session in sessions:
        reduction = session.stress_reduction
        if reduction is None:
            continue
        reductions.append(reduction)
        by_pattern.setdefault(session.pattern_name, []).append(reduction)

    if not reductions:
        return BreathingEffectiveness()

    best_pattern, best_average = None, 0.0
    for pattern, values in by_pattern.items():
        average = statistics.mean(values)
        if average > best_average:
            best_pattern, best_average = pattern, average

    return BreathingEffectiveness(
        average_stress_reduction=statistics.mean(reductions),
        total_sessions=len(reductions),
        most_effective_pattern=best_pattern,
    )


def average_stress_level(logs: Iterable[StressLog]) -> float:
    """Mean level rounded to one decimal; 0.0 for no logs."""
    levels = [log.level for log in logs]
    return round(statistics.mean(levels), 1) if levels else 0.0


def stress_trends(logs: Iterable[StressLog]) -> StressTrends:
    """Average, direction, extremes and most frequent triggers of ``logs``.

    The direction compares the mean level of the older half of the logs
    (by date) with the newer half, and needs at least three logs.
    """
    ordered = sorted(logs, key=lambda log: log.date)
    if not ordered:
        return StressTrends()

    levels = [log.level for log in ordered]
    trend = StressTrend.STABLE
    if len(levels) >= MIN_LOGS_FOR_TREND:
        mid = len(levels) // 2
        older = statistics.mean(levels[:mid])
        newer = statistics.mean(levels[mid:])
        if newer < older - TREND_THRESHOLD:
            trend = StressTrend.IMPROVING
        elif newer > older + TREND_THRESHOLD:
            trend = StressTrend.WORSENING

    counts = Counter(trigger for log in ordered for trigger in log.triggers)
    return StressTrends(
        average=round(statistics.mean(levels), 1),
        trend=trend,
        highest_level=max(levels),
        lowest_level=min(levels),
        common_triggers=[trigger for trigger, _ in counts.most_common(TOP_TRIGGERS)],
    )
