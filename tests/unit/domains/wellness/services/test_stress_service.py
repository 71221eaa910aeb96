"""Tests for StressLogService."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from serene.domains.wellness.domain_logic.analytics import StressTrend, StressTrends
from serene.domains.wellness.domain_logic.entities import StressLog
from serene.domains.wellness.domain_logic.errors import FailureCode, RecordValidationError
from serene.domains.wellness.domain_logic.scales import StressLevel

USER = str(uuid.uuid4())
DAY = datetime(2026, 2, 10, 20, 0, tzinfo=timezone.utc)


def _log(**overrides) -> dict:
    data = dict(
        user_id=USER,
        level=6,
        date=DAY,
        triggers=["deadline", "  commute "],
        symptoms=["headache"],
        notes="Rough afternoon",
    )
    data.update(overrides)
    return data


class TestCreate:
    def test_round_trip(self, stress_log_service, wellness_repository):
        created = stress_log_service.create(_log())
        stored = wellness_repository.get(StressLog, created.id)
        assert stored.level == 6
        assert stored.date == DAY
        assert stored.triggers == ["deadline", "commute"]
        assert stored.symptoms == ["headache"]
        assert stored.notes == "Rough afternoon"
        assert stored.bucket is StressLevel.MODERATE

    def test_date_defaults_to_creation_time(self, stress_log_service):
        created = stress_log_service.create(_log(date=None))
        assert created.date == created.created_at

    def test_optional_fields_default_empty(self, stress_log_service, wellness_repository):
        created = stress_log_service.create({"user_id": USER, "level": 2})
        stored = wellness_repository.get(StressLog, created.id)
        assert stored.triggers == []
        assert stored.symptoms == []
        assert stored.notes is None

    def test_six_triggers_rejected(self, stress_log_service, wellness_repository):
        with pytest.raises(RecordValidationError) as exc_info:
            stress_log_service.create(_log(triggers=["a", "b", "c", "d", "e", "f"]))
        assert exc_info.value.result.codes("triggers") == [FailureCode.TOO_MANY]
        assert wellness_repository.count(StressLog) == 0

    def test_long_trigger_fails_whole_log(self, stress_log_service):
        with pytest.raises(RecordValidationError) as exc_info:
            stress_log_service.create(_log(triggers=["x" * 101]))
        assert exc_info.value.result.codes("triggers.0") == [FailureCode.TOO_LONG]

    def test_every_failure_reported(self, stress_log_service):
        with pytest.raises(RecordValidationError) as exc_info:
            stress_log_service.create(_log(level=11, symptoms=["s"] * 11, notes="n" * 1001))
        assert set(exc_info.value.result.errors) == {"level", "symptoms", "notes"}


class TestCorrect:
    def test_correct_level(self, stress_log_service, wellness_repository):
        created = stress_log_service.create(_log())
        corrected = stress_log_service.correct(created, level=8)
        assert corrected.level == 8
        assert wellness_repository.get(StressLog, created.id).level == 8

    def test_invalid_correction_leaves_store_unchanged(self, stress_log_service, wellness_repository):
        created = stress_log_service.create(_log())
        with pytest.raises(RecordValidationError):
            stress_log_service.correct(created, level=0)
        assert wellness_repository.get(StressLog, created.id).level == 6

    def test_stored_log_keeps_its_date(self, stress_log_service, wellness_repository):
        created = stress_log_service.create(_log())
        with pytest.raises(RecordValidationError) as exc_info:
            stress_log_service.correct(created, date=None)
        assert exc_info.value.result.codes("date") == [FailureCode.MISSING_FIELD]
        assert wellness_repository.get(StressLog, created.id).date == DAY

    def test_corrections_through_old_copy_accumulate(self, stress_log_service, wellness_repository):
        created = stress_log_service.create(_log())
        stress_log_service.correct(created, level=8)
        stress_log_service.correct(created, notes="Better by evening")
        stored = wellness_repository.get(StressLog, created.id)
        assert (stored.level, stored.notes) == (8, "Better by evening")


class TestHistory:
    def test_logs_newest_first_with_since(self, stress_log_service, wellness_repository):
        for days_ago in (0, 3, 10):
            stress_log_service.create(_log(date=DAY - timedelta(days=days_ago), level=days_ago + 1))
        recent = wellness_repository.get_stress_logs_for_user(USER, since=DAY - timedelta(days=5))
        assert [log.level for log in recent] == [1, 4]


class TestSummaries:
    """The service clock starts on 2026-03-01, about 19 days after ``DAY``."""

    def _levels(self, service, *levels):
        for offset, level in enumerate(levels):
            service.create(_log(level=level, date=DAY + timedelta(hours=offset)))

    def test_empty_history(self, stress_log_service):
        assert stress_log_service.average_level(USER) == 0.0
        trends = stress_log_service.trends(USER)
        assert trends == StressTrends()
        assert trends.trend is StressTrend.STABLE
        assert trends.common_triggers == []

    @pytest.mark.parametrize("summary", ["average_level", "trends"])
    def test_negative_days(self, stress_log_service, summary):
        with pytest.raises(ValueError, match="non-negative"):
            getattr(stress_log_service, summary)(USER, days=-1)

    def test_average_rounded_to_one_decimal(self, stress_log_service):
        self._levels(stress_log_service, 3, 4, 4)
        assert stress_log_service.average_level(USER) == 3.7

    def test_window_excludes_older_logs(self, stress_log_service):
        self._levels(stress_log_service, 4)
        stress_log_service.create(_log(level=10, date=DAY - timedelta(days=20)))
        assert stress_log_service.average_level(USER, days=30) == 4.0
        assert stress_log_service.average_level(USER, days=7) == 0.0
        assert stress_log_service.average_level(USER, days=60) == 7.0

    def test_worsening(self, stress_log_service):
        self._levels(stress_log_service, 2, 3, 7, 8)
        trends = stress_log_service.trends(USER)
        assert trends.trend is StressTrend.WORSENING
        assert (trends.average, trends.highest_level, trends.lowest_level) == (5.0, 8, 2)

    def test_improving_compares_by_date_not_insertion(self, stress_log_service):
        stress_log_service.create(_log(level=3, date=DAY + timedelta(days=2)))
        stress_log_service.create(_log(level=8, date=DAY))
        stress_log_service.create(_log(level=8, date=DAY + timedelta(days=1)))
        assert stress_log_service.trends(USER).trend is StressTrend.IMPROVING

    @pytest.mark.parametrize("levels", [(1, 10), (5, 5, 6)])
    def test_stable(self, stress_log_service, levels):
        self._levels(stress_log_service, *levels)
        assert stress_log_service.trends(USER).trend is StressTrend.STABLE

    def test_common_triggers_top_three(self, stress_log_service):
        for offset, triggers in enumerate(
            (["work", "sleep"], ["work", "traffic"], ["work", "sleep", "family"])
        ):
            stress_log_service.create(_log(triggers=triggers, date=DAY + timedelta(hours=offset)))
        assert stress_log_service.trends(USER).common_triggers == ["work", "sleep", "traffic"]

    def test_other_users_are_ignored(self, stress_log_service):
        stress_log_service.create(_log(user_id=str(uuid.uuid4()), level=9))
        assert stress_log_service.average_level(USER) == 0.0
