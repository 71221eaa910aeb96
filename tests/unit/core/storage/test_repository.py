"""Tests for WellnessRepository — RecordStore over in-memory SQLite."""

from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from serene.core.storage.repository import (
    DuplicateKeyError,
    RepositoryError,
    StaleRecordError,
    WellnessRepository,
)
from serene.core.storage.store import RecordStore
from serene.domains.wellness.domain_logic.entities import (
    BreathingPattern,
    BreathingSession,
    ChatMessage,
    FriendRequest,
    StressLog,
)
from serene.domains.wellness.domain_logic.state_machines import FriendRequestStatus

USER = str(uuid.uuid4())
FRIEND = str(uuid.uuid4())
FIXED = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)


def _pattern(**overrides) -> BreathingPattern:
    data = dict(name="4-7-8", inhale=4, hold=7, exhale=8, cycles=4)
    data.update(overrides)
    return BreathingPattern(**data)


class TestProtocol:
    def test_implements_record_store(self, wellness_repository):
        assert isinstance(wellness_repository, RecordStore)


class TestInsert:
    def test_assigns_id_and_timestamps(self, wellness_repository):
        saved = wellness_repository.insert(_pattern())
        assert len(saved.id) == 36  # UUID format
        assert saved.created_at is not None
        assert saved.created_at == saved.updated_at
        assert saved.created_at.tzinfo is not None

    def test_does_not_mutate_input(self, wellness_repository):
        pattern = _pattern()
        wellness_repository.insert(pattern)
        assert pattern.id == ""

    def test_round_trip(self, wellness_repository):
        saved = wellness_repository.insert(_pattern())
        loaded = wellness_repository.get(BreathingPattern, saved.id)
        assert loaded == saved

    def test_duplicate_pattern_name(self, wellness_repository):
        wellness_repository.insert(_pattern())
        with pytest.raises(DuplicateKeyError) as exc_info:
            wellness_repository.insert(_pattern(inhale=1))
        assert exc_info.value.entity_type == BreathingPattern.entity_type
        assert wellness_repository.count(BreathingPattern) == 1

    def test_duplicate_is_a_repository_error(self):
        assert issubclass(DuplicateKeyError, RepositoryError)

    def test_session_check_constraint_is_repository_error(self, wellness_repository):
        session = BreathingSession(
            user_id=USER, pattern_name="x", start_time=FIXED, target_cycles=1, completed_cycles=2
        )
        with pytest.raises(RepositoryError) as exc_info:
            wellness_repository.insert(session)
        assert not isinstance(exc_info.value, DuplicateKeyError)

    def test_connection_usable_after_failed_insert(self, wellness_repository):
        wellness_repository.insert(_pattern())
        with pytest.raises(DuplicateKeyError):
            wellness_repository.insert(_pattern())
        wellness_repository.insert(_pattern(name="BOX_BREATHING"))
        assert wellness_repository.count(BreathingPattern) == 2

    def test_unsupported_type(self, wellness_repository):
        with pytest.raises(RepositoryError):
            wellness_repository.insert(object())


class TestEncryptionAtRest:
    def test_chat_content_is_ciphertext(self, wellness_repository, wellness_db):
        saved = wellness_repository.insert(
            ChatMessage(session_id=str(uuid.uuid4()), sender_id=USER, content="private words")
        )
        raw = wellness_db.connection.execute(
            "SELECT content_enc FROM chat_messages WHERE id = ?", (saved.id,)
        ).fetchone()[0]
        assert "private words" not in raw
        assert wellness_repository.get(ChatMessage, saved.id).content == "private words"

    def test_stress_fields_are_ciphertext(self, wellness_repository, wellness_db):
        saved = wellness_repository.insert(
            StressLog(user_id=USER, level=4, triggers=["exam"], symptoms=["insomnia"], notes="tired")
        )
        row = wellness_db.connection.execute(
            "SELECT triggers_enc, symptoms_enc, notes_enc FROM stress_logs WHERE id = ?",
            (saved.id,),
        ).fetchone()
        assert "exam" not in row["triggers_enc"]
        assert "insomnia" not in row["symptoms_enc"]
        assert "tired" not in row["notes_enc"]


class TestUpdate:
    def test_updated_at_strictly_advances(self, wellness_db, field_encryptor):
        repo = WellnessRepository(wellness_db, field_encryptor, clock=lambda: FIXED)
        saved = repo.insert(StressLog(user_id=USER, level=3))
        updated = repo.update(saved)
        assert updated.updated_at > saved.updated_at
        assert updated.created_at == saved.created_at

    def test_patterns_are_immutable(self, wellness_repository):
        saved = wellness_repository.insert(_pattern())
        with pytest.raises(RepositoryError, match="immutable"):
            wellness_repository.update(saved)

    def test_unsaved_record(self, wellness_repository):
        with pytest.raises(RepositoryError):
            wellness_repository.update(StressLog(user_id=USER, level=3))

    def test_missing_record(self, wellness_repository):
        with pytest.raises(RepositoryError, match="not found"):
            wellness_repository.update(StressLog(user_id=USER, level=3, date=FIXED, id=str(uuid.uuid4())))

    def test_reactivating_a_pair_collides(self, wellness_repository):
        first = wellness_repository.insert(
            FriendRequest(requester_id=USER, recipient_id=FRIEND, status=FriendRequestStatus.REJECTED)
        )
        wellness_repository.insert(FriendRequest(requester_id=FRIEND, recipient_id=USER))
        with pytest.raises(DuplicateKeyError):
            wellness_repository.update(replace(first, status=FriendRequestStatus.PENDING))

    def test_conditional_update_on_matching_status(self, wellness_repository):
        saved = wellness_repository.insert(FriendRequest(requester_id=USER, recipient_id=FRIEND))
        accepted = wellness_repository.update(
            replace(saved, status=FriendRequestStatus.ACCEPTED),
            expected_status=FriendRequestStatus.PENDING,
        )
        assert wellness_repository.get(FriendRequest, saved.id).status is FriendRequestStatus.ACCEPTED
        assert accepted.updated_at > saved.updated_at

    def test_conditional_update_refuses_moved_status(self, wellness_repository):
        saved = wellness_repository.insert(FriendRequest(requester_id=USER, recipient_id=FRIEND))
        wellness_repository.update(replace(saved, status=FriendRequestStatus.ACCEPTED))
        with pytest.raises(StaleRecordError) as exc_info:
            wellness_repository.update(
                replace(saved, status=FriendRequestStatus.REJECTED),
                expected_status=FriendRequestStatus.PENDING,
            )
        assert exc_info.value.expected_status == "pending"
        assert exc_info.value.current_status == "accepted"
        assert wellness_repository.get(FriendRequest, saved.id).status is FriendRequestStatus.ACCEPTED

    def test_conditional_update_of_missing_record(self, wellness_repository):
        ghost = FriendRequest(requester_id=USER, recipient_id=FRIEND, id=str(uuid.uuid4()))
        with pytest.raises(RepositoryError, match="not found") as exc_info:
            wellness_repository.update(ghost, expected_status=FriendRequestStatus.PENDING)
        assert not isinstance(exc_info.value, StaleRecordError)


class TestLookups:
    def test_get_missing(self, wellness_repository):
        assert wellness_repository.get(StressLog, str(uuid.uuid4())) is None

    def test_find_pattern_by_name(self, wellness_repository):
        saved = wellness_repository.insert(_pattern())
        assert wellness_repository.find_by_key(BreathingPattern, "4-7-8").id == saved.id

    def test_find_active_friend_request(self, wellness_repository):
        saved = wellness_repository.insert(FriendRequest(requester_id=USER, recipient_id=FRIEND))
        found = wellness_repository.find_by_key(FriendRequest, saved.pair_key)
        assert found.id == saved.id
        assert found.pair_key == saved.pair_key

    def test_no_natural_key(self, wellness_repository):
        with pytest.raises(RepositoryError):
            wellness_repository.find_by_key(StressLog, "x")

    def test_stress_log_limit(self, wellness_repository):
        for days in range(5):
            wellness_repository.insert(StressLog(user_id=USER, level=2, date=FIXED - timedelta(days=days)))
        logs = wellness_repository.get_stress_logs_for_user(USER, limit=2)
        assert [log.date for log in logs] == [FIXED, FIXED - timedelta(days=1)]

    def test_unbounded_limit(self, wellness_repository):
        for days in range(3):
            wellness_repository.insert(StressLog(user_id=USER, level=2, date=FIXED - timedelta(days=days)))
        assert len(wellness_repository.get_stress_logs_for_user(USER, limit=None)) == 3
        assert wellness_repository.get_sessions_for_user(USER, limit=None) == []
