"""Shared test fixtures for Serene wellness tests."""

from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))


# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("SERENE_LOG_LEVEL", "DB_PATH", "ENCRYPTION_KEY", "SEED_DEFAULT_PATTERNS"):
        monkeypatch.delenv(name, raising=False)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

START = datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)


class StepClock:
    """Deterministic clock: every call returns a time one second after the last."""

    def __init__(self, start: datetime = START) -> None:
        self._now = start

    def __call__(self) -> datetime:
        self._now += timedelta(seconds=1)
        return self._now


# ---------------------------------------------------------------------------
# In-memory storage fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def wellness_db():
    """Create an in-memory WellnessDatabase for testing."""
    from serene.core.storage.database import WellnessDatabase

    db = WellnessDatabase(":memory:")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def field_encryptor():
    """Create a FieldEncryptor with a test key."""
    from cryptography.fernet import Fernet

    from serene.core.storage.encryption import FieldEncryptor

    return FieldEncryptor(Fernet.generate_key().decode())


@pytest.fixture
def wellness_repository(wellness_db, field_encryptor):
    """Create a WellnessRepository backed by in-memory SQLite."""
    from serene.core.storage.repository import WellnessRepository

    return WellnessRepository(wellness_db, field_encryptor)


@pytest.fixture
def audit_logger(wellness_db):
    """Create an AuditLogger backed by in-memory SQLite."""
    from serene.core.audit.logger import AuditLogger

    return AuditLogger(wellness_db)


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------

@pytest.fixture
def pattern_service(wellness_repository, audit_logger):
    from serene.domains.wellness.services.breathing import BreathingPatternService

    return BreathingPatternService(wellness_repository, audit_logger)


@pytest.fixture
def session_service(wellness_repository, audit_logger):
    from serene.domains.wellness.services.breathing import BreathingSessionService

    return BreathingSessionService(wellness_repository, audit_logger, clock=StepClock())


@pytest.fixture
def chat_service(wellness_repository, audit_logger):
    from serene.domains.wellness.services.chat import ChatMessageService

    return ChatMessageService(wellness_repository, audit_logger)


@pytest.fixture
def friend_request_service(wellness_repository, audit_logger):
    from serene.domains.wellness.services.social import FriendRequestService

    return FriendRequestService(wellness_repository, audit_logger)


@pytest.fixture
def stress_log_service(wellness_repository, audit_logger):
    from serene.domains.wellness.services.stress import StressLogService

    return StressLogService(wellness_repository, audit_logger, clock=StepClock())
